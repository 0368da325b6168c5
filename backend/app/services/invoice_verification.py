"""
Facility invoice check verification.

Dispatchers confirm that a mailed check arrived (``received``) or flag it
(``has_issues``). The status write is guarded on the status read, same as
trip transitions.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.exceptions import ConflictError, ResourceNotFoundError
from backend.app.models.billing_enums import CheckVerificationAction, InvoicePaymentStatus
from backend.app.models.facility_invoice import FacilityInvoice
from backend.app.services.audit import AuditAction, log_event

logger = logging.getLogger("nemt_dispatch.invoices")

VERIFIABLE_STATUSES = frozenset({
    InvoicePaymentStatus.CHECK_BEING_VERIFIED.value,
    InvoicePaymentStatus.CHECK_HAS_ISSUES.value,
})


async def _get_invoice(db: AsyncSession, invoice_id: str) -> FacilityInvoice:
    result = await db.execute(
        select(FacilityInvoice)
        .where(FacilityInvoice.id == invoice_id)
        .execution_options(populate_existing=True)
    )
    invoice = result.scalar_one_or_none()
    if not invoice:
        raise ResourceNotFoundError("Invoice", invoice_id)
    return invoice


async def verify_check_payment(
    db: AsyncSession,
    invoice_id: str,
    action: CheckVerificationAction,
    actor: dict,
    now: Optional[datetime] = None,
) -> FacilityInvoice:
    """
    Record the outcome of a check verification.

    Raises:
        ResourceNotFoundError: no such invoice
        ConflictError: invoice is not awaiting check verification, or changed meanwhile
    """
    now = now or datetime.now(timezone.utc)
    action = CheckVerificationAction(action)
    invoice = await _get_invoice(db, invoice_id)
    current = invoice.payment_status

    if current not in VERIFIABLE_STATUSES:
        raise ConflictError(
            f"Invoice payment status is '{current}'; only check payments awaiting verification can be verified",
            details={"invoice_id": invoice_id, "current_status": current}
        )

    verifier = actor.get("name") or actor.get("email") or "dispatcher"
    stamp = now.strftime("%Y-%m-%d %H:%M")
    values = {"verified_by": actor.get("user_id"), "verified_at": now}
    if action == CheckVerificationAction.RECEIVED:
        values.update(
            payment_status=InvoicePaymentStatus.CHECK_VERIFIED.value,
            payment_date=now,
            payment_notes=f"Check payment verified by {verifier} on {stamp}",
        )
        audit_action = AuditAction.CHECK_PAYMENT_VERIFIED
    else:
        values.update(
            payment_status=InvoicePaymentStatus.CHECK_HAS_ISSUES.value,
            payment_notes=f"Check payment flagged with issues by {verifier} on {stamp}",
        )
        audit_action = AuditAction.CHECK_PAYMENT_FLAGGED

    result = await db.execute(
        update(FacilityInvoice)
        .where(FacilityInvoice.id == invoice_id, FacilityInvoice.payment_status == current)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        raise ConflictError(
            "Invoice payment status changed before this verification could be saved",
            details={"invoice_id": invoice_id, "expected_status": current}
        )
    await db.commit()

    await log_event(
        db,
        action=audit_action,
        actor_id=actor.get("user_id"),
        actor_email=actor.get("email"),
        invoice_id=invoice_id,
        metadata={"from": current, "to": values["payment_status"], "month": invoice.month}
    )
    logger.info("Invoice %s: %s -> %s", invoice_id, current, values["payment_status"])
    return await _get_invoice(db, invoice_id)
