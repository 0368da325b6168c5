"""
Facility Invoice Check Verification Endpoint.
"""

from fastapi import APIRouter, Depends, Path
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.guards import require_dispatcher
from backend.app.db.session import get_db
from backend.app.models.billing_enums import CheckVerificationAction
from backend.app.schemas.invoice import (
    CheckVerificationRequest,
    CheckVerificationResponse,
    FacilityInvoiceResponse,
)
from backend.app.services.invoice_verification import verify_check_payment

router = APIRouter(prefix="/dispatcher/invoices", tags=["Dispatcher - Invoice Verification"])


@router.post("/{invoice_id}/verify-check", response_model=CheckVerificationResponse)
async def verify_check(
    request: CheckVerificationRequest,
    invoice_id: str = Path(..., description="Facility invoice ID"),
    current_user: dict = Depends(require_dispatcher),
    db: AsyncSession = Depends(get_db)
):
    """
    Mark a mailed check as received, or flag it as having issues.

    Only invoices in ``PAID WITH CHECK (BEING VERIFIED)`` or
    ``CHECK PAYMENT - HAS ISSUES`` can be verified.
    """
    invoice = await verify_check_payment(db, invoice_id, request.action, current_user)
    if request.action == CheckVerificationAction.RECEIVED:
        message = "Check payment verified"
    else:
        message = "Check payment marked as having issues"
    return CheckVerificationResponse(
        message=message,
        new_status=invoice.payment_status,
        invoice=FacilityInvoiceResponse.model_validate(invoice),
    )
