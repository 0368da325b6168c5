"""
Audit logging service.

Every successful trip transition, optimizer apply and invoice verification
leaves one row in ``audit_logs``.
"""

from typing import Optional, Dict, Any
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, desc
from backend.app.models.audit_log import AuditLog


class AuditAction:
    """Standardized audit action constants."""
    TRIP_APPROVED = "TRIP_APPROVED"
    TRIP_REJECTED = "TRIP_REJECTED"
    TRIP_CANCELLED = "TRIP_CANCELLED"
    TRIP_COMPLETED = "TRIP_COMPLETED"

    DRIVER_ASSIGNED = "DRIVER_ASSIGNED"
    DRIVER_ACCEPTED = "DRIVER_ACCEPTED"
    DRIVER_REJECTED = "DRIVER_REJECTED"

    PAYMENT_CHARGED = "PAYMENT_CHARGED"
    PAYMENT_FAILED = "PAYMENT_FAILED"
    PAYMENT_DEFERRED = "PAYMENT_DEFERRED"

    OPTIMIZATION_APPLIED = "OPTIMIZATION_APPLIED"

    CHECK_PAYMENT_VERIFIED = "CHECK_PAYMENT_VERIFIED"
    CHECK_PAYMENT_FLAGGED = "CHECK_PAYMENT_FLAGGED"


async def log_event(
    db: AsyncSession,
    action: str,
    actor_id: Optional[str] = None,
    actor_email: Optional[str] = None,
    trip_id: Optional[str] = None,
    invoice_id: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None
) -> AuditLog:
    """
    Record an audit event.

    Args:
        db: Database session
        action: Action performed (use AuditAction constants)
        actor_id: Profile performing the action (None for system actions)
        actor_email: Email of the actor
        trip_id: Trip acted upon, if any
        invoice_id: Facility invoice acted upon, if any
        metadata: Additional context as JSON

    Returns:
        Created AuditLog instance
    """
    audit_log = AuditLog(
        actor_id=actor_id,
        actor_email=actor_email,
        action=action,
        trip_id=trip_id,
        invoice_id=invoice_id,
        meta_data=metadata
    )

    db.add(audit_log)
    await db.commit()
    await db.refresh(audit_log)

    return audit_log


async def get_trip_audit_trail(
    db: AsyncSession,
    trip_id: str,
    limit: int = 100
) -> list[AuditLog]:
    """Audit entries for one trip, most recent first."""
    query = (
        select(AuditLog)
        .where(AuditLog.trip_id == trip_id)
        .order_by(desc(AuditLog.timestamp), desc(AuditLog.id))
        .limit(limit)
    )
    result = await db.execute(query)
    return result.scalars().all()
