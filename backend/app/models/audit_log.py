"""
Audit Log Database Model.

Tracks dispatcher and driver actions on trips and invoices.
"""

from sqlalchemy import Column, Integer, String, DateTime, JSON
from sqlalchemy.sql import func
from backend.app.db.session import Base


class AuditLog(Base):
    """
    Audit log model.

    Events logged:
    - TRIP_APPROVED / TRIP_REJECTED / TRIP_CANCELLED / TRIP_COMPLETED
    - DRIVER_ASSIGNED / DRIVER_ACCEPTED / DRIVER_REJECTED
    - PAYMENT_CHARGED / PAYMENT_FAILED / PAYMENT_DEFERRED
    - OPTIMIZATION_APPLIED
    - CHECK_PAYMENT_VERIFIED / CHECK_PAYMENT_FLAGGED
    """
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Who performed the action (None for system actions)
    actor_id = Column(String(36), index=True, nullable=True)
    actor_email = Column(String(255), nullable=True)

    # What action was performed
    action = Column(String(100), nullable=False, index=True)

    # What it was performed on
    trip_id = Column(String(36), index=True, nullable=True)
    invoice_id = Column(String(36), index=True, nullable=True)

    # Additional context (JSON for flexibility)
    meta_data = Column(JSON, nullable=True)

    timestamp = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)

    def __repr__(self):
        return f"<AuditLog(id={self.id}, action='{self.action}', actor={self.actor_email}, trip={self.trip_id})>"
