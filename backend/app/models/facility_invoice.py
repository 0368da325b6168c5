"""
Facility Invoice database model.

One invoice per facility per month; dispatchers verify mailed check payments.
"""

import uuid
from sqlalchemy import Column, String, DateTime, Numeric, Text, UniqueConstraint
from sqlalchemy.sql import func
from backend.app.db.session import Base
from backend.app.models.billing_enums import InvoicePaymentStatus


class FacilityInvoice(Base):
    """Monthly facility invoice."""
    __tablename__ = "facility_invoices"
    __table_args__ = (
        UniqueConstraint("facility_id", "month", name="uq_facility_invoice_month"),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    facility_id = Column(String(36), nullable=False, index=True)
    month = Column(String(7), nullable=False)  # YYYY-MM
    total_amount = Column(Numeric(12, 2), nullable=False, default=0)

    # Free-form status strings are shared with the facility app
    payment_status = Column(String(64), nullable=False, default=InvoicePaymentStatus.UNPAID.value, index=True)
    payment_notes = Column(Text, nullable=True)
    payment_date = Column(DateTime(timezone=True), nullable=True)
    verified_by = Column(String(36), nullable=True)
    verified_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<FacilityInvoice(id={self.id}, facility_id={self.facility_id}, month='{self.month}', status='{self.payment_status}')>"
