"""
Facility invoice payment verification schemas.
"""

from pydantic import BaseModel
from typing import Optional
from datetime import datetime
from decimal import Decimal

from backend.app.models.billing_enums import CheckVerificationAction


class CheckVerificationRequest(BaseModel):
    action: CheckVerificationAction


class FacilityInvoiceResponse(BaseModel):
    id: str
    facility_id: str
    month: str
    total_amount: Decimal
    payment_status: str
    payment_notes: Optional[str]
    payment_date: Optional[datetime]
    verified_by: Optional[str]
    verified_at: Optional[datetime]

    class Config:
        from_attributes = True


class CheckVerificationResponse(BaseModel):
    success: bool = True
    message: str
    new_status: str
    invoice: FacilityInvoiceResponse
