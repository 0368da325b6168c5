"""
Trip schemas.

Schemas for trip visibility, dispatcher actions and driver responses.
"""

from pydantic import BaseModel, Field
from typing import Any, Dict, List, Literal, Optional
from datetime import datetime
from decimal import Decimal

from backend.app.domain.dispatch.classification import classify_trip
from backend.app.models.trip_enums import TripCategory, TripPaymentStatus, TripStatus


class TripQuery(BaseModel):
    """Store-level trip filter."""
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    statuses: Optional[List[TripStatus]] = None
    unassigned_only: Optional[bool] = None  # True: no driver, False: has driver, None: either
    driver_id: Optional[str] = None
    category: Optional[TripCategory] = None
    limit: int = Field(200, ge=1, le=1000)


class TripResponse(BaseModel):
    """Schema for trip response."""
    id: str
    status: TripStatus
    category: Optional[str] = None  # facility, individual, unclassified
    pickup_time: Optional[datetime]
    pickup_address: Optional[str]
    destination_address: Optional[str]
    price: Decimal
    driver_id: Optional[str]
    driver_name: Optional[str]
    facility_id: Optional[str]
    user_id: Optional[str]
    managed_client_id: Optional[str]
    payment_status: Optional[TripPaymentStatus]
    payment_error: Optional[str] = None
    cancellation_reason: Optional[str]
    rejected_by_driver_id: Optional[str] = None
    completed_at: Optional[datetime]
    charged_at: Optional[datetime]
    verified_at: Optional[datetime]
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True
        use_enum_values = True


class TripListResponse(BaseModel):
    """Filtered trip list with per-category counts."""
    trips: List[TripResponse]
    total: int
    counts: Dict[str, int]


class TripActionRequest(BaseModel):
    """Dispatcher action on a trip."""
    action: Literal["approve", "reject", "cancel", "complete"]
    reason: Optional[str] = None


class PaymentOutcome(BaseModel):
    """What happened to the card charge during approval."""
    charged: bool
    status: str  # paid, failed, pending, not_applicable
    amount: Optional[Decimal] = None
    payment_intent_id: Optional[str] = None
    error: Optional[str] = None
    reason: Optional[str] = None


class TripActionResponse(BaseModel):
    """Response after any trip transition."""
    success: bool = True
    trip: TripResponse
    previous_status: str
    message: str
    warning: Optional[str] = None
    payment: Optional[PaymentOutcome] = None
    details: Dict[str, Any] = {}


class DriverAssignmentRequest(BaseModel):
    """Schema for assigning a driver to a trip."""
    driver_id: str = Field(..., min_length=1)


class DriverResponseRequest(BaseModel):
    """Driver accepting or declining an assigned trip."""
    action: Literal["accept", "reject"]
    reason: Optional[str] = None


def trip_response(trip) -> TripResponse:
    """Serialize a Trip row with its booking category."""
    response = TripResponse.model_validate(trip)
    response.category = classify_trip(trip).value
    return response
