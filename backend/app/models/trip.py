"""
Trip database model.

A trip is a single transportation booking. It is created in ``pending`` by a
booking app (facility or individual) and moved through its lifecycle by
dispatchers and drivers.
"""

import uuid
from sqlalchemy import Column, String, ForeignKey, DateTime, Enum, Numeric, Text
from sqlalchemy.sql import func
from backend.app.db.session import Base
from backend.app.models.trip_enums import TripStatus, TripPaymentStatus


def enum_values(enum_cls):
    """Persist enum values (``"in_progress"``) rather than member names."""
    return [member.value for member in enum_cls]


class Trip(Base):
    """
    Trip model.

    ``facility_id`` marks a facility trip; ``user_id`` without ``facility_id``
    marks an individual trip. Rows with both or neither are kept and surfaced
    as unclassified.
    """
    __tablename__ = "trips"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    # Status
    status = Column(
        Enum(TripStatus, values_callable=enum_values, native_enum=False, length=40),
        default=TripStatus.PENDING,
        nullable=False,
        index=True
    )

    # Schedule and route (naive local timestamps, as entered by the booking app)
    pickup_time = Column(DateTime(timezone=False), nullable=True, index=True)
    pickup_address = Column(Text, nullable=True)
    destination_address = Column(Text, nullable=True)
    price = Column(Numeric(10, 2), nullable=False, default=0)

    # Ownership
    facility_id = Column(String(36), nullable=True, index=True)
    user_id = Column(String(36), nullable=True, index=True)
    managed_client_id = Column(String(36), nullable=True, index=True)

    # Driver assignment
    driver_id = Column(String(36), ForeignKey("profiles.id"), nullable=True, index=True)
    driver_name = Column(String(255), nullable=True)
    rejected_by_driver_id = Column(String(36), nullable=True)

    # Card payment (individual trips only)
    payment_method_id = Column(String(255), nullable=True)
    payment_status = Column(
        Enum(TripPaymentStatus, values_callable=enum_values, native_enum=False, length=20),
        nullable=True
    )
    payment_intent_id = Column(String(255), nullable=True)
    payment_amount = Column(Numeric(10, 2), nullable=True)
    payment_error = Column(Text, nullable=True)

    # Dispatcher notes
    cancellation_reason = Column(Text, nullable=True)
    approval_notes = Column(Text, nullable=True)
    completion_notes = Column(Text, nullable=True)

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    charged_at = Column(DateTime(timezone=True), nullable=True)
    verified_at = Column(DateTime(timezone=True), nullable=True)

    def __repr__(self):
        return f"<Trip(id={self.id}, status='{self.status.value}', driver_id={self.driver_id})>"
