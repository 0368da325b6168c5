"""
Trip-related enumerations.
"""

import enum


class TripStatus(str, enum.Enum):
    """Trip status enumeration."""
    PENDING = "pending"  # Booked, awaiting dispatcher approval
    UPCOMING = "upcoming"  # Approved and scheduled
    APPROVED = "approved"  # Legacy alias of UPCOMING
    AWAITING_DRIVER_ACCEPTANCE = "awaiting_driver_acceptance"
    IN_PROGRESS = "in_progress"
    IN_PROCESS = "in_process"  # Legacy alias of IN_PROGRESS
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    REJECTED = "rejected"  # Declined by the assigned driver

    # Card-charged individual trips
    APPROVED_PENDING_PAYMENT = "approved_pending_payment"
    PAID_IN_PROGRESS = "paid_in_progress"
    PAYMENT_FAILED = "payment_failed"


TERMINAL_STATUSES = frozenset({TripStatus.COMPLETED, TripStatus.CANCELLED, TripStatus.REJECTED})

STATUS_ALIASES = {
    TripStatus.APPROVED: TripStatus.UPCOMING,
    TripStatus.IN_PROCESS: TripStatus.IN_PROGRESS,
}


def canonical_status(status: "TripStatus") -> "TripStatus":
    """Collapse legacy aliases onto the status they stand for."""
    status = TripStatus(status)
    return STATUS_ALIASES.get(status, status)


def with_aliases(statuses) -> list:
    """Stored values matching ``statuses``, legacy aliases included."""
    canonical = {canonical_status(s) for s in statuses}
    matching = canonical | {alias for alias, target in STATUS_ALIASES.items() if target in canonical}
    return sorted(matching, key=lambda s: s.value)


class TripAction(str, enum.Enum):
    """Actions that drive trip status transitions."""
    APPROVE = "approve"
    REJECT = "reject"
    CANCEL = "cancel"
    COMPLETE = "complete"
    ASSIGN_DRIVER = "assign_driver"
    OPTIMIZER_ASSIGN = "optimizer_assign"
    DRIVER_ACCEPT = "driver_accept"
    DRIVER_REJECT = "driver_reject"

    # Outcomes of the card charge attempted at approval
    CHARGE_SUCCEEDED = "charge_succeeded"
    CHARGE_DECLINED = "charge_declined"
    CHARGE_DEFERRED = "charge_deferred"


class TripPaymentStatus(str, enum.Enum):
    """Card payment state of an individual trip."""
    PENDING = "pending"  # Manual payment required
    PAID = "paid"
    FAILED = "failed"


class TripCategory(str, enum.Enum):
    """Who booked the trip."""
    FACILITY = "facility"
    INDIVIDUAL = "individual"
    UNCLASSIFIED = "unclassified"  # Both or neither of facility_id / user_id
