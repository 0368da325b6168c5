"""
Trip Lifecycle State Machine.

Pure transition planning: given a snapshot of a trip and an action, decide
whether the action is allowed and which fields the write must set. Nothing
here touches the database; ``TripStore.update_trip`` performs the
compare-and-set against ``TransitionPlan.expected_status``.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Optional

from backend.app.core.exceptions import (
    ConflictError,
    InsufficientPermissionsError,
    InvalidTransitionError,
    ValidationError,
)
from backend.app.models.trip_enums import (
    TERMINAL_STATUSES,
    TripAction,
    TripPaymentStatus,
    TripStatus,
    canonical_status,
)


NON_TERMINAL_STATUSES = frozenset(
    canonical_status(s) for s in TripStatus if canonical_status(s) not in TERMINAL_STATUSES
)

# Canonical statuses each action may start from
ALLOWED_FROM: Dict[TripAction, frozenset] = {
    TripAction.APPROVE: frozenset({TripStatus.PENDING}),
    TripAction.REJECT: frozenset({TripStatus.PENDING}),
    TripAction.CANCEL: NON_TERMINAL_STATUSES,
    TripAction.COMPLETE: frozenset({
        TripStatus.UPCOMING,
        TripStatus.IN_PROGRESS,
        TripStatus.PAID_IN_PROGRESS,
    }),
    TripAction.ASSIGN_DRIVER: frozenset({TripStatus.UPCOMING}),
    TripAction.OPTIMIZER_ASSIGN: frozenset({TripStatus.PENDING, TripStatus.UPCOMING}),
    TripAction.DRIVER_ACCEPT: frozenset({TripStatus.AWAITING_DRIVER_ACCEPTANCE}),
    TripAction.DRIVER_REJECT: frozenset({TripStatus.AWAITING_DRIVER_ACCEPTANCE}),
    TripAction.CHARGE_SUCCEEDED: frozenset({TripStatus.APPROVED_PENDING_PAYMENT}),
    TripAction.CHARGE_DECLINED: frozenset({TripStatus.APPROVED_PENDING_PAYMENT}),
    TripAction.CHARGE_DEFERRED: frozenset({TripStatus.APPROVED_PENDING_PAYMENT}),
}


@dataclass
class TransitionPlan:
    """The write a transition needs, guarded by the status it was planned from."""
    action: TripAction
    expected_status: TripStatus
    target_status: TripStatus
    fields: Dict[str, Any] = field(default_factory=dict)
    require_unassigned: bool = False

    def values(self) -> Dict[str, Any]:
        return {**self.fields, "status": self.target_status}


def can_transition(status: TripStatus, action: TripAction) -> bool:
    return canonical_status(status) in ALLOWED_FROM[action]


def allowed_actions(status: TripStatus) -> list:
    """Actions a dispatcher or driver may take on a trip in ``status``."""
    return [action for action in TripAction if can_transition(status, action)]


def is_card_charged(trip) -> bool:
    """Individual trips booked with a saved card are charged at approval."""
    return bool(trip.user_id and not trip.facility_id and trip.payment_method_id)


def require_reason(reason: Optional[str], action: str = "reject") -> str:
    """Rejections and cancellations must carry a non-blank reason."""
    if reason is None or not str(reason).strip():
        raise ValidationError(
            f"A reason is required to {action} a trip",
            details={"field": "reason"}
        )
    return str(reason).strip()


def _ensure_allowed(trip, action: TripAction) -> TripStatus:
    current = TripStatus(trip.status)
    if not can_transition(current, action):
        allowed = sorted(s.value for s in ALLOWED_FROM[action])
        raise InvalidTransitionError(action.value.replace("_", " "), current.value, allowed)
    return current


def _ensure_unassigned(trip) -> None:
    if trip.driver_id:
        raise ConflictError(
            "Trip is already assigned to another driver",
            details={"trip_id": trip.id, "driver_id": trip.driver_id}
        )


def plan_approve(trip, now: datetime, approver: str = "dispatcher") -> TransitionPlan:
    """
    Approve a pending trip.

    Card-charged individual trips wait in ``approved_pending_payment`` until
    the charge resolves; every other trip goes straight to ``upcoming``.
    """
    current = _ensure_allowed(trip, TripAction.APPROVE)
    target = TripStatus.APPROVED_PENDING_PAYMENT if is_card_charged(trip) else TripStatus.UPCOMING
    return TransitionPlan(
        action=TripAction.APPROVE,
        expected_status=current,
        target_status=target,
        fields={"approval_notes": f"Approved by {approver} at {now:%Y-%m-%d %H:%M}"}
    )


def plan_charge_succeeded(trip, now: datetime, payment_intent_id: str, amount: Optional[Decimal]) -> TransitionPlan:
    current = _ensure_allowed(trip, TripAction.CHARGE_SUCCEEDED)
    return TransitionPlan(
        action=TripAction.CHARGE_SUCCEEDED,
        expected_status=current,
        target_status=TripStatus.PAID_IN_PROGRESS,
        fields={
            "payment_status": TripPaymentStatus.PAID,
            "payment_intent_id": payment_intent_id,
            "payment_amount": amount,
            "payment_error": None,
            "charged_at": now,
        }
    )


def plan_charge_declined(trip, error: str) -> TransitionPlan:
    current = _ensure_allowed(trip, TripAction.CHARGE_DECLINED)
    return TransitionPlan(
        action=TripAction.CHARGE_DECLINED,
        expected_status=current,
        target_status=TripStatus.PAYMENT_FAILED,
        fields={
            "payment_status": TripPaymentStatus.FAILED,
            "payment_error": error or "Payment charge failed",
        }
    )


def plan_charge_deferred(trip, error: str) -> TransitionPlan:
    """Gateway unreachable: keep the approval and leave payment to be taken manually."""
    current = _ensure_allowed(trip, TripAction.CHARGE_DEFERRED)
    return TransitionPlan(
        action=TripAction.CHARGE_DEFERRED,
        expected_status=current,
        target_status=TripStatus.UPCOMING,
        fields={
            "payment_status": TripPaymentStatus.PENDING,
            "payment_error": f"Automatic payment failed: {error}. Manual payment required.",
            "approval_notes": "Payment system unavailable - approved for manual payment processing",
        }
    )


def plan_reject(trip, reason: Optional[str]) -> TransitionPlan:
    reason = require_reason(reason, "reject")
    current = _ensure_allowed(trip, TripAction.REJECT)
    return TransitionPlan(
        action=TripAction.REJECT,
        expected_status=current,
        target_status=TripStatus.CANCELLED,
        fields={"cancellation_reason": reason}
    )


def plan_cancel(trip, reason: Optional[str]) -> TransitionPlan:
    reason = require_reason(reason, "cancel")
    current = _ensure_allowed(trip, TripAction.CANCEL)
    return TransitionPlan(
        action=TripAction.CANCEL,
        expected_status=current,
        target_status=TripStatus.CANCELLED,
        fields={"cancellation_reason": reason}
    )


def plan_complete(trip, now: datetime, completed_by: str = "dispatcher") -> TransitionPlan:
    current = _ensure_allowed(trip, TripAction.COMPLETE)
    return TransitionPlan(
        action=TripAction.COMPLETE,
        expected_status=current,
        target_status=TripStatus.COMPLETED,
        fields={
            "completed_at": now,
            "completion_notes": f"Completed by {completed_by} at {now:%Y-%m-%d %H:%M}",
        }
    )


def plan_assign_driver(trip, driver, require_acceptance: bool = False) -> TransitionPlan:
    """Assign a driver to an approved, unassigned trip."""
    current = _ensure_allowed(trip, TripAction.ASSIGN_DRIVER)
    _ensure_unassigned(trip)
    target = TripStatus.AWAITING_DRIVER_ACCEPTANCE if require_acceptance else TripStatus.UPCOMING
    return TransitionPlan(
        action=TripAction.ASSIGN_DRIVER,
        expected_status=current,
        target_status=target,
        fields={"driver_id": driver.id, "driver_name": driver.display_name},
        require_unassigned=True
    )


def plan_optimizer_assign(trip, driver_id: str, driver_name: str, suggested_time: datetime) -> TransitionPlan:
    """Write back one optimizer proposal: driver, suggested pickup time, ``upcoming``."""
    current = _ensure_allowed(trip, TripAction.OPTIMIZER_ASSIGN)
    _ensure_unassigned(trip)
    return TransitionPlan(
        action=TripAction.OPTIMIZER_ASSIGN,
        expected_status=current,
        target_status=TripStatus.UPCOMING,
        fields={
            "driver_id": driver_id,
            "driver_name": driver_name,
            "pickup_time": suggested_time,
        },
        require_unassigned=True
    )


def _ensure_assigned_to(trip, driver_id: str) -> None:
    if trip.driver_id != driver_id:
        raise InsufficientPermissionsError(
            "This trip is not assigned to you or has been reassigned",
            details={"trip_id": trip.id}
        )


def plan_driver_accept(trip, driver_id: str) -> TransitionPlan:
    current = _ensure_allowed(trip, TripAction.DRIVER_ACCEPT)
    _ensure_assigned_to(trip, driver_id)
    return TransitionPlan(
        action=TripAction.DRIVER_ACCEPT,
        expected_status=current,
        target_status=TripStatus.IN_PROGRESS
    )


def plan_driver_reject(trip, driver_id: str, reason: Optional[str]) -> TransitionPlan:
    reason = require_reason(reason, "reject")
    current = _ensure_allowed(trip, TripAction.DRIVER_REJECT)
    _ensure_assigned_to(trip, driver_id)
    return TransitionPlan(
        action=TripAction.DRIVER_REJECT,
        expected_status=current,
        target_status=TripStatus.REJECTED,
        fields={
            "rejected_by_driver_id": driver_id,
            "driver_id": None,
            "driver_name": None,
            "cancellation_reason": reason,
        }
    )


_PLANNERS = {
    TripAction.APPROVE: plan_approve,
    TripAction.REJECT: plan_reject,
    TripAction.CANCEL: plan_cancel,
    TripAction.COMPLETE: plan_complete,
    TripAction.ASSIGN_DRIVER: plan_assign_driver,
    TripAction.OPTIMIZER_ASSIGN: plan_optimizer_assign,
    TripAction.DRIVER_ACCEPT: plan_driver_accept,
    TripAction.DRIVER_REJECT: plan_driver_reject,
    TripAction.CHARGE_SUCCEEDED: plan_charge_succeeded,
    TripAction.CHARGE_DECLINED: plan_charge_declined,
    TripAction.CHARGE_DEFERRED: plan_charge_deferred,
}


def plan_transition(trip, action: TripAction, **kwargs) -> TransitionPlan:
    """Plan ``action`` on ``trip``; keyword arguments go to the action's planner."""
    return _PLANNERS[TripAction(action)](trip, **kwargs)
