"""
Trip lifecycle transition planning.

Planning is pure: these tests use plain namespaces, no database.
"""

import pytest
from datetime import datetime
from decimal import Decimal
from types import SimpleNamespace

from backend.app.core.exceptions import (
    ConflictError,
    InsufficientPermissionsError,
    InvalidTransitionError,
    ValidationError,
)
from backend.app.domain.dispatch.state_machine import (
    allowed_actions,
    can_transition,
    is_card_charged,
    plan_approve,
    plan_assign_driver,
    plan_cancel,
    plan_charge_declined,
    plan_charge_deferred,
    plan_charge_succeeded,
    plan_complete,
    plan_driver_accept,
    plan_driver_reject,
    plan_optimizer_assign,
    plan_reject,
    plan_transition,
)
from backend.app.models.trip_enums import TripAction, TripPaymentStatus, TripStatus

NOW = datetime(2026, 3, 2, 8, 0)


def make_trip(status=TripStatus.PENDING, **overrides):
    fields = dict(
        id="trip-1",
        status=status,
        driver_id=None,
        facility_id="fac-1",
        user_id=None,
        payment_method_id=None,
        pickup_time=datetime(2026, 3, 2, 9, 0),
    )
    fields.update(overrides)
    return SimpleNamespace(**fields)


DRIVER = SimpleNamespace(id="drv-1", display_name="Driver One")


def test_approve_facility_trip_goes_to_upcoming():
    plan = plan_approve(make_trip(), NOW, "Dana")
    assert plan.expected_status == TripStatus.PENDING
    assert plan.target_status == TripStatus.UPCOMING
    assert "Dana" in plan.fields["approval_notes"]


def test_approve_card_booked_individual_trip_waits_for_payment():
    trip = make_trip(facility_id=None, user_id="client-1", payment_method_id="pm_123")
    assert is_card_charged(trip)
    plan = plan_approve(trip, NOW)
    assert plan.target_status == TripStatus.APPROVED_PENDING_PAYMENT


def test_individual_trip_without_card_is_not_charged():
    trip = make_trip(facility_id=None, user_id="client-1")
    assert not is_card_charged(trip)
    assert plan_approve(trip, NOW).target_status == TripStatus.UPCOMING


@pytest.mark.parametrize("status", [s for s in TripStatus if s != TripStatus.PENDING])
def test_approve_only_from_pending(status):
    with pytest.raises(InvalidTransitionError) as exc_info:
        plan_approve(make_trip(status=status), NOW)
    assert exc_info.value.kind == "conflict"
    assert status.value in exc_info.value.message


def test_approve_never_lands_in_completed_or_cancelled():
    for trip in (make_trip(), make_trip(facility_id=None, user_id="u", payment_method_id="pm")):
        plan = plan_approve(trip, NOW)
        assert plan.target_status not in (TripStatus.COMPLETED, TripStatus.CANCELLED)


@pytest.mark.parametrize("reason", [None, "", "   "])
def test_reject_requires_reason(reason):
    with pytest.raises(ValidationError):
        plan_reject(make_trip(), reason)


def test_reject_moves_pending_to_cancelled_with_reason():
    plan = plan_reject(make_trip(), "  Client unreachable ")
    assert plan.target_status == TripStatus.CANCELLED
    assert plan.fields["cancellation_reason"] == "Client unreachable"


def test_cancel_allowed_from_any_non_terminal_status():
    for status in (TripStatus.PENDING, TripStatus.UPCOMING, TripStatus.APPROVED,
                   TripStatus.IN_PROGRESS, TripStatus.PAYMENT_FAILED):
        plan = plan_cancel(make_trip(status=status), "Duplicate booking")
        assert plan.expected_status == status
        assert plan.target_status == TripStatus.CANCELLED


@pytest.mark.parametrize("status", [TripStatus.COMPLETED, TripStatus.CANCELLED, TripStatus.REJECTED])
def test_cancel_rejected_from_terminal_status(status):
    with pytest.raises(InvalidTransitionError):
        plan_cancel(make_trip(status=status), "Too late")


@pytest.mark.parametrize("status", [TripStatus.UPCOMING, TripStatus.IN_PROGRESS,
                                    TripStatus.IN_PROCESS, TripStatus.PAID_IN_PROGRESS])
def test_complete_allowed(status):
    plan = plan_complete(make_trip(status=status), NOW, "Dana")
    assert plan.target_status == TripStatus.COMPLETED
    assert plan.fields["completed_at"] == NOW


@pytest.mark.parametrize("status", [TripStatus.PENDING, TripStatus.CANCELLED,
                                    TripStatus.APPROVED_PENDING_PAYMENT, TripStatus.PAYMENT_FAILED])
def test_complete_not_allowed(status):
    with pytest.raises(InvalidTransitionError):
        plan_complete(make_trip(status=status), NOW)


def test_assign_driver_requires_upcoming():
    with pytest.raises(InvalidTransitionError):
        plan_assign_driver(make_trip(status=TripStatus.PENDING), DRIVER)


def test_assign_driver_accepts_legacy_approved_alias():
    plan = plan_assign_driver(make_trip(status=TripStatus.APPROVED), DRIVER)
    assert plan.expected_status == TripStatus.APPROVED
    assert plan.target_status == TripStatus.UPCOMING
    assert plan.fields == {"driver_id": "drv-1", "driver_name": "Driver One"}
    assert plan.require_unassigned


def test_assign_driver_rejects_already_assigned_trip():
    with pytest.raises(ConflictError) as exc_info:
        plan_assign_driver(make_trip(status=TripStatus.UPCOMING, driver_id="drv-9"), DRIVER)
    assert "already assigned" in exc_info.value.message


def test_assign_driver_with_acceptance_waits_for_driver():
    plan = plan_assign_driver(make_trip(status=TripStatus.UPCOMING), DRIVER, require_acceptance=True)
    assert plan.target_status == TripStatus.AWAITING_DRIVER_ACCEPTANCE


def test_optimizer_assign_sets_driver_time_and_upcoming():
    suggested = datetime(2026, 3, 2, 9, 30)
    plan = plan_optimizer_assign(make_trip(), "drv-1", "Driver One", suggested)
    assert plan.values() == {
        "driver_id": "drv-1",
        "driver_name": "Driver One",
        "pickup_time": suggested,
        "status": TripStatus.UPCOMING,
    }


def test_driver_accept_requires_assigned_driver():
    trip = make_trip(status=TripStatus.AWAITING_DRIVER_ACCEPTANCE, driver_id="drv-1")
    assert plan_driver_accept(trip, "drv-1").target_status == TripStatus.IN_PROGRESS
    with pytest.raises(InsufficientPermissionsError):
        plan_driver_accept(trip, "drv-2")


def test_driver_reject_clears_driver_and_records_who_declined():
    trip = make_trip(status=TripStatus.AWAITING_DRIVER_ACCEPTANCE, driver_id="drv-1")
    plan = plan_driver_reject(trip, "drv-1", "Vehicle in the shop")
    assert plan.target_status == TripStatus.REJECTED
    assert plan.fields["driver_id"] is None
    assert plan.fields["rejected_by_driver_id"] == "drv-1"
    with pytest.raises(ValidationError):
        plan_driver_reject(trip, "drv-1", "")


def test_charge_outcomes_from_pending_payment():
    trip = make_trip(status=TripStatus.APPROVED_PENDING_PAYMENT)

    paid = plan_charge_succeeded(trip, NOW, "pi_1", Decimal("45.00"))
    assert paid.target_status == TripStatus.PAID_IN_PROGRESS
    assert paid.fields["payment_status"] == TripPaymentStatus.PAID

    declined = plan_charge_declined(trip, "Card declined")
    assert declined.target_status == TripStatus.PAYMENT_FAILED
    assert declined.fields["payment_error"] == "Card declined"

    deferred = plan_charge_deferred(trip, "timed out")
    assert deferred.target_status == TripStatus.UPCOMING
    assert deferred.fields["payment_status"] == TripPaymentStatus.PENDING


def test_allowed_actions_for_pending():
    actions = allowed_actions(TripStatus.PENDING)
    assert TripAction.APPROVE in actions
    assert TripAction.REJECT in actions
    assert TripAction.COMPLETE not in actions
    assert TripAction.ASSIGN_DRIVER not in actions


def test_terminal_statuses_allow_nothing():
    for status in (TripStatus.COMPLETED, TripStatus.CANCELLED, TripStatus.REJECTED):
        assert allowed_actions(status) == []


def test_aliases_behave_like_canonical_status():
    assert can_transition(TripStatus.IN_PROCESS, TripAction.COMPLETE)
    assert can_transition(TripStatus.APPROVED, TripAction.OPTIMIZER_ASSIGN)


def test_plan_transition_dispatches_by_action():
    plan = plan_transition(make_trip(), TripAction.REJECT, reason="No longer needed")
    assert plan.action == TripAction.REJECT
    assert plan.target_status == TripStatus.CANCELLED
