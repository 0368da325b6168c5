"""
Trip Lifecycle Service.

Runs dispatcher and driver actions against the store: re-read the trip, plan
the transition, compare-and-set the write, then record the audit entry. Card
charging at approval happens between two transitions
(``pending -> approved_pending_payment -> paid_in_progress | payment_failed | upcoming``).
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.config import settings
from backend.app.core.exceptions import ConflictError, UpstreamError, ValidationError
from backend.app.domain.dispatch.state_machine import (
    TransitionPlan,
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
    require_reason,
)
from backend.app.models.enums import DriverStatus, ProfileRole
from backend.app.models.notification import NotificationType
from backend.app.models.trip import Trip
from backend.app.models.trip_enums import TripStatus
from backend.app.schemas.trip import PaymentOutcome
from backend.app.services.audit import AuditAction, log_event
from backend.app.services.notification_service import NotificationService
from backend.app.services.payment_gateway import PaymentGateway
from backend.app.services.trip_store import TripStore

logger = logging.getLogger("nemt_dispatch.lifecycle")


@dataclass
class TransitionOutcome:
    trip: Trip
    previous_status: TripStatus
    message: str
    warning: Optional[str] = None
    payment: Optional[PaymentOutcome] = None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TripLifecycleService:
    """
    Dispatcher and driver trip actions.

    ``actor`` is the dict returned by ``get_current_user`` (``user_id``,
    ``email``, ``role``, ``name``), or None for system actions.
    """

    def __init__(
        self,
        db: AsyncSession,
        payment_gateway: Optional[PaymentGateway] = None,
        require_driver_acceptance: Optional[bool] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.db = db
        self.store = TripStore(db)
        self.payment_gateway = payment_gateway or PaymentGateway()
        if require_driver_acceptance is None:
            require_driver_acceptance = settings.require_driver_acceptance
        self.require_driver_acceptance = require_driver_acceptance
        self.clock = clock

    async def _commit_plan(self, trip: Trip, plan: TransitionPlan, actor: Optional[dict],
                           audit_action: str, metadata: Optional[dict] = None) -> Trip:
        updated = await self.store.update_trip(
            trip.id, plan.expected_status, plan.values(), require_unassigned=plan.require_unassigned
        )
        await log_event(
            self.db,
            action=audit_action,
            actor_id=actor.get("user_id") if actor else None,
            actor_email=actor.get("email") if actor else None,
            trip_id=trip.id,
            metadata={
                "from": plan.expected_status.value,
                "to": plan.target_status.value,
                **(metadata or {}),
            }
        )
        logger.info(
            "Trip %s %s: %s -> %s",
            trip.id, plan.action.value, plan.expected_status.value, plan.target_status.value
        )
        return updated

    @staticmethod
    def _actor_name(actor: Optional[dict]) -> str:
        if not actor:
            return "system"
        return actor.get("name") or actor.get("email") or "dispatcher"

    # Dispatcher actions

    async def approve(self, trip_id: str, actor: Optional[dict] = None) -> TransitionOutcome:
        trip = await self.store.get_trip(trip_id)
        previous = trip.status
        plan = plan_approve(trip, self.clock(), self._actor_name(actor))
        trip = await self._commit_plan(trip, plan, actor, AuditAction.TRIP_APPROVED)

        if plan.target_status != TripStatus.APPROVED_PENDING_PAYMENT:
            return TransitionOutcome(
                trip=trip,
                previous_status=previous,
                message="Trip approved successfully",
                payment=PaymentOutcome(
                    charged=False,
                    status="not_applicable",
                    reason="Facility trip or no saved payment method",
                ),
            )
        return await self._charge_card(trip, previous, actor)

    async def _charge_card(self, trip: Trip, previous: TripStatus, actor: Optional[dict]) -> TransitionOutcome:
        try:
            charge = await self.payment_gateway.charge_trip(trip.id)
        except UpstreamError as e:
            logger.warning("Payment collaborator unavailable for trip %s: %s", trip.id, e.message)
            plan = plan_charge_deferred(trip, e.message)
            trip = await self._commit_plan(trip, plan, actor, AuditAction.PAYMENT_DEFERRED,
                                           {"error": e.message})
            return TransitionOutcome(
                trip=trip,
                previous_status=previous,
                message="Trip approved - payment processing unavailable",
                warning="Automatic payment failed. Payment will need to be processed manually.",
                payment=PaymentOutcome(charged=False, status="pending", error=e.message),
            )

        if charge.success:
            plan = plan_charge_succeeded(trip, self.clock(), charge.payment_intent_id, charge.amount)
            trip = await self._commit_plan(trip, plan, actor, AuditAction.PAYMENT_CHARGED,
                                           {"payment_intent_id": charge.payment_intent_id})
            amount = f" of ${charge.amount:.2f}" if charge.amount is not None else ""
            return TransitionOutcome(
                trip=trip,
                previous_status=previous,
                message=f"Trip approved and payment{amount} charged successfully",
                payment=PaymentOutcome(
                    charged=True,
                    status="paid",
                    amount=charge.amount,
                    payment_intent_id=charge.payment_intent_id,
                ),
            )

        plan = plan_charge_declined(trip, charge.error)
        trip = await self._commit_plan(trip, plan, actor, AuditAction.PAYMENT_FAILED, {"error": charge.error})
        await self._notify_payment_failed(trip, charge.error)
        return TransitionOutcome(
            trip=trip,
            previous_status=previous,
            message="Trip approved but payment failed",
            warning=f"Payment failed: {charge.error}. The client will need to update their payment method.",
            payment=PaymentOutcome(charged=False, status="failed", error=charge.error),
        )

    async def _notify_payment_failed(self, trip: Trip, error: Optional[str]) -> None:
        count = await NotificationService.broadcast(
            self.db,
            title="Payment failed",
            message=f"Card charge for trip {trip.id} was declined: {error}",
            roles=[ProfileRole.DISPATCHER, ProfileRole.ADMIN],
            type=NotificationType.PAYMENT_ALERT,
            metadata={"trip_id": trip.id},
        )
        await self.db.commit()
        logger.info("Notified %d dispatchers of failed payment on trip %s", count, trip.id)

    async def reject(self, trip_id: str, reason: Optional[str], actor: Optional[dict] = None) -> TransitionOutcome:
        reason = require_reason(reason, "reject")
        trip = await self.store.get_trip(trip_id)
        previous = trip.status
        plan = plan_reject(trip, reason)
        trip = await self._commit_plan(trip, plan, actor, AuditAction.TRIP_REJECTED, {"reason": reason})
        return TransitionOutcome(trip=trip, previous_status=previous, message="Trip rejected successfully")

    async def cancel(self, trip_id: str, reason: Optional[str], actor: Optional[dict] = None) -> TransitionOutcome:
        reason = require_reason(reason, "cancel")
        trip = await self.store.get_trip(trip_id)
        previous = trip.status
        plan = plan_cancel(trip, reason)
        trip = await self._commit_plan(trip, plan, actor, AuditAction.TRIP_CANCELLED, {"reason": reason})
        return TransitionOutcome(trip=trip, previous_status=previous, message="Trip cancelled successfully")

    async def complete(self, trip_id: str, actor: Optional[dict] = None) -> TransitionOutcome:
        trip = await self.store.get_trip(trip_id)
        previous = trip.status
        plan = plan_complete(trip, self.clock(), self._actor_name(actor))
        trip = await self._commit_plan(trip, plan, actor, AuditAction.TRIP_COMPLETED)
        if trip.driver_id:
            await self.store.set_driver_status(trip.driver_id, DriverStatus.ACTIVE)
        return TransitionOutcome(trip=trip, previous_status=previous, message="Trip completed successfully")

    async def perform(self, trip_id: str, action: str, reason: Optional[str] = None,
                      actor: Optional[dict] = None) -> TransitionOutcome:
        """Run a dispatcher action by name (approve, reject, cancel, complete)."""
        if action == "approve":
            return await self.approve(trip_id, actor)
        if action == "reject":
            return await self.reject(trip_id, reason, actor)
        if action == "cancel":
            return await self.cancel(trip_id, reason, actor)
        if action == "complete":
            return await self.complete(trip_id, actor)
        raise ValidationError(f"Unknown action: {action}", details={"action": action})

    # Driver assignment

    async def assign_driver(self, trip_id: str, driver_id: str, actor: Optional[dict] = None) -> TransitionOutcome:
        trip = await self.store.get_trip(trip_id)
        driver = await self.store.get_driver(driver_id)
        if driver.status == DriverStatus.INACTIVE:
            raise ValidationError(
                "Cannot assign an inactive driver",
                details={"driver_id": driver_id}
            )
        previous = trip.status
        plan = plan_assign_driver(trip, driver, require_acceptance=self.require_driver_acceptance)
        trip = await self._commit_plan(trip, plan, actor, AuditAction.DRIVER_ASSIGNED,
                                       {"driver_id": driver.id})
        if plan.target_status == TripStatus.AWAITING_DRIVER_ACCEPTANCE:
            message = f"Trip assigned to {driver.display_name}; awaiting driver acceptance"
        else:
            message = f"Trip assigned to {driver.display_name}"
        return TransitionOutcome(trip=trip, previous_status=previous, message=message)

    async def driver_respond(self, trip_id: str, action: str, reason: Optional[str],
                             actor: dict) -> TransitionOutcome:
        """The assigned driver accepts or declines a trip awaiting acceptance."""
        driver_id = actor["user_id"]
        if action == "accept":
            trip = await self.store.get_trip(trip_id)
            previous = trip.status
            plan = plan_driver_accept(trip, driver_id)
            trip = await self._commit_plan(trip, plan, actor, AuditAction.DRIVER_ACCEPTED)
            await self.store.set_driver_status(driver_id, DriverStatus.ON_TRIP)
            return TransitionOutcome(trip=trip, previous_status=previous, message="Trip accepted")

        if action == "reject":
            reason = require_reason(reason, "reject")
            trip = await self.store.get_trip(trip_id)
            previous = trip.status
            plan = plan_driver_reject(trip, driver_id, reason)
            trip = await self._commit_plan(trip, plan, actor, AuditAction.DRIVER_REJECTED, {"reason": reason})
            await self.store.set_driver_status(driver_id, DriverStatus.ACTIVE)
            return TransitionOutcome(trip=trip, previous_status=previous, message="Trip rejected")

        raise ValidationError(f"Unknown action: {action}", details={"action": action})

    async def assign_from_proposal(self, proposal, actor: Optional[dict] = None) -> Trip:
        """
        Write back one optimizer proposal.

        The trip must still be in the status the optimizer saw; anything else
        means someone acted on it since the run and the proposal is stale.
        """
        trip = await self.store.get_trip(proposal.trip_id)
        if TripStatus(trip.status) != TripStatus(proposal.original_status):
            raise ConflictError(
                f"Trip status changed from {TripStatus(proposal.original_status).value} "
                f"to {trip.status.value} since the optimization was run",
                details={"trip_id": trip.id}
            )
        plan = plan_optimizer_assign(trip, proposal.driver_id, proposal.driver_name, proposal.suggested_time)
        return await self._commit_plan(
            trip, plan, actor, AuditAction.DRIVER_ASSIGNED,
            {"driver_id": proposal.driver_id, "source": "optimizer",
             "suggested_time": proposal.suggested_time.isoformat()}
        )
