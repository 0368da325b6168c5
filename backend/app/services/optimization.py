"""
Optimization Service.

Runs the driver assignment optimizer over trips and drivers read from the
store, parks the proposals in the proposal store, and applies an accepted run
one proposal at a time. Apply is not transactional: proposals written before
a failure stay written, and the result says exactly which ones those were.
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import List, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.config import settings
from backend.app.core.exceptions import AppException, ResourceNotFoundError
from backend.app.domain.dispatch.optimizer import OPTIMIZABLE_STATUSES, build_date_range, run_optimization
from backend.app.models.trip_enums import with_aliases
from backend.app.schemas.optimization import AssignmentProposalSchema, OptimizationRun, ProposalFailure
from backend.app.schemas.trip import TripQuery
from backend.app.services.audit import AuditAction, log_event
from backend.app.services.proposal_store import ProposalStore
from backend.app.services.trip_lifecycle import TripLifecycleService
from backend.app.services.trip_store import TripStore

logger = logging.getLogger("nemt_dispatch.optimization")

# Optimizable statuses plus the legacy aliases stored for them
CANDIDATE_STATUSES = with_aliases(OPTIMIZABLE_STATUSES)


@dataclass
class ApplyResult:
    total: int
    applied: List[AssignmentProposalSchema] = field(default_factory=list)
    failed: List[ProposalFailure] = field(default_factory=list)
    skipped: List[AssignmentProposalSchema] = field(default_factory=list)
    first_error: Optional[ProposalFailure] = None

    @property
    def applied_count(self) -> int:
        return len(self.applied)

    @property
    def message(self) -> str:
        return f"{self.applied_count} of {self.total} assignments applied"


def _failure(proposal: AssignmentProposalSchema, error: AppException) -> ProposalFailure:
    return ProposalFailure(
        trip_id=proposal.trip_id,
        driver_id=proposal.driver_id,
        kind=error.kind,
        error_code=error.error_code,
        message=error.message,
    )


class OptimizationService:

    def __init__(self, db: AsyncSession, redis, lifecycle: Optional[TripLifecycleService] = None):
        self.db = db
        self.store = TripStore(db)
        self.proposals = ProposalStore(redis)
        self.lifecycle = lifecycle or TripLifecycleService(db)

    async def run(self, start_date: date, end_date: date, actor: Optional[dict] = None) -> OptimizationRun:
        """
        Optimize ``[start_date, end_date]`` and hold the result for review.

        Raises:
            ValidationError: bad range, nothing to optimize, or no drivers
        """
        date_range = build_date_range(start_date, end_date)
        trips = await self.store.fetch_trips(TripQuery(
            start=date_range.start,
            end=date_range.end,
            statuses=CANDIDATE_STATUSES,
            unassigned_only=True,
            limit=1000,
        ))
        drivers = await self.store.fetch_drivers()

        proposals = run_optimization(
            date_range,
            trips,
            drivers,
            daily_soft_cap=settings.optimizer_daily_soft_cap,
            stagger_minutes=settings.optimizer_stagger_minutes,
        )

        run = OptimizationRun(
            run_id=str(uuid.uuid4()),
            start_date=date_range.start_date,
            end_date=date_range.end_date,
            created_at=datetime.now(timezone.utc),
            created_by=actor.get("user_id") if actor else None,
            trips_considered=len(trips),
            drivers_considered=len(drivers),
            assignments=[AssignmentProposalSchema.model_validate(p) for p in proposals],
        )
        await self.proposals.save(run)
        logger.info(
            "Optimization run %s: %d proposals for %s..%s across %d drivers",
            run.run_id, len(run.assignments), start_date, end_date, len(drivers)
        )
        return run

    async def get(self, run_id: str) -> OptimizationRun:
        return await self.proposals.load(run_id)

    async def discard(self, run_id: str) -> None:
        if not await self.proposals.discard(run_id):
            raise ResourceNotFoundError("Optimization run", run_id)
        logger.info("Optimization run %s discarded", run_id)

    async def apply_optimization(
        self,
        proposals: Sequence[AssignmentProposalSchema],
        actor: Optional[dict] = None,
    ) -> ApplyResult:
        """
        Write proposals back in order.

        A trip that has disappeared is recorded and skipped over; any other
        failure stops the batch and the remaining proposals are reported as
        skipped.
        """
        result = ApplyResult(total=len(proposals))
        for index, proposal in enumerate(proposals):
            try:
                await self.lifecycle.assign_from_proposal(proposal, actor)
            except ResourceNotFoundError as e:
                failure = _failure(proposal, e)
                result.failed.append(failure)
                result.first_error = result.first_error or failure
                logger.warning("Proposal for trip %s skipped: %s", proposal.trip_id, e.message)
                continue
            except AppException as e:
                failure = _failure(proposal, e)
                result.failed.append(failure)
                result.first_error = result.first_error or failure
                result.skipped = list(proposals[index + 1:])
                logger.error(
                    "Stopping apply at trip %s (%s): %s; %d proposals not attempted",
                    proposal.trip_id, e.kind, e.message, len(result.skipped)
                )
                break
            result.applied.append(proposal)

        logger.info("Apply finished: %s", result.message)
        return result

    async def apply_run(self, run_id: str, actor: Optional[dict] = None) -> ApplyResult:
        """Apply a held run. The run is removed afterwards whatever the outcome."""
        run = await self.proposals.load(run_id)
        try:
            result = await self.apply_optimization(run.assignments, actor)
        finally:
            await self.proposals.discard(run_id)

        await log_event(
            self.db,
            action=AuditAction.OPTIMIZATION_APPLIED,
            actor_id=actor.get("user_id") if actor else None,
            actor_email=actor.get("email") if actor else None,
            metadata={
                "run_id": run_id,
                "total": result.total,
                "applied": result.applied_count,
                "failed": len(result.failed),
                "skipped": len(result.skipped),
            }
        )
        return result
