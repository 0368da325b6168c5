"""
Trip Store.

Persistence adapter for trips and driver profiles. Every trip write is a
compare-and-set: the UPDATE carries the status the caller read (and, for
assignments, ``driver_id IS NULL``) in its WHERE clause, so a concurrent
writer makes it match zero rows instead of silently winning.
"""

import logging
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import and_, case, func, not_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.exceptions import (
    ConflictError,
    ResourceNotFoundError,
    UpstreamError,
    ValidationError,
)
from backend.app.models.enums import DriverStatus, ProfileRole
from backend.app.models.profile import Profile
from backend.app.models.trip import Trip
from backend.app.models.trip_enums import TripCategory, TripStatus
from backend.app.schemas.trip import TripQuery

logger = logging.getLogger("nemt_dispatch.store")


def _present(column):
    return func.coalesce(column, "") != ""


def _category_expr():
    """SQL rendition of ``classify_trip``."""
    has_facility, has_user = _present(Trip.facility_id), _present(Trip.user_id)
    return case(
        (and_(has_facility, not_(has_user)), TripCategory.FACILITY.value),
        (and_(has_user, not_(has_facility)), TripCategory.INDIVIDUAL.value),
        else_=TripCategory.UNCLASSIFIED.value,
    )


def _category_clause(category: TripCategory):
    return _category_expr() == TripCategory(category).value


class TripStore:

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _execute(self, stmt):
        try:
            return await self.db.execute(stmt)
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("Database error: %s", e)
            raise UpstreamError("Database", type(e).__name__)

    async def _commit(self):
        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("Commit failed: %s", e)
            raise UpstreamError("Database", type(e).__name__)

    async def get_trip(self, trip_id: str) -> Trip:
        """Fresh snapshot of one trip, bypassing any stale identity-map copy."""
        result = await self._execute(
            select(Trip).where(Trip.id == trip_id).execution_options(populate_existing=True)
        )
        trip = result.scalar_one_or_none()
        if not trip:
            raise ResourceNotFoundError("Trip", trip_id)
        return trip

    @staticmethod
    def _filtered(stmt, query: TripQuery, with_category: bool = True):
        if query.start is not None:
            stmt = stmt.where(Trip.pickup_time >= query.start)
        if query.end is not None:
            stmt = stmt.where(Trip.pickup_time <= query.end)
        if query.statuses:
            stmt = stmt.where(Trip.status.in_(query.statuses))
        if query.unassigned_only is True:
            stmt = stmt.where(Trip.driver_id.is_(None))
        elif query.unassigned_only is False:
            stmt = stmt.where(Trip.driver_id.is_not(None))
        if query.driver_id:
            stmt = stmt.where(Trip.driver_id == query.driver_id)
        if with_category and query.category is not None:
            stmt = stmt.where(_category_clause(query.category))
        return stmt

    async def fetch_trips(self, query: Optional[TripQuery] = None) -> List[Trip]:
        query = query or TripQuery()
        stmt = self._filtered(select(Trip), query)
        stmt = stmt.order_by(Trip.pickup_time.is_(None), Trip.pickup_time, Trip.created_at, Trip.id).limit(query.limit)
        result = await self._execute(stmt.execution_options(populate_existing=True))
        return list(result.scalars().all())

    async def count_by_category(self, query: Optional[TripQuery] = None) -> Dict[str, int]:
        """Trips matching ``query`` per booking category, ignoring its category and limit."""
        query = query or TripQuery()
        category = _category_expr().label("trip_category")
        stmt = self._filtered(select(category, func.count(Trip.id)), query, with_category=False)
        result = await self._execute(stmt.group_by(category))
        counts = {c.value: 0 for c in TripCategory}
        for name, total in result.all():
            counts[name] = total
        return counts

    async def fetch_drivers(self, statuses: Optional[Sequence[DriverStatus]] = None) -> List[Profile]:
        """Driver profiles in a stable order (creation time, then id)."""
        stmt = select(Profile).where(Profile.role == ProfileRole.DRIVER)
        if statuses:
            stmt = stmt.where(Profile.status.in_(list(statuses)))
        stmt = stmt.order_by(Profile.created_at, Profile.id)
        result = await self._execute(stmt.execution_options(populate_existing=True))
        return list(result.scalars().all())

    async def get_driver(self, driver_id: str) -> Profile:
        result = await self._execute(
            select(Profile).where(Profile.id == driver_id).execution_options(populate_existing=True)
        )
        driver = result.scalar_one_or_none()
        if not driver:
            raise ResourceNotFoundError("Driver", driver_id)
        if driver.role != ProfileRole.DRIVER:
            raise ValidationError(
                "Selected profile is not a driver",
                details={"driver_id": driver_id, "role": driver.role.value}
            )
        return driver

    async def update_trip(
        self,
        trip_id: str,
        expected_prior_status: TripStatus,
        fields: Dict[str, Any],
        require_unassigned: bool = False,
    ) -> Trip:
        """
        Write ``fields`` only if the trip is still in ``expected_prior_status``.

        Returns:
            The trip as re-read after the commit.

        Raises:
            ResourceNotFoundError: trip does not exist
            ConflictError: status moved, or a driver was assigned concurrently
            UpstreamError: the database failed
        """
        stmt = (
            update(Trip)
            .where(Trip.id == trip_id, Trip.status == expected_prior_status)
            .values(**fields)
            .execution_options(synchronize_session=False)
        )
        if require_unassigned:
            stmt = stmt.where(Trip.driver_id.is_(None))

        result = await self._execute(stmt)
        if result.rowcount == 0:
            current = await self.get_trip(trip_id)
            logger.warning(
                "Compare-and-set lost on trip %s: expected %s, found %s (driver %s)",
                trip_id, TripStatus(expected_prior_status).value, current.status.value, current.driver_id
            )
            if require_unassigned and current.driver_id and current.status == expected_prior_status:
                raise ConflictError(
                    "Trip is already assigned to another driver",
                    details={"trip_id": trip_id, "driver_id": current.driver_id}
                )
            raise ConflictError(
                f"Trip status changed to {current.status.value} before this update could be saved",
                details={
                    "trip_id": trip_id,
                    "expected_status": TripStatus(expected_prior_status).value,
                    "current_status": current.status.value,
                }
            )

        await self._commit()
        return await self.get_trip(trip_id)

    async def set_driver_status(self, driver_id: str, status: DriverStatus) -> None:
        await self._execute(
            update(Profile)
            .where(Profile.id == driver_id)
            .values(status=status)
            .execution_options(synchronize_session=False)
        )
        await self._commit()
