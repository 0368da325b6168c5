"""
Trip classification and filtering.

Booking apps write either ``facility_id`` (facility trip) or ``user_id``
(individual trip). Rows carrying both or neither exist in production data;
they are classified as ``unclassified`` and logged, never dropped.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Iterable, List, Optional, Set

from backend.app.models.trip_enums import TripCategory, TripStatus, canonical_status

logger = logging.getLogger("nemt_dispatch.classification")


@dataclass
class TripFilters:
    statuses: Optional[Set[TripStatus]] = None
    category: Optional[TripCategory] = None
    assigned: Optional[bool] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None


def classify_trip(trip) -> TripCategory:
    has_facility = bool(trip.facility_id)
    has_user = bool(trip.user_id)
    if has_facility and not has_user:
        return TripCategory.FACILITY
    if has_user and not has_facility:
        return TripCategory.INDIVIDUAL
    logger.warning(
        "Unclassified trip %s (facility_id=%s, user_id=%s)",
        trip.id, trip.facility_id, trip.user_id
    )
    return TripCategory.UNCLASSIFIED


def _matches(trip, filters: TripFilters, canonical: Optional[Set[TripStatus]]) -> bool:
    if canonical is not None and canonical_status(trip.status) not in canonical:
        return False
    if filters.assigned is not None and bool(trip.driver_id) != filters.assigned:
        return False
    if filters.start_date or filters.end_date:
        if trip.pickup_time is None:
            return False
        day = trip.pickup_time.date()
        if filters.start_date and day < filters.start_date:
            return False
        if filters.end_date and day > filters.end_date:
            return False
    if filters.category is not None and classify_trip(trip) != filters.category:
        return False
    return True


def filter_trips(trips: Iterable, filters: TripFilters) -> List:
    """Apply ``filters`` and return trips ordered by pickup time (unscheduled last)."""
    canonical = None
    if filters.statuses:
        canonical = {canonical_status(s) for s in filters.statuses}
    matched = [trip for trip in trips if _matches(trip, filters, canonical)]
    return sorted(matched, key=lambda t: (t.pickup_time is None, t.pickup_time or datetime.min))
