"""
Driver Assignment Optimizer.

Greedy, deterministic assignment of unassigned trips to drivers:

1. Keep trips in the date range that are ``pending``/``upcoming`` with no driver.
2. Walk dates in order, and trips within a date by pickup time.
3. Give each trip to the driver with the fewest trips that day (then fewest
   in the whole run, then list order), skipping drivers at the daily soft cap
   while anyone is under it.
4. Stagger a driver's k-th trip of the day by ``(k - 1) * stagger_minutes``.

There is no distance or duration model; the stagger is the only collision
avoidance. Identical input yields identical output.
"""

from collections import OrderedDict
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Dict, List, Optional, Sequence, Tuple

from backend.app.core.exceptions import ValidationError
from backend.app.models.trip_enums import TripStatus, canonical_status

DEFAULT_DAILY_SOFT_CAP = 5
DEFAULT_STAGGER_MINUTES = 30

OPTIMIZABLE_STATUSES = frozenset({TripStatus.PENDING, TripStatus.UPCOMING})


@dataclass(frozen=True)
class DateRange:
    """Closed range of calendar dates."""
    start_date: date
    end_date: date

    def contains(self, moment: datetime) -> bool:
        return self.start_date <= moment.date() <= self.end_date

    @property
    def start(self) -> datetime:
        return datetime.combine(self.start_date, datetime.min.time())

    @property
    def end(self) -> datetime:
        return datetime.combine(self.end_date, datetime.max.time())


def build_date_range(start_date: Optional[date], end_date: Optional[date]) -> DateRange:
    if start_date is None or end_date is None:
        raise ValidationError("Both a start date and an end date are required")
    if start_date > end_date:
        raise ValidationError(
            "Start date must be on or before end date",
            details={"start_date": start_date.isoformat(), "end_date": end_date.isoformat()}
        )
    return DateRange(start_date=start_date, end_date=end_date)


@dataclass
class AssignmentProposal:
    """One proposed driver for one trip. Transient until applied."""
    trip_id: str
    driver_id: str
    driver_name: str
    original_status: TripStatus
    original_time: datetime
    suggested_time: datetime
    trip_date: date
    reasoning: str
    time_difference: str


def describe_time_difference(original: Optional[datetime], suggested: Optional[datetime]) -> str:
    if original is None or suggested is None:
        return "No change"
    minutes = round((suggested - original).total_seconds() / 60)
    if minutes == 0:
        return "No change"
    if minutes > 0:
        return f"+{minutes} min later"
    return f"{abs(minutes)} min earlier"


def is_optimizable(trip, date_range: DateRange) -> bool:
    return (
        trip.pickup_time is not None
        and trip.driver_id is None
        and canonical_status(trip.status) in OPTIMIZABLE_STATUSES
        and date_range.contains(trip.pickup_time)
    )


def _pick_driver(drivers, daily: Dict[str, int], total: Dict[str, int], cap: int) -> Tuple[object, bool]:
    """Return (driver, over_cap). ``min`` keeps the first of equal keys, so ties follow list order."""
    under_cap = [d for d in drivers if daily[d.id] < cap]
    if not under_cap:
        return drivers[0], True
    return min(under_cap, key=lambda d: (daily[d.id], total[d.id])), False


def _reasoning(driver_name: str, trip_date: date, same_day: int, run_total: int,
               shift: int, over_cap: bool, cap: int) -> str:
    day = trip_date.isoformat()
    if same_day == 0:
        text = (f"{driver_name} has no other trips on {day} "
                f"({run_total} assigned in this run so far); pickup time unchanged.")
    else:
        plural = "trip" if same_day == 1 else "trips"
        text = (f"{driver_name} already has {same_day} {plural} on {day} "
                f"({run_total} assigned in this run so far); pickup moved {shift} min later "
                f"to avoid overlapping the driver's earlier pickups.")
    if over_cap:
        text = f"All drivers are at the daily limit of {cap} trips; falling back to the first driver. " + text
    return text


def run_optimization(
    date_range: DateRange,
    trips: Sequence,
    drivers: Sequence,
    daily_soft_cap: int = DEFAULT_DAILY_SOFT_CAP,
    stagger_minutes: int = DEFAULT_STAGGER_MINUTES,
) -> List[AssignmentProposal]:
    """
    Propose a driver and pickup time for every optimizable trip in ``date_range``.

    ``trips`` need ``id``, ``status``, ``driver_id`` and ``pickup_time``;
    ``drivers`` need ``id`` and ``display_name``. Neither is mutated.

    Raises:
        ValidationError: no optimizable trips, or no drivers.
    """
    eligible = [trip for trip in trips if is_optimizable(trip, date_range)]
    if not eligible:
        raise ValidationError("No upcoming trips to optimize")
    if not drivers:
        raise ValidationError("No available drivers for optimization")

    by_date: "OrderedDict[date, list]" = OrderedDict()
    for trip in eligible:
        by_date.setdefault(trip.pickup_time.date(), []).append(trip)

    total = {driver.id: 0 for driver in drivers}
    proposals: List[AssignmentProposal] = []

    for trip_date in sorted(by_date):
        daily = {driver.id: 0 for driver in drivers}
        # sorted() is stable: equal pickup times keep input order
        for trip in sorted(by_date[trip_date], key=lambda t: t.pickup_time):
            driver, over_cap = _pick_driver(drivers, daily, total, daily_soft_cap)
            same_day = daily[driver.id]
            shift = same_day * stagger_minutes
            suggested = trip.pickup_time + timedelta(minutes=shift)

            proposals.append(AssignmentProposal(
                trip_id=trip.id,
                driver_id=driver.id,
                driver_name=driver.display_name,
                original_status=TripStatus(trip.status),
                original_time=trip.pickup_time,
                suggested_time=suggested,
                trip_date=trip_date,
                reasoning=_reasoning(driver.display_name, trip_date, same_day, total[driver.id],
                                     shift, over_cap, daily_soft_cap),
                time_difference=describe_time_difference(trip.pickup_time, suggested),
            ))
            daily[driver.id] += 1
            total[driver.id] += 1

    proposals.sort(key=lambda p: (p.trip_date, p.original_time))
    return proposals
