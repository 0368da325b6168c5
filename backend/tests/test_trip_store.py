"""
Trip store reads and compare-and-set writes.
"""

import pytest
from datetime import datetime

from backend.app.core.exceptions import ConflictError, ResourceNotFoundError, ValidationError
from backend.app.domain.dispatch.classification import classify_trip
from backend.app.models.enums import DriverStatus, ProfileRole
from backend.app.models.trip_enums import TripCategory, TripStatus
from backend.app.schemas.trip import TripQuery
from backend.app.services.trip_store import TripStore
from backend.tests.helpers import at, make_profile, make_trip


@pytest.mark.asyncio
async def test_update_trip_writes_when_status_matches(db_session, drivers):
    trip = await make_trip(db_session, pickup_time=at(2, 9), status=TripStatus.UPCOMING)
    store = TripStore(db_session)

    updated = await store.update_trip(
        trip.id, TripStatus.UPCOMING,
        {"driver_id": drivers[0].id, "driver_name": "Driver A"},
        require_unassigned=True,
    )

    assert updated.driver_id == drivers[0].id
    assert updated.driver_name == "Driver A"
    assert updated.status == TripStatus.UPCOMING


@pytest.mark.asyncio
async def test_update_trip_conflicts_on_status_mismatch(db_session):
    trip = await make_trip(db_session, status=TripStatus.CANCELLED)
    store = TripStore(db_session)

    with pytest.raises(ConflictError) as exc_info:
        await store.update_trip(trip.id, TripStatus.PENDING, {"status": TripStatus.UPCOMING})

    assert exc_info.value.details["current_status"] == "cancelled"
    fresh = await store.get_trip(trip.id)
    assert fresh.status == TripStatus.CANCELLED


@pytest.mark.asyncio
async def test_update_trip_conflicts_when_driver_already_set(db_session, drivers):
    trip = await make_trip(db_session, status=TripStatus.UPCOMING, driver_id=drivers[0].id)
    store = TripStore(db_session)

    with pytest.raises(ConflictError) as exc_info:
        await store.update_trip(trip.id, TripStatus.UPCOMING, {"driver_id": drivers[1].id},
                                require_unassigned=True)

    assert "already assigned" in exc_info.value.message
    fresh = await store.get_trip(trip.id)
    assert fresh.driver_id == drivers[0].id


@pytest.mark.asyncio
async def test_stale_snapshot_loses_to_concurrent_writer(db_session, session_factory, drivers):
    """Two dispatchers read the same unassigned trip; only the first write lands."""
    trip = await make_trip(db_session, status=TripStatus.UPCOMING)
    first = TripStore(db_session)
    snapshot = await first.get_trip(trip.id)

    async with session_factory() as other_session:
        second = TripStore(other_session)
        await second.update_trip(trip.id, TripStatus.UPCOMING, {"driver_id": drivers[1].id},
                                 require_unassigned=True)

    with pytest.raises(ConflictError):
        await first.update_trip(snapshot.id, TripStatus.UPCOMING, {"driver_id": drivers[0].id},
                                require_unassigned=True)

    fresh = await first.get_trip(trip.id)
    assert fresh.driver_id == drivers[1].id


@pytest.mark.asyncio
async def test_update_missing_trip_is_not_found(db_session):
    with pytest.raises(ResourceNotFoundError):
        await TripStore(db_session).update_trip("missing", TripStatus.PENDING, {"status": TripStatus.UPCOMING})


@pytest.mark.asyncio
async def test_fetch_trips_filters(db_session, drivers):
    early = await make_trip(db_session, pickup_time=at(2, 8))
    late = await make_trip(db_session, pickup_time=at(2, 17), status=TripStatus.UPCOMING)
    await make_trip(db_session, pickup_time=at(3, 9))
    await make_trip(db_session, pickup_time=at(2, 12), status=TripStatus.UPCOMING, driver_id=drivers[0].id)
    await make_trip(db_session, pickup_time=at(2, 13), status=TripStatus.CANCELLED)

    trips = await TripStore(db_session).fetch_trips(TripQuery(
        start=datetime(2026, 3, 2, 0, 0),
        end=datetime(2026, 3, 2, 23, 59, 59),
        statuses=[TripStatus.PENDING, TripStatus.UPCOMING],
        unassigned_only=True,
    ))

    assert [t.id for t in trips] == [early.id, late.id]


@pytest.mark.asyncio
async def test_fetch_drivers_only_returns_drivers_in_creation_order(db_session, dispatcher, drivers):
    found = await TripStore(db_session).fetch_drivers()
    assert [d.id for d in found] == [drivers[0].id, drivers[1].id]


@pytest.mark.asyncio
async def test_get_driver_rejects_non_driver_profile(db_session, dispatcher):
    store = TripStore(db_session)
    with pytest.raises(ValidationError):
        await store.get_driver(dispatcher.id)
    with pytest.raises(ResourceNotFoundError):
        await store.get_driver("nobody")


@pytest.mark.asyncio
async def test_set_driver_status(db_session):
    driver = await make_profile(db_session, role=ProfileRole.DRIVER, full_name="Sam")
    store = TripStore(db_session)
    await store.set_driver_status(driver.id, DriverStatus.ON_TRIP)
    refreshed = await store.get_driver(driver.id)
    await db_session.refresh(refreshed)
    assert refreshed.status == DriverStatus.ON_TRIP


@pytest.mark.asyncio
async def test_category_query_and_counts_agree_with_classify_trip(db_session):
    facility = await make_trip(db_session, pickup_time=at(2, 8), facility_id="fac-1")
    individual = await make_trip(db_session, pickup_time=at(2, 9), facility_id="", user_id="client-1")
    both = await make_trip(db_session, pickup_time=at(2, 10), facility_id="fac-1", user_id="client-1")
    neither = await make_trip(db_session, pickup_time=at(2, 11), facility_id=None)
    store = TripStore(db_session)

    for category, expected in [
        (TripCategory.FACILITY, [facility]),
        (TripCategory.INDIVIDUAL, [individual]),
        (TripCategory.UNCLASSIFIED, [both, neither]),
    ]:
        trips = await store.fetch_trips(TripQuery(category=category))
        assert [t.id for t in trips] == [t.id for t in expected]
        assert all(classify_trip(t) == category for t in trips)

    counts = await store.count_by_category(TripQuery(category=TripCategory.FACILITY, limit=1))
    assert counts == {"facility": 1, "individual": 1, "unclassified": 2}
