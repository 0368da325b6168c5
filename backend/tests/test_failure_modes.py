"""
Failure injection: collaborators going away, and stale or disabled accounts.
"""

import pytest
from datetime import date
from sqlalchemy.exc import OperationalError
from redis.exceptions import ConnectionError as RedisConnectionError

from backend.app.core.exceptions import ResourceNotFoundError, UpstreamError
from backend.app.core.jwt import create_access_token
from backend.app.models.enums import DriverStatus, ProfileRole
from backend.app.models.trip_enums import TripStatus
from backend.app.services.optimization import OptimizationService
from backend.app.services.proposal_store import ProposalStore
from backend.app.services.trip_store import TripStore
from backend.tests.helpers import at, auth_headers, make_profile, make_trip


@pytest.mark.asyncio
async def test_database_failure_surfaces_as_upstream_error(db_session, mocker):
    mocker.patch.object(
        db_session, "execute",
        side_effect=OperationalError("UPDATE trips", {}, Exception("server closed the connection"))
    )
    with pytest.raises(UpstreamError) as exc_info:
        await TripStore(db_session).update_trip("trip-1", TripStatus.PENDING, {"status": TripStatus.UPCOMING})
    assert exc_info.value.details["service"] == "Database"


@pytest.mark.asyncio
async def test_redis_failure_surfaces_as_upstream_error(mocker):
    redis = mocker.AsyncMock()
    redis.get.side_effect = RedisConnectionError("Connection refused")
    with pytest.raises(UpstreamError) as exc_info:
        await ProposalStore(redis).load("run-1")
    assert exc_info.value.status_code == 502


@pytest.mark.asyncio
async def test_corrupt_run_is_discarded(mocker):
    redis = mocker.AsyncMock()
    redis.get.return_value = "{not json"
    redis.delete.return_value = 1
    with pytest.raises(ResourceNotFoundError):
        await ProposalStore(redis).load("run-1")
    redis.delete.assert_awaited_once_with("optimizer:run:run-1")


@pytest.mark.asyncio
async def test_apply_stops_when_database_fails(db_session, redis_client_session, dispatcher, drivers, mocker):
    for minute in (0, 15):
        await make_trip(db_session, pickup_time=at(2, 9, minute), status=TripStatus.UPCOMING)
    service = OptimizationService(db_session, redis_client_session)
    run = await service.run(date(2026, 3, 2), date(2026, 3, 2))

    mocker.patch.object(
        service.lifecycle, "assign_from_proposal",
        side_effect=UpstreamError("Database", "OperationalError")
    )
    result = await service.apply_run(run.run_id)

    assert result.applied_count == 0
    assert result.first_error.kind == "upstream"
    assert len(result.skipped) == 1
    assert result.message == "0 of 2 assignments applied"


@pytest.mark.asyncio
async def test_inactive_profile_is_refused(client, db_session):
    dispatcher = await make_profile(db_session, role=ProfileRole.DISPATCHER, status=DriverStatus.INACTIVE,
                                    email="former@example.com")
    response = await client.get("/v1/dispatcher/trips", headers=auth_headers(dispatcher))
    assert response.status_code == 403
    assert response.json()["message"] == "User account is inactive"


@pytest.mark.asyncio
async def test_token_for_deleted_profile_is_refused(client):
    token = create_access_token({"sub": "gone", "role": "dispatcher"})
    response = await client.get("/v1/dispatcher/trips", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 401
    assert response.json()["kind"] == "authentication"
