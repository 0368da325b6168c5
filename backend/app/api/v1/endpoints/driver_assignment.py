"""
Driver Assignment Endpoints.

Dispatchers assign a driver to an approved trip; when driver acceptance is
configured, the assigned driver accepts or declines it.
"""

from fastapi import APIRouter, Depends, Path
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.api.v1.endpoints.dispatcher_trips import action_response
from backend.app.core.guards import require_dispatcher, require_driver
from backend.app.db.session import get_db
from backend.app.schemas.trip import DriverAssignmentRequest, DriverResponseRequest, TripActionResponse
from backend.app.services.trip_lifecycle import TripLifecycleService

router = APIRouter(prefix="/dispatcher/trips", tags=["Dispatcher - Driver Assignment"])
driver_router = APIRouter(prefix="/driver/trips", tags=["Driver - Trip Response"])


@router.post("/{trip_id}/assign-driver", response_model=TripActionResponse)
async def assign_driver_to_trip(
    assignment: DriverAssignmentRequest,
    trip_id: str = Path(..., description="Trip ID"),
    current_user: dict = Depends(require_dispatcher),
    db: AsyncSession = Depends(get_db)
):
    """
    Assign a driver to an upcoming trip.

    Validates:
    - Trip is upcoming (or legacy ``approved``) with no driver
    - Profile exists, is a driver, and is not inactive

    Two dispatchers assigning the same trip at once: the second gets 409.
    """
    outcome = await TripLifecycleService(db).assign_driver(trip_id, assignment.driver_id, current_user)
    return action_response(outcome)


@driver_router.post("/{trip_id}/respond", response_model=TripActionResponse)
async def respond_to_trip(
    response: DriverResponseRequest,
    trip_id: str = Path(..., description="Trip ID"),
    current_user: dict = Depends(require_driver),
    db: AsyncSession = Depends(get_db)
):
    """Accept or decline a trip awaiting your acceptance. Declining requires a reason."""
    outcome = await TripLifecycleService(db).driver_respond(
        trip_id, response.action, response.reason, current_user
    )
    return action_response(outcome)
