"""
Dispatcher Trip Endpoints.

Trip list with facility/individual classification, and the dispatcher
actions that move a trip through its lifecycle.
"""

from datetime import date, datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.guards import require_dispatcher
from backend.app.db.session import get_db
from backend.app.models.trip_enums import TripCategory, TripStatus, with_aliases
from backend.app.schemas.trip import (
    TripActionRequest,
    TripActionResponse,
    TripListResponse,
    TripQuery,
    TripResponse,
    trip_response,
)
from backend.app.services.payment_gateway import PaymentGateway, get_payment_gateway
from backend.app.services.trip_lifecycle import TransitionOutcome, TripLifecycleService
from backend.app.services.trip_store import TripStore

router = APIRouter(prefix="/dispatcher/trips", tags=["Dispatcher - Trips"])


def action_response(outcome: TransitionOutcome) -> TripActionResponse:
    return TripActionResponse(
        trip=trip_response(outcome.trip),
        previous_status=TripStatus(outcome.previous_status).value,
        message=outcome.message,
        warning=outcome.warning,
        payment=outcome.payment,
    )


@router.get("", response_model=TripListResponse)
async def list_trips(
    status: Optional[List[TripStatus]] = Query(None, description="Statuses to include (aliases match)"),
    category: Optional[TripCategory] = Query(None),
    assigned: Optional[bool] = Query(None, description="True: has a driver, False: unassigned"),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    limit: int = Query(200, ge=1, le=1000),
    current_user: dict = Depends(require_dispatcher),
    db: AsyncSession = Depends(get_db)
):
    """
    List trips for the dispatcher console.

    ``counts`` holds per-category totals of the trips matching every filter
    except ``category``, so the console can show tab badges.
    """
    query = TripQuery(
        start=datetime.combine(start_date, datetime.min.time()) if start_date else None,
        end=datetime.combine(end_date, datetime.max.time()) if end_date else None,
        statuses=with_aliases(status) if status else None,
        unassigned_only=None if assigned is None else not assigned,
        category=category,
        limit=limit,
    )
    store = TripStore(db)
    trips = await store.fetch_trips(query)
    counts = await store.count_by_category(query)

    return TripListResponse(
        trips=[trip_response(t) for t in trips],
        total=len(trips),
        counts=counts,
    )


@router.get("/{trip_id}", response_model=TripResponse)
async def get_trip(
    trip_id: str = Path(..., description="Trip ID"),
    current_user: dict = Depends(require_dispatcher),
    db: AsyncSession = Depends(get_db)
):
    trip = await TripStore(db).get_trip(trip_id)
    return trip_response(trip)


@router.post("/{trip_id}/actions", response_model=TripActionResponse)
async def perform_trip_action(
    request: TripActionRequest,
    trip_id: str = Path(..., description="Trip ID"),
    current_user: dict = Depends(require_dispatcher),
    db: AsyncSession = Depends(get_db),
    payment_gateway: PaymentGateway = Depends(get_payment_gateway)
):
    """
    Approve, reject, cancel or complete a trip.

    Approving a card-booked individual trip also charges the card. A declined
    card leaves the trip in ``payment_failed``; an unreachable payment service
    approves the trip for manual payment and returns a ``warning``.
    Reject and cancel require a ``reason``.
    """
    service = TripLifecycleService(db, payment_gateway=payment_gateway)
    outcome = await service.perform(trip_id, request.action, request.reason, current_user)
    return action_response(outcome)
