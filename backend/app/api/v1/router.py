"""
API v1 Router.

Aggregates all v1 API endpoints.
"""

from fastapi import APIRouter
from backend.app.api.v1.endpoints import (
    dispatcher_trips,
    driver_assignment,
    optimization,
    payment_verification,
)

router = APIRouter()

# Dispatcher trip list and lifecycle actions
router.include_router(dispatcher_trips.router)

# Driver assignment and driver responses
router.include_router(driver_assignment.router)
router.include_router(driver_assignment.driver_router)

# Driver assignment optimizer
router.include_router(optimization.router)

# Facility invoice check verification
router.include_router(payment_verification.router)
