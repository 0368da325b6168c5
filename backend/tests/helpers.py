"""
Test data factories.
"""

from datetime import datetime
from decimal import Decimal

from backend.app.core.jwt import create_access_token
from backend.app.models.enums import DriverStatus, ProfileRole
from backend.app.models.profile import Profile
from backend.app.models.trip import Trip
from backend.app.models.trip_enums import TripStatus


async def make_profile(db, role=ProfileRole.DRIVER, full_name=None, status=DriverStatus.ACTIVE,
                       email=None, created_at=None):
    profile = Profile(
        role=role,
        full_name=full_name,
        status=status,
        email=email,
    )
    if created_at is not None:
        profile.created_at = created_at
    db.add(profile)
    await db.commit()
    return profile


async def make_trip(db, pickup_time=None, status=TripStatus.PENDING, facility_id="fac-1",
                    user_id=None, driver_id=None, payment_method_id=None, price="45.00"):
    trip = Trip(
        pickup_time=pickup_time,
        status=status,
        facility_id=facility_id,
        user_id=user_id,
        driver_id=driver_id,
        payment_method_id=payment_method_id,
        price=Decimal(price),
    )
    db.add(trip)
    await db.commit()
    return trip


def at(day: int, hour: int, minute: int = 0) -> datetime:
    """Naive pickup time in March 2026."""
    return datetime(2026, 3, day, hour, minute)


def actor_for(profile) -> dict:
    """The dict ``get_current_user`` returns for ``profile``."""
    return {
        "user_id": profile.id,
        "email": profile.email,
        "role": profile.role.value,
        "name": profile.display_name,
    }


def auth_headers(profile) -> dict:
    token = create_access_token({"sub": profile.id, "email": profile.email, "role": profile.role.value})
    return {"Authorization": f"Bearer {token}"}
