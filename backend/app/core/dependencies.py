"""
Authentication dependencies for FastAPI.

This module provides dependencies for protecting routes with JWT authentication.
"""

from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from backend.app.core.exceptions import AuthenticationError, InsufficientPermissionsError
from backend.app.core.jwt import decode_access_token
from backend.app.db.session import get_db
from backend.app.models.enums import DriverStatus
from backend.app.models.profile import Profile

# HTTP Bearer security scheme
security = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: AsyncSession = Depends(get_db)
) -> dict:
    """
    FastAPI dependency for JWT authentication.

    1. Validates JWT token signature and expiry
    2. Verifies the profile still exists and is not deactivated
    3. Takes the role from the profile row, not the token, so role changes
       apply immediately

    Returns:
        Dict with ``user_id``, ``email``, ``role`` and ``name`` of the caller.

    Raises:
        AuthenticationError: 401 if the token is missing, invalid or orphaned
        InsufficientPermissionsError: 403 if the profile is inactive
    """
    if credentials is None:
        raise AuthenticationError("Not authenticated")

    payload = decode_access_token(credentials.credentials)
    if payload is None:
        raise AuthenticationError("Could not validate credentials")

    user_id = payload.get("sub")
    if not user_id:
        raise AuthenticationError("Invalid token payload")

    result = await db.execute(select(Profile).where(Profile.id == str(user_id)))
    profile = result.scalar_one_or_none()

    if not profile:
        raise AuthenticationError("User profile not found")

    if profile.status == DriverStatus.INACTIVE:
        raise InsufficientPermissionsError("User account is inactive")

    return {
        "user_id": profile.id,
        "email": profile.email,
        "role": profile.role.value,
        "name": profile.display_name,
    }
