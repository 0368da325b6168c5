"""
Security guards for role-based access control.

Provides dependencies for protecting dispatcher and driver endpoints.
"""

from typing import List
from fastapi import Depends
from backend.app.core.dependencies import get_current_user
from backend.app.core.exceptions import InsufficientPermissionsError
from backend.app.models.enums import ProfileRole


def require_role(allowed_roles: List[ProfileRole]):
    """
    Dependency factory for role-based access control.

    Usage:
        @router.post("/dispatcher/trips/{trip_id}/actions")
        async def trip_action(
            current_user: dict = Depends(require_role([ProfileRole.DISPATCHER]))
        ):
            ...

    Raises:
        InsufficientPermissionsError 403 if user role is not in allowed_roles
    """
    async def role_checker(current_user: dict = Depends(get_current_user)) -> dict:
        try:
            user_role = ProfileRole(current_user.get("role"))
        except ValueError:
            raise InsufficientPermissionsError("Invalid role on profile")

        if user_role not in allowed_roles:
            raise InsufficientPermissionsError(
                f"Access denied. Required role: {', '.join([r.value for r in allowed_roles])}"
            )

        return current_user

    return role_checker


# Dispatch staff; admins may act on any dispatcher screen
require_dispatcher = require_role([ProfileRole.DISPATCHER, ProfileRole.ADMIN])
require_driver = require_role([ProfileRole.DRIVER])
