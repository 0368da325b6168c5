"""
Profile role and driver status enumerations.
"""

import enum


class ProfileRole(str, enum.Enum):
    """
    Profile role enumeration.

    Roles:
        ADMIN: Full access to dispatcher screens
        DISPATCHER: Approves, rejects, assigns and completes trips
        DRIVER: Accepts or rejects assigned trips
        FACILITY: Facility account booking on behalf of managed clients
        CLIENT: Individual client booking directly
    """
    ADMIN = "admin"
    DISPATCHER = "dispatcher"
    DRIVER = "driver"
    FACILITY = "facility"
    CLIENT = "client"


class DriverStatus(str, enum.Enum):
    """Availability of a profile (meaningful for drivers)."""
    ACTIVE = "active"
    INACTIVE = "inactive"
    ON_TRIP = "on_trip"
    PENDING_VERIFICATION = "pending_verification"
