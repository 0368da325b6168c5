"""
Profile database model.

Mirrors the hosted auth service's ``profiles`` table. Drivers, dispatchers and
admins are all profiles distinguished by ``role``.
"""

import uuid
from sqlalchemy import Column, String, DateTime, Enum
from sqlalchemy.sql import func
from backend.app.db.session import Base
from backend.app.models.enums import ProfileRole, DriverStatus
from backend.app.models.trip import enum_values


class Profile(Base):
    """Staff or client profile."""
    __tablename__ = "profiles"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    email = Column(String(255), unique=True, index=True, nullable=True)
    first_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=True)
    full_name = Column(String(255), nullable=True)
    phone_number = Column(String(50), nullable=True)

    role = Column(
        Enum(ProfileRole, values_callable=enum_values, native_enum=False, length=20),
        default=ProfileRole.DRIVER,
        nullable=False,
        index=True
    )
    status = Column(
        Enum(DriverStatus, values_callable=enum_values, native_enum=False, length=30),
        default=DriverStatus.ACTIVE,
        nullable=False
    )
    vehicle = Column(String(255), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    @property
    def display_name(self) -> str:
        """Name shown on dispatcher screens."""
        if self.full_name:
            return self.full_name
        name = f"{self.first_name or ''} {self.last_name or ''}".strip()
        return name or "Unnamed driver"

    def __repr__(self):
        return f"<Profile(id={self.id}, email='{self.email}', role='{self.role.value}')>"
