"""
Notification Database Model.
"""

from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, ForeignKey, JSON, Enum
from sqlalchemy.sql import func
from backend.app.db.session import Base
from backend.app.models.trip import enum_values
import enum


class NotificationType(str, enum.Enum):
    INFO = "info"
    WARNING = "warning"
    TRIP_UPDATE = "trip_update"
    PAYMENT_ALERT = "payment_alert"


class Notification(Base):
    """
    In-App Notification.
    Stores messages for dispatchers and drivers.
    """
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Recipient
    user_id = Column(String(36), ForeignKey("profiles.id"), nullable=False, index=True)

    # Content
    type = Column(
        Enum(NotificationType, values_callable=enum_values, native_enum=False, length=20),
        default=NotificationType.INFO,
        nullable=False
    )
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    metadata_payload = Column(JSON, nullable=True)

    # State
    is_read = Column(Boolean, default=False, nullable=False, index=True)
    read_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<Notification(id={self.id}, user={self.user_id}, title='{self.title}')>"
