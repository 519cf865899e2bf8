"""Datenmodell für Benachrichtigungen (Pydantic v2)."""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class NotificationType(str, Enum):
    BOOKING_CREATED = "booking_created"
    BOOKING_UPDATED = "booking_updated"
    BOOKING_CANCELLED = "booking_cancelled"
    RECURRING_CREATED = "recurring_created"
    RECURRING_CANCELLED = "recurring_cancelled"


class Notification(BaseModel):
    """Eine Nachricht an einen Nutzer zu einer Buchung."""

    id: str
    user_id: str
    type: NotificationType
    message: str
    booking_id: Optional[str] = None
    is_read: bool = False
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
