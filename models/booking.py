"""Datenmodell für eine Einzelbuchung (Pydantic v2)."""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from models.errors import InvalidIntervalError, InvalidStatusTransitionError
from models.interval import Interval, to_utc


class BookingStatus(str, Enum):
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


class Booking(BaseModel):
    """Eine konkrete Raumbuchung.

    Buchungen werden nie gelöscht, nur über den Status beendet.
    confirmed → cancelled ist endgültig.
    """

    id: str
    room_id: str
    owner_id: str
    start_time: datetime
    end_time: datetime
    purpose: str = ""
    attendees: int = Field(1, ge=1)
    notes: str = ""
    status: BookingStatus = BookingStatus.CONFIRMED
    recurrence_group_id: Optional[str] = None  # gesetzt bei Serien-Terminen
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @field_validator("start_time", "end_time", "created_at")
    @classmethod
    def _normalize_utc(cls, v: datetime) -> datetime:
        return to_utc(v)

    @model_validator(mode="after")
    def _check_times(self):
        if self.end_time <= self.start_time:
            raise InvalidIntervalError("Ende muss nach Beginn liegen")
        return self

    @property
    def interval(self) -> Interval:
        return Interval(self.start_time, self.end_time)

    @property
    def is_confirmed(self) -> bool:
        return self.status == BookingStatus.CONFIRMED

    @property
    def is_recurring(self) -> bool:
        return self.recurrence_group_id is not None

    def cancel(self) -> None:
        """Storniert die Buchung (nur aus 'confirmed' heraus)."""
        if self.status != BookingStatus.CONFIRMED:
            raise InvalidStatusTransitionError(
                f"Buchung {self.id} ist {self.status.value} und kann nicht storniert werden"
            )
        self.status = BookingStatus.CANCELLED
