"""Datenmodell für eine wöchentliche Serienbuchung (Pydantic v2)."""

import re
from datetime import date, datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field, field_validator, model_validator

_HHMM = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")

WEEKDAY_NAMES = ["Mo", "Di", "Mi", "Do", "Fr", "Sa", "So"]


class RecurrenceStatus(str, Enum):
    ACTIVE = "active"
    CANCELLED = "cancelled"


class RecurrenceGroup(BaseModel):
    """Wöchentliches Muster: Wochentag + Uhrzeit + Datumsbereich.

    Die Gruppe beschreibt das Muster, nicht die einzelnen Termine.
    Die materialisierten Termine sind normale Buchungen mit
    recurrence_group_id.

    WICHTIG: day_of_week folgt date.weekday() (0=Montag, 6=Sonntag).
    """

    id: str
    room_id: str
    owner_id: str
    day_of_week: int = Field(ge=0, le=6)
    start_time: str                  # "HH:MM" (UTC)
    end_time: str                    # "HH:MM" (UTC)
    start_date: date
    end_date: date
    occurrences: int = Field(ge=1, le=52)
    purpose: str = ""
    attendees: int = Field(1, ge=1)
    notes: str = ""
    status: RecurrenceStatus = RecurrenceStatus.ACTIVE
    # Termine, die beim Anlegen übersprungen oder einzeln storniert wurden
    exception_dates: list[date] = []
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @field_validator("start_time", "end_time")
    @classmethod
    def _check_hhmm(cls, v: str) -> str:
        if not _HHMM.match(v):
            raise ValueError(f"Uhrzeit muss im Format HH:MM sein, nicht {v!r}")
        return v

    @model_validator(mode="after")
    def _check_ranges(self):
        if self.end_time <= self.start_time:
            raise ValueError(
                f"Serien-Ende {self.end_time} muss nach Beginn {self.start_time} liegen"
            )
        if self.end_date < self.start_date:
            raise ValueError("end_date liegt vor start_date")
        return self

    @property
    def is_active(self) -> bool:
        return self.status == RecurrenceStatus.ACTIVE

    @property
    def day_name(self) -> str:
        return WEEKDAY_NAMES[self.day_of_week]

    def covers(self, day: date) -> bool:
        """True wenn das Datum im Bereich [start_date, end_date] liegt."""
        return self.start_date <= day <= self.end_date

    def add_exception(self, day: date) -> None:
        if day not in self.exception_dates:
            self.exception_dates.append(day)
            self.exception_dates.sort()
