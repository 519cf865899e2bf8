"""Halboffenes Zeitintervall [start, end) in UTC."""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from models.errors import InvalidIntervalError


def to_utc(value: datetime) -> datetime:
    """Normalisiert auf UTC. Naive Zeitstempel gelten bereits als UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


@dataclass(frozen=True)
class Interval:
    """Zeitspanne [start, end) mit end > start.

    Immutable (frozen=True) damit es als Dict-Key / Set-Element nutzbar ist.
    Beide Grenzen werden beim Erzeugen auf UTC normalisiert.
    """

    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        start = to_utc(self.start)
        end = to_utc(self.end)
        if end <= start:
            raise InvalidIntervalError(
                f"Ende ({end.isoformat()}) muss nach Beginn ({start.isoformat()}) liegen"
            )
        object.__setattr__(self, "start", start)
        object.__setattr__(self, "end", end)

    @property
    def duration(self) -> timedelta:
        return self.end - self.start

    @property
    def minutes(self) -> float:
        """Dauer in Minuten."""
        return self.duration.total_seconds() / 60

    def __str__(self) -> str:
        return f"[{self.start:%Y-%m-%d %H:%M}, {self.end:%Y-%m-%d %H:%M})"
