"""Wöchentliche Serien: Termin-Expansion und Datum+Uhrzeit-Kombination."""

import re
from datetime import date, datetime, time, timedelta, timezone

from models.interval import Interval

_HHMM = re.compile(r"^(\d{1,2}):(\d{2})$")


def parse_hhmm(value: str) -> time:
    """Wandelt "HH:MM" in ein time-Objekt um."""
    m = _HHMM.match(value.strip())
    if not m:
        raise ValueError(f"Uhrzeit muss im Format HH:MM sein, nicht {value!r}")
    hours, minutes = int(m.group(1)), int(m.group(2))
    if hours > 23 or minutes > 59:
        raise ValueError(f"Ungültige Uhrzeit: {value!r}")
    return time(hours, minutes)


def combine_date_and_time(day: date, hhmm: str) -> datetime:
    """Datum + "HH:MM" → UTC-Zeitpunkt."""
    return datetime.combine(day, parse_hhmm(hhmm), tzinfo=timezone.utc)


def occurrence_interval(day: date, start_hhmm: str, end_hhmm: str) -> Interval:
    """Konkretes Intervall eines Serientermins an einem Datum."""
    return Interval(
        combine_date_and_time(day, start_hhmm),
        combine_date_and_time(day, end_hhmm),
    )


def expand_recurrence(anchor_date: date, end_date: date, day_of_week: int) -> list[date]:
    """Alle Termine eines Wochentags im Bereich [anchor_date, end_date].

    Läuft vom Anker VORWÄRTS zum ersten passenden Wochentag (der Anker selbst
    zählt, wenn er passt) und springt dann in 7-Tage-Schritten bis
    einschließlich end_date.

    day_of_week folgt date.weekday(): 0=Montag … 6=Sonntag.
    """
    if not 0 <= day_of_week <= 6:
        raise ValueError(f"day_of_week muss 0–6 sein, nicht {day_of_week}")

    offset = (day_of_week - anchor_date.weekday()) % 7
    current = anchor_date + timedelta(days=offset)
    dates: list[date] = []
    while current <= end_date:
        dates.append(current)
        current += timedelta(days=7)
    return dates
