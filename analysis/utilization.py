"""Raumauslastung ohne Doppelzählung.

Bestätigte Buchungen werden auf den Zeitraum zugeschnitten, überlappende
Intervalle zusammengeführt und die Summe ins Verhältnis zur verfügbaren
Arbeitszeit gesetzt.
"""

import math
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Iterable

from pydantic import BaseModel

from conflicts.intervals import clamp_interval, merge_intervals, total_minutes
from models.booking import Booking
from models.errors import NotFoundError
from models.interval import Interval

if TYPE_CHECKING:
    from store.repository import BookingRepository

DEFAULT_WORKING_MINUTES_PER_DAY = 600


class UtilizationResult(BaseModel):
    """Auslastung eines Raums in einem Zeitraum."""

    booked_minutes: float
    available_minutes: int
    rate: float   # Prozent, 2 Nachkommastellen
    count: int    # Anzahl beitragender Rohbuchungen (nicht zusammengeführt)

    @property
    def booked_hours(self) -> float:
        return round(self.booked_minutes / 60, 2)


def days_in_range(range_start: datetime, range_end: datetime) -> int:
    """Länge des Zeitraums in Tagen, aufgerundet (ein halber Tag zählt als Tag)."""
    span = range_end - range_start
    if span <= timedelta(0):
        return 0
    return math.ceil(span / timedelta(days=1))


def utilization_rate(booked_minutes: float, available_minutes: float) -> float:
    if available_minutes <= 0:
        return 0
    return round(booked_minutes / available_minutes * 100, 2)


def utilization_from_bookings(
    bookings: Iterable[Booking],
    range_start: datetime,
    range_end: datetime,
    working_minutes_per_day: int = DEFAULT_WORKING_MINUTES_PER_DAY,
) -> UtilizationResult:
    """Reine Berechnung auf einem bereits geladenen Schnappschuss.

    Nur bestätigte Buchungen zählen. Teilweise überlappende Buchungen am Rand
    zählen nur mit ihrem Anteil innerhalb des Zeitraums.
    """
    window = Interval(range_start, range_end)

    clamped: list[Interval] = []
    count = 0
    for booking in bookings:
        if not booking.is_confirmed:
            continue
        part = clamp_interval(booking.interval, window.start, window.end)
        if part is None:
            continue
        clamped.append(part)
        count += 1

    booked = total_minutes(merge_intervals(clamped))
    available = days_in_range(window.start, window.end) * working_minutes_per_day

    return UtilizationResult(
        booked_minutes=booked,
        available_minutes=available,
        rate=utilization_rate(booked, available),
        count=count,
    )


class UtilizationCalculator:
    """Berechnet die Auslastung eines Raums über das Repository."""

    def __init__(
        self, repository: "BookingRepository",
        working_minutes_per_day: int = DEFAULT_WORKING_MINUTES_PER_DAY,
    ) -> None:
        self.repository = repository
        self.working_minutes_per_day = working_minutes_per_day

    def compute_room_utilization(
        self, room_id: str, range_start: datetime, range_end: datetime
    ) -> UtilizationResult:
        """Auslastung eines Raums im Zeitraum [range_start, range_end)."""
        window = Interval(range_start, range_end)
        if self.repository.get_room(room_id) is None:
            raise NotFoundError("Raum", room_id)

        bookings = self.repository.fetch_confirmed_bookings(
            room_id, window.start, window.end
        )
        return utilization_from_bookings(
            bookings, window.start, window.end, self.working_minutes_per_day
        )
