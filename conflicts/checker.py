"""Konfliktprüfung gegen Einzelbuchungen und aktive Serien eines Raums.

Ein Raum ist für ein Intervall frei, wenn BEIDE Prüfungen bestehen:
  - keine Überlappung mit bestätigten Einzelbuchungen (check_overlap)
  - keine Überlappung mit aktiven Serienmustern (check_recurring_overlap)
"""

import logging
from datetime import date, timedelta
from typing import TYPE_CHECKING, Optional

from conflicts.intervals import overlaps
from conflicts.recurrence import occurrence_interval
from models.booking import Booking
from models.errors import NotFoundError
from models.interval import Interval

if TYPE_CHECKING:
    from store.repository import BookingRepository

logger = logging.getLogger(__name__)


def touched_dates(interval: Interval) -> list[date]:
    """Alle UTC-Kalendertage, die das halboffene Intervall berührt."""
    first = interval.start.date()
    # Ende ist exklusiv: ein Intervall bis 00:00 berührt den Folgetag nicht
    last = (interval.end - timedelta(microseconds=1)).date()
    return [first + timedelta(days=i) for i in range((last - first).days + 1)]


class ConflictChecker:
    """Prüft Kandidaten-Intervalle gegen den Bestand eines Raums.

    Verwendung:
        checker = ConflictChecker(repository)
        if not checker.is_slot_free("R01", Interval(start, end)):
            ...
    """

    def __init__(self, repository: "BookingRepository") -> None:
        self.repository = repository

    # ─── Öffentliche API ──────────────────────────────────────────────────────

    def check_overlap(
        self, room_id: str, candidate: Interval,
        exclude_booking_id: Optional[str] = None,
    ) -> bool:
        """True wenn eine bestätigte Buchung des Raums den Kandidaten überlappt."""
        self._require_room(room_id)
        if exclude_booking_id is not None:
            self._require_booking(exclude_booking_id)

        existing = self.repository.fetch_confirmed_bookings(
            room_id, candidate.start, candidate.end
        )
        for booking in existing:
            if booking.id == exclude_booking_id:
                continue
            if overlaps(candidate, booking.interval):
                logger.debug("Konflikt mit Buchung %s in Raum %s", booking.id, room_id)
                return True
        return False

    def check_recurring_overlap(
        self, room_id: str, candidate: Interval,
        exclude_booking_id: Optional[str] = None,
    ) -> bool:
        """True wenn eine aktive Serie des Raums am Kandidaten-Datum überlappt.

        Ein reiner Datumsbereich-Schnitt reicht NICHT: der Wochentag der Serie
        muss exakt dem Wochentag des Kandidaten-Datums entsprechen, bevor
        Uhrzeiten verglichen werden.
        """
        self._require_room(room_id)
        excluded: Optional[Booking] = None
        if exclude_booking_id is not None:
            excluded = self._require_booking(exclude_booking_id)

        for day in touched_dates(candidate):
            groups = self.repository.fetch_active_recurrence_groups(room_id, day)
            for group in groups:
                if group.day_of_week != day.weekday():
                    continue
                if not group.covers(day) or day in group.exception_dates:
                    continue
                if excluded is not None and excluded.recurrence_group_id == group.id:
                    continue
                occurrence = occurrence_interval(day, group.start_time, group.end_time)
                if overlaps(candidate, occurrence):
                    logger.debug(
                        "Konflikt mit Serie %s am %s in Raum %s", group.id, day, room_id
                    )
                    return True
        return False

    def is_slot_free(
        self, room_id: str, candidate: Interval,
        exclude_booking_id: Optional[str] = None,
    ) -> bool:
        """Frei nur wenn weder Einzelbuchungen noch Serien kollidieren."""
        if self.check_overlap(room_id, candidate, exclude_booking_id):
            return False
        return not self.check_recurring_overlap(room_id, candidate, exclude_booking_id)

    # ── Hilfsfunktionen ───────────────────────────────────────────────────────

    def _require_room(self, room_id: str):
        room = self.repository.get_room(room_id)
        if room is None:
            raise NotFoundError("Raum", room_id)
        return room

    def _require_booking(self, booking_id: str) -> Booking:
        booking = self.repository.get_booking(booking_id)
        if booking is None:
            raise NotFoundError("Buchung", booking_id)
        return booking
