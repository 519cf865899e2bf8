"""Tests für die Konfliktprüfung gegen Einzelbuchungen und Serien."""

from datetime import date, datetime, timezone

import pytest

from conflicts.checker import ConflictChecker, touched_dates
from models.booking import Booking, BookingStatus
from models.errors import NotFoundError
from models.interval import Interval
from models.recurrence_group import RecurrenceGroup, RecurrenceStatus
from models.room import Room
from store.repository import InMemoryRepository


def _dt(day: int, hour: int, minute: int = 0, month: int = 1) -> datetime:
    return datetime(2024, month, day, hour, minute, tzinfo=timezone.utc)


def _make_repo() -> InMemoryRepository:
    repo = InMemoryRepository()
    repo.add_room(Room(id="R01", name="Nord", capacity=8))
    repo.add_room(Room(id="R02", name="Süd", capacity=6))
    return repo


def _booking(bid: str, start: datetime, end: datetime, room: str = "R01", **kw) -> Booking:
    return Booking(id=bid, room_id=room, owner_id="u1", start_time=start, end_time=end, **kw)


def _monday_group(gid: str = "G1", **kw) -> RecurrenceGroup:
    """Serie: montags 09–10, 01.01.–29.01.2024 in R01."""
    fields = dict(
        id=gid, room_id="R01", owner_id="u1", day_of_week=0,
        start_time="09:00", end_time="10:00",
        start_date=date(2024, 1, 1), end_date=date(2024, 1, 29), occurrences=5,
    )
    fields.update(kw)
    return RecurrenceGroup(**fields)


# ─── check_overlap ────────────────────────────────────────────────────────────

class TestCheckOverlap:
    def test_overlapping_booking(self):
        """Bestehend 09–11, Kandidat 10:30–11:30 → Konflikt."""
        repo = _make_repo()
        repo.add_booking(_booking("B1", _dt(8, 9), _dt(8, 11)))
        checker = ConflictChecker(repo)
        assert checker.check_overlap("R01", Interval(_dt(8, 10, 30), _dt(8, 11, 30)))

    def test_adjacent_booking_is_free(self):
        repo = _make_repo()
        repo.add_booking(_booking("B1", _dt(8, 9), _dt(8, 11)))
        checker = ConflictChecker(repo)
        assert not checker.check_overlap("R01", Interval(_dt(8, 11), _dt(8, 12)))

    def test_other_room_does_not_conflict(self):
        repo = _make_repo()
        repo.add_booking(_booking("B1", _dt(8, 9), _dt(8, 11), room="R02"))
        assert not ConflictChecker(repo).check_overlap("R01", Interval(_dt(8, 9), _dt(8, 11)))

    def test_cancelled_booking_ignored(self):
        repo = _make_repo()
        repo.add_booking(_booking("B1", _dt(8, 9), _dt(8, 11), status=BookingStatus.CANCELLED))
        assert not ConflictChecker(repo).check_overlap("R01", Interval(_dt(8, 9), _dt(8, 11)))

    def test_exclude_own_booking(self):
        """Beim Ändern wird die Buchung selbst ignoriert."""
        repo = _make_repo()
        repo.add_booking(_booking("B1", _dt(8, 9), _dt(8, 11)))
        checker = ConflictChecker(repo)
        assert not checker.check_overlap(
            "R01", Interval(_dt(8, 10), _dt(8, 12)), exclude_booking_id="B1"
        )

    def test_exclude_does_not_hide_others(self):
        repo = _make_repo()
        repo.add_booking(_booking("B1", _dt(8, 9), _dt(8, 10)))
        repo.add_booking(_booking("B2", _dt(8, 10), _dt(8, 11)))
        checker = ConflictChecker(repo)
        assert checker.check_overlap(
            "R01", Interval(_dt(8, 9, 30), _dt(8, 10, 30)), exclude_booking_id="B1"
        )

    def test_unknown_room(self):
        """Unbekannter Raum ist ein Fehler, kein 'frei'."""
        with pytest.raises(NotFoundError):
            ConflictChecker(_make_repo()).check_overlap("XX", Interval(_dt(8, 9), _dt(8, 10)))

    def test_unknown_excluded_booking(self):
        with pytest.raises(NotFoundError):
            ConflictChecker(_make_repo()).check_overlap(
                "R01", Interval(_dt(8, 9), _dt(8, 10)), exclude_booking_id="nope"
            )


# ─── check_recurring_overlap ──────────────────────────────────────────────────

class TestCheckRecurringOverlap:
    def test_overlap_on_matching_monday(self):
        """Serie Mo 09–10, Kandidat Mo 08.01. 09:30–10:00 → Konflikt."""
        repo = _make_repo()
        repo.add_recurrence_group(_monday_group())
        checker = ConflictChecker(repo)
        assert checker.check_recurring_overlap("R01", Interval(_dt(8, 9, 30), _dt(8, 10)))

    def test_weekday_mismatch(self):
        """Datumsbereich schneidet sich, aber Wochentag passt nicht → kein Konflikt."""
        repo = _make_repo()
        repo.add_recurrence_group(_monday_group(day_of_week=1))
        checker = ConflictChecker(repo)
        assert not checker.check_recurring_overlap("R01", Interval(_dt(8, 9, 30), _dt(8, 10)))

    def test_other_day_in_range(self):
        """Dienstag innerhalb des Bereichs einer Montags-Serie → frei."""
        repo = _make_repo()
        repo.add_recurrence_group(_monday_group())
        assert not ConflictChecker(repo).check_recurring_overlap(
            "R01", Interval(_dt(9, 9), _dt(9, 10))
        )

    def test_outside_date_range(self):
        repo = _make_repo()
        repo.add_recurrence_group(_monday_group())
        assert not ConflictChecker(repo).check_recurring_overlap(
            "R01", Interval(_dt(5, 9, month=2), _dt(5, 10, month=2))
        )

    def test_touching_occurrence_is_free(self):
        repo = _make_repo()
        repo.add_recurrence_group(_monday_group())
        assert not ConflictChecker(repo).check_recurring_overlap(
            "R01", Interval(_dt(8, 10), _dt(8, 11))
        )

    def test_cancelled_group_ignored(self):
        repo = _make_repo()
        repo.add_recurrence_group(_monday_group(status=RecurrenceStatus.CANCELLED))
        assert not ConflictChecker(repo).check_recurring_overlap(
            "R01", Interval(_dt(8, 9), _dt(8, 10))
        )

    def test_exception_date_ignored(self):
        """Einzeln stornierter Termin blockiert den Raum nicht mehr."""
        repo = _make_repo()
        repo.add_recurrence_group(_monday_group(exception_dates=[date(2024, 1, 8)]))
        checker = ConflictChecker(repo)
        assert not checker.check_recurring_overlap("R01", Interval(_dt(8, 9), _dt(8, 10)))
        assert checker.check_recurring_overlap("R01", Interval(_dt(15, 9), _dt(15, 10)))

    def test_excluded_occurrence_skips_own_group(self):
        repo = _make_repo()
        repo.add_recurrence_group(_monday_group())
        repo.add_booking(_booking("B1", _dt(8, 9), _dt(8, 10), recurrence_group_id="G1"))
        checker = ConflictChecker(repo)
        assert not checker.check_recurring_overlap(
            "R01", Interval(_dt(8, 9, 15), _dt(8, 10, 15)), exclude_booking_id="B1"
        )

    def test_candidate_spanning_midnight(self):
        """Kandidat So 23:00 – Mo 09:30 trifft den Montagstermin."""
        repo = _make_repo()
        repo.add_recurrence_group(_monday_group())
        assert ConflictChecker(repo).check_recurring_overlap(
            "R01", Interval(_dt(7, 23), _dt(8, 9, 30))
        )


# ─── is_slot_free ─────────────────────────────────────────────────────────────

class TestIsSlotFree:
    def test_free(self):
        repo = _make_repo()
        repo.add_recurrence_group(_monday_group())
        assert ConflictChecker(repo).is_slot_free("R01", Interval(_dt(8, 11), _dt(8, 12)))

    def test_blocked_by_single(self):
        repo = _make_repo()
        repo.add_booking(_booking("B1", _dt(9, 14), _dt(9, 15)))
        assert not ConflictChecker(repo).is_slot_free("R01", Interval(_dt(9, 14), _dt(9, 15)))

    def test_blocked_by_series(self):
        repo = _make_repo()
        repo.add_recurrence_group(_monday_group())
        assert not ConflictChecker(repo).is_slot_free("R01", Interval(_dt(22, 9), _dt(22, 9, 30)))


class TestTouchedDates:
    def test_single_day(self):
        assert touched_dates(Interval(_dt(8, 9), _dt(8, 10))) == [date(2024, 1, 8)]

    def test_end_at_midnight_is_exclusive(self):
        assert touched_dates(Interval(_dt(8, 9), _dt(9, 0))) == [date(2024, 1, 8)]

    def test_over_midnight(self):
        assert touched_dates(Interval(_dt(7, 23), _dt(8, 1))) == [
            date(2024, 1, 7), date(2024, 1, 8),
        ]
