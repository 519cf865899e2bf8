"""Tests für die Service-Schicht: Buchungen, Serien, Benachrichtigungen, Broadcast."""

import threading
from datetime import date, datetime, timedelta, timezone

import pytest

from config.schema import AppConfig, BookingRulesConfig, RecurrenceConfig
from models.booking import BookingStatus
from models.errors import (
    BookingError, CapacityExceededError, ConflictError,
    InvalidIntervalError, InvalidStatusTransitionError, NotFoundError,
)
from models.interval import Interval
from models.notification import NotificationType
from models.recurrence_group import RecurrenceStatus
from models.room import Room
from services.booking_service import BookingService, RoomLocks
from services.notifications import NotificationCenter
from services.subscribers import AnalyticsSubscriberRegistry
from store.repository import InMemoryRepository


def _dt(day: int, hour: int, minute: int = 0) -> datetime:
    return datetime(2024, 1, day, hour, minute, tzinfo=timezone.utc)


def _config(**rules) -> AppConfig:
    """Config ohne Vergangenheits-Sperre (Testdaten liegen in 2024)."""
    rules.setdefault("reject_past_bookings", False)
    return AppConfig(booking_rules=BookingRulesConfig(**rules))


def _make_repo() -> InMemoryRepository:
    repo = InMemoryRepository()
    repo.add_room(Room(id="R01", name="Nord", capacity=8))
    repo.add_room(Room(id="R02", name="Süd", capacity=2))
    repo.add_room(Room(id="R09", name="Alt", capacity=8, is_active=False))
    return repo


def _make_service(repo=None, config=None, **kw) -> BookingService:
    repo = repo or _make_repo()
    return BookingService(repo, config or _config(), **kw)


class _BrokenNotificationRepository(InMemoryRepository):
    def add_notification(self, notification):
        raise RuntimeError("Ablage nicht erreichbar")


# ─── Einzelbuchungen ──────────────────────────────────────────────────────────

class TestCreateBooking:
    def test_creates_confirmed_booking(self):
        service = _make_service()
        booking = service.create_booking("R01", "u1", _dt(8, 9), _dt(8, 10), purpose="Jour fixe")
        assert booking.status == BookingStatus.CONFIRMED
        assert service.repository.get_booking(booking.id) is not None

    def test_conflict_with_single(self):
        service = _make_service()
        service.create_booking("R01", "u1", _dt(8, 9), _dt(8, 11))
        with pytest.raises(ConflictError):
            service.create_booking("R01", "u2", _dt(8, 10, 30), _dt(8, 11, 30))

    def test_adjacent_allowed(self):
        service = _make_service()
        service.create_booking("R01", "u1", _dt(8, 9), _dt(8, 10))
        service.create_booking("R01", "u2", _dt(8, 10), _dt(8, 11))
        assert len(service.room_availability("R01", date(2024, 1, 8))) == 2

    def test_conflict_with_series(self):
        service = _make_service()
        service.create_recurring_series(
            "R01", "u1", 0, "09:00", "10:00", date(2024, 1, 1), date(2024, 1, 29)
        )
        with pytest.raises(ConflictError):
            service.create_booking("R01", "u2", _dt(22, 9, 30), _dt(22, 10))

    def test_capacity_exceeded(self):
        with pytest.raises(CapacityExceededError):
            _make_service().create_booking("R02", "u1", _dt(8, 9), _dt(8, 10), attendees=3)

    def test_unknown_room(self):
        with pytest.raises(NotFoundError):
            _make_service().create_booking("XX", "u1", _dt(8, 9), _dt(8, 10))

    def test_inactive_room(self):
        with pytest.raises(BookingError):
            _make_service().create_booking("R09", "u1", _dt(8, 9), _dt(8, 10))

    def test_invalid_interval(self):
        with pytest.raises(InvalidIntervalError):
            _make_service().create_booking("R01", "u1", _dt(8, 10), _dt(8, 9))

    def test_past_rejected(self):
        """Mit aktiver Regel sind Buchungen vor 'jetzt' unzulässig."""
        service = _make_service(
            config=_config(reject_past_bookings=True), clock=lambda: _dt(10, 12)
        )
        with pytest.raises(ValueError):
            service.create_booking("R01", "u1", _dt(8, 9), _dt(8, 10))
        service.create_booking("R01", "u1", _dt(11, 9), _dt(11, 10))

    def test_max_duration(self):
        service = _make_service(config=_config(max_duration_minutes=60))
        with pytest.raises(ValueError):
            service.create_booking("R01", "u1", _dt(8, 9), _dt(8, 11))


class TestUpdateBooking:
    def test_extend_over_itself(self):
        """Die Buchung selbst blockiert ihre Verlängerung nicht."""
        service = _make_service()
        booking = service.create_booking("R01", "u1", _dt(8, 9), _dt(8, 10))
        updated = service.update_booking(booking.id, end_time=_dt(8, 11))
        assert updated.end_time == _dt(8, 11)
        assert service.repository.get_booking(booking.id).end_time == _dt(8, 11)

    def test_move_onto_other_booking(self):
        service = _make_service()
        service.create_booking("R01", "u1", _dt(8, 9), _dt(8, 10))
        other = service.create_booking("R01", "u2", _dt(8, 13), _dt(8, 14))
        with pytest.raises(ConflictError):
            service.update_booking(other.id, start_time=_dt(8, 9, 30), end_time=_dt(8, 10, 30))

    def test_update_purpose_only(self):
        service = _make_service()
        booking = service.create_booking("R01", "u1", _dt(8, 9), _dt(8, 10))
        assert service.update_booking(booking.id, purpose="Neu").purpose == "Neu"

    def test_cancelled_cannot_be_updated(self):
        service = _make_service()
        booking = service.create_booking("R01", "u1", _dt(8, 9), _dt(8, 10))
        service.cancel_booking(booking.id)
        with pytest.raises(InvalidStatusTransitionError):
            service.update_booking(booking.id, purpose="x")

    def test_capacity_on_update(self):
        service = _make_service()
        booking = service.create_booking("R02", "u1", _dt(8, 9), _dt(8, 10))
        with pytest.raises(CapacityExceededError):
            service.update_booking(booking.id, attendees=5)


class TestCancelBooking:
    def test_cancel_frees_slot(self):
        service = _make_service()
        booking = service.create_booking("R01", "u1", _dt(8, 9), _dt(8, 10))
        service.cancel_booking(booking.id)
        service.create_booking("R01", "u2", _dt(8, 9), _dt(8, 10))

    def test_cancel_twice(self):
        """confirmed → cancelled ist endgültig."""
        service = _make_service()
        booking = service.create_booking("R01", "u1", _dt(8, 9), _dt(8, 10))
        service.cancel_booking(booking.id)
        with pytest.raises(InvalidStatusTransitionError):
            service.cancel_booking(booking.id)

    def test_unknown_booking(self):
        with pytest.raises(NotFoundError):
            _make_service().cancel_booking("nope")


# ─── Serien ───────────────────────────────────────────────────────────────────

class TestRecurringSeries:
    def test_creates_all_occurrences(self):
        service = _make_service()
        result = service.create_recurring_series(
            "R01", "u1", 0, "09:00", "10:00", date(2024, 1, 1), date(2024, 1, 22)
        )
        assert result.created_count == 4
        assert result.skipped_dates == []
        assert result.group.occurrences == 4
        assert all(b.recurrence_group_id == result.group.id for b in result.created)

    def test_conflicting_date_skipped(self):
        """Ein belegter Termin wird übersprungen, die übrigen angelegt."""
        service = _make_service()
        service.create_booking("R01", "u9", _dt(15, 9, 30), _dt(15, 10))
        result = service.create_recurring_series(
            "R01", "u1", 0, "09:00", "10:00", date(2024, 1, 1), date(2024, 1, 22)
        )
        assert result.skipped_dates == [date(2024, 1, 15)]
        assert [b.start_time.date() for b in result.created] == [
            date(2024, 1, 1), date(2024, 1, 8), date(2024, 1, 22),
        ]
        stored = service.repository.get_recurrence_group(result.group.id)
        assert stored.exception_dates == [date(2024, 1, 15)]

    def test_all_conflicting_still_returns_group(self):
        service = _make_service()
        service.create_recurring_series(
            "R01", "u1", 0, "09:00", "10:00", date(2024, 1, 1), date(2024, 1, 8)
        )
        result = service.create_recurring_series(
            "R01", "u2", 0, "09:30", "10:30", date(2024, 1, 1), date(2024, 1, 8)
        )
        assert result.created == []
        assert len(result.skipped_dates) == 2
        assert service.repository.get_recurrence_group(result.group.id) is not None

    def test_no_matching_dates(self):
        with pytest.raises(ValueError):
            _make_service().create_recurring_series(
                "R01", "u1", 0, "09:00", "10:00", date(2024, 1, 2), date(2024, 1, 4)
            )

    def test_invalid_time_of_day(self):
        with pytest.raises(ValueError):
            _make_service().create_recurring_series(
                "R01", "u1", 0, "9 Uhr", "10:00", date(2024, 1, 1), date(2024, 1, 8)
            )

    def test_max_occurrences(self):
        config = _config()
        config = config.model_copy(update={"recurrence": RecurrenceConfig(max_occurrences=2)})
        service = _make_service(config=config)
        result = service.create_recurring_series(
            "R01", "u1", 0, "09:00", "10:00", date(2024, 1, 1), date(2024, 3, 25)
        )
        assert result.created_count == 2
        assert result.group.end_date == date(2024, 1, 8)

    def test_capacity(self):
        with pytest.raises(CapacityExceededError):
            _make_service().create_recurring_series(
                "R02", "u1", 0, "09:00", "10:00", date(2024, 1, 1), date(2024, 1, 8),
                attendees=4,
            )

    def test_cancel_series(self):
        service = _make_service()
        result = service.create_recurring_series(
            "R01", "u1", 0, "09:00", "10:00", date(2024, 1, 1), date(2024, 1, 22)
        )
        service.cancel_occurrence(result.created[0].id)
        assert service.cancel_series(result.group.id) == 3
        group = service.repository.get_recurrence_group(result.group.id)
        assert group.status == RecurrenceStatus.CANCELLED
        assert service.checker.is_slot_free("R01", Interval(_dt(8, 9), _dt(8, 10)))

    def test_cancel_series_twice(self):
        service = _make_service()
        result = service.create_recurring_series(
            "R01", "u1", 0, "09:00", "10:00", date(2024, 1, 1), date(2024, 1, 8)
        )
        service.cancel_series(result.group.id)
        with pytest.raises(InvalidStatusTransitionError):
            service.cancel_series(result.group.id)

    def test_cancel_occurrence_records_exception(self):
        """Stornierter Einzeltermin: Serie bleibt aktiv, Slot wird frei."""
        service = _make_service()
        result = service.create_recurring_series(
            "R01", "u1", 0, "09:00", "10:00", date(2024, 1, 1), date(2024, 1, 22)
        )
        second = result.created[1]
        service.cancel_occurrence(second.id)
        group = service.repository.get_recurrence_group(result.group.id)
        assert group.is_active
        assert group.exception_dates == [date(2024, 1, 8)]
        service.create_booking("R01", "u2", _dt(8, 9), _dt(8, 10))

    def test_moved_occurrence_frees_original_slot(self):
        """Verschobener Serientermin blockiert seinen alten Slot nicht mehr."""
        service = _make_service()
        result = service.create_recurring_series(
            "R01", "u1", 0, "09:00", "10:00", date(2024, 1, 1), date(2024, 1, 29)
        )
        jan8 = result.created[1]
        service.update_booking(jan8.id, _dt(8, 14), _dt(8, 15))

        group = service.repository.get_recurrence_group(result.group.id)
        assert group.exception_dates == [date(2024, 1, 8)]
        assert service.repository.fetch_confirmed_bookings("R01", _dt(8, 9), _dt(8, 10)) == []
        service.create_booking("R01", "u2", _dt(8, 9), _dt(8, 10))
        assert not service.checker.is_slot_free("R01", Interval(_dt(8, 14), _dt(8, 15)))

    def test_moved_occurrence_other_slots_still_blocked(self):
        service = _make_service()
        result = service.create_recurring_series(
            "R01", "u1", 0, "09:00", "10:00", date(2024, 1, 1), date(2024, 1, 29)
        )
        service.update_booking(result.created[1].id, _dt(8, 14), _dt(8, 15))
        with pytest.raises(ConflictError):
            service.create_booking("R01", "u2", _dt(15, 9), _dt(15, 10))

    def test_cancel_moved_occurrence_keeps_exception_dates(self):
        """Storno nach Verschieben vermerkt nicht das neue Datum."""
        service = _make_service()
        result = service.create_recurring_series(
            "R01", "u1", 0, "09:00", "10:00", date(2024, 1, 1), date(2024, 1, 29)
        )
        moved = service.update_booking(result.created[1].id, _dt(9, 9), _dt(9, 10))
        service.cancel_occurrence(moved.id)
        group = service.repository.get_recurrence_group(result.group.id)
        assert group.exception_dates == [date(2024, 1, 8)]
        assert group.is_active

    def test_update_purpose_keeps_series_slot(self):
        service = _make_service()
        result = service.create_recurring_series(
            "R01", "u1", 0, "09:00", "10:00", date(2024, 1, 1), date(2024, 1, 8)
        )
        service.update_booking(result.created[1].id, purpose="Neu")
        group = service.repository.get_recurrence_group(result.group.id)
        assert group.exception_dates == []

    def test_cancel_occurrence_requires_series(self):
        service = _make_service()
        booking = service.create_booking("R01", "u1", _dt(8, 9), _dt(8, 10))
        with pytest.raises(ValueError):
            service.cancel_occurrence(booking.id)

    def test_update_series(self):
        service = _make_service()
        result = service.create_recurring_series(
            "R01", "u1", 0, "09:00", "10:00", date(2024, 1, 1), date(2024, 1, 22)
        )
        service.cancel_occurrence(result.created[0].id)
        assert service.update_series(result.group.id, purpose="Neuer Zweck") == 3
        group = service.repository.get_recurrence_group(result.group.id)
        assert group.purpose == "Neuer Zweck"
        live = [b for b in service.repository.bookings_for_group(group.id) if b.is_confirmed]
        assert all(b.purpose == "Neuer Zweck" for b in live)

    def test_update_series_unknown(self):
        with pytest.raises(NotFoundError):
            _make_service().update_series("nope", purpose="x")


# ─── Verfügbarkeit ────────────────────────────────────────────────────────────

class TestRoomAvailability:
    def test_sorted_and_filtered_by_day(self):
        service = _make_service()
        service.create_booking("R01", "u1", _dt(8, 14), _dt(8, 15))
        service.create_booking("R01", "u1", _dt(8, 9), _dt(8, 10))
        service.create_booking("R01", "u1", _dt(9, 9), _dt(9, 10))
        bookings = service.room_availability("R01", date(2024, 1, 8))
        assert [b.start_time.hour for b in bookings] == [9, 14]

    def test_unknown_room(self):
        with pytest.raises(NotFoundError):
            _make_service().room_availability("XX", date(2024, 1, 8))


# ─── Nebenläufigkeit ──────────────────────────────────────────────────────────

class TestConcurrency:
    def test_room_locks_are_per_room(self):
        locks = RoomLocks()
        assert locks.get("R01") is locks.get("R01")
        assert locks.get("R01") is not locks.get("R02")

    def test_parallel_requests_single_winner(self):
        """Zehn gleichzeitige Anfragen für denselben Slot → genau eine Buchung."""
        service = _make_service()
        results: list[str] = []
        barrier = threading.Barrier(10)

        def attempt(i: int) -> None:
            barrier.wait()
            try:
                service.create_booking("R01", f"u{i}", _dt(8, 9), _dt(8, 10))
                results.append("ok")
            except ConflictError:
                results.append("conflict")

        threads = [threading.Thread(target=attempt, args=(i,)) for i in range(10)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert results.count("ok") == 1
        assert results.count("conflict") == 9


# ─── Benachrichtigungen / Broadcast ───────────────────────────────────────────

class TestNotifications:
    def test_notification_on_create_and_cancel(self):
        repo = _make_repo()
        service = _make_service(repo, notifications=NotificationCenter(repo))
        booking = service.create_booking("R01", "u1", _dt(8, 9), _dt(8, 10))
        service.cancel_booking(booking.id)
        kinds = [n.type for n in repo.notifications_for_user("u1")]
        assert kinds == [NotificationType.BOOKING_CREATED, NotificationType.BOOKING_CANCELLED]

    def test_series_notification(self):
        repo = _make_repo()
        service = _make_service(repo, notifications=NotificationCenter(repo))
        service.create_recurring_series(
            "R01", "u1", 0, "09:00", "10:00", date(2024, 1, 1), date(2024, 1, 8)
        )
        kinds = [n.type for n in repo.notifications_for_user("u1")]
        assert kinds == [NotificationType.RECURRING_CREATED]

    def test_failure_does_not_affect_booking(self):
        """Fehler beim Benachrichtigen ändern das Buchungsergebnis nicht."""
        repo = _BrokenNotificationRepository()
        repo.add_room(Room(id="R01", name="Nord", capacity=8))
        service = _make_service(repo, notifications=NotificationCenter(repo))
        booking = service.create_booking("R01", "u1", _dt(8, 9), _dt(8, 10))
        assert repo.get_booking(booking.id).is_confirmed


class TestNotificationReadState:
    def _center_with_three(self):
        repo = _make_repo()
        center = NotificationCenter(repo)
        service = _make_service(repo, notifications=center)
        booking = service.create_booking("R01", "u1", _dt(8, 9), _dt(8, 10))
        service.update_booking(booking.id, purpose="Neu")
        service.cancel_booking(booking.id)
        service.create_booking("R01", "u2", _dt(8, 9), _dt(8, 10))
        return center

    def test_unread_count(self):
        center = self._center_with_three()
        assert center.unread_count("u1") == 3
        assert center.unread_count("u2") == 1

    def test_mark_as_read(self):
        center = self._center_with_three()
        first = center.for_user("u1")[0]
        assert center.mark_as_read("u1", first.id).is_read
        assert center.unread_count("u1") == 2
        assert first.id not in [n.id for n in center.for_user("u1", unread_only=True)]

    def test_mark_foreign_notification(self):
        """Benachrichtigungen anderer Nutzer können nicht markiert werden."""
        center = self._center_with_three()
        other = center.for_user("u2")[0]
        with pytest.raises(NotFoundError):
            center.mark_as_read("u1", other.id)
        assert center.unread_count("u2") == 1

    def test_mark_all_as_read(self):
        center = self._center_with_three()
        assert center.mark_all_as_read("u1") == 3
        assert center.mark_all_as_read("u1") == 0
        assert center.unread_count("u1") == 0
        assert center.unread_count("u2") == 1

    def test_delete(self):
        center = self._center_with_three()
        target = center.for_user("u1")[0]
        center.delete("u1", target.id)
        assert len(center.for_user("u1")) == 2
        with pytest.raises(NotFoundError):
            center.delete("u1", target.id)

    def test_read_state_survives_json(self, tmp_path):
        repo = _make_repo()
        center = NotificationCenter(repo)
        _make_service(repo, notifications=center).create_booking("R01", "u1", _dt(8, 9), _dt(8, 10))
        center.mark_all_as_read("u1")
        repo.save_json(tmp_path / "bestand.json")
        loaded = InMemoryRepository.load_json(tmp_path / "bestand.json")
        assert NotificationCenter(loaded).unread_count("u1") == 0


class TestBroadcast:
    def test_subscriber_receives_update(self):
        registry = AnalyticsSubscriberRegistry()
        received: list[dict] = []
        registry.subscribe(received.append, "week", date(2024, 1, 8), date(2024, 1, 14))
        service = _make_service(registry=registry)
        service.create_booking("R01", "u1", _dt(8, 9), _dt(8, 10))
        assert len(received) == 1
        assert received[0]["type"] == "update"
        assert received[0]["data"]["total_bookings"] == 1

    def test_failing_subscriber_dropped(self):
        registry = AnalyticsSubscriberRegistry()

        def broken(payload):
            raise RuntimeError("Verbindung getrennt")

        received: list[dict] = []
        registry.subscribe(broken)
        registry.subscribe(received.append)
        service = _make_service(registry=registry)
        service.create_booking("R01", "u1", _dt(8, 9), _dt(8, 10))
        assert len(registry) == 1
        assert len(received) == 1

    def test_computed_once_per_filter(self):
        registry = AnalyticsSubscriberRegistry()
        calls: list[tuple] = []

        class _Aggregator:
            def get_comprehensive_analytics(self, range_name, start, end, now=None):
                calls.append((range_name, start, end))
                from analysis.analytics import AnalyticsAggregator
                return AnalyticsAggregator(_make_repo()).get_comprehensive_analytics(
                    range_name, start, end, now=now
                )

        registry.subscribe(lambda p: None, "week")
        registry.subscribe(lambda p: None, "week")
        registry.subscribe(lambda p: None, "month")
        assert registry.broadcast(_Aggregator()) == 3
        assert sorted(c[0] for c in calls) == ["month", "week"]

    def test_unsubscribe(self):
        registry = AnalyticsSubscriberRegistry()
        sub_id = registry.subscribe(lambda p: None)
        assert registry.unsubscribe(sub_id)
        assert len(registry) == 0
