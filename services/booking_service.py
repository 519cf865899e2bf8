"""Service-Schicht: Anlegen, Ändern und Stornieren von Buchungen und Serien.

Prüfen und Einfügen laufen pro Raum unter einer Sperre (RoomLocks), damit
zwei gleichzeitige Anfragen nicht beide denselben freien Slot sehen.

Ablauf create_booking:
  1. Intervall validieren (Ende > Beginn)
  2. Raum existiert und ist aktiv, Kapazität reicht
  3. Nicht in der Vergangenheit, maximale Dauer
  4. Unter Raum-Sperre: is_slot_free → Buchung speichern
  5. Benachrichtigung + Broadcast (best effort)
"""

import logging
import threading
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import TYPE_CHECKING, Callable, Iterator, Optional

from conflicts.checker import ConflictChecker
from conflicts.recurrence import expand_recurrence, occurrence_interval
from config.schema import AppConfig
from models.booking import Booking, BookingStatus
from models.errors import (
    BookingError, CapacityExceededError, ConflictError,
    InvalidStatusTransitionError, NotFoundError,
)
from models.interval import Interval
from models.notification import NotificationType
from models.recurrence_group import RecurrenceGroup, RecurrenceStatus
from models.room import Room

if TYPE_CHECKING:
    from analysis.analytics import AnalyticsAggregator
    from services.notifications import NotificationCenter
    from services.subscribers import AnalyticsSubscriberRegistry
    from store.repository import BookingRepository

logger = logging.getLogger(__name__)


# ─── Raum-Sperren ─────────────────────────────────────────────────────────────

class RoomLocks:
    """Registry von threading.Lock-Objekten, eines pro Raum-ID."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[str, threading.Lock] = {}

    def get(self, room_id: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(room_id)
            if lock is None:
                lock = self._locks[room_id] = threading.Lock()
            return lock

    @contextmanager
    def hold(self, room_id: str) -> Iterator[None]:
        lock = self.get(room_id)
        with lock:
            yield


@dataclass
class RecurringBatchResult:
    """Ergebnis einer Serienanlage: Gruppe, angelegte Termine, übersprungene Daten."""

    group: RecurrenceGroup
    created: list[Booking] = field(default_factory=list)
    skipped_dates: list[date] = field(default_factory=list)

    @property
    def created_count(self) -> int:
        return len(self.created)


# ─── Service ──────────────────────────────────────────────────────────────────

class BookingService:
    """Fachliche Schreiboperationen über einem BookingRepository.

    Verwendung:
        service = BookingService(repository, config)
        booking = service.create_booking("R01", "u1", start, end, purpose="Jour fixe")
    """

    def __init__(
        self,
        repository: "BookingRepository",
        config: Optional[AppConfig] = None,
        notifications: Optional["NotificationCenter"] = None,
        registry: Optional["AnalyticsSubscriberRegistry"] = None,
        aggregator: Optional["AnalyticsAggregator"] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.repository = repository
        self.config = config or AppConfig()
        self.checker = ConflictChecker(repository)
        self.locks = RoomLocks()
        self.notifications = notifications
        self.registry = registry
        if registry is not None and aggregator is None:
            from analysis.analytics import AnalyticsAggregator
            aggregator = AnalyticsAggregator(
                repository,
                self.config.working_hours.working_minutes_per_day,
                self.config.analytics,
            )
        self.aggregator = aggregator
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    # ─── Einzelbuchungen ──────────────────────────────────────────────────────

    def create_booking(
        self,
        room_id: str,
        owner_id: str,
        start_time: datetime,
        end_time: datetime,
        purpose: str = "",
        attendees: int = 1,
        notes: str = "",
    ) -> Booking:
        """Legt eine Einzelbuchung an. Wirft ConflictError wenn der Slot belegt ist."""
        interval = Interval(start_time, end_time)
        room = self._require_active_room(room_id)
        self._check_capacity(room, attendees)
        self._check_not_past(interval)
        self._check_duration(interval)

        with self.locks.hold(room_id):
            if not self.checker.is_slot_free(room_id, interval):
                raise ConflictError(
                    f"Raum {room.name} ist im Zeitraum {interval} bereits belegt"
                )
            booking = Booking(
                id=uuid.uuid4().hex,
                room_id=room_id,
                owner_id=owner_id,
                start_time=interval.start,
                end_time=interval.end,
                purpose=purpose,
                attendees=attendees,
                notes=notes,
            )
            self.repository.add_booking(booking)

        logger.info(f"Buchung {booking.id} angelegt: {room_id} {interval}")
        self._notify_booking(NotificationType.BOOKING_CREATED, booking, room)
        self._after_write()
        return booking

    def update_booking(
        self,
        booking_id: str,
        start_time: Optional[datetime] = None,
        end_time: Optional[datetime] = None,
        purpose: Optional[str] = None,
        attendees: Optional[int] = None,
        notes: Optional[str] = None,
    ) -> Booking:
        """Ändert Zeit und/oder Angaben einer bestätigten Buchung.

        Bei geänderter Zeit wird der Konflikt unter Ausschluss der Buchung
        selbst geprüft.
        """
        booking = self._require_booking(booking_id)
        if not booking.is_confirmed:
            raise InvalidStatusTransitionError(
                f"Buchung {booking_id} ist {booking.status.value} und kann nicht geändert werden"
            )
        room = self._require_active_room(booking.room_id)

        interval = Interval(start_time or booking.start_time, end_time or booking.end_time)
        if attendees is not None:
            self._check_capacity(room, attendees)
        times_changed = interval != booking.interval
        if times_changed:
            self._check_not_past(interval)
            self._check_duration(interval)

        with self.locks.hold(booking.room_id):
            if times_changed and not self.checker.is_slot_free(
                booking.room_id, interval, exclude_booking_id=booking_id
            ):
                raise ConflictError(
                    f"Raum {room.name} ist im Zeitraum {interval} bereits belegt"
                )
            if times_changed and booking.recurrence_group_id is not None:
                self._release_series_slot(booking)
            updates: dict = {"start_time": interval.start, "end_time": interval.end}
            if purpose is not None:
                updates["purpose"] = purpose
            if attendees is not None:
                updates["attendees"] = attendees
            if notes is not None:
                updates["notes"] = notes
            booking = booking.model_copy(update=updates)
            self.repository.save_booking(booking)

        logger.info(f"Buchung {booking_id} geändert")
        self._notify_booking(NotificationType.BOOKING_UPDATED, booking, room)
        self._after_write()
        return booking

    def cancel_booking(self, booking_id: str) -> Booking:
        """Storniert eine Buchung. Serientermine werden als Ausnahmedatum vermerkt."""
        booking = self._require_booking(booking_id)
        room = self.repository.get_room(booking.room_id)

        with self.locks.hold(booking.room_id):
            booking.cancel()
            self.repository.save_booking(booking)
            if booking.recurrence_group_id is not None:
                self._release_series_slot(booking)

        logger.info(f"Buchung {booking_id} storniert")
        self._notify_booking(NotificationType.BOOKING_CANCELLED, booking, room)
        self._after_write()
        return booking

    def room_availability(self, room_id: str, day: date) -> list[Booking]:
        """Bestätigte Buchungen, die den UTC-Tag schneiden, nach Beginn sortiert."""
        if self.repository.get_room(room_id) is None:
            raise NotFoundError("Raum", room_id)
        day_start = datetime.combine(day, datetime.min.time(), tzinfo=timezone.utc)
        bookings = self.repository.fetch_confirmed_bookings(
            room_id, day_start, day_start + timedelta(days=1)
        )
        return sorted(bookings, key=lambda b: (b.start_time, b.id))

    def user_bookings(self, owner_id: str) -> list[Booking]:
        return self.repository.bookings_for_owner(owner_id)

    # ─── Serien ───────────────────────────────────────────────────────────────

    def create_recurring_series(
        self,
        room_id: str,
        owner_id: str,
        day_of_week: int,
        start_time: str,
        end_time: str,
        start_date: date,
        end_date: date,
        purpose: str = "",
        attendees: int = 1,
        notes: str = "",
    ) -> RecurringBatchResult:
        """Legt eine wöchentliche Serie an.

        Konfliktbehaftete Termine werden übersprungen und als Ausnahmedatum
        der Gruppe vermerkt; ein einzelner Konflikt bricht die Serie nicht ab.
        """
        room = self._require_active_room(room_id)
        self._check_capacity(room, attendees)

        dates = expand_recurrence(start_date, end_date, day_of_week)
        if not dates:
            raise ValueError(
                f"Keine Termine zwischen {start_date} und {end_date} für Wochentag {day_of_week}"
            )
        max_occurrences = self.config.recurrence.max_occurrences
        if len(dates) > max_occurrences:
            logger.warning(
                f"Serie auf {max_occurrences} Termine begrenzt (angefragt: {len(dates)})"
            )
            dates = dates[:max_occurrences]
            end_date = dates[-1]

        # validiert HH:MM und Beginn < Ende
        first = occurrence_interval(dates[0], start_time, end_time)
        self._check_not_past(first)
        self._check_duration(first)

        group = RecurrenceGroup(
            id=uuid.uuid4().hex,
            room_id=room_id,
            owner_id=owner_id,
            day_of_week=day_of_week,
            start_time=start_time,
            end_time=end_time,
            start_date=start_date,
            end_date=end_date,
            occurrences=len(dates),
            purpose=purpose,
            attendees=attendees,
            notes=notes,
        )
        result = RecurringBatchResult(group=group)

        with self.locks.hold(room_id):
            for day in dates:
                interval = occurrence_interval(day, start_time, end_time)
                if not self.checker.is_slot_free(room_id, interval):
                    logger.info(f"Serie {group.id}: Termin {day} übersprungen (Konflikt)")
                    result.skipped_dates.append(day)
                    group.add_exception(day)
                    continue
                booking = Booking(
                    id=uuid.uuid4().hex,
                    room_id=room_id,
                    owner_id=owner_id,
                    start_time=interval.start,
                    end_time=interval.end,
                    purpose=purpose,
                    attendees=attendees,
                    notes=notes,
                    recurrence_group_id=group.id,
                )
                self.repository.add_booking(booking)
                result.created.append(booking)
            # Gruppe erst nach den Terminen speichern, sonst kollidiert sie mit sich selbst
            self.repository.add_recurrence_group(group)

        logger.info(
            f"Serie {group.id} angelegt: {result.created_count} Termine, "
            f"{len(result.skipped_dates)} übersprungen"
        )
        if self.notifications is not None:
            self.notifications.series_created(
                group, room.name, result.created_count, len(result.skipped_dates)
            )
        self._after_write()
        return result

    def cancel_series(self, group_id: str) -> int:
        """Storniert die Serie und alle noch bestätigten Termine. Gibt deren Anzahl zurück."""
        group = self._require_group(group_id)
        if not group.is_active:
            raise InvalidStatusTransitionError(f"Serie {group_id} ist bereits storniert")

        cancelled = 0
        with self.locks.hold(group.room_id):
            for booking in self.repository.bookings_for_group(group_id):
                if not booking.is_confirmed:
                    continue
                booking.cancel()
                self.repository.save_booking(booking)
                cancelled += 1
            group.status = RecurrenceStatus.CANCELLED
            self.repository.save_recurrence_group(group)

        logger.info(f"Serie {group_id} storniert ({cancelled} Termine)")
        if self.notifications is not None:
            room = self.repository.get_room(group.room_id)
            self.notifications.series_cancelled(
                group, room.name if room else group.room_id, cancelled
            )
        self._after_write()
        return cancelled

    def cancel_occurrence(self, booking_id: str) -> Booking:
        """Storniert einen einzelnen Serientermin; die Serie bleibt aktiv."""
        booking = self._require_booking(booking_id)
        if booking.recurrence_group_id is None:
            raise ValueError(f"Buchung {booking_id} gehört zu keiner Serie")
        return self.cancel_booking(booking_id)

    def update_series(
        self,
        group_id: str,
        purpose: Optional[str] = None,
        attendees: Optional[int] = None,
        notes: Optional[str] = None,
    ) -> int:
        """Ändert Zweck/Teilnehmer/Notizen der Serie und aller bestätigten Termine."""
        group = self._require_group(group_id)
        if attendees is not None:
            room = self.repository.get_room(group.room_id)
            if room is not None:
                self._check_capacity(room, attendees)

        updates: dict = {}
        if purpose is not None:
            updates["purpose"] = purpose
        if attendees is not None:
            updates["attendees"] = attendees
        if notes is not None:
            updates["notes"] = notes
        if not updates:
            return 0

        updated = 0
        with self.locks.hold(group.room_id):
            self.repository.save_recurrence_group(group.model_copy(update=updates))
            for booking in self.repository.bookings_for_group(group_id):
                if booking.status == BookingStatus.CANCELLED:
                    continue
                self.repository.save_booking(booking.model_copy(update=updates))
                updated += 1

        logger.info(f"Serie {group_id} geändert ({updated} Termine)")
        self._after_write()
        return updated

    # ── Hilfsfunktionen ───────────────────────────────────────────────────────

    def _require_active_room(self, room_id: str) -> Room:
        room = self.repository.get_room(room_id)
        if room is None:
            raise NotFoundError("Raum", room_id)
        if not room.is_active:
            raise BookingError(f"Raum {room.name} ist nicht buchbar (deaktiviert)")
        return room

    def _require_booking(self, booking_id: str) -> Booking:
        booking = self.repository.get_booking(booking_id)
        if booking is None:
            raise NotFoundError("Buchung", booking_id)
        return booking

    def _require_group(self, group_id: str) -> RecurrenceGroup:
        group = self.repository.get_recurrence_group(group_id)
        if group is None:
            raise NotFoundError("Serie", group_id)
        return group

    def _release_series_slot(self, booking: Booking) -> None:
        """Vermerkt das Datum als Ausnahme, solange die Buchung auf ihrem Serien-Slot liegt.

        Ein verschobener Termin hat sein Ursprungsdatum schon beim Verschieben
        freigegeben; sein neues Datum gehört nicht zur Serie.
        """
        group = self.repository.get_recurrence_group(booking.recurrence_group_id)
        if group is None:
            return
        day = booking.start_time.date()
        if day.weekday() != group.day_of_week or not group.covers(day):
            return
        if booking.interval != occurrence_interval(day, group.start_time, group.end_time):
            return
        group.add_exception(day)
        self.repository.save_recurrence_group(group)

    @staticmethod
    def _check_capacity(room: Room, attendees: int) -> None:
        if attendees > room.capacity:
            raise CapacityExceededError(room.capacity, attendees)

    def _check_not_past(self, interval: Interval) -> None:
        if self.config.booking_rules.reject_past_bookings and interval.start < self.clock():
            raise ValueError("Buchungen in der Vergangenheit sind nicht möglich")

    def _check_duration(self, interval: Interval) -> None:
        limit = self.config.booking_rules.max_duration_minutes
        if limit and interval.minutes > limit:
            raise ValueError(
                f"Buchung dauert {interval.minutes:.0f} min, erlaubt sind höchstens {limit} min"
            )

    def _notify_booking(
        self, kind: NotificationType, booking: Booking, room: Optional[Room]
    ) -> None:
        if self.notifications is None:
            return
        self.notifications.booking_event(kind, booking, room.name if room else booking.room_id)

    def _after_write(self) -> None:
        if self.registry is None or self.aggregator is None:
            return
        try:
            self.registry.broadcast(self.aggregator)
        except Exception as e:
            logger.error(f"Broadcast der Auswertung fehlgeschlagen: {e}")
