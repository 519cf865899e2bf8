"""Persistenz-Schnittstelle und In-Memory-Implementierung.

Der Kern kennt nur das BookingRepository-Protokoll: "bestätigte Buchungen
eines Raums im Fenster W" und "aktive Serien eines Raums am Datum D".
Überlappung wird NICHT per Abfrage-Operator ausgedrückt, sondern im
Prozess über conflicts.intervals berechnet.
"""

import logging
import threading
from datetime import date, datetime
from pathlib import Path
from typing import Optional, Protocol

from conflicts.intervals import overlaps
from models.booking import Booking
from models.booking_data import BookingData
from models.interval import Interval
from models.notification import Notification
from models.recurrence_group import RecurrenceGroup
from models.room import Room

logger = logging.getLogger(__name__)


class BookingRepository(Protocol):
    """Was der Kern und die Service-Schicht von der Persistenz brauchen."""

    def get_room(self, room_id: str) -> Optional[Room]: ...

    def list_rooms(self, active_only: bool = False) -> list[Room]: ...

    def get_booking(self, booking_id: str) -> Optional[Booking]: ...

    def get_recurrence_group(self, group_id: str) -> Optional[RecurrenceGroup]: ...

    def fetch_confirmed_bookings(
        self, room_id: Optional[str], window_start: datetime, window_end: datetime
    ) -> list[Booking]: ...

    def fetch_active_recurrence_groups(
        self, room_id: str, on_date: date
    ) -> list[RecurrenceGroup]: ...

    def add_room(self, room: Room) -> Room: ...

    def save_room(self, room: Room) -> Room: ...

    def delete_room(self, room_id: str) -> bool: ...

    def add_booking(self, booking: Booking) -> Booking: ...

    def save_booking(self, booking: Booking) -> Booking: ...

    def add_recurrence_group(self, group: RecurrenceGroup) -> RecurrenceGroup: ...

    def save_recurrence_group(self, group: RecurrenceGroup) -> RecurrenceGroup: ...

    def bookings_for_group(self, group_id: str) -> list[Booking]: ...

    def bookings_for_owner(self, owner_id: str) -> list[Booking]: ...

    def add_notification(self, notification: Notification) -> Notification: ...

    def notifications_for_user(self, user_id: str) -> list[Notification]: ...

    def mark_notification_read(
        self, notification_id: str, user_id: str
    ) -> Optional[Notification]: ...

    def mark_all_notifications_read(self, user_id: str) -> int: ...

    def delete_notification(self, notification_id: str, user_id: str) -> bool: ...


class InMemoryRepository:
    """Thread-sicheres Repository auf Basis eines BookingData-Datensatzes.

    Lesende Methoden geben Kopien zurück, damit Berechnungen auf einem
    unveränderlichen Schnappschuss laufen.
    """

    def __init__(self, data: Optional[BookingData] = None) -> None:
        data = data or BookingData()
        self._lock = threading.RLock()
        self._rooms: dict[str, Room] = {r.id: r for r in data.rooms}
        self._bookings: dict[str, Booking] = {b.id: b for b in data.bookings}
        self._groups: dict[str, RecurrenceGroup] = {
            g.id: g for g in data.recurrence_groups
        }
        self._notifications: list[Notification] = list(data.notifications)
        self._created_at = data.created_at

    # ─── Räume ───

    def get_room(self, room_id: str) -> Optional[Room]:
        with self._lock:
            room = self._rooms.get(room_id)
            return room.model_copy() if room else None

    def list_rooms(self, active_only: bool = False) -> list[Room]:
        with self._lock:
            rooms = [r.model_copy() for r in self._rooms.values()
                     if r.is_active or not active_only]
        return sorted(rooms, key=lambda r: r.id)

    def add_room(self, room: Room) -> Room:
        with self._lock:
            if room.id in self._rooms:
                raise ValueError(f"Raum-ID bereits vergeben: {room.id}")
            self._rooms[room.id] = room.model_copy()
        return room

    def save_room(self, room: Room) -> Room:
        with self._lock:
            if room.id not in self._rooms:
                raise KeyError(room.id)
            self._rooms[room.id] = room.model_copy()
        return room

    def delete_room(self, room_id: str) -> bool:
        """Entfernt einen Raum. Nur möglich, solange keine Buchung oder Serie auf ihn verweist."""
        with self._lock:
            if room_id not in self._rooms:
                return False
            in_use = any(b.room_id == room_id for b in self._bookings.values()) or any(
                g.room_id == room_id for g in self._groups.values()
            )
            if in_use:
                raise ValueError(f"Raum {room_id} hat Buchungen und kann nicht gelöscht werden")
            del self._rooms[room_id]
        return True

    # ─── Buchungen ───

    def get_booking(self, booking_id: str) -> Optional[Booking]:
        with self._lock:
            booking = self._bookings.get(booking_id)
            return booking.model_copy() if booking else None

    def list_bookings(self) -> list[Booking]:
        with self._lock:
            return sorted((b.model_copy() for b in self._bookings.values()),
                          key=lambda b: (b.start_time, b.id))

    def fetch_confirmed_bookings(
        self, room_id: Optional[str], window_start: datetime, window_end: datetime
    ) -> list[Booking]:
        """Bestätigte Buchungen (eines Raums oder aller Räume), die das Fenster schneiden."""
        window = Interval(window_start, window_end)
        with self._lock:
            result = [
                b.model_copy() for b in self._bookings.values()
                if b.is_confirmed
                and (room_id is None or b.room_id == room_id)
                and overlaps(b.interval, window)
            ]
        return sorted(result, key=lambda b: (b.start_time, b.id))

    def add_booking(self, booking: Booking) -> Booking:
        with self._lock:
            if booking.id in self._bookings:
                raise ValueError(f"Buchungs-ID bereits vergeben: {booking.id}")
            self._bookings[booking.id] = booking.model_copy()
        logger.debug("Buchung gespeichert: %s", booking.id)
        return booking

    def save_booking(self, booking: Booking) -> Booking:
        with self._lock:
            if booking.id not in self._bookings:
                raise KeyError(booking.id)
            self._bookings[booking.id] = booking.model_copy()
        return booking

    def bookings_for_group(self, group_id: str) -> list[Booking]:
        with self._lock:
            result = [b.model_copy() for b in self._bookings.values()
                      if b.recurrence_group_id == group_id]
        return sorted(result, key=lambda b: b.start_time)

    def bookings_for_owner(self, owner_id: str) -> list[Booking]:
        with self._lock:
            result = [b.model_copy() for b in self._bookings.values()
                      if b.owner_id == owner_id]
        return sorted(result, key=lambda b: b.start_time, reverse=True)

    # ─── Serien ───

    def get_recurrence_group(self, group_id: str) -> Optional[RecurrenceGroup]:
        with self._lock:
            group = self._groups.get(group_id)
            return group.model_copy(deep=True) if group else None

    def fetch_active_recurrence_groups(
        self, room_id: str, on_date: date
    ) -> list[RecurrenceGroup]:
        """Aktive Serien des Raums, deren Datumsbereich on_date enthält."""
        with self._lock:
            result = [
                g.model_copy(deep=True) for g in self._groups.values()
                if g.room_id == room_id and g.is_active and g.covers(on_date)
            ]
        return sorted(result, key=lambda g: g.id)

    def add_recurrence_group(self, group: RecurrenceGroup) -> RecurrenceGroup:
        with self._lock:
            if group.id in self._groups:
                raise ValueError(f"Serien-ID bereits vergeben: {group.id}")
            self._groups[group.id] = group.model_copy(deep=True)
        return group

    def save_recurrence_group(self, group: RecurrenceGroup) -> RecurrenceGroup:
        with self._lock:
            if group.id not in self._groups:
                raise KeyError(group.id)
            self._groups[group.id] = group.model_copy(deep=True)
        return group

    # ─── Benachrichtigungen ───

    def add_notification(self, notification: Notification) -> Notification:
        with self._lock:
            self._notifications.append(notification)
        return notification

    def notifications_for_user(self, user_id: str) -> list[Notification]:
        with self._lock:
            return [n.model_copy() for n in self._notifications if n.user_id == user_id]

    def mark_notification_read(
        self, notification_id: str, user_id: str
    ) -> Optional[Notification]:
        """Markiert eine Benachrichtigung des Nutzers als gelesen. None wenn unbekannt."""
        with self._lock:
            for i, n in enumerate(self._notifications):
                if n.id == notification_id and n.user_id == user_id:
                    self._notifications[i] = n.model_copy(update={"is_read": True})
                    return self._notifications[i].model_copy()
        return None

    def mark_all_notifications_read(self, user_id: str) -> int:
        """Markiert alle ungelesenen Benachrichtigungen des Nutzers. Gibt deren Anzahl zurück."""
        updated = 0
        with self._lock:
            for i, n in enumerate(self._notifications):
                if n.user_id == user_id and not n.is_read:
                    self._notifications[i] = n.model_copy(update={"is_read": True})
                    updated += 1
        return updated

    def delete_notification(self, notification_id: str, user_id: str) -> bool:
        with self._lock:
            for i, n in enumerate(self._notifications):
                if n.id == notification_id and n.user_id == user_id:
                    del self._notifications[i]
                    return True
        return False

    # ─── Schnappschuss / Persistenz ───

    def snapshot(self) -> BookingData:
        """Aktueller Stand als BookingData (Kopie)."""
        with self._lock:
            return BookingData(
                rooms=[r.model_copy() for r in self._rooms.values()],
                bookings=[b.model_copy() for b in self._bookings.values()],
                recurrence_groups=[g.model_copy(deep=True) for g in self._groups.values()],
                notifications=list(self._notifications),
                created_at=self._created_at,
            )

    def save_json(self, path: Path) -> None:
        self.snapshot().save_json(path)

    @classmethod
    def load_json(cls, path: Path) -> "InMemoryRepository":
        return cls(BookingData.load_json(path))
