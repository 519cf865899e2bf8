"""Benachrichtigungen zu Buchungsereignissen (best effort) und deren Lesestatus.

Ein Fehler beim Ablegen einer Benachrichtigung wird protokolliert und
verändert das Ergebnis der Buchung nicht. Lesen, Markieren und Löschen
werfen dagegen NotFoundError für fremde oder unbekannte IDs.
"""

import logging
import uuid
from typing import TYPE_CHECKING, Optional

from models.booking import Booking
from models.errors import NotFoundError
from models.notification import Notification, NotificationType
from models.recurrence_group import RecurrenceGroup

if TYPE_CHECKING:
    from store.repository import BookingRepository

logger = logging.getLogger(__name__)

_BOOKING_MESSAGES = {
    NotificationType.BOOKING_CREATED: "Ihre Buchung für {room} am {when} wurde bestätigt.",
    NotificationType.BOOKING_UPDATED: "Ihre Buchung für {room} am {when} wurde geändert.",
    NotificationType.BOOKING_CANCELLED: "Ihre Buchung für {room} am {when} wurde storniert.",
}


def _format_when(booking: Booking) -> str:
    return booking.start_time.strftime("%d.%m.%Y %H:%M UTC")


class NotificationCenter:
    """Legt Benachrichtigungen über das Repository ab."""

    def __init__(self, repository: "BookingRepository") -> None:
        self.repository = repository

    def notify(
        self, user_id: str, kind: NotificationType, message: str,
        booking_id: Optional[str] = None,
    ) -> Optional[Notification]:
        """Legt eine Benachrichtigung ab. Gibt None zurück wenn das fehlschlägt."""
        try:
            notification = Notification(
                id=uuid.uuid4().hex,
                user_id=user_id,
                type=kind,
                message=message,
                booking_id=booking_id,
            )
            return self.repository.add_notification(notification)
        except Exception as e:
            logger.warning(f"Benachrichtigung für {user_id} fehlgeschlagen: {e}")
            return None

    def booking_event(
        self, kind: NotificationType, booking: Booking, room_name: str
    ) -> Optional[Notification]:
        message = _BOOKING_MESSAGES[kind].format(room=room_name, when=_format_when(booking))
        return self.notify(booking.owner_id, kind, message, booking.id)

    def series_created(
        self, group: RecurrenceGroup, room_name: str, created: int, skipped: int
    ) -> Optional[Notification]:
        message = (
            f"Ihre Serie für {room_name} ({group.day_name} {group.start_time}–"
            f"{group.end_time}) wurde angelegt: {created} Termine"
        )
        if skipped:
            message += f", {skipped} wegen Konflikten übersprungen"
        return self.notify(group.owner_id, NotificationType.RECURRING_CREATED, message + ".")

    def series_cancelled(
        self, group: RecurrenceGroup, room_name: str, cancelled: int
    ) -> Optional[Notification]:
        message = (
            f"Ihre Serie für {room_name} ({group.day_name} {group.start_time}–"
            f"{group.end_time}) wurde storniert ({cancelled} Termine)."
        )
        return self.notify(group.owner_id, NotificationType.RECURRING_CANCELLED, message)

    # ─── Lesestatus ───

    def for_user(self, user_id: str, unread_only: bool = False) -> list[Notification]:
        """Benachrichtigungen eines Nutzers, neueste zuerst."""
        items = self.repository.notifications_for_user(user_id)
        if unread_only:
            items = [n for n in items if not n.is_read]
        return sorted(items, key=lambda n: n.created_at, reverse=True)

    def unread_count(self, user_id: str) -> int:
        return sum(1 for n in self.repository.notifications_for_user(user_id) if not n.is_read)

    def mark_as_read(self, user_id: str, notification_id: str) -> Notification:
        notification = self.repository.mark_notification_read(notification_id, user_id)
        if notification is None:
            raise NotFoundError("Benachrichtigung", notification_id)
        return notification

    def mark_all_as_read(self, user_id: str) -> int:
        updated = self.repository.mark_all_notifications_read(user_id)
        logger.debug(f"{updated} Benachrichtigungen für {user_id} als gelesen markiert")
        return updated

    def delete(self, user_id: str, notification_id: str) -> None:
        if not self.repository.delete_notification(notification_id, user_id):
            raise NotFoundError("Benachrichtigung", notification_id)
