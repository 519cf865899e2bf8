"""Service-Schicht: Buchungen, Räume, Benachrichtigungen, Auswertungs-Abonnenten."""

from .booking_service import BookingService, RecurringBatchResult, RoomLocks
from .notifications import NotificationCenter
from .room_service import RoomService
from .subscribers import AnalyticsSubscriberRegistry

__all__ = [
    "BookingService",
    "RecurringBatchResult",
    "RoomLocks",
    "NotificationCenter",
    "RoomService",
    "AnalyticsSubscriberRegistry",
]
