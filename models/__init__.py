from models.errors import (
    BookingError,
    InvalidIntervalError,
    NotFoundError,
    ConflictError,
    CapacityExceededError,
    InvalidStatusTransitionError,
)
from models.interval import Interval
from models.room import Room
from models.booking import Booking, BookingStatus
from models.recurrence_group import RecurrenceGroup, RecurrenceStatus
from models.notification import Notification, NotificationType
from models.booking_data import BookingData, IntegrityReport

__all__ = [
    "BookingError",
    "InvalidIntervalError",
    "NotFoundError",
    "ConflictError",
    "CapacityExceededError",
    "InvalidStatusTransitionError",
    "Interval",
    "Room",
    "Booking",
    "BookingStatus",
    "RecurrenceGroup",
    "RecurrenceStatus",
    "Notification",
    "NotificationType",
    "BookingData",
    "IntegrityReport",
]
