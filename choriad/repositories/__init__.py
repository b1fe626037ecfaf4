from .records import BookingRecord, NotificationDraft, WorkerActivityDraft
from .bookings import BookingRepository, SqlAlchemyBookingRepository

__all__ = [
    "BookingRecord",
    "NotificationDraft",
    "WorkerActivityDraft",
    "BookingRepository",
    "SqlAlchemyBookingRepository",
]
