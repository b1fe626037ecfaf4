from .jobs import Job
from .bookings import Booking
from .applications import Application
from .notifications import Notification, WorkerActivity
from .enums import (
    JobStatus,
    BookingStatus,
    PaymentStatus,
    ApplicationStatus,
    NotificationType,
    WorkerActivityType,
    TransferStatus,
)

__all__ = [
    "Job",
    "Booking",
    "Application",
    "Notification",
    "WorkerActivity",
    "JobStatus",
    "BookingStatus",
    "PaymentStatus",
    "ApplicationStatus",
    "NotificationType",
    "WorkerActivityType",
    "TransferStatus",
]
