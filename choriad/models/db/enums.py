"""Central Enum definitions for the marketplace state machines.

Values are the lowercase strings stored by the marketplace database, so
columns persist ``.value`` rather than the member name.
"""
from __future__ import annotations
import enum

from sqlalchemy import Enum


def enum_type(enum_cls: type[enum.Enum]) -> Enum:
    """Non-native VARCHAR enum column persisting member values."""
    return Enum(
        enum_cls,
        native_enum=False,
        length=32,
        values_callable=lambda members: [m.value for m in members],
        validate_strings=True,
    )


class JobStatus(str, enum.Enum):
    OPEN = "open"
    ASSIGNED = "assigned"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class BookingStatus(str, enum.Enum):
    PENDING_PAYMENT = "pending_payment"
    CONFIRMED = "confirmed"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class PaymentStatus(str, enum.Enum):
    UNPAID = "unpaid"
    PENDING = "pending"
    PAID = "paid"
    REFUNDED = "refunded"


class ApplicationStatus(str, enum.Enum):
    PENDING = "pending"
    HIRED = "hired"
    REJECTED = "rejected"


class NotificationType(str, enum.Enum):
    PAYMENT_RECEIVED = "payment_received"
    JOB_CLOSED = "job_closed"
    PAYMENT_SENT = "payment_sent"
    TRANSFER_FAILED = "transfer_failed"


class WorkerActivityType(str, enum.Enum):
    PAYMENT_RECEIVED = "payment_received"


# ------------------------ Provider-side vocabularies ----------------------- #

class TransferStatus(str, enum.Enum):
    SUCCESSFUL = "successful"
    FAILED = "failed"
    PENDING = "pending"
    OTHER = "other"

    @classmethod
    def parse(cls, raw: str | None) -> "TransferStatus":
        """Case-insensitive mapping of Flutterwave's transfer status strings."""
        normalized = (raw or "").strip().lower()
        if normalized == "new":
            return cls.PENDING
        for member in cls:
            if member.value == normalized:
                return member
        return cls.OTHER


__all__ = [
    "enum_type",
    "JobStatus",
    "BookingStatus",
    "PaymentStatus",
    "ApplicationStatus",
    "NotificationType",
    "WorkerActivityType",
    "TransferStatus",
]
