"""In-app notification and activity-feed entries written by the reconciliation flows."""
from __future__ import annotations

from decimal import Decimal
from typing import Optional, Union

from choriad import config
from choriad.models.db.enums import NotificationType, WorkerActivityType
from choriad.repositories.records import BookingRecord, NotificationDraft, WorkerActivityDraft
from choriad.utils import get_logger, format_ngn

logger = get_logger(__name__)


def _json_amount(amount: Optional[Decimal]) -> Union[int, float]:
    value = Decimal(amount or 0)
    return int(value) if value == value.to_integral_value() else float(value)


def payment_received(booking: BookingRecord) -> NotificationDraft:
    return NotificationDraft(
        user_id=booking.worker_id,
        type=NotificationType.PAYMENT_RECEIVED,
        title="Payment Received - You're Hired!",
        message=f"Payment of {format_ngn(booking.amount_ngn)} has been secured in escrow. You may start work.",
        data={
            "booking_id": booking.id,
            "job_id": booking.job_id,
            "amount": _json_amount(booking.amount_ngn),
        },
    )


def job_closed(worker_id: str, job_id: str) -> NotificationDraft:
    return NotificationDraft(
        user_id=worker_id,
        type=NotificationType.JOB_CLOSED,
        title="Job Filled",
        message="The job has been filled by another provider.",
        data={"job_id": job_id},
    )


def payment_sent(booking: BookingRecord, reference: str) -> NotificationDraft:
    title = booking.job_title or "your job"
    return NotificationDraft(
        user_id=booking.worker_id,
        type=NotificationType.PAYMENT_SENT,
        title="Payment Sent to Your Account",
        message=f'Your payment of {format_ngn(booking.amount_ngn)} for "{title}" has been sent to your bank account.',
        data={
            "booking_id": booking.id,
            "job_id": booking.job_id,
            "amount": _json_amount(booking.amount_ngn),
            "reference": reference,
        },
    )


def failed_transfer_recipient(booking: BookingRecord) -> str:
    """Operations user when configured, otherwise the booking's client."""
    ops_user_id = config.NOTIFICATION_SETTINGS.get("ops_user_id")
    if ops_user_id:
        return str(ops_user_id)
    logger.warning(
        "OPS_NOTIFICATION_USER_ID not set; routing failed transfer notice to the client. Confirm the intended recipient.",
        booking_id=booking.id,
        client_id=booking.client_id,
    )
    return booking.client_id


def transfer_failed(booking: BookingRecord, reference: str, transfer_id: Optional[str]) -> NotificationDraft:
    return NotificationDraft(
        user_id=failed_transfer_recipient(booking),
        type=NotificationType.TRANSFER_FAILED,
        title="Worker Payment Failed",
        message=f"Payment transfer to worker failed. Reference: {reference}. Please contact support.",
        data={
            "booking_id": booking.id,
            "reference": reference,
            "transfer_id": transfer_id,
        },
    )


def escrow_activity(booking: BookingRecord) -> WorkerActivityDraft:
    return WorkerActivityDraft(
        worker_id=booking.worker_id,
        type=WorkerActivityType.PAYMENT_RECEIVED,
        message="Payment secured in escrow. You can now start work.",
        metadata={
            "booking_id": booking.id,
            "job_id": booking.job_id,
            "amount_ngn": _json_amount(booking.amount_ngn),
        },
    )


__all__ = [
    "payment_received",
    "job_closed",
    "payment_sent",
    "transfer_failed",
    "failed_transfer_recipient",
    "escrow_activity",
]
