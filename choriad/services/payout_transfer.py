"""Payout reconciliation for ``transfer.completed`` events.

The platform pays workers by bank transfer; the provider reports the final
status asynchronously. Only a successful transfer sets ``worker_paid``, and
only once. A failed transfer alerts operations once per transfer id.
"""
from __future__ import annotations

from typing import Optional

from sqlalchemy.exc import SQLAlchemyError

from choriad.models.db.enums import TransferStatus
from choriad.models.schemas.webhooks import TransferData
from choriad.repositories.bookings import BookingRepository
from choriad.services import notifications
from choriad.services.errors import (
    ALREADY_PROCESSED,
    PAYOUT_PROCESSED,
    TRANSFER_FAILED_LOGGED,
    BookingNotFoundError,
    MalformedPayloadError,
    PersistenceError,
    ReconciliationOutcome,
)
from choriad.services.view_invalidation import ViewInvalidator, invalidate_after_commit
from choriad.utils import get_logger, log_business_event, utc_now

logger = get_logger(__name__)


def reconcile_transfer(
    data: TransferData,
    *,
    repo: BookingRepository,
    invalidator: ViewInvalidator,
    request_id: Optional[str] = None,
) -> ReconciliationOutcome:
    reference = data.reference
    if not reference:
        raise MalformedPayloadError("Missing reference")

    booking = repo.find_booking_by_payment_reference(reference)
    if booking is None:
        logger.warning("No booking for transfer reference", reference=reference, transfer_id=data.id, request_id=request_id)
        raise BookingNotFoundError(reference=reference)

    if booking.worker_paid:
        return ReconciliationOutcome(ALREADY_PROCESSED, booking_id=booking.id)

    status = TransferStatus.parse(data.status)
    if status == TransferStatus.SUCCESSFUL:
        try:
            with repo.transaction():
                if not repo.mark_worker_paid(booking.id, transfer_id=data.id, paid_at=utc_now()):
                    return ReconciliationOutcome(ALREADY_PROCESSED, booking_id=booking.id)
                repo.add_notifications([notifications.payment_sent(booking, reference)])
        except SQLAlchemyError as e:
            logger.error("Payout update rolled back", booking_id=booking.id, error=str(e), request_id=request_id)
            raise PersistenceError(booking_id=booking.id) from e

        log_business_event(
            "worker_payout_completed",
            {"booking_id": booking.id, "reference": reference, "transfer_id": data.id, "amount": str(booking.amount_ngn)},
            user_id=booking.worker_id,
            request_id=request_id,
        )
        invalidate_after_commit(invalidator, "worker_paid", worker_id=booking.worker_id)
        return ReconciliationOutcome(PAYOUT_PROCESSED, booking_id=booking.id, changed=True)

    if status == TransferStatus.FAILED:
        try:
            with repo.transaction():
                first_report = repo.record_transfer_failure(booking.id, transfer_id=data.id)
                if first_report:
                    repo.add_notifications([notifications.transfer_failed(booking, reference, data.id)])
        except SQLAlchemyError as e:
            logger.error("Failed-transfer bookkeeping rolled back", booking_id=booking.id, error=str(e), request_id=request_id)
            raise PersistenceError(booking_id=booking.id) from e

        logger.error(
            "Worker transfer failed",
            booking_id=booking.id,
            reference=reference,
            transfer_id=data.id,
            reason=data.complete_message,
            redelivery=not first_report,
        )
        log_business_event(
            "worker_payout_failed",
            {"booking_id": booking.id, "reference": reference, "transfer_id": data.id, "notified": first_report},
            user_id=booking.worker_id,
            request_id=request_id,
        )
        return ReconciliationOutcome(TRANSFER_FAILED_LOGGED, booking_id=booking.id, changed=first_report)

    logger.info("Transfer not final yet", booking_id=booking.id, reference=reference, status=data.status)
    return ReconciliationOutcome(f"Transfer status: {data.status}", booking_id=booking.id)


__all__ = ["reconcile_transfer"]
