"""Payment capture: client money lands in escrow and the booking is finalised.

Two entry points share one transition:

* ``reconcile_charge`` handles a ``charge.completed`` webhook.
* ``verify_redirect_payment`` handles the client returning from the hosted
  checkout, which races the webhook.

The transition itself (``apply_payment_capture``) is guarded by a
compare-and-swap on ``payment_status`` and runs in one transaction: booking
paid and confirmed, job assigned, winning application hired, every other
pending application rejected, notifications and the worker activity entry
written. A failure anywhere rolls all of it back.
"""
from __future__ import annotations

import time
from decimal import Decimal
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError

from choriad.integrations.base import ProviderError, TransactionVerifier
from choriad.models.schemas.payments import PaymentVerifyRequest, VerifiedTransaction
from choriad.models.schemas.webhooks import ChargeData
from choriad.repositories.bookings import BookingRepository
from choriad.repositories.records import BookingRecord
from choriad.services import notifications
from choriad.services.amounts import reconcile_amount
from choriad.services.errors import (
    ALREADY_PROCESSED,
    PAYMENT_PROCESSED,
    TRANSACTION_NOT_SUCCESSFUL,
    BookingNotFoundError,
    MalformedPayloadError,
    PaymentRejectedError,
    PersistenceError,
    ReconciliationOutcome,
    VerificationFailedError,
)
from choriad.services.view_invalidation import ViewInvalidator, invalidate_after_commit
from choriad.utils import get_logger, log_business_event, log_performance, utc_now

logger = get_logger(__name__)


def locate_booking(
    repo: BookingRepository,
    *,
    hint: Optional[str],
    transaction: VerifiedTransaction,
) -> Optional[BookingRecord]:
    """Find the booking a verified charge pays for.

    Tried in order, falling through when a strategy finds nothing:
    the webhook's ``meta.booking_id``, the verified ``meta.booking_id``,
    then the verified ``tx_ref`` against ``bookings.flw_tx_ref``.
    """
    strategies = (
        ("webhook_meta", hint, repo.get_booking),
        ("verified_meta", transaction.booking_id_hint, repo.get_booking),
        ("tx_ref", transaction.tx_ref, repo.find_booking_by_tx_ref),
    )
    for strategy, key, lookup in strategies:
        if not key:
            continue
        booking = lookup(key)
        if booking is not None:
            logger.debug("Booking located", strategy=strategy, booking_id=booking.id)
            return booking
        logger.info("Booking lookup strategy found nothing", strategy=strategy, key=key)
    return None


async def _verify(
    verifier: TransactionVerifier,
    *,
    transaction_id: Optional[str],
    tx_ref: Optional[str],
    request_id: Optional[str] = None,
) -> VerifiedTransaction:
    try:
        return await verifier.verify_transaction(transaction_id=transaction_id, tx_ref=tx_ref)
    except ProviderError as e:
        logger.warning(
            "Transaction verification failed",
            code=e.code,
            error=e.message,
            transaction_id=transaction_id,
            tx_ref=tx_ref,
            request_id=request_id,
        )
        raise VerificationFailedError(code=e.code) from e


def _verified_amount(transaction: VerifiedTransaction) -> Decimal:
    if transaction.amount is None:
        logger.warning("Successful transaction carried no amount", transaction_id=transaction.id)
        raise VerificationFailedError(code="missing_amount")
    return transaction.amount


def _tx_ref_to_record(repo: BookingRepository, booking: BookingRecord, transaction: VerifiedTransaction) -> Optional[str]:
    """Reference stored on the paid booking. A reference already stored is kept."""
    if booking.flw_tx_ref:
        if transaction.tx_ref and transaction.tx_ref != booking.flw_tx_ref:
            logger.info(
                "Verified reference differs from stored reference; keeping stored",
                booking_id=booking.id,
                booking_tx_ref=booking.flw_tx_ref,
                tx_ref=transaction.tx_ref,
            )
        return booking.flw_tx_ref
    if not transaction.tx_ref:
        return None
    holder = repo.find_booking_by_tx_ref(transaction.tx_ref)
    if holder is not None and holder.id != booking.id:
        logger.warning(
            "Verified reference belongs to another booking; not recording it",
            booking_id=booking.id,
            other_booking_id=holder.id,
            tx_ref=transaction.tx_ref,
        )
        return None
    return transaction.tx_ref


def apply_payment_capture(
    repo: BookingRepository,
    booking: BookingRecord,
    transaction: VerifiedTransaction,
    invalidator: ViewInvalidator,
    *,
    source: str,
    request_id: Optional[str] = None,
) -> ReconciliationOutcome:
    now = utc_now()
    tx_ref = _tx_ref_to_record(repo, booking, transaction)
    try:
        with repo.transaction():
            if not repo.mark_booking_paid(
                booking.id,
                transaction_id=transaction.id,
                tx_ref=tx_ref,
                paid_at=now,
            ):
                logger.info(
                    "Booking was marked paid concurrently; nothing to apply",
                    booking_id=booking.id,
                    source=source,
                    request_id=request_id,
                )
                return ReconciliationOutcome(ALREADY_PROCESSED, booking_id=booking.id)

            if not repo.assign_job(booking.job_id, worker_id=booking.worker_id, final_amount_ngn=booking.amount_ngn, at=now):
                logger.warning("Job for paid booking not found", booking_id=booking.id, job_id=booking.job_id)
            if not repo.mark_application_hired(booking.job_id, booking.worker_id):
                logger.warning(
                    "No application to mark hired",
                    booking_id=booking.id,
                    job_id=booking.job_id,
                    worker_id=booking.worker_id,
                )
            rejected = repo.reject_pending_applications(booking.job_id, except_worker_id=booking.worker_id)

            drafts = [notifications.payment_received(booking)]
            drafts.extend(notifications.job_closed(worker_id, booking.job_id) for worker_id in rejected)
            repo.add_notifications(drafts)
            repo.add_worker_activity(notifications.escrow_activity(booking))
    except SQLAlchemyError as e:
        logger.error("Payment capture rolled back", booking_id=booking.id, error=str(e), request_id=request_id)
        raise PersistenceError(booking_id=booking.id) from e

    log_business_event(
        "payment_captured",
        {
            "booking_id": booking.id,
            "job_id": booking.job_id,
            "worker_id": booking.worker_id,
            "transaction_id": transaction.id,
            "amount": str(transaction.amount),
            "rejected_applicants": len(rejected),
            "source": source,
        },
        user_id=booking.client_id,
        request_id=request_id,
    )
    invalidate_after_commit(invalidator, "payment_captured", job_id=booking.job_id, booking_id=booking.id)
    return ReconciliationOutcome(
        PAYMENT_PROCESSED,
        booking_id=booking.id,
        changed=True,
        details={"rejected_applicants": len(rejected)},
    )


async def reconcile_charge(
    data: ChargeData,
    *,
    repo: BookingRepository,
    verifier: TransactionVerifier,
    invalidator: ViewInvalidator,
    request_id: Optional[str] = None,
) -> ReconciliationOutcome:
    """Handle ``charge.completed``. The webhook body only supplies identifiers."""
    start = time.time()
    booking_id = None
    try:
        if not data.has_identifier:
            raise MalformedPayloadError("Missing transaction identifier")

        transaction_id = data.provider_transaction_id
        tx_ref = data.provider_reference
        if not transaction_id and not tx_ref:
            # A booking hint alone cannot be checked with the provider
            logger.warning("Charge carries only a booking hint; refusing to trust it", booking_id=data.booking_id_hint)
            raise VerificationFailedError(code="missing_identifier")

        transaction = await _verify(verifier, transaction_id=transaction_id, tx_ref=tx_ref, request_id=request_id)
        if not transaction.is_successful:
            logger.info("Verified transaction not successful", transaction_id=transaction.id, status=transaction.status)
            return ReconciliationOutcome(TRANSACTION_NOT_SUCCESSFUL, details={"status": transaction.status})
        amount = _verified_amount(transaction)

        booking = locate_booking(repo, hint=data.booking_id_hint, transaction=transaction)
        if booking is None:
            logger.warning(
                "No booking matches verified charge",
                transaction_id=transaction.id,
                tx_ref=transaction.tx_ref,
                hint=data.booking_id_hint,
                request_id=request_id,
            )
            raise BookingNotFoundError(transaction_id=transaction.id)
        booking_id = booking.id

        if booking.is_paid:
            logger.info("Charge already applied", booking_id=booking.id, transaction_id=transaction.id)
            return ReconciliationOutcome(ALREADY_PROCESSED, booking_id=booking.id)

        reconcile_amount(booking, amount, transaction_id=transaction.id)
        return apply_payment_capture(repo, booking, transaction, invalidator, source="webhook", request_id=request_id)
    finally:
        log_performance("reconcile_charge", (time.time() - start) * 1000, {"booking_id": booking_id})


async def verify_redirect_payment(
    payload: PaymentVerifyRequest,
    *,
    repo: BookingRepository,
    verifier: TransactionVerifier,
    invalidator: ViewInvalidator,
    request_id: Optional[str] = None,
) -> ReconciliationOutcome:
    """Finalise a booking from the checkout redirect, sharing the webhook's guard.

    The caller is unauthenticated, so the verified charge must be tied to the
    booking: by its ``tx_ref`` matching the stored one, or by its
    ``meta.booking_id`` naming this booking. A charge pointing at another
    booking, or at nothing, is refused.
    """
    booking = repo.get_booking(payload.booking_id)
    if booking is None:
        raise BookingNotFoundError(booking_id=payload.booking_id)
    if booking.is_paid:
        return ReconciliationOutcome(ALREADY_PROCESSED, booking_id=booking.id)

    transaction = await _verify(verifier, transaction_id=payload.transaction_id, tx_ref=None, request_id=request_id)
    if not transaction.is_successful:
        raise PaymentRejectedError(status=transaction.status)
    amount = _verified_amount(transaction)

    if booking.flw_tx_ref and transaction.tx_ref and booking.flw_tx_ref != transaction.tx_ref:
        logger.warning(
            "Redirect transaction reference does not match booking",
            booking_id=booking.id,
            booking_tx_ref=booking.flw_tx_ref,
            tx_ref=transaction.tx_ref,
        )
        raise PaymentRejectedError("Transaction reference mismatch")

    hint = transaction.booking_id_hint
    if hint is not None and hint != booking.id:
        logger.warning(
            "Redirect transaction was made for another booking",
            booking_id=booking.id,
            other_booking_id=hint,
            transaction_id=transaction.id,
            request_id=request_id,
        )
        raise PaymentRejectedError("Transaction does not belong to this booking")

    ref_matches = bool(booking.flw_tx_ref) and booking.flw_tx_ref == transaction.tx_ref
    if not ref_matches and hint != booking.id:
        logger.warning(
            "Redirect transaction carries nothing tying it to the booking",
            booking_id=booking.id,
            transaction_id=transaction.id,
            tx_ref=transaction.tx_ref,
            request_id=request_id,
        )
        raise PaymentRejectedError("Transaction does not belong to this booking")

    reconcile_amount(booking, amount, transaction_id=transaction.id)
    return apply_payment_capture(repo, booking, transaction, invalidator, source="redirect", request_id=request_id)


__all__ = ["locate_booking", "apply_payment_capture", "reconcile_charge", "verify_redirect_payment"]
