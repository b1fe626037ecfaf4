"""Amount reconciliation between the provider-verified charge and the booking."""
from __future__ import annotations

from decimal import Decimal
from typing import Optional

from choriad import config
from choriad.repositories.records import BookingRecord
from choriad.services.errors import AmountMismatchError
from choriad.utils import get_logger, log_business_event

logger = get_logger(__name__)


def expected_amount(booking: BookingRecord) -> Decimal:
    """What the client was asked to pay: the worker's amount plus platform commission."""
    return Decimal(booking.amount_ngn or 0) + Decimal(booking.commission_ngn or 0)


def within_tolerance(verified: Decimal, expected: Decimal, tolerance: Optional[Decimal] = None) -> bool:
    if tolerance is None:
        tolerance = Decimal(str(config.WEBHOOK_SETTINGS["amount_tolerance_ngn"]))
    return abs(Decimal(verified) - Decimal(expected)) <= tolerance


def reconcile_amount(booking: BookingRecord, verified: Decimal, *, transaction_id: Optional[str] = None) -> Decimal:
    """Raise AmountMismatchError when the verified charge is off by more than the tolerance."""
    expected = expected_amount(booking)
    if within_tolerance(verified, expected):
        return expected
    logger.error(
        "Verified amount does not match booking",
        booking_id=booking.id,
        transaction_id=transaction_id,
        verified_amount=str(verified),
        expected_amount=str(expected),
    )
    log_business_event(
        "payment_amount_mismatch",
        {
            "booking_id": booking.id,
            "transaction_id": transaction_id,
            "verified_amount": str(verified),
            "expected_amount": str(expected),
        },
        user_id=booking.client_id,
    )
    raise AmountMismatchError(booking_id=booking.id, verified=str(verified), expected=str(expected))


__all__ = ["expected_amount", "within_tolerance", "reconcile_amount"]
