"""Reconciliation outcomes and failures.

A webhook delivery ends in exactly one of two ways: a ``ReconciliationOutcome``
(acknowledged with 200 so the provider stops redelivering) or a
``ReconciliationError`` carrying the HTTP status that tells the provider
whether a retry is worthwhile.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional


# Acknowledgement messages shared by the webhook and redirect flows
PAYMENT_PROCESSED = "Client payment processed successfully"
PAYOUT_PROCESSED = "Worker payout processed successfully"
ALREADY_PROCESSED = "Already processed"
TRANSACTION_NOT_SUCCESSFUL = "Transaction not successful"
TRANSFER_FAILED_LOGGED = "Transfer failed - logged"
EVENT_NOT_HANDLED = "Event not handled"


@dataclass(frozen=True)
class ReconciliationOutcome:
    message: str
    ok: bool = True
    booking_id: Optional[str] = None
    changed: bool = False
    details: Dict[str, Any] = field(default_factory=dict)


class ReconciliationError(Exception):
    status_code: int = 500
    default_message: str = "internal"

    def __init__(self, message: Optional[str] = None, **context: Any):
        self.message = message or self.default_message
        self.context = context
        super().__init__(self.message)


class MalformedPayloadError(ReconciliationError):
    status_code = 400
    default_message = "Invalid payload"


class InvalidSignatureError(ReconciliationError):
    status_code = 401
    default_message = "Invalid signature"


class VerificationFailedError(ReconciliationError):
    status_code = 400
    default_message = "Failed to verify transaction"


class PaymentRejectedError(ReconciliationError):
    """Redirect verification only: the client is told why their payment was not applied."""
    status_code = 400
    default_message = "Payment not successful"


class BookingNotFoundError(ReconciliationError):
    status_code = 404
    default_message = "Booking not found"


class AmountMismatchError(ReconciliationError):
    status_code = 400
    default_message = "Amount mismatch"


class PersistenceError(ReconciliationError):
    status_code = 500
    default_message = "internal"


__all__ = [
    "ReconciliationOutcome",
    "ReconciliationError",
    "MalformedPayloadError",
    "InvalidSignatureError",
    "VerificationFailedError",
    "PaymentRejectedError",
    "BookingNotFoundError",
    "AmountMismatchError",
    "PersistenceError",
    "PAYMENT_PROCESSED",
    "PAYOUT_PROCESSED",
    "ALREADY_PROCESSED",
    "TRANSACTION_NOT_SUCCESSFUL",
    "TRANSFER_FAILED_LOGGED",
    "EVENT_NOT_HANDLED",
]
