from .base import Acknowledgement
from .webhooks import (
    ChargeCompletedEvent,
    ChargeData,
    TransferCompletedEvent,
    TransferData,
    WebhookEvent,
    HANDLED_EVENTS,
)
from .payments import VerifiedTransaction, PaymentVerifyRequest

__all__ = [
    # Base
    "Acknowledgement",

    # Webhooks
    "ChargeCompletedEvent",
    "ChargeData",
    "TransferCompletedEvent",
    "TransferData",
    "WebhookEvent",
    "HANDLED_EVENTS",

    # Payments
    "VerifiedTransaction",
    "PaymentVerifyRequest",
]
