"""Parse an authenticated webhook delivery and hand it to the matching flow."""
from __future__ import annotations

import json
from typing import Any, Optional, Union

from pydantic import ValidationError

from choriad.integrations.base import TransactionVerifier
from choriad.models.schemas.webhooks import (
    HANDLED_EVENTS,
    ChargeCompletedEvent,
    TransferCompletedEvent,
    webhook_event_adapter,
)
from choriad.repositories.bookings import BookingRepository
from choriad.services.errors import EVENT_NOT_HANDLED, MalformedPayloadError, ReconciliationOutcome
from choriad.services.payment_capture import reconcile_charge
from choriad.services.payout_transfer import reconcile_transfer
from choriad.services.view_invalidation import ViewInvalidator
from choriad.utils import get_logger

logger = get_logger(__name__)


def decode_body(raw: bytes) -> Any:
    try:
        return json.loads(raw)
    except ValueError as e:
        raise MalformedPayloadError("Invalid JSON") from e


def parse_event(body: Any) -> Optional[Union[ChargeCompletedEvent, TransferCompletedEvent]]:
    """Validate the envelope. Returns None for events this service ignores."""
    if not isinstance(body, dict):
        raise MalformedPayloadError("Invalid payload")
    if body.get("data") is None:
        raise MalformedPayloadError("No data")

    event = body.get("event")
    if event not in HANDLED_EVENTS:
        return None
    try:
        return webhook_event_adapter.validate_python(body)
    except ValidationError as e:
        logger.warning("Webhook payload failed validation", webhook_event=event, errors=e.error_count())
        raise MalformedPayloadError("Invalid payload") from e


async def dispatch(
    body: Any,
    *,
    repo: BookingRepository,
    verifier: TransactionVerifier,
    invalidator: ViewInvalidator,
    request_id: Optional[str] = None,
) -> ReconciliationOutcome:
    event = parse_event(body)
    if event is None:
        logger.info("Ignoring webhook event", webhook_event=body.get("event"), request_id=request_id)
        return ReconciliationOutcome(EVENT_NOT_HANDLED)

    logger.info("Routing webhook event", webhook_event=event.event, request_id=request_id)
    if isinstance(event, ChargeCompletedEvent):
        return await reconcile_charge(
            event.data,
            repo=repo,
            verifier=verifier,
            invalidator=invalidator,
            request_id=request_id,
        )
    return reconcile_transfer(event.data, repo=repo, invalidator=invalidator, request_id=request_id)


__all__ = ["decode_body", "parse_event", "dispatch"]
