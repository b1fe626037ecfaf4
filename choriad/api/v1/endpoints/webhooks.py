"""
Flutterwave webhook receiver.

Flutterwave redelivers on any non-2xx answer, so every status code here is a
retry decision: 2xx for outcomes that are final (including duplicates and
ignored events), 4xx/5xx when the delivery could not be applied.
"""
import time
from typing import Any, Dict

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from choriad import config
from choriad.api.deps import get_booking_repository, get_transaction_verifier, get_view_invalidator
from choriad.integrations import TransactionVerifier
from choriad.models.schemas.base import Acknowledgement
from choriad.repositories import BookingRepository
from choriad.services.errors import InvalidSignatureError, ReconciliationError
from choriad.services.signature import verify_signature
from choriad.services.view_invalidation import ViewInvalidator
from choriad.services.webhook_router import decode_body, dispatch
from choriad.utils import get_logger, log_business_event, log_performance
from choriad.utils.time import isoformat_z

logger = get_logger(__name__)
router = APIRouter()


def error_response(error: ReconciliationError) -> JSONResponse:
    return JSONResponse(
        status_code=error.status_code,
        content={"ok": False, "message": error.message},
    )


@router.post("/webhook", response_model=Acknowledgement)
async def receive_webhook(
    request: Request,
    repo: BookingRepository = Depends(get_booking_repository),
    verifier: TransactionVerifier = Depends(get_transaction_verifier),
    invalidator: ViewInvalidator = Depends(get_view_invalidator),
):
    """Authenticate, parse and reconcile one webhook delivery."""
    request_id = getattr(request.state, "request_id", "unknown")
    start = time.time()

    header = str(config.WEBHOOK_SETTINGS["signature_header"])
    try:
        verify_signature(request.headers.get(header))
    except InvalidSignatureError as e:
        log_business_event(
            "webhook_signature_rejected",
            {
                "reason": e.context.get("reason"),
                "remote_addr": request.client.host if request.client else "unknown",
            },
            request_id=request_id,
        )
        return error_response(e)

    try:
        body = decode_body(await request.body())
        outcome = await dispatch(
            body,
            repo=repo,
            verifier=verifier,
            invalidator=invalidator,
            request_id=request_id,
        )
    except ReconciliationError as e:
        logger.warning(
            "Webhook not applied",
            status_code=e.status_code,
            reason=e.message,
            context=e.context or None,
            request_id=request_id,
        )
        return error_response(e)
    finally:
        log_performance("flutterwave_webhook", (time.time() - start) * 1000, {"request_id": request_id})

    logger.info(
        "Webhook acknowledged",
        outcome=outcome.message,
        booking_id=outcome.booking_id,
        changed=outcome.changed,
        request_id=request_id,
    )
    return Acknowledgement(ok=outcome.ok, message=outcome.message)


@router.get("/webhook")
async def webhook_health() -> Dict[str, Any]:
    return {
        "status": "ok",
        "message": "Flutterwave webhook endpoint is running",
        "timestamp": isoformat_z(),
    }
