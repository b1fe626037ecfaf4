"""
Checkout redirect verification.

The hosted checkout sends the client back with a transaction id. This
endpoint verifies it and applies the same escrow transition as the webhook,
whichever of the two arrives first.
"""
from fastapi import APIRouter, Depends, Request

from choriad.api.deps import get_booking_repository, get_transaction_verifier, get_view_invalidator
from choriad.api.v1.endpoints.webhooks import error_response
from choriad.integrations import TransactionVerifier
from choriad.models.schemas.base import Acknowledgement
from choriad.models.schemas.payments import PaymentVerifyRequest
from choriad.repositories import BookingRepository
from choriad.services.errors import ReconciliationError
from choriad.services.payment_capture import verify_redirect_payment
from choriad.services.view_invalidation import ViewInvalidator
from choriad.utils import get_logger

logger = get_logger(__name__)
router = APIRouter()


@router.post("/verify", response_model=Acknowledgement)
async def verify_payment(
    payload: PaymentVerifyRequest,
    request: Request,
    repo: BookingRepository = Depends(get_booking_repository),
    verifier: TransactionVerifier = Depends(get_transaction_verifier),
    invalidator: ViewInvalidator = Depends(get_view_invalidator),
):
    request_id = getattr(request.state, "request_id", "unknown")
    logger.info(
        "Redirect payment verification requested",
        booking_id=payload.booking_id,
        transaction_id=payload.transaction_id,
        request_id=request_id,
    )
    try:
        outcome = await verify_redirect_payment(
            payload,
            repo=repo,
            verifier=verifier,
            invalidator=invalidator,
            request_id=request_id,
        )
    except ReconciliationError as e:
        logger.warning(
            "Redirect payment not applied",
            booking_id=payload.booking_id,
            status_code=e.status_code,
            reason=e.message,
            request_id=request_id,
        )
        return error_response(e)
    return Acknowledgement(ok=outcome.ok, message=outcome.message)
