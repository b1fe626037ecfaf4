"""Webhook authenticity check.

Flutterwave echoes the dashboard "secret hash" verbatim in the ``verif-hash``
header. It is not an HMAC of the body; a constant-time equality check is all
there is. Without a configured secret every delivery is rejected unless the
explicit insecure opt-in is enabled.
"""
from __future__ import annotations

import hmac
from typing import Optional

from choriad import config
from choriad.services.errors import InvalidSignatureError
from choriad.utils import get_logger

logger = get_logger(__name__)


def verify_signature(
    received: Optional[str],
    *,
    secret: Optional[str] = None,
    allow_unsigned: Optional[bool] = None,
) -> bool:
    """Raise InvalidSignatureError unless the delivery is authentic.

    Returns True when the header matched the secret and False when the
    delivery was let through unsigned under the opt-in.
    """
    secret = secret if secret is not None else config.FLUTTERWAVE_SECRET_HASH
    allow_unsigned = config.ALLOW_UNSIGNED_WEBHOOKS if allow_unsigned is None else allow_unsigned

    if not secret:
        if allow_unsigned:
            logger.warning("Accepting unsigned webhook: no secret hash configured and unsigned deliveries are allowed")
            return False
        logger.error("Webhook rejected: FLUTTERWAVE_SECRET_HASH is not configured")
        raise InvalidSignatureError(reason="secret_not_configured")

    if not received:
        logger.warning("Webhook rejected: signature header missing")
        raise InvalidSignatureError(reason="missing_header")

    if not hmac.compare_digest(received.encode("utf-8"), secret.encode("utf-8")):
        logger.warning("Webhook rejected: signature mismatch", signature=received)
        raise InvalidSignatureError(reason="mismatch")
    return True


__all__ = ["verify_signature"]
