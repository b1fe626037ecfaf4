"""
Flutterwave integration: server-to-server transaction verification.

Webhook bodies are never trusted for amounts or statuses; every charge is
re-fetched here. Calls are bounded by a total timeout and guarded by the
process-wide circuit breaker so an unavailable provider fails fast.
"""
import time
from typing import Any, Dict, Optional
from urllib.parse import quote

import aiohttp
from pydantic import ValidationError

from choriad import config
from choriad.integrations.base import ProviderError, TransactionVerifier
from choriad.models.schemas.payments import VerifiedTransaction
from choriad.utils import get_logger, log_performance
from choriad.utils.circuit_breaker import CircuitBreaker, GLOBAL_CIRCUIT_BREAKER

logger = get_logger(__name__)


def parse_verify_response(status_code: int, body: Any) -> VerifiedTransaction:
    """Turn a verify API response into a VerifiedTransaction.

    Flutterwave wraps results as ``{"status": "success", "message": ..., "data": {...}}``;
    anything else is a provider-side refusal.
    """
    if not isinstance(body, dict):
        raise ProviderError("invalid_response", f"Unexpected verify response (HTTP {status_code})")
    if status_code != 200 or str(body.get("status", "")).lower() != "success":
        message = body.get("message") or f"HTTP {status_code}"
        raise ProviderError("verification_rejected", str(message))
    data = body.get("data")
    if not isinstance(data, dict) or not data:
        raise ProviderError("missing_data", "Verify response carried no transaction data")
    try:
        transaction = VerifiedTransaction.model_validate(data)
    except ValidationError as e:
        raise ProviderError("invalid_transaction", f"Verify response failed validation: {e.error_count()} error(s)") from e
    if transaction.is_successful and transaction.amount is None:
        raise ProviderError("invalid_transaction", "Successful transaction carried no amount")
    return transaction


class FlutterwaveClient(TransactionVerifier):
    """Thin aiohttp client for the Flutterwave v3 verification endpoints."""

    def __init__(
        self,
        secret_key: Optional[str] = None,
        *,
        base_url: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
        breaker: CircuitBreaker = GLOBAL_CIRCUIT_BREAKER,
    ):
        self.secret_key = secret_key if secret_key is not None else config.FLUTTERWAVE_SECRET_KEY
        self.base_url = str(base_url or config.PROVIDER_SETTINGS["base_url"]).rstrip("/")
        self.timeout_seconds = float(timeout_seconds or config.PROVIDER_SETTINGS["verify_timeout_seconds"])
        self.breaker = breaker
        self.breaker_key = str(config.PROVIDER_SETTINGS["breaker_key"])

    def _build_request(self, transaction_id: Optional[str], tx_ref: Optional[str]) -> tuple[str, Dict[str, str]]:
        if transaction_id:
            return f"{self.base_url}/transactions/{quote(transaction_id, safe='')}/verify", {}
        if tx_ref:
            return f"{self.base_url}/transactions/verify_by_reference", {"tx_ref": tx_ref}
        raise ProviderError("missing_identifier", "Nothing to verify: no transaction id or reference")

    async def verify_transaction(
        self,
        *,
        transaction_id: Optional[str] = None,
        tx_ref: Optional[str] = None,
    ) -> VerifiedTransaction:
        url, params = self._build_request(transaction_id, tx_ref)
        if not self.secret_key:
            logger.error("Flutterwave secret key not configured; cannot verify transactions")
            raise ProviderError("not_configured", "Payment provider not configured")

        allowed, reason = self.breaker.allow_call(self.breaker_key)
        if not allowed:
            logger.warning("Transaction verification skipped due to circuit breaker", reason=reason)
            raise ProviderError(reason or "circuit_open", "Provider circuit open")

        headers = {
            "Authorization": f"Bearer {self.secret_key}",
            "Content-Type": "application/json",
        }
        timeout = aiohttp.ClientTimeout(total=self.timeout_seconds)
        start = time.time()
        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.get(url, params=params, headers=headers) as response:
                    status_code = response.status
                    body = await response.json(content_type=None)
        except TimeoutError as e:
            # aiohttp raises asyncio.TimeoutError, an alias of TimeoutError
            self.breaker.record_failure(self.breaker_key)
            logger.error("Flutterwave verify timed out", timeout_seconds=self.timeout_seconds, transaction_id=transaction_id, tx_ref=tx_ref)
            raise ProviderError("timeout", "Provider verification timed out") from e
        except (aiohttp.ClientError, ValueError) as e:
            self.breaker.record_failure(self.breaker_key)
            logger.error("Flutterwave verify request failed", error=str(e), transaction_id=transaction_id, tx_ref=tx_ref)
            raise ProviderError("transport_error", str(e)) from e
        finally:
            log_performance(
                operation="flutterwave_verify_transaction",
                duration_ms=(time.time() - start) * 1000,
                additional_data={"by": "id" if transaction_id else "tx_ref"},
            )

        if status_code >= 500:
            self.breaker.record_failure(self.breaker_key)
        else:
            # 4xx means the provider answered; it is not an availability problem
            self.breaker.record_success(self.breaker_key)

        transaction = parse_verify_response(status_code, body)
        logger.info(
            "Transaction verified with provider",
            transaction_id=transaction.id,
            tx_ref=transaction.tx_ref,
            status=transaction.status,
            amount=str(transaction.amount),
        )
        return transaction


__all__ = ["FlutterwaveClient", "parse_verify_response"]
