"""Core application configuration & tunable payment policy.

Business rules that may evolve (amount tolerance, provider timeouts, circuit
thresholds, notification routing) are centralized here so they can be
adjusted without diving into service logic. Values are read from the
environment at import time; services look the dicts up at call time so tests
can monkeypatch individual keys.
"""
from __future__ import annotations

import os
from decimal import Decimal


def _env_flag(name: str, default: bool = False) -> bool:
	raw = os.getenv(name)
	if raw is None or not raw.strip():
		return default
	return raw.strip().lower() in {"1", "true", "yes", "on"}


SERVICE_NAME: str = "choriad-payments"
SERVICE_VERSION: str = "1.0.0"

# ------------------------------ Flutterwave ------------------------------- #
# Shared secret configured on the Flutterwave dashboard and echoed back in the
# `verif-hash` header of every webhook delivery.
FLUTTERWAVE_SECRET_HASH: str | None = os.getenv("FLUTTERWAVE_SECRET_HASH") or None
# Unsigned webhooks are rejected unless this is explicitly enabled (local dev only).
ALLOW_UNSIGNED_WEBHOOKS: bool = _env_flag("ALLOW_UNSIGNED_WEBHOOKS")
# Server-to-server API key used for transaction verification.
FLUTTERWAVE_SECRET_KEY: str | None = os.getenv("FLUTTERWAVE_SECRET_KEY") or None

PROVIDER_SETTINGS: dict[str, str | float] = {
	"base_url": os.getenv("FLUTTERWAVE_BASE_URL", "https://api.flutterwave.com/v3").rstrip("/"),
	"verify_timeout_seconds": float(os.getenv("FLUTTERWAVE_VERIFY_TIMEOUT", "10")),
	# Circuit breaker key for the verification API
	"breaker_key": "flutterwave",
}

# ------------------------------- Webhooks --------------------------------- #
WEBHOOK_SETTINGS: dict[str, Decimal | str] = {
	# Absorbs provider-side rounding between verified and expected amounts.
	"amount_tolerance_ngn": Decimal(os.getenv("AMOUNT_TOLERANCE_NGN", "20")),
	"signature_header": "verif-hash",
	"currency": "NGN",
}

# ----------------------------- Notifications ------------------------------ #
NOTIFICATION_SETTINGS: dict[str, str | None] = {
	# Recipient of operational notifications (failed worker transfers).
	"ops_user_id": os.getenv("OPS_NOTIFICATION_USER_ID") or None,
}

# ----------------------------- Circuit Breaker ---------------------------- #
CIRCUIT_BREAKER: dict[str, int | float] = {
	"failure_threshold": 5,          # Consecutive failures before OPEN
	"open_cooldown_seconds": 60,     # Stay OPEN for 1 minute
	"half_open_probe_count": 1,      # Probes allowed in HALF_OPEN
}

# ----------------------------- Stale views -------------------------------- #
# Dashboard routes refreshed after each state transition. Formatted with the
# booking's identifiers.
INVALIDATION_PATHS: dict[str, list[str]] = {
	"payment_captured": [
		"/client/dashboard",
		"/client/jobs/{job_id}/applications",
		"/client/bookings/{booking_id}",
	],
	"worker_paid": [
		"/admin/dashboard",
		"/admin/payouts",
		"/worker/earnings/{worker_id}",
	],
}

CORS_ORIGINS: list[str] = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]

__all__ = [
	"SERVICE_NAME",
	"SERVICE_VERSION",
	"FLUTTERWAVE_SECRET_HASH",
	"ALLOW_UNSIGNED_WEBHOOKS",
	"FLUTTERWAVE_SECRET_KEY",
	"PROVIDER_SETTINGS",
	"WEBHOOK_SETTINGS",
	"NOTIFICATION_SETTINGS",
	"CIRCUIT_BREAKER",
	"INVALIDATION_PATHS",
	"CORS_ORIGINS",
]
