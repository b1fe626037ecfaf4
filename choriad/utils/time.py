"""Time and money formatting helpers (UTC now, naira amounts)."""
from __future__ import annotations
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP

def utc_now() -> datetime:
    return datetime.now(timezone.utc)

def isoformat_z(moment: datetime | None = None) -> str:
    ts = moment or utc_now()
    return ts.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")

def format_ngn(amount: Decimal | int | float | None) -> str:
    """Render an amount the way customer-facing messages show it: ₦11,500."""
    value = Decimal(str(amount or 0)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    if value == value.to_integral_value():
        return f"₦{int(value):,}"
    return f"₦{value:,.2f}"

__all__ = ["utc_now", "isoformat_z", "format_ngn"]
