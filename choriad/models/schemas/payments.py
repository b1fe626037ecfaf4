"""
Pydantic schemas for provider-verified transactions and the redirect
verification endpoint.
"""
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator


class VerifiedTransaction(BaseModel):
    """Authoritative transaction as returned by the provider's verify API."""
    model_config = ConfigDict(extra="ignore")

    id: str
    tx_ref: Optional[str] = None
    flw_ref: Optional[str] = None
    status: str
    amount: Optional[Decimal] = None
    currency: Optional[str] = None
    meta: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("id", mode="before")
    @classmethod
    def _id_as_text(cls, value: Any) -> str:
        return str(value)

    @field_validator("amount", mode="before")
    @classmethod
    def _amount_as_decimal(cls, value: Any) -> Optional[Decimal]:
        # Failed and pending charges may come back without an amount
        if value is None or value == "":
            return None
        # Floats go through str() so 11500.1 stays 11500.1
        try:
            amount = Decimal(str(value))
        except InvalidOperation as e:
            raise ValueError("amount is not numeric") from e
        if not amount.is_finite():
            raise ValueError("amount is not a finite number")
        return amount

    @field_validator("meta", mode="before")
    @classmethod
    def _meta_or_empty(cls, value: Any) -> Dict[str, Any]:
        return value if isinstance(value, dict) else {}

    @property
    def is_successful(self) -> bool:
        return self.status.strip().lower() == "successful"

    @property
    def booking_id_hint(self) -> Optional[str]:
        raw = self.meta.get("booking_id")
        return str(raw) if raw not in (None, "") else None


class PaymentVerifyRequest(BaseModel):
    """Body posted by the checkout redirect page."""
    transaction_id: str = Field(min_length=1, max_length=64, description="Flutterwave transaction id from the redirect query")
    booking_id: str = Field(min_length=1, max_length=64)
