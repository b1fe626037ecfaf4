"""
Pydantic schemas for inbound Flutterwave webhook payloads.

Each recognised ``event`` value is one variant of a discriminated union.
The payload is untrusted: only identifiers are read from it, amounts and
statuses of charges are always re-fetched from the provider.
"""
from typing import Annotated, Any, Literal, Optional, Union
from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, TypeAdapter


def _as_text(value: Any) -> Optional[str]:
    # Flutterwave sends numeric ids; references are strings. Blank means absent.
    if value is None:
        return None
    text = str(value).strip()
    return text or None


Identifier = Annotated[Optional[str], BeforeValidator(_as_text)]


class ChargeMeta(BaseModel):
    model_config = ConfigDict(extra="allow")

    booking_id: Identifier = None


class ChargeData(BaseModel):
    """``data`` object of a ``charge.completed`` event."""
    model_config = ConfigDict(extra="allow")

    id: Identifier = None
    transaction_id: Identifier = None
    tx_id: Identifier = None
    tx_ref: Identifier = None
    flw_ref: Identifier = None
    reference: Identifier = None
    status: Optional[str] = None
    meta: Optional[ChargeMeta] = None

    @property
    def provider_transaction_id(self) -> Optional[str]:
        return self.id or self.transaction_id or self.tx_id

    @property
    def provider_reference(self) -> Optional[str]:
        return self.tx_ref or self.flw_ref or self.reference

    @property
    def booking_id_hint(self) -> Optional[str]:
        return self.meta.booking_id if self.meta else None

    @property
    def has_identifier(self) -> bool:
        return any((self.provider_transaction_id, self.provider_reference, self.booking_id_hint))


class TransferData(BaseModel):
    """``data`` object of a ``transfer.completed`` event."""
    model_config = ConfigDict(extra="allow")

    id: Identifier = None
    reference: Identifier = None
    status: Optional[str] = None
    amount: Optional[float] = None
    complete_message: Optional[str] = None


class ChargeCompletedEvent(BaseModel):
    event: Literal["charge.completed"]
    data: ChargeData


class TransferCompletedEvent(BaseModel):
    event: Literal["transfer.completed"]
    data: TransferData


WebhookEvent = Annotated[
    Union[ChargeCompletedEvent, TransferCompletedEvent],
    Field(discriminator="event"),
]

HANDLED_EVENTS = frozenset({"charge.completed", "transfer.completed"})

webhook_event_adapter: TypeAdapter = TypeAdapter(WebhookEvent)

