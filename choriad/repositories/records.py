"""Plain records passed between the reconciliation flows and the repository."""
from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, Optional

from choriad.models.db.enums import BookingStatus, NotificationType, PaymentStatus, WorkerActivityType


@dataclass(frozen=True)
class BookingRecord:
    id: str
    job_id: str
    client_id: str
    worker_id: str
    amount_ngn: Decimal
    commission_ngn: Decimal
    payment_status: PaymentStatus
    status: BookingStatus
    worker_paid: bool = False
    flw_tx_ref: Optional[str] = None
    payment_reference: Optional[str] = None
    last_failed_transfer_id: Optional[str] = None
    job_title: Optional[str] = None

    @property
    def is_paid(self) -> bool:
        return self.payment_status == PaymentStatus.PAID


@dataclass(frozen=True)
class NotificationDraft:
    user_id: str
    type: NotificationType
    title: str
    message: str
    data: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class WorkerActivityDraft:
    worker_id: str
    type: WorkerActivityType
    message: str
    metadata: Dict[str, Any] = field(default_factory=dict)


__all__ = ["BookingRecord", "NotificationDraft", "WorkerActivityDraft"]
