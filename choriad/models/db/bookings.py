from __future__ import annotations
"""SQLAlchemy model for bookings: one client-worker-job engagement with its
escrow payment and worker payout state."""
import uuid
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING
from sqlalchemy import String, DateTime, Boolean, Numeric, ForeignKey
from sqlalchemy.orm import relationship, Mapped, mapped_column

if TYPE_CHECKING:  # pragma: no cover
    from .jobs import Job
from sqlalchemy.sql import func
from choriad.database import Base
from .enums import BookingStatus, PaymentStatus, enum_type

class Booking(Base):
    __tablename__ = "bookings"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    job_id: Mapped[str] = mapped_column(String(36), ForeignKey("jobs.id"), nullable=False, index=True)
    client_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    worker_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)

    amount_ngn: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0"))
    commission_ngn: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0"))

    payment_status: Mapped[PaymentStatus] = mapped_column(enum_type(PaymentStatus), default=PaymentStatus.UNPAID, index=True)
    status: Mapped[BookingStatus] = mapped_column(enum_type(BookingStatus), default=BookingStatus.PENDING_PAYMENT, index=True)

    paid_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    released_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Payout to worker (escrow release)
    worker_paid: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    worker_paid_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Flutterwave identifiers
    flw_transaction_id: Mapped[str | None] = mapped_column(String, nullable=True)
    flw_tx_ref: Mapped[str | None] = mapped_column(String, nullable=True, unique=True, index=True)
    flw_transfer_id: Mapped[str | None] = mapped_column(String, nullable=True)
    payment_reference: Mapped[str | None] = mapped_column(String, nullable=True, unique=True, index=True)
    # Last transfer id reported failed, so redeliveries do not notify twice
    last_failed_transfer_id: Mapped[str | None] = mapped_column(String, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    job: Mapped["Job"] = relationship("Job", back_populates="bookings")
