from __future__ import annotations
"""SQLAlchemy model for jobs posted by clients."""
import uuid
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING
from sqlalchemy import String, DateTime, Numeric
from sqlalchemy.orm import relationship, Mapped, mapped_column

if TYPE_CHECKING:  # pragma: no cover
    from .applications import Application
    from .bookings import Booking
from sqlalchemy.sql import func
from choriad.database import Base
from .enums import JobStatus, enum_type

class Job(Base):
    __tablename__ = "jobs"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    client_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    title: Mapped[str] = mapped_column(String, nullable=False)
    status: Mapped[JobStatus] = mapped_column(enum_type(JobStatus), default=JobStatus.OPEN, index=True)

    # Set when escrow payment is captured for the hired worker
    assigned_worker_id: Mapped[str | None] = mapped_column(String(36), nullable=True, index=True)
    final_amount_ngn: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    applications: Mapped[list["Application"]] = relationship("Application", back_populates="job")
    bookings: Mapped[list["Booking"]] = relationship("Booking", back_populates="job")
