from __future__ import annotations
"""SQLAlchemy model for worker applications (bids) on jobs."""
import uuid
from datetime import datetime
from typing import TYPE_CHECKING
from sqlalchemy import String, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship, Mapped, mapped_column

if TYPE_CHECKING:  # pragma: no cover
    from .jobs import Job
from sqlalchemy.sql import func
from choriad.database import Base
from .enums import ApplicationStatus, enum_type

class Application(Base):
    __tablename__ = "applications"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    job_id: Mapped[str] = mapped_column(String(36), ForeignKey("jobs.id"), nullable=False, index=True)
    worker_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    status: Mapped[ApplicationStatus] = mapped_column(enum_type(ApplicationStatus), default=ApplicationStatus.PENDING, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    job: Mapped["Job"] = relationship("Job", back_populates="applications")

    # One bid per worker per job
    __table_args__ = (
        UniqueConstraint("job_id", "worker_id", name="unique_application_per_worker"),
    )
