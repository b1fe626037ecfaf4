"""Booking repository: the only place reconciliation touches the data store.

Every "at most once" transition is a conditional UPDATE whose affected-row
count is returned to the caller, so two concurrent deliveries of the same
event cannot both win. Callers group writes with ``transaction()``; nothing
is committed until the block exits cleanly.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import datetime
from decimal import Decimal
from typing import ContextManager, Iterable, Iterator, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from choriad.models.db import (
    Application,
    ApplicationStatus,
    Booking,
    BookingStatus,
    Job,
    JobStatus,
    Notification,
    PaymentStatus,
    WorkerActivity,
)
from choriad.repositories.records import BookingRecord, NotificationDraft, WorkerActivityDraft
from choriad.utils import get_logger

logger = get_logger(__name__)


class BookingRepository(ABC):
    """Typed data access for the reconciliation flows."""

    @abstractmethod
    def transaction(self) -> ContextManager["BookingRepository"]:
        """Context manager committing on success and rolling back on any exception."""

    # ------------------------------ lookups ------------------------------ #
    @abstractmethod
    def get_booking(self, booking_id: str) -> Optional[BookingRecord]: ...

    @abstractmethod
    def find_booking_by_tx_ref(self, tx_ref: str) -> Optional[BookingRecord]: ...

    @abstractmethod
    def find_booking_by_payment_reference(self, reference: str) -> Optional[BookingRecord]: ...

    # -------------------------- guarded transitions ----------------------- #
    @abstractmethod
    def mark_booking_paid(
        self,
        booking_id: str,
        *,
        transaction_id: str,
        tx_ref: Optional[str],
        paid_at: datetime,
    ) -> bool:
        """Set paid/confirmed unless already paid. True if this call made the change."""

    @abstractmethod
    def mark_worker_paid(self, booking_id: str, *, transfer_id: Optional[str], paid_at: datetime) -> bool:
        """Set worker_paid unless already set. True if this call made the change."""

    @abstractmethod
    def record_transfer_failure(self, booking_id: str, *, transfer_id: Optional[str]) -> bool:
        """Remember a failed transfer. False if this transfer id was already recorded."""

    # ------------------------------ fan-out ------------------------------- #
    @abstractmethod
    def assign_job(self, job_id: str, *, worker_id: str, final_amount_ngn: Decimal, at: datetime) -> bool: ...

    @abstractmethod
    def mark_application_hired(self, job_id: str, worker_id: str) -> bool: ...

    @abstractmethod
    def reject_pending_applications(self, job_id: str, *, except_worker_id: str) -> list[str]:
        """Reject every other pending bid on the job; returns the rejected worker ids."""

    @abstractmethod
    def add_notifications(self, drafts: Iterable[NotificationDraft]) -> int: ...

    @abstractmethod
    def add_worker_activity(self, draft: WorkerActivityDraft) -> None: ...


def _to_record(booking: Booking) -> BookingRecord:
    return BookingRecord(
        id=booking.id,
        job_id=booking.job_id,
        client_id=booking.client_id,
        worker_id=booking.worker_id,
        amount_ngn=Decimal(booking.amount_ngn or 0),
        commission_ngn=Decimal(booking.commission_ngn or 0),
        payment_status=booking.payment_status,
        status=booking.status,
        worker_paid=bool(booking.worker_paid),
        flw_tx_ref=booking.flw_tx_ref,
        payment_reference=booking.payment_reference,
        last_failed_transfer_id=booking.last_failed_transfer_id,
        job_title=booking.job.title if booking.job is not None else None,
    )


class SqlAlchemyBookingRepository(BookingRepository):
    def __init__(self, session: Session):
        self.session = session

    @contextmanager
    def transaction(self) -> Iterator["SqlAlchemyBookingRepository"]:
        try:
            yield self
            self.session.commit()
        except SQLAlchemyError as e:
            logger.error("Reconciliation transaction failed; rolling back", error=str(e), exc_info=True)
            self.session.rollback()
            raise
        except Exception:
            self.session.rollback()
            raise

    def _first(self, *criteria) -> Optional[BookingRecord]:
        stmt = select(Booking).options(joinedload(Booking.job)).where(*criteria).limit(1)
        booking = self.session.execute(stmt).scalars().first()
        return _to_record(booking) if booking is not None else None

    def get_booking(self, booking_id: str) -> Optional[BookingRecord]:
        return self._first(Booking.id == booking_id)

    def find_booking_by_tx_ref(self, tx_ref: str) -> Optional[BookingRecord]:
        return self._first(Booking.flw_tx_ref == tx_ref)

    def find_booking_by_payment_reference(self, reference: str) -> Optional[BookingRecord]:
        return self._first(Booking.payment_reference == reference)

    def mark_booking_paid(
        self,
        booking_id: str,
        *,
        transaction_id: str,
        tx_ref: Optional[str],
        paid_at: datetime,
    ) -> bool:
        stmt = (
            update(Booking)
            .where(Booking.id == booking_id, Booking.payment_status != PaymentStatus.PAID)
            .values(
                payment_status=PaymentStatus.PAID,
                status=BookingStatus.CONFIRMED,
                paid_at=paid_at,
                flw_transaction_id=transaction_id,
                flw_tx_ref=tx_ref,
                updated_at=paid_at,
            )
        )
        return self.session.execute(stmt).rowcount == 1

    def mark_worker_paid(self, booking_id: str, *, transfer_id: Optional[str], paid_at: datetime) -> bool:
        stmt = (
            update(Booking)
            .where(Booking.id == booking_id, Booking.worker_paid.is_(False))
            .values(worker_paid=True, worker_paid_at=paid_at, flw_transfer_id=transfer_id, updated_at=paid_at)
        )
        return self.session.execute(stmt).rowcount == 1

    def record_transfer_failure(self, booking_id: str, *, transfer_id: Optional[str]) -> bool:
        criteria = [Booking.id == booking_id, Booking.worker_paid.is_(False)]
        if transfer_id is not None:
            criteria.append(
                (Booking.last_failed_transfer_id.is_(None)) | (Booking.last_failed_transfer_id != transfer_id)
            )
        stmt = update(Booking).where(*criteria).values(last_failed_transfer_id=transfer_id)
        return self.session.execute(stmt).rowcount == 1

    def assign_job(self, job_id: str, *, worker_id: str, final_amount_ngn: Decimal, at: datetime) -> bool:
        stmt = (
            update(Job)
            .where(Job.id == job_id)
            .values(
                status=JobStatus.ASSIGNED,
                assigned_worker_id=worker_id,
                final_amount_ngn=final_amount_ngn,
                updated_at=at,
            )
        )
        return self.session.execute(stmt).rowcount == 1

    def mark_application_hired(self, job_id: str, worker_id: str) -> bool:
        stmt = (
            update(Application)
            .where(Application.job_id == job_id, Application.worker_id == worker_id)
            .values(status=ApplicationStatus.HIRED)
        )
        return self.session.execute(stmt).rowcount >= 1

    def reject_pending_applications(self, job_id: str, *, except_worker_id: str) -> list[str]:
        pending = self.session.execute(
            select(Application.id, Application.worker_id).where(
                Application.job_id == job_id,
                Application.worker_id != except_worker_id,
                Application.status == ApplicationStatus.PENDING,
            )
        ).all()
        if not pending:
            return []
        self.session.execute(
            update(Application)
            .where(
                Application.id.in_([row.id for row in pending]),
                Application.status == ApplicationStatus.PENDING,
            )
            .values(status=ApplicationStatus.REJECTED)
            .execution_options(synchronize_session=False)
        )
        return [row.worker_id for row in pending]

    def add_notifications(self, drafts: Iterable[NotificationDraft]) -> int:
        rows = [
            Notification(
                user_id=d.user_id,
                type=d.type,
                title=d.title,
                message=d.message,
                data=d.data,
                read=False,
            )
            for d in drafts
        ]
        self.session.add_all(rows)
        self.session.flush()
        return len(rows)

    def add_worker_activity(self, draft: WorkerActivityDraft) -> None:
        self.session.add(
            WorkerActivity(
                worker_id=draft.worker_id,
                type=draft.type,
                message=draft.message,
                activity_metadata=draft.metadata,
            )
        )
        self.session.flush()


__all__ = ["BookingRepository", "SqlAlchemyBookingRepository"]
