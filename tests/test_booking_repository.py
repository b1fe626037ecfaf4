from datetime import datetime, timezone
from decimal import Decimal

import pytest

from choriad.models.db import (
    Application,
    ApplicationStatus,
    Booking,
    Notification,
    NotificationType,
    PaymentStatus,
)
from choriad.repositories import NotificationDraft, SqlAlchemyBookingRepository

NOW = datetime(2026, 1, 5, 12, 0, tzinfo=timezone.utc)


@pytest.fixture()
def repo(db_session):
    return SqlAlchemyBookingRepository(db_session)


def test_lookups_return_records(repo, job_factory, booking_factory):
    job = job_factory(title="Assemble wardrobe")
    booking = booking_factory(job=job, flw_tx_ref="ref-a", payment_reference="po-a")

    record = repo.get_booking(booking.id)
    assert record.id == booking.id
    assert record.job_title == "Assemble wardrobe"
    assert record.amount_ngn == Decimal("10000")
    assert repo.find_booking_by_tx_ref("ref-a").id == booking.id
    assert repo.find_booking_by_payment_reference("po-a").id == booking.id
    assert repo.get_booking("missing") is None
    assert repo.find_booking_by_tx_ref("nope") is None


def test_mark_booking_paid_is_compare_and_swap(repo, db_session, booking_factory):
    booking = booking_factory()
    with repo.transaction():
        assert repo.mark_booking_paid(booking.id, transaction_id="t1", tx_ref="ref-1", paid_at=NOW) is True
    with repo.transaction():
        assert repo.mark_booking_paid(booking.id, transaction_id="t2", tx_ref="ref-2", paid_at=NOW) is False

    db_session.expire_all()
    saved = db_session.get(Booking, booking.id)
    assert saved.payment_status == PaymentStatus.PAID
    assert saved.flw_transaction_id == "t1"


def test_mark_worker_paid_is_compare_and_swap(repo, db_session, booking_factory):
    booking = booking_factory()
    with repo.transaction():
        assert repo.mark_worker_paid(booking.id, transfer_id="x1", paid_at=NOW) is True
        assert repo.mark_worker_paid(booking.id, transfer_id="x2", paid_at=NOW) is False
    db_session.expire_all()
    assert db_session.get(Booking, booking.id).flw_transfer_id == "x1"


def test_record_transfer_failure_dedupes_by_transfer_id(repo, booking_factory):
    booking = booking_factory()
    with repo.transaction():
        assert repo.record_transfer_failure(booking.id, transfer_id="f1") is True
        assert repo.record_transfer_failure(booking.id, transfer_id="f1") is False
        assert repo.record_transfer_failure(booking.id, transfer_id="f2") is True


def test_reject_pending_applications_skips_winner_and_decided(repo, db_session, job_factory, application_factory):
    job = job_factory()
    application_factory(job, worker_id="winner")
    application_factory(job, worker_id="pending-1")
    application_factory(job, worker_id="already-rejected", status=ApplicationStatus.REJECTED)
    other_job = job_factory()
    foreign = application_factory(other_job, worker_id="elsewhere")

    with repo.transaction():
        assert repo.mark_application_hired(job.id, "winner") is True
        rejected = repo.reject_pending_applications(job.id, except_worker_id="winner")
    assert rejected == ["pending-1"]

    db_session.expire_all()
    statuses = {a.worker_id: a.status for a in db_session.query(Application).filter_by(job_id=job.id)}
    assert statuses == {
        "winner": ApplicationStatus.HIRED,
        "pending-1": ApplicationStatus.REJECTED,
        "already-rejected": ApplicationStatus.REJECTED,
    }
    assert db_session.get(Application, foreign.id).status == ApplicationStatus.PENDING


def test_transaction_rolls_back_on_error(repo, db_session, booking_factory):
    booking = booking_factory()
    with pytest.raises(RuntimeError):
        with repo.transaction():
            repo.mark_booking_paid(booking.id, transaction_id="t1", tx_ref=None, paid_at=NOW)
            repo.add_notifications([
                NotificationDraft(user_id="w", type=NotificationType.PAYMENT_RECEIVED, title="t", message="m")
            ])
            raise RuntimeError("boom")

    db_session.expire_all()
    assert db_session.get(Booking, booking.id).payment_status == PaymentStatus.UNPAID
    assert db_session.query(Notification).count() == 0
