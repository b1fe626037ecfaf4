from choriad import config
from choriad.models.db import Booking, Notification, NotificationType


def _count_notifications(db_session, type_=None):
    query = db_session.query(Notification)
    if type_ is not None:
        query = query.filter(Notification.type == type_)
    return query.count()


def test_successful_transfer_marks_worker_paid(post_webhook, db_session, job_factory, booking_factory, invalidator, transfer_event):
    job = job_factory(title="Deep clean 3-bed flat")
    booking = booking_factory(job=job, payment_reference="payout-1")

    r = post_webhook(transfer_event("payout-1", status="SUCCESSFUL", transfer_id=556677))
    assert r.status_code == 200
    assert r.json() == {"ok": True, "message": "Worker payout processed successfully"}

    db_session.expire_all()
    saved = db_session.get(Booking, booking.id)
    assert saved.worker_paid is True
    assert saved.worker_paid_at is not None
    assert saved.flw_transfer_id == "556677"

    sent = db_session.query(Notification).filter(Notification.type == NotificationType.PAYMENT_SENT).one()
    assert sent.user_id == booking.worker_id
    assert sent.message == 'Your payment of ₦10,000 for "Deep clean 3-bed flat" has been sent to your bank account.'
    assert sent.data["reference"] == "payout-1"
    assert invalidator.paths == ["/admin/dashboard", "/admin/payouts", f"/worker/earnings/{booking.worker_id}"]


def test_successful_transfer_replay(post_webhook, db_session, booking_factory, transfer_event):
    booking_factory(payment_reference="payout-2")
    first = post_webhook(transfer_event("payout-2", status="successful"))
    second = post_webhook(transfer_event("payout-2", status="successful"))
    assert first.json()["message"] == "Worker payout processed successfully"
    assert second.json() == {"ok": True, "message": "Already processed"}
    assert _count_notifications(db_session, NotificationType.PAYMENT_SENT) == 1


def test_failed_transfer_never_pays_and_notifies_once(post_webhook, db_session, booking_factory, invalidator, transfer_event):
    booking = booking_factory(payment_reference="payout-3")

    r = post_webhook(transfer_event("payout-3", status="FAILED", transfer_id=1234, complete_message="Account resolve failed"))
    assert r.status_code == 200
    assert r.json()["message"] == "Transfer failed - logged"

    db_session.expire_all()
    assert db_session.get(Booking, booking.id).worker_paid is False
    failures = db_session.query(Notification).filter(Notification.type == NotificationType.TRANSFER_FAILED).all()
    assert len(failures) == 1
    assert failures[0].data == {"booking_id": booking.id, "reference": "payout-3", "transfer_id": "1234"}
    assert invalidator.paths == []


def test_failed_transfer_redelivery_does_not_notify_again(post_webhook, db_session, booking_factory, transfer_event):
    booking_factory(payment_reference="payout-4")
    payload = transfer_event("payout-4", status="FAILED", transfer_id=999)

    assert post_webhook(payload).json()["message"] == "Transfer failed - logged"
    assert post_webhook(payload).json()["message"] == "Transfer failed - logged"
    assert _count_notifications(db_session, NotificationType.TRANSFER_FAILED) == 1

    # A new attempt with a different transfer id that also fails is reported
    post_webhook(transfer_event("payout-4", status="FAILED", transfer_id=1000))
    assert _count_notifications(db_session, NotificationType.TRANSFER_FAILED) == 2


def test_failed_transfer_goes_to_ops_when_configured(monkeypatch, post_webhook, db_session, booking_factory, transfer_event):
    monkeypatch.setitem(config.NOTIFICATION_SETTINGS, "ops_user_id", "ops-desk")
    booking_factory(payment_reference="payout-5")
    post_webhook(transfer_event("payout-5", status="failed"))
    notice = db_session.query(Notification).one()
    assert notice.user_id == "ops-desk"
    assert notice.title == "Worker Payment Failed"


def test_failed_transfer_falls_back_to_client(post_webhook, db_session, booking_factory, transfer_event):
    booking = booking_factory(payment_reference="payout-6")
    post_webhook(transfer_event("payout-6", status="failed"))
    assert db_session.query(Notification).one().user_id == booking.client_id


def test_failure_after_success_is_already_processed(post_webhook, db_session, booking_factory, transfer_event):
    booking_factory(payment_reference="payout-7")
    post_webhook(transfer_event("payout-7", status="SUCCESSFUL"))
    r = post_webhook(transfer_event("payout-7", status="FAILED"))
    assert r.json()["message"] == "Already processed"
    assert _count_notifications(db_session, NotificationType.TRANSFER_FAILED) == 0


def test_pending_transfer_is_acknowledged_without_writes(post_webhook, db_session, booking_factory, transfer_event):
    booking = booking_factory(payment_reference="payout-8")
    r = post_webhook(transfer_event("payout-8", status="NEW"))
    assert r.status_code == 200
    assert r.json()["message"] == "Transfer status: NEW"
    db_session.expire_all()
    assert db_session.get(Booking, booking.id).worker_paid is False
    assert _count_notifications(db_session) == 0


def test_unresolvable_reference_is_404_with_no_writes(post_webhook, db_session, booking_factory, transfer_event):
    booking = booking_factory(payment_reference="payout-9")
    r = post_webhook(transfer_event("someone-elses-reference", status="SUCCESSFUL"))
    assert r.status_code == 404
    assert r.json() == {"ok": False, "message": "Booking not found"}
    db_session.expire_all()
    assert db_session.get(Booking, booking.id).worker_paid is False
    assert _count_notifications(db_session) == 0


def test_missing_reference(post_webhook, transfer_event):
    payload = transfer_event("ignored")
    del payload["data"]["reference"]
    r = post_webhook(payload)
    assert r.status_code == 400
    assert r.json()["message"] == "Missing reference"
