import os
import sys
import uuid
from decimal import Decimal
from pathlib import Path
from typing import Dict, List, Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

# Ensure project root on sys.path so 'choriad' resolves without an editable install
ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from choriad.main import app  # type: ignore
from choriad.database import Base  # type: ignore
from choriad.api import deps  # type: ignore
from choriad import config  # type: ignore
"""Pytest fixtures and factories.

All model modules are imported through choriad.models.db so every table is on
Base.metadata before create_all().
"""
from choriad.models.db import (
    Application,
    ApplicationStatus,
    Booking,
    BookingStatus,
    Job,
    JobStatus,
    PaymentStatus,
)
from choriad.integrations.base import ProviderError, TransactionVerifier
from choriad.models.schemas.payments import VerifiedTransaction
from choriad.services.view_invalidation import ViewInvalidator
from choriad.utils.circuit_breaker import GLOBAL_CIRCUIT_BREAKER

WEBHOOK_SECRET = "test-secret-hash"

# File-based SQLite: the request session and the test session each get their own connection
SQLALCHEMY_TEST_URL = "sqlite+pysqlite:///./test_choriad.db"
engine = create_engine(
    SQLALCHEMY_TEST_URL,
    connect_args={"check_same_thread": False},
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


class FakeVerifier(TransactionVerifier):
    """Stands in for the provider's verify API; transactions are registered per test."""

    def __init__(self):
        self.by_id: Dict[str, VerifiedTransaction] = {}
        self.by_ref: Dict[str, VerifiedTransaction] = {}
        self.calls: List[Dict[str, Optional[str]]] = []
        self.error: Optional[ProviderError] = None

    def add(self, **fields) -> VerifiedTransaction:
        fields.setdefault("status", "successful")
        fields.setdefault("currency", "NGN")
        tx = VerifiedTransaction.model_validate(fields)
        self.by_id[tx.id] = tx
        if tx.tx_ref:
            self.by_ref[tx.tx_ref] = tx
        return tx

    async def verify_transaction(self, *, transaction_id=None, tx_ref=None) -> VerifiedTransaction:
        self.calls.append({"transaction_id": transaction_id, "tx_ref": tx_ref})
        if self.error is not None:
            raise self.error
        tx = self.by_id.get(transaction_id) if transaction_id else self.by_ref.get(tx_ref)
        if tx is None:
            raise ProviderError("verification_rejected", "No transaction was found for this id")
        return tx


class RecordingInvalidator(ViewInvalidator):
    def __init__(self):
        self.paths: List[str] = []

    def invalidate(self, paths) -> None:
        self.paths.extend(paths)


@pytest.fixture(scope="session", autouse=True)
def create_test_db():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)
    engine.dispose()
    try:
        os.remove("test_choriad.db")
    except OSError:
        pass


@pytest.fixture()
def db_session():
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


def _override_get_db():
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


app.dependency_overrides[deps.get_db] = _override_get_db


@pytest.fixture()
def verifier():
    fake = FakeVerifier()
    app.dependency_overrides[deps.get_transaction_verifier] = lambda: fake
    yield fake
    app.dependency_overrides.pop(deps.get_transaction_verifier, None)


@pytest.fixture()
def invalidator():
    recorder = RecordingInvalidator()
    app.dependency_overrides[deps.get_view_invalidator] = lambda: recorder
    yield recorder
    app.dependency_overrides.pop(deps.get_view_invalidator, None)


@pytest.fixture(autouse=True)
def _isolate_test_state(monkeypatch, verifier, invalidator):
    """Per-test isolation.

    Resets:
        - In-memory circuit breaker counters.
        - Every table, so row counts in one test never see another's rows.
        - Webhook secret and notification routing to known values.
    """
    GLOBAL_CIRCUIT_BREAKER.reset()
    monkeypatch.setattr(config, "FLUTTERWAVE_SECRET_HASH", WEBHOOK_SECRET)
    monkeypatch.setattr(config, "ALLOW_UNSIGNED_WEBHOOKS", False)
    monkeypatch.setitem(config.NOTIFICATION_SETTINGS, "ops_user_id", None)
    yield
    GLOBAL_CIRCUIT_BREAKER.reset()
    session = TestingSessionLocal()
    try:
        for table in reversed(Base.metadata.sorted_tables):
            session.execute(table.delete())
        session.commit()
    finally:
        session.close()


@pytest.fixture()
def client():
    return TestClient(app)


@pytest.fixture()
def post_webhook(client):
    def _post(payload, signature: Optional[str] = WEBHOOK_SECRET):
        headers = {"verif-hash": signature} if signature is not None else {}
        return client.post("/api/v1/flutterwave/webhook", json=payload, headers=headers)
    return _post


# ---------- Data factory helpers ----------

def _new_id() -> str:
    return str(uuid.uuid4())


@pytest.fixture()
def job_factory(db_session):
    def _create(title: str = "Fix kitchen sink", client_id: Optional[str] = None):
        job = Job(
            client_id=client_id or _new_id(),
            title=title,
            status=JobStatus.OPEN,
        )
        db_session.add(job)
        db_session.commit()
        db_session.refresh(job)
        return job
    return _create


@pytest.fixture()
def application_factory(db_session):
    def _create(job: Job, worker_id: Optional[str] = None, status: ApplicationStatus = ApplicationStatus.PENDING):
        application = Application(job_id=job.id, worker_id=worker_id or _new_id(), status=status)
        db_session.add(application)
        db_session.commit()
        db_session.refresh(application)
        return application
    return _create


@pytest.fixture()
def booking_factory(db_session, job_factory):
    def _create(
        job: Optional[Job] = None,
        worker_id: Optional[str] = None,
        amount_ngn: str = "10000",
        commission_ngn: str = "1500",
        payment_status: PaymentStatus = PaymentStatus.UNPAID,
        status: BookingStatus = BookingStatus.PENDING_PAYMENT,
        flw_tx_ref: Optional[str] = None,
        payment_reference: Optional[str] = None,
        worker_paid: bool = False,
    ):
        job = job or job_factory()
        booking = Booking(
            job_id=job.id,
            client_id=job.client_id,
            worker_id=worker_id or _new_id(),
            amount_ngn=Decimal(amount_ngn),
            commission_ngn=Decimal(commission_ngn),
            payment_status=payment_status,
            status=status,
            flw_tx_ref=flw_tx_ref if flw_tx_ref is not None else f"choriad-{uuid.uuid4().hex[:12]}",
            payment_reference=payment_reference,
            worker_paid=worker_paid,
        )
        db_session.add(booking)
        db_session.commit()
        db_session.refresh(booking)
        return booking
    return _create


@pytest.fixture()
def charge_event():
    def _build(transaction_id="4975123", tx_ref=None, booking_id=None, **extra_data):
        data = {"id": transaction_id, "status": "successful", "amount": 11500, "currency": "NGN"}
        if tx_ref is not None:
            data["tx_ref"] = tx_ref
        if booking_id is not None:
            data["meta"] = {"booking_id": booking_id}
        data.update(extra_data)
        return {"event": "charge.completed", "data": data}
    return _build


@pytest.fixture()
def transfer_event():
    def _build(reference, status="SUCCESSFUL", transfer_id=556677, **extra_data):
        data = {"id": transfer_id, "reference": reference, "status": status, "amount": 10000}
        data.update(extra_data)
        return {"event": "transfer.completed", "data": data}
    return _build
