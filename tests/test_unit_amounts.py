from decimal import Decimal

import pytest

from choriad import config
from choriad.models.db.enums import BookingStatus, PaymentStatus
from choriad.repositories.records import BookingRecord
from choriad.services.amounts import expected_amount, reconcile_amount, within_tolerance
from choriad.services.errors import AmountMismatchError


def _booking(amount="10000", commission="1500") -> BookingRecord:
    return BookingRecord(
        id="b1",
        job_id="j1",
        client_id="c1",
        worker_id="w1",
        amount_ngn=Decimal(amount),
        commission_ngn=Decimal(commission),
        payment_status=PaymentStatus.UNPAID,
        status=BookingStatus.PENDING_PAYMENT,
    )


def test_expected_amount_includes_commission():
    assert expected_amount(_booking()) == Decimal("11500")


@pytest.mark.parametrize("verified", ["11480", "11520", "11500", "11499.99"])
def test_within_twenty_naira_accepted(verified):
    assert reconcile_amount(_booking(), Decimal(verified)) == Decimal("11500")


@pytest.mark.parametrize("verified", ["11479", "11521", "10000"])
def test_more_than_twenty_naira_rejected(verified):
    with pytest.raises(AmountMismatchError) as exc:
        reconcile_amount(_booking(), Decimal(verified))
    assert exc.value.status_code == 400
    assert exc.value.message == "Amount mismatch"


def test_tolerance_is_configurable(monkeypatch):
    monkeypatch.setitem(config.WEBHOOK_SETTINGS, "amount_tolerance_ngn", Decimal("0"))
    assert within_tolerance(Decimal("11500"), Decimal("11500"))
    assert not within_tolerance(Decimal("11501"), Decimal("11500"))


def test_explicit_tolerance_overrides_config():
    assert within_tolerance(Decimal("11550"), Decimal("11500"), tolerance=Decimal("50"))
