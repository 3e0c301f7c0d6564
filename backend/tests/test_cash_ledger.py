from datetime import timedelta
from decimal import Decimal

import pytest

from warung_pos.models import CashLedgerEntry
from warung_pos.services import cash_ledger_service
from warung_pos.time_utils import utcnow
from warung_pos.validation import ValidationError


def test_record_expense(db_session, cashier):
    entry = cash_ledger_service.record(
        "expense",
        "purchase",
        Decimal("250000"),
        description="Chicken from market",
        user_id=cashier.id,
    )

    assert entry.id is not None
    assert entry.amount == Decimal("250000")
    assert entry.to_dict()["amount"] == "250000.00"


@pytest.mark.parametrize(
    "type_,category,amount",
    [
        ("refund", "sales", Decimal("1")),
        ("income", "", Decimal("1")),
        ("income", "sales", Decimal("0")),
        ("expense", "salary", Decimal("-5")),
    ],
)
def test_record_rejects_invalid(db_session, type_, category, amount):
    with pytest.raises(ValidationError):
        cash_ledger_service.record(type_, category, amount)

    assert db_session.query(CashLedgerEntry).count() == 0


def test_list_filters_and_totals(db_session):
    cash_ledger_service.record("income", "sales", Decimal("100000"), reference_id="1")
    cash_ledger_service.record("expense", "purchase", Decimal("30000"))
    cash_ledger_service.record("expense", "salary", Decimal("20000"))

    expenses = cash_ledger_service.list_entries(type="expense")
    assert [e.category for e in expenses] == ["salary", "purchase"]

    assert [e.category for e in cash_ledger_service.list_entries(category="sales")] == ["sales"]

    totals = cash_ledger_service.totals(cash_ledger_service.list_entries())
    assert totals == {
        "income": Decimal("100000.00"),
        "expense": Decimal("50000.00"),
        "net": Decimal("50000.00"),
    }


def test_list_date_window(db_session):
    entry = cash_ledger_service.record("income", "other", Decimal("5000"))
    entry.created_at = utcnow() - timedelta(days=3)
    db_session.commit()
    cash_ledger_service.record("income", "other", Decimal("7000"))

    recent = cash_ledger_service.list_entries(start=utcnow() - timedelta(days=1))
    assert [e.amount for e in recent] == [Decimal("7000")]

    older = cash_ledger_service.list_entries(end=utcnow() - timedelta(days=2))
    assert [e.amount for e in older] == [Decimal("5000")]


def test_unknown_type_filter(db_session):
    with pytest.raises(ValidationError):
        cash_ledger_service.list_entries(type="transfer")
