# Overview: Service-layer operations for the cash ledger; encapsulates business logic and database work.

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from ..extensions import db
from ..models import CashLedgerEntry
from ..money import quantize_money
from ..validation import ValidationError, CASH_ENTRY_TYPES
from .concurrency import run_with_retry
"""
Cash Ledger Invariants (authoritative)

- Append-only: entries are never updated or deleted.
- amount is always positive; direction comes from type (income|expense).
- A committed sale posts exactly one income/"sales" entry, written inside
  the sale's DB transaction with reference_id = str(transaction.id).
"""

SALES_CATEGORY = "sales"


def record(
    type: str,
    category: str,
    amount,
    description: str | None = None,
    reference_id: str | None = None,
    user_id: int | None = None,
    *,
    commit: bool = True,
) -> CashLedgerEntry:
    """
    Append one ledger entry.

    commit=False joins the caller's DB transaction (used by the sale commit).
    """
    if type not in CASH_ENTRY_TYPES:
        raise ValidationError(f"type must be one of {', '.join(CASH_ENTRY_TYPES)}")
    if not category or not str(category).strip():
        raise ValidationError("category is required")
    amount = quantize_money(amount)
    if amount <= 0:
        raise ValidationError("amount must be > 0")

    def _op():
        entry = CashLedgerEntry(
            type=type,
            category=str(category).strip(),
            amount=amount,
            description=description,
            reference_id=str(reference_id) if reference_id is not None else None,
            user_id=user_id,
        )
        db.session.add(entry)
        db.session.flush()
        if commit:
            db.session.commit()
        return entry

    if commit:
        return run_with_retry(_op)
    return _op()


def list_entries(
    *,
    type: str | None = None,
    category: str | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
    limit: int | None = None,
) -> list[CashLedgerEntry]:
    """Filtered listing, newest first. start/end are inclusive."""
    if type is not None and type not in CASH_ENTRY_TYPES:
        raise ValidationError(f"type must be one of {', '.join(CASH_ENTRY_TYPES)}")

    q = db.session.query(CashLedgerEntry)
    if type is not None:
        q = q.filter(CashLedgerEntry.type == type)
    if category:
        q = q.filter(CashLedgerEntry.category == category)
    if start is not None:
        q = q.filter(CashLedgerEntry.created_at >= start)
    if end is not None:
        q = q.filter(CashLedgerEntry.created_at <= end)

    q = q.order_by(CashLedgerEntry.created_at.desc(), CashLedgerEntry.id.desc())
    if limit is not None:
        q = q.limit(limit)
    return q.all()


def entries_for_reference(reference_id) -> list[CashLedgerEntry]:
    return (
        db.session.query(CashLedgerEntry)
        .filter(CashLedgerEntry.reference_id == str(reference_id))
        .order_by(CashLedgerEntry.id.asc())
        .all()
    )


def totals(entries: list[CashLedgerEntry]) -> dict[str, Decimal]:
    income = sum((e.amount for e in entries if e.type == "income"), Decimal("0"))
    expense = sum((e.amount for e in entries if e.type == "expense"), Decimal("0"))
    return {
        "income": quantize_money(income),
        "expense": quantize_money(expense),
        "net": quantize_money(income - expense),
    }
