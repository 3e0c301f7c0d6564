from __future__ import annotations

from ..extensions import db
from warung_pos.money import money_str
from warung_pos.time_utils import to_utc_z, utcnow


class CashLedgerEntry(db.Model):
    """
    Append-only record of money in/out of the business.

    IMMUTABLE: no update/delete path exists. A committed sale posts exactly
    one income/"sales" row whose reference_id is the transaction id.
    """
    __tablename__ = "cash_ledger_entries"
    __table_args__ = (
        db.Index("ix_cash_ledger_type_created", "type", "created_at"),
        db.Index("ix_cash_ledger_category_created", "category", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # income, expense
    type = db.Column(db.String(16), nullable=False)

    # sales, purchase, salary, ...
    category = db.Column(db.String(64), nullable=False)

    amount = db.Column(db.Numeric(12, 2), nullable=False)
    description = db.Column(db.Text, nullable=True)

    # Transaction id for sales; free-form for other entries
    reference_id = db.Column(db.String(64), nullable=True, index=True)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.type,
            "category": self.category,
            "amount": money_str(self.amount),
            "description": self.description,
            "reference_id": self.reference_id,
            "user_id": self.user_id,
            "created_at": to_utc_z(self.created_at),
        }
