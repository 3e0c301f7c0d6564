from __future__ import annotations

from ..extensions import db
from warung_pos.money import money_str
from warung_pos.time_utils import to_utc_z, utcnow


class Transaction(db.Model):
    """
    Committed sale header.

    Created once, together with its items, stock movements and cash ledger
    entry, inside a single DB transaction (see transaction_service).
    """
    __tablename__ = "transactions"
    __table_args__ = (
        db.UniqueConstraint("transaction_number", name="uq_transactions_number"),
        db.Index("ix_transactions_created", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Human-readable number (e.g., "TXN-20261018140509123-3F2A9C")
    transaction_number = db.Column(db.String(64), nullable=False)

    # Cashier
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)

    total_amount = db.Column(db.Numeric(12, 2), nullable=False)

    # cash, card, transfer
    payment_method = db.Column(db.String(16), nullable=False)
    payment_amount = db.Column(db.Numeric(12, 2), nullable=False)
    change_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    # pending, completed, cancelled
    status = db.Column(db.String(16), nullable=False, default="completed", index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    user = db.relationship("User")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "transaction_number": self.transaction_number,
            "user_id": self.user_id,
            "total_amount": money_str(self.total_amount),
            "payment_method": self.payment_method,
            "payment_amount": money_str(self.payment_amount),
            "change_amount": money_str(self.change_amount),
            "status": self.status,
            "created_at": to_utc_z(self.created_at),
        }


class TransactionItem(db.Model):
    """Immutable line on a Transaction; unit_price is copied at sale time."""
    __tablename__ = "transaction_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    transaction_id = db.Column(db.Integer, db.ForeignKey("transactions.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price = db.Column(db.Numeric(12, 2), nullable=False)
    total_price = db.Column(db.Numeric(12, 2), nullable=False)

    transaction = db.relationship(
        "Transaction",
        backref=db.backref("items", lazy=True, order_by="TransactionItem.id"),
    )
    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "transaction_id": self.transaction_id,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else None,
            "quantity": self.quantity,
            "unit_price": money_str(self.unit_price),
            "total_price": money_str(self.total_price),
        }
