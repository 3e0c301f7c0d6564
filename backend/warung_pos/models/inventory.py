from __future__ import annotations

from ..extensions import db
from warung_pos.money import money_str, quantity_str
from warung_pos.time_utils import to_utc_z, utcnow


class InventoryItem(db.Model):
    """
    Ingredient / stock-keeping item.

    `stock` is the single writable source of truth for the current level.
    It is only changed through inventory_service, which appends a
    StockMovement in the same DB transaction. Stock may go negative
    (oversell is recorded, not blocked).
    """
    __tablename__ = "inventory_items"
    __table_args__ = (
        db.Index("ix_inventory_items_name", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)

    # pcs, kg, liter, ...
    unit = db.Column(db.String(32), nullable=False)

    stock = db.Column(db.Numeric(12, 3), nullable=False, default=0)
    min_stock = db.Column(db.Numeric(12, 3), nullable=False, default=0)
    cost = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    # Optimistic lock: concurrent writers of `stock` fail with StaleDataError
    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    __mapper_args__ = {"version_id_col": version_id}

    @property
    def is_low_stock(self) -> bool:
        return self.stock is not None and self.stock <= (self.min_stock or 0)

    def __repr__(self) -> str:
        return f"<InventoryItem id={self.id} name={self.name!r} stock={self.stock}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "unit": self.unit,
            "stock": quantity_str(self.stock),
            "min_stock": quantity_str(self.min_stock),
            "cost": money_str(self.cost),
            "is_low_stock": self.is_low_stock,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class StockMovement(db.Model):
    """
    Append-only audit row for one change to an InventoryItem's stock.

    IMMUTABLE: never updated or deleted.
    new_stock == previous_stock + quantity, and new_stock is the item's
    stock at the moment of insertion.
    """
    __tablename__ = "stock_movements"
    __table_args__ = (
        db.Index("ix_stock_movements_inventory_created", "inventory_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    inventory_id = db.Column(db.Integer, db.ForeignKey("inventory_items.id"), nullable=False, index=True)

    # in, out, adjustment
    type = db.Column(db.String(16), nullable=False, index=True)

    # Signed delta
    quantity = db.Column(db.Numeric(12, 3), nullable=False)
    previous_stock = db.Column(db.Numeric(12, 3), nullable=False)
    new_stock = db.Column(db.Numeric(12, 3), nullable=False)

    notes = db.Column(db.Text, nullable=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)
    transaction_id = db.Column(db.Integer, db.ForeignKey("transactions.id"), nullable=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)

    inventory_item = db.relationship("InventoryItem", backref=db.backref("movements", lazy="dynamic"))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "inventory_id": self.inventory_id,
            "type": self.type,
            "quantity": quantity_str(self.quantity),
            "previous_stock": quantity_str(self.previous_stock),
            "new_stock": quantity_str(self.new_stock),
            "notes": self.notes,
            "user_id": self.user_id,
            "transaction_id": self.transaction_id,
            "created_at": to_utc_z(self.created_at),
        }
