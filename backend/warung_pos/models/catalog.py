from __future__ import annotations

from ..extensions import db
from warung_pos.money import money_str, quantity_str
from warung_pos.time_utils import to_utc_z, utcnow


class Category(db.Model):
    """Menu grouping: satuan (single items), paket (bundles), topping."""
    __tablename__ = "categories"
    __table_args__ = (
        db.UniqueConstraint("name", name="uq_categories_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    type = db.Column(db.String(16), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type,
            "created_at": to_utc_z(self.created_at),
        }


class Product(db.Model):
    """
    Sellable menu item.

    The price here is the catalog price only. A committed sale copies the
    unit price into its TransactionItem, so later price edits never change
    historical totals.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_active_name", "is_active", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    category_id = db.Column(db.Integer, db.ForeignKey("categories.id"), nullable=True, index=True)
    price = db.Column(db.Numeric(12, 2), nullable=False)
    description = db.Column(db.Text, nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    category = db.relationship("Category", backref=db.backref("products", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r} price={self.price}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "category_id": self.category_id,
            "price": money_str(self.price),
            "description": self.description,
            "is_active": self.is_active,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class RecipeEntry(db.Model):
    """
    Recipe map row: one unit of `product` consumes `quantity` of `inventory_item`.

    A product with no rows has no stock effect when sold.
    """
    __tablename__ = "recipe_entries"
    __table_args__ = (
        db.UniqueConstraint("product_id", "inventory_id", name="uq_recipe_product_inventory"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    inventory_id = db.Column(db.Integer, db.ForeignKey("inventory_items.id"), nullable=False, index=True)

    # Per unit sold, NUMERIC(12, 3) so 0.1 kg is exact
    quantity = db.Column(db.Numeric(12, 3), nullable=False)

    product = db.relationship("Product", backref=db.backref("recipe_entries", lazy=True))
    inventory_item = db.relationship("InventoryItem")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "inventory_id": self.inventory_id,
            "inventory_name": self.inventory_item.name if self.inventory_item else None,
            "unit": self.inventory_item.unit if self.inventory_item else None,
            "quantity": quantity_str(self.quantity),
        }
