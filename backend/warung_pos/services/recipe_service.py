# Overview: Recipe map lookups and edits (product -> ingredient quantities per unit sold).

from __future__ import annotations

from decimal import Decimal
from typing import NamedTuple

from ..extensions import db
from ..models import InventoryItem, Product, RecipeEntry
from ..money import quantize_quantity
from ..validation import NotFoundError


class Ingredient(NamedTuple):
    inventory_id: int
    quantity_per_unit: Decimal


def get_ingredients_for(product_id: int) -> list[Ingredient]:
    """
    Ingredients consumed by one unit of a product, ordered by inventory id.

    An empty list means the product has no stock effect when sold.
    """
    rows = (
        db.session.query(RecipeEntry.inventory_id, RecipeEntry.quantity)
        .filter(RecipeEntry.product_id == product_id)
        .order_by(RecipeEntry.inventory_id.asc())
        .all()
    )
    return [Ingredient(inventory_id, quantize_quantity(qty)) for inventory_id, qty in rows]


def list_recipe_entries(product_id: int) -> list[RecipeEntry]:
    if db.session.get(Product, product_id) is None:
        raise NotFoundError(f"Product {product_id} not found")
    return (
        db.session.query(RecipeEntry)
        .filter_by(product_id=product_id)
        .order_by(RecipeEntry.inventory_id.asc())
        .all()
    )


def replace_recipe(product_id: int, entries: list[tuple[int, Decimal]]) -> list[RecipeEntry]:
    """
    Replace a product's recipe inside the caller's DB transaction (no commit).

    Raises NotFoundError when an ingredient does not exist.
    """
    inventory_ids = {inventory_id for inventory_id, _ in entries}
    if inventory_ids:
        found = {
            row.id
            for row in db.session.query(InventoryItem.id).filter(InventoryItem.id.in_(inventory_ids))
        }
        missing = sorted(inventory_ids - found)
        if missing:
            raise NotFoundError(f"Inventory item {missing[0]} not found")

    db.session.query(RecipeEntry).filter_by(product_id=product_id).delete(synchronize_session="fetch")

    created = []
    for inventory_id, quantity in entries:
        entry = RecipeEntry(
            product_id=product_id,
            inventory_id=inventory_id,
            quantity=quantize_quantity(quantity),
        )
        db.session.add(entry)
        created.append(entry)
    db.session.flush()
    return created
