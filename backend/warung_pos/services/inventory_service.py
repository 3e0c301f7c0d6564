# Overview: Service-layer operations for the inventory ledger; encapsulates business logic and database work.

# backend/warung_pos/services/inventory_service.py

from __future__ import annotations

from decimal import Decimal

from sqlalchemy import func

from ..extensions import db
from ..models import InventoryItem, StockMovement, RecipeEntry
from ..money import quantize_quantity
from ..validation import (
    ConflictError,
    NotFoundError,
    ValidationError,
    MOVEMENT_TYPES,
    MAX_QUANTITY,
)
from .concurrency import begin_write_transaction, lock_for_update, run_with_retry
"""
Inventory Ledger Invariants (authoritative)

Stock model:
- InventoryItem.stock is the stored current level and the only writable copy.
- Every change goes through _apply_stock_delta(), which appends exactly one
  StockMovement with previous_stock/new_stock snapshots in the same DB
  transaction: new_stock == previous_stock + quantity.
- Items are created at zero and any opening stock is posted as an "in"
  movement, so stock == SUM(movement.quantity) for every item, always.
- No floor: stock may go negative (oversell is recorded, not blocked).

Concurrency:
- The item row is locked (FOR UPDATE / BEGIN IMMEDIATE on SQLite) before
  stock is read, so two writers can never compute from the same snapshot.
- version_id on InventoryItem turns any remaining lost update into a
  StaleDataError, which run_with_retry retries.

Audit:
- StockMovement rows are never updated or deleted.
"""


def _get_item(inventory_id: int, *, lock: bool = False) -> InventoryItem:
    query = db.session.query(InventoryItem).filter_by(id=inventory_id)
    if lock:
        query = lock_for_update(query).populate_existing()
    item = query.first()
    if item is None:
        raise NotFoundError(f"Inventory item {inventory_id} not found")
    return item


def _check_movement_type(movement_type: str) -> None:
    if movement_type not in MOVEMENT_TYPES:
        raise ValidationError(f"movement type must be one of {', '.join(MOVEMENT_TYPES)}")


def _apply_stock_delta(
    item: InventoryItem,
    delta: Decimal,
    movement_type: str,
    *,
    notes: str | None = None,
    user_id: int | None = None,
    transaction_id: int | None = None,
) -> StockMovement:
    """Core stock change without locking, retry, or commit.

    The caller must already hold the row lock on `item`. Used by both the
    public adjust_stock() and the sale commit coordinator.
    """
    previous = quantize_quantity(item.stock or 0)
    delta = quantize_quantity(delta)
    new_stock = previous + delta
    if abs(new_stock) > MAX_QUANTITY:
        raise ValidationError(f"stock for inventory {item.id} would exceed {MAX_QUANTITY}")

    item.stock = new_stock

    movement = StockMovement(
        inventory_id=item.id,
        type=movement_type,
        quantity=delta,
        previous_stock=previous,
        new_stock=new_stock,
        notes=notes,
        user_id=user_id,
        transaction_id=transaction_id,
    )
    db.session.add(movement)
    db.session.flush()
    return movement


def adjust_stock(
    inventory_id: int,
    delta,
    movement_type: str = "adjustment",
    note: str | None = None,
    user_id: int | None = None,
    transaction_id: int | None = None,
    *,
    commit: bool = True,
) -> StockMovement:
    """
    Apply a signed delta to an item's stock and append its movement.

    commit=True: runs as its own locked, retried unit of work.
    commit=False: joins the caller's DB transaction (caller owns the lock
    scope, retry and commit).
    """
    _check_movement_type(movement_type)
    delta = Decimal(delta)
    if not delta.is_finite():
        raise ValidationError("delta must be a finite number")

    def _op():
        if commit:
            begin_write_transaction()
        item = _get_item(inventory_id, lock=True)
        movement = _apply_stock_delta(
            item,
            delta,
            movement_type,
            notes=note,
            user_id=user_id,
            transaction_id=transaction_id,
        )
        if commit:
            db.session.commit()
        return movement

    if commit:
        return run_with_retry(_op)
    return _op()


def set_stock(
    inventory_id: int,
    new_stock,
    movement_type: str = "adjustment",
    note: str | None = None,
    user_id: int | None = None,
) -> StockMovement:
    """
    Manual stock count: set an absolute level.

    The delta is computed under the row lock, so a sale committed between
    the count and this call is not overwritten.
    """
    _check_movement_type(movement_type)
    target = quantize_quantity(new_stock)

    def _op():
        begin_write_transaction()
        item = _get_item(inventory_id, lock=True)
        delta = target - quantize_quantity(item.stock or 0)
        movement = _apply_stock_delta(item, delta, movement_type, notes=note, user_id=user_id)
        db.session.commit()
        return movement

    return run_with_retry(_op)


def get_stock(inventory_id: int) -> Decimal:
    return quantize_quantity(_get_item(inventory_id).stock or 0)


def get_item(inventory_id: int) -> InventoryItem:
    return _get_item(inventory_id)


def list_items() -> list[InventoryItem]:
    return db.session.query(InventoryItem).order_by(InventoryItem.name.asc(), InventoryItem.id.asc()).all()


def list_low_stock() -> list[InventoryItem]:
    return (
        db.session.query(InventoryItem)
        .filter(InventoryItem.stock <= InventoryItem.min_stock)
        .order_by(InventoryItem.name.asc())
        .all()
    )


def list_movements(inventory_id: int | None = None, limit: int = 200) -> list[StockMovement]:
    """Newest first; unrestricted when inventory_id is None."""
    q = db.session.query(StockMovement)
    if inventory_id is not None:
        _get_item(inventory_id)
        q = q.filter(StockMovement.inventory_id == inventory_id)
    return q.order_by(StockMovement.created_at.desc(), StockMovement.id.desc()).limit(limit).all()


def movement_balance(inventory_id: int) -> Decimal:
    """SUM of all movement deltas for an item."""
    total = (
        db.session.query(func.coalesce(func.sum(StockMovement.quantity), 0))
        .filter(StockMovement.inventory_id == inventory_id)
        .scalar()
    )
    return quantize_quantity(total or 0)


def find_inconsistent_items() -> list[dict]:
    """Items whose stored stock differs from the sum of their movements."""
    problems = []
    for item in list_items():
        balance = movement_balance(item.id)
        stock = quantize_quantity(item.stock or 0)
        if balance != stock:
            problems.append({
                "inventory_id": item.id,
                "name": item.name,
                "stock": stock,
                "movement_balance": balance,
            })
    return problems


INVENTORY_MUTABLE_FIELDS = {"name", "unit", "min_stock", "cost"}


def create_item(patch: dict, user_id: int | None = None) -> InventoryItem:
    """
    Create an inventory item. Opening stock (patch["stock"]) is posted as an
    "in" movement so the ledger explains the level from the first row.
    """
    opening = quantize_quantity(patch.get("stock") or 0)

    def _op():
        begin_write_transaction()
        item = InventoryItem(stock=Decimal("0"))
        for k, v in patch.items():
            if k in INVENTORY_MUTABLE_FIELDS and v is not None:
                setattr(item, k, v)
        db.session.add(item)
        db.session.flush()
        if opening != 0:
            _apply_stock_delta(
                item,
                opening,
                "in" if opening > 0 else "adjustment",
                notes="Opening stock",
                user_id=user_id,
            )
        db.session.commit()
        return item

    return run_with_retry(_op)


def update_item(inventory_id: int, patch: dict) -> InventoryItem:
    if "stock" in patch:
        raise ValidationError("stock cannot be edited directly; use the stock update endpoint")

    def _op():
        item = _get_item(inventory_id, lock=True)
        for k, v in patch.items():
            if k in INVENTORY_MUTABLE_FIELDS:
                setattr(item, k, v)
        db.session.commit()
        return item

    return run_with_retry(_op)


def delete_item(inventory_id: int) -> None:
    item = _get_item(inventory_id)

    if db.session.query(RecipeEntry.id).filter_by(inventory_id=inventory_id).first():
        raise ConflictError("Inventory item is used by a product recipe")
    if db.session.query(StockMovement.id).filter_by(inventory_id=inventory_id).first():
        raise ConflictError("Inventory item has stock history and cannot be deleted")

    db.session.delete(item)
    db.session.commit()
