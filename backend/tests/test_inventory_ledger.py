"""
Inventory ledger tests: every stock change appends one movement and
stock always equals the sum of an item's movements.
"""

from decimal import Decimal

import pytest

from warung_pos.models import RecipeEntry, StockMovement
from warung_pos.services import inventory_service
from warung_pos.validation import ConflictError, NotFoundError, ValidationError


def test_opening_stock_is_an_in_movement(db_session, chicken):
    movements = inventory_service.list_movements(chicken.id)

    assert len(movements) == 1
    assert movements[0].type == "in"
    assert movements[0].quantity == Decimal("5")
    assert movements[0].previous_stock == Decimal("0")
    assert movements[0].notes == "Opening stock"


def test_item_created_without_stock_has_no_movement(db_session):
    item = inventory_service.create_item({"name": "Shrimp", "unit": "kg"})

    assert inventory_service.get_stock(item.id) == Decimal("0")
    assert inventory_service.list_movements(item.id) == []


def test_adjust_stock_appends_snapshot(db_session, chicken, cashier):
    movement = inventory_service.adjust_stock(chicken.id, Decimal("2.5"), "in", note="Delivery", user_id=cashier.id)

    assert movement.previous_stock == Decimal("5")
    assert movement.new_stock == Decimal("7.5")
    assert movement.user_id == cashier.id
    assert inventory_service.get_stock(chicken.id) == Decimal("7.5")


def test_set_stock_records_the_difference(db_session, chicken):
    movement = inventory_service.set_stock(chicken.id, Decimal("3.25"), note="Stock count")

    assert movement.type == "adjustment"
    assert movement.quantity == Decimal("-1.75")
    assert inventory_service.get_stock(chicken.id) == Decimal("3.25")


def test_stock_equals_movement_sum_after_mixed_changes(db_session, chicken):
    inventory_service.adjust_stock(chicken.id, Decimal("-0.3"), "out", note="Waste")
    inventory_service.adjust_stock(chicken.id, Decimal("1.2"), "in")
    inventory_service.set_stock(chicken.id, Decimal("4"))
    inventory_service.adjust_stock(chicken.id, Decimal("-6"), "out")

    assert inventory_service.get_stock(chicken.id) == Decimal("-2")
    assert inventory_service.movement_balance(chicken.id) == Decimal("-2")
    assert inventory_service.find_inconsistent_items() == []


def test_direct_stock_write_is_detected(db_session, chicken):
    chicken.stock = Decimal("9")
    db_session.commit()

    problems = inventory_service.find_inconsistent_items()
    assert [p["inventory_id"] for p in problems] == [chicken.id]
    assert problems[0]["movement_balance"] == Decimal("5")


def test_unknown_movement_type(db_session, chicken):
    with pytest.raises(ValidationError):
        inventory_service.adjust_stock(chicken.id, Decimal("1"), "theft")


def test_adjust_unknown_item(db_session):
    with pytest.raises(NotFoundError):
        inventory_service.adjust_stock(999999, Decimal("1"))


def test_update_rejects_stock(db_session, chicken):
    with pytest.raises(ValidationError):
        inventory_service.update_item(chicken.id, {"stock": Decimal("100")})


def test_update_fields(db_session, chicken):
    item = inventory_service.update_item(chicken.id, {"min_stock": Decimal("2"), "unit": "kilogram"})

    assert item.unit == "kilogram"
    assert item.min_stock == Decimal("2")
    assert inventory_service.get_stock(chicken.id) == Decimal("5")


def test_low_stock_listing(db_session, chicken):
    assert inventory_service.list_low_stock() == []

    inventory_service.set_stock(chicken.id, Decimal("1"))

    low = inventory_service.list_low_stock()
    assert [i.id for i in low] == [chicken.id]
    assert low[0].is_low_stock


def test_delete_blocked_by_history(db_session, chicken):
    with pytest.raises(ConflictError):
        inventory_service.delete_item(chicken.id)


def test_delete_blocked_by_recipe(db_session, dimsum_ayam):
    sauce = inventory_service.create_item({"name": "Chili Sauce", "unit": "liter"})
    db_session.add(RecipeEntry(product_id=dimsum_ayam.id, inventory_id=sauce.id, quantity=Decimal("0.02")))
    db_session.commit()

    with pytest.raises(ConflictError):
        inventory_service.delete_item(sauce.id)


def test_delete_unused_item(db_session):
    item = inventory_service.create_item({"name": "Napkins", "unit": "pcs"})

    inventory_service.delete_item(item.id)

    with pytest.raises(NotFoundError):
        inventory_service.get_item(item.id)


def test_movements_newest_first(db_session, chicken):
    inventory_service.adjust_stock(chicken.id, Decimal("1"), "in")
    inventory_service.adjust_stock(chicken.id, Decimal("-1"), "out")

    movements = inventory_service.list_movements(chicken.id)
    assert [m.type for m in movements] == ["out", "in", "in"]
    assert db_session.query(StockMovement).count() == 3
