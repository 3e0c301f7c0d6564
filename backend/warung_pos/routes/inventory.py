# backend/warung_pos/routes/inventory.py
"""
Inventory item routes.

SECURITY: All routes require an identified staff member.
- Item create/update/delete require the admin role
- Manual stock updates are open to every role (stock counts, deliveries)

Stock is never written through the item endpoints. Every change goes
through POST /<id>/stock, which appends a stock movement.
"""
from flask import Blueprint, request, g

from ..models import InventoryItem
from ..services import inventory_service
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_inventory_item,
    parse_stock_update,
    ValidationError,
    ConflictError,
    NotFoundError,
)
from ..decorators import require_auth, require_role


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")

INVENTORY_CREATE_POLICY = ModelValidationPolicy(
    writable_fields={"name", "unit", "stock", "min_stock", "cost"},
    required_on_create={"name", "unit"},
)

INVENTORY_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields={"name", "unit", "min_stock", "cost"},
)


@inventory_bp.get("")
@require_auth
def list_inventory_route():
    items = inventory_service.list_items()
    return {"items": [i.to_dict() for i in items], "count": len(items)}


@inventory_bp.get("/low-stock")
@require_auth
def low_stock_route():
    """Items at or below their minimum stock."""
    items = inventory_service.list_low_stock()
    return {"items": [i.to_dict() for i in items], "count": len(items)}


@inventory_bp.get("/<int:inventory_id>")
@require_auth
def get_inventory_route(inventory_id: int):
    try:
        return inventory_service.get_item(inventory_id).to_dict()
    except NotFoundError as e:
        return {"error": str(e)}, 404


@inventory_bp.post("")
@require_auth
@require_role("admin")
def create_inventory_route():
    """
    Create an inventory item. An optional opening `stock` is recorded as an
    "in" movement.
    """
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(
            model=InventoryItem,
            payload=payload,
            policy=INVENTORY_CREATE_POLICY,
            partial=False,
        )
        enforce_rules_inventory_item(patch)
        item = inventory_service.create_item(patch, user_id=g.current_user.id)
    except ValidationError as e:
        return {"error": str(e)}, 400

    return item.to_dict(), 201


@inventory_bp.put("/<int:inventory_id>")
@require_auth
@require_role("admin")
def update_inventory_route(inventory_id: int):
    payload = request.get_json(silent=True) or {}

    if "stock" in payload:
        return {"error": "stock cannot be edited directly; use POST /api/inventory/<id>/stock"}, 400

    try:
        patch = validate_payload(
            model=InventoryItem,
            payload=payload,
            policy=INVENTORY_UPDATE_POLICY,
            partial=True,
        )
        enforce_rules_inventory_item(patch)
        item = inventory_service.update_item(inventory_id, patch)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404

    return item.to_dict(), 200


@inventory_bp.delete("/<int:inventory_id>")
@require_auth
@require_role("admin")
def delete_inventory_route(inventory_id: int):
    try:
        inventory_service.delete_item(inventory_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ConflictError as e:
        return {"error": str(e)}, 409

    return {"ok": True}, 200


@inventory_bp.post("/<int:inventory_id>/stock")
@require_auth
def update_stock_route(inventory_id: int):
    """
    Manual stock update.

    Body: exactly one of
    - new_stock: absolute level after a physical count
    - delta: signed change (delivery, waste)
    plus optional type (in|out|adjustment, default adjustment) and notes.
    """
    payload = request.get_json(silent=True) or {}

    try:
        update = parse_stock_update(payload)
        if update["new_stock"] is not None:
            movement = inventory_service.set_stock(
                inventory_id,
                update["new_stock"],
                update["type"],
                note=update["notes"],
                user_id=g.current_user.id,
            )
        else:
            movement = inventory_service.adjust_stock(
                inventory_id,
                update["delta"],
                update["type"],
                note=update["notes"],
                user_id=g.current_user.id,
            )
    except ValidationError as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404

    item = inventory_service.get_item(inventory_id)
    return {"item": item.to_dict(), "movement": movement.to_dict()}, 200
