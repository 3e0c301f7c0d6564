# Overview: Flask API routes for the menu catalog; parses input and returns JSON responses.

# backend/warung_pos/routes/products.py
"""
Product and category routes.

SECURITY: All routes require an identified staff member.
- Reads are open to every role
- Create/update/delete require the admin role

A product's recipe travels with it as `inventory_items`:
    [{"inventory_id": 1, "quantity": "0.1"}, ...]
Supplying the list replaces the whole recipe; omitting it leaves the
recipe untouched.
"""
from flask import Blueprint, request, current_app

from ..models import Category, Product
from ..services import products_service
from ..services.recipe_service import list_recipe_entries
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_product,
    enforce_rules_category,
    parse_recipe,
    ValidationError,
    ConflictError,
    NotFoundError,
)
from ..decorators import require_auth, require_role

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={"name", "category_id", "price", "description", "is_active"},
    required_on_create={"name", "price"},
)

CATEGORY_POLICY = ModelValidationPolicy(
    writable_fields={"name", "type"},
    required_on_create={"name", "type"},
)

products_bp = Blueprint("products", __name__, url_prefix="/api/products")
categories_bp = Blueprint("categories", __name__, url_prefix="/api")


def _split_recipe(payload: dict):
    """Pop inventory_items off the payload; None when absent."""
    payload = dict(payload)
    raw = payload.pop("inventory_items", None)
    recipe = parse_recipe(raw) if raw is not None else None
    return payload, recipe


@products_bp.get("")
@require_auth
def list_products_route():
    """
    List products.

    Query params:
    - category_id: int (optional)
    - active: "true" to hide deactivated products
    """
    category_id = request.args.get("category_id", type=int)
    active_only = request.args.get("active", "").lower() in {"1", "true", "yes"}

    products = products_service.list_products(category_id=category_id, active_only=active_only)
    return {"items": [p.to_dict() for p in products], "count": len(products)}


@products_bp.get("/<int:product_id>")
@require_auth
def get_product_route(product_id: int):
    try:
        product = products_service.get_product(product_id)
        return products_service.product_with_recipe(product)
    except NotFoundError as e:
        return {"error": str(e)}, 404


@products_bp.get("/<int:product_id>/inventory")
@require_auth
def product_inventory_route(product_id: int):
    """Recipe entries: what one unit of this product consumes."""
    try:
        entries = list_recipe_entries(product_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    return {"items": [e.to_dict() for e in entries], "count": len(entries)}


@products_bp.post("")
@require_auth
@require_role("admin")
def create_product_route():
    payload = request.get_json(silent=True) or {}

    try:
        payload, recipe = _split_recipe(payload)
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
        enforce_rules_product(patch)
        product = products_service.create_product(patch, recipe)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404

    return products_service.product_with_recipe(product), 201


@products_bp.put("/<int:product_id>")
@require_auth
@require_role("admin")
def update_product_route(product_id: int):
    payload = request.get_json(silent=True) or {}

    try:
        payload, recipe = _split_recipe(payload)
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=True)
        enforce_rules_product(patch)
        product = products_service.update_product(product_id, patch, recipe)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404

    return products_service.product_with_recipe(product), 200


@products_bp.delete("/<int:product_id>")
@require_auth
@require_role("admin")
def delete_product_route(product_id: int):
    try:
        products_service.delete_product(product_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ConflictError as e:
        return {"error": str(e)}, 409

    return {"ok": True}, 200


@categories_bp.get("/categories")
@require_auth
def list_categories_route():
    categories = products_service.list_categories()
    return {"items": [c.to_dict() for c in categories], "count": len(categories)}


@categories_bp.post("/categories")
@require_auth
@require_role("admin")
def create_category_route():
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Category, payload=payload, policy=CATEGORY_POLICY, partial=False)
        enforce_rules_category(patch)
        category = products_service.create_category(patch)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except ConflictError as e:
        return {"error": str(e)}, 409

    return category.to_dict(), 201


@categories_bp.post("/init-categories")
@require_auth
@require_role("admin")
def init_categories_route():
    try:
        categories = products_service.init_default_categories()
    except Exception:
        current_app.logger.exception("Failed to initialize default categories")
        return {"error": "Internal server error"}, 500
    return {"items": [c.to_dict() for c in categories], "count": len(categories)}
