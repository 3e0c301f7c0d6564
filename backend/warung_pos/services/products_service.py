# backend/warung_pos/services/products_service.py
"""
Menu catalog service: categories, products and their recipes.

Product price edits never touch history: a committed TransactionItem keeps
its own copy of the unit price. Products that appear on any transaction
cannot be deleted; deactivate them instead (is_active=False).
"""
from __future__ import annotations

from decimal import Decimal

from ..extensions import db
from ..models import Category, Product, RecipeEntry, TransactionItem
from ..validation import ConflictError, NotFoundError, ValidationError
from .concurrency import run_with_retry
from .recipe_service import list_recipe_entries, replace_recipe

PRODUCT_MUTABLE_FIELDS = {"name", "category_id", "price", "description", "is_active"}

DEFAULT_CATEGORIES = (
    ("Satuan", "satuan"),
    ("Paket", "paket"),
    ("Topping", "topping"),
)


def apply_product_patch(p: Product, patch: dict) -> None:
    for k, v in patch.items():
        if k not in PRODUCT_MUTABLE_FIELDS:
            continue
        setattr(p, k, v)


def _require_category(category_id: int | None) -> None:
    if category_id is None:
        return
    if db.session.get(Category, category_id) is None:
        raise NotFoundError(f"Category {category_id} not found")


def list_categories() -> list[Category]:
    return db.session.query(Category).order_by(Category.name.asc()).all()


def create_category(patch: dict) -> Category:
    name = patch.get("name")
    existing = db.session.query(Category).filter_by(name=name).first()
    if existing:
        raise ConflictError(f"Category {name} already exists")

    category = Category(name=name, type=patch.get("type"))
    db.session.add(category)
    db.session.commit()
    return category


def init_default_categories() -> list[Category]:
    """Create satuan/paket/topping if missing. Safe to call repeatedly."""
    existing = {c.name for c in db.session.query(Category).all()}
    for name, category_type in DEFAULT_CATEGORIES:
        if name not in existing:
            db.session.add(Category(name=name, type=category_type))
    db.session.commit()
    return list_categories()


def list_products(*, category_id: int | None = None, active_only: bool = False) -> list[Product]:
    q = db.session.query(Product)
    if category_id is not None:
        q = q.filter(Product.category_id == category_id)
    if active_only:
        q = q.filter(Product.is_active.is_(True))
    return q.order_by(Product.name.asc(), Product.id.asc()).all()


def get_product(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if product is None:
        raise NotFoundError(f"Product {product_id} not found")
    return product


def product_with_recipe(product: Product) -> dict:
    data = product.to_dict()
    data["inventory_items"] = [entry.to_dict() for entry in list_recipe_entries(product.id)]
    return data


def create_product(patch: dict, recipe: list[tuple[int, Decimal]] | None = None) -> Product:
    """
    Create a product and (optionally) its recipe in one commit.
    """
    if patch.get("price") is None:
        raise ValidationError("price is required")
    _require_category(patch.get("category_id"))

    def _op():
        product = Product()
        apply_product_patch(product, patch)
        db.session.add(product)
        db.session.flush()
        if recipe is not None:
            replace_recipe(product.id, recipe)
        db.session.commit()
        return product

    return run_with_retry(_op)


def update_product(
    product_id: int,
    patch: dict,
    recipe: list[tuple[int, Decimal]] | None = None,
) -> Product:
    """
    Patch a product. When `recipe` is given it replaces the whole recipe in
    the same commit; None leaves the recipe untouched.
    """
    if "category_id" in patch:
        _require_category(patch["category_id"])

    def _op():
        product = get_product(product_id)
        apply_product_patch(product, patch)
        if recipe is not None:
            replace_recipe(product.id, recipe)
        db.session.commit()
        return product

    return run_with_retry(_op)


def delete_product(product_id: int) -> None:
    product = get_product(product_id)

    if db.session.query(TransactionItem.id).filter_by(product_id=product_id).first():
        raise ConflictError("Product has sales history; deactivate it instead")

    db.session.query(RecipeEntry).filter_by(product_id=product_id).delete(synchronize_session="fetch")
    db.session.delete(product)
    db.session.commit()
