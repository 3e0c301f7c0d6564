from __future__ import annotations
from datetime import datetime
from decimal import Decimal, InvalidOperation
from warung_pos.time_utils import parse_iso_datetime

from dataclasses import dataclass
from typing import Any

from sqlalchemy import Boolean, Integer, Numeric, String, Text, DateTime
from sqlalchemy.orm import DeclarativeMeta


# Maximum money value: Rp 9,999,999,999.99 fits NUMERIC(12, 2)
MAX_AMOUNT = Decimal("9999999999.99")
# Maximum stock / recipe quantity: fits NUMERIC(12, 3)
MAX_QUANTITY = Decimal("999999999.999")
# Maximum units of one product on a single cart line
MAX_CART_QUANTITY = 100000

PAYMENT_METHODS = ("cash", "card", "transfer")
MOVEMENT_TYPES = ("in", "out", "adjustment")
CASH_ENTRY_TYPES = ("income", "expense")
CATEGORY_TYPES = ("satuan", "paket", "topping")
USER_ROLES = ("admin", "employee")


class ValidationError(ValueError):
    """400-level input problem."""


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., deleting a referenced product)."""


class NotFoundError(LookupError):
    """404-level missing resource."""


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    """
    writable_fields: set[str]
    required_on_create: set[str] = None  # type: ignore


@dataclass(frozen=True)
class CartLine:
    product_id: int
    quantity: int
    unit_price: Decimal | None


@dataclass(frozen=True)
class PaymentInfo:
    method: str
    amount: Decimal | None


def parse_decimal(value: Any, field: str) -> Decimal:
    """Strict decimal parsing: no booleans, NaN or infinities."""
    if isinstance(value, bool) or value is None:
        raise ValidationError(f"{field} must be a number")
    if isinstance(value, Decimal):
        dec = value
    elif isinstance(value, (int, float, str)):
        try:
            dec = Decimal(str(value).strip())
        except InvalidOperation:
            raise ValidationError(f"{field} must be a number")
    else:
        raise ValidationError(f"{field} must be a number")
    if not dec.is_finite():
        raise ValidationError(f"{field} must be a finite number")
    return dec


def parse_int(value: Any, field: str) -> int:
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if stripped.lstrip("-").isdigit():
            return int(stripped)
    raise ValidationError(f"{field} must be an integer")


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    # Integers - strict validation to reject floats and scientific notation
    if isinstance(coltype, Integer):
        if isinstance(value, float):
            raise ValidationError(f"{col.key} must be an integer, not a decimal")
        return parse_int(value, col.key)

    # Decimals (money and stock quantities)
    if isinstance(coltype, Numeric):
        dec = parse_decimal(value, col.key)
        if coltype.scale is not None:
            exponent = dec.as_tuple().exponent
            if isinstance(exponent, int) and -exponent > coltype.scale:
                raise ValidationError(f"{col.key} allows at most {coltype.scale} decimal places")
        return dec

    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        raise ValidationError(f"{col.key} must be true or false")

    # Datetimes (accept ISO-8601 strings; normalize to UTC)
    if isinstance(coltype, DateTime):
        if isinstance(value, datetime):
            return value
        if isinstance(value, str):
            try:
                dt = parse_iso_datetime(value)
            except ValueError:
                raise ValidationError(f"{col.key} must be an ISO-8601 datetime")
            if dt is None:
                raise ValidationError(f"{col.key} must be an ISO-8601 datetime")
            return dt
        raise ValidationError(f"{col.key} must be a datetime")

    if isinstance(coltype, (String, Text)):
        return str(value).strip()

    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields)
    - required_on_create (if partial=False)
    Returns a cleaned patch dict with only writable fields.

    partial=False: create semantics (enforce required_on_create)
    partial=True: patch semantics (validate only provided keys)
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    required = policy.required_on_create or set()
    if not partial:
        missing = sorted(f for f in required if f not in payload)
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    cols = _columns_by_key(model)

    for k in payload.keys():
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}")
        if k not in cols:
            raise ValidationError(f"Unknown field: {k}")

    patch: dict = {}

    for k, raw in payload.items():
        col = cols[k]

        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{k} cannot be null")
            patch[k] = None
            continue

        val = _coerce_value(col, raw)

        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                raise ValidationError(f"{k} cannot be blank")

        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}")

        patch[k] = val

    return patch


def enforce_rules_product(patch: dict) -> None:
    if "price" in patch and patch["price"] is not None:
        price = patch["price"]
        if price < 0:
            raise ValidationError("price must be >= 0")
        if price > MAX_AMOUNT:
            raise ValidationError(f"price cannot exceed {MAX_AMOUNT}")


def enforce_rules_category(patch: dict) -> None:
    if "type" in patch and patch["type"] not in CATEGORY_TYPES:
        raise ValidationError(f"type must be one of {', '.join(CATEGORY_TYPES)}")


def enforce_rules_inventory_item(patch: dict) -> None:
    for field in ("min_stock", "cost"):
        if field in patch and patch[field] is not None and patch[field] < 0:
            raise ValidationError(f"{field} must be >= 0")
    if "stock" in patch and patch["stock"] is not None and abs(patch["stock"]) > MAX_QUANTITY:
        raise ValidationError(f"stock cannot exceed {MAX_QUANTITY}")


def parse_recipe(raw: Any) -> list[tuple[int, Decimal]]:
    """
    Parse a product's recipe list: [{"inventory_id": 1, "quantity": "0.1"}, ...].

    Quantities are per unit sold and must be non-negative. Duplicate
    ingredients are rejected rather than merged.
    """
    if not isinstance(raw, list):
        raise ValidationError("inventory_items must be a list")

    entries: list[tuple[int, Decimal]] = []
    seen: set[int] = set()
    for i, item in enumerate(raw):
        if not isinstance(item, dict):
            raise ValidationError(f"inventory_items[{i}] must be an object")
        if "inventory_id" not in item or "quantity" not in item:
            raise ValidationError(f"inventory_items[{i}] requires inventory_id and quantity")
        inventory_id = parse_int(item["inventory_id"], f"inventory_items[{i}].inventory_id")
        quantity = parse_decimal(item["quantity"], f"inventory_items[{i}].quantity")
        if quantity < 0:
            raise ValidationError(f"inventory_items[{i}].quantity must be >= 0")
        if quantity > MAX_QUANTITY:
            raise ValidationError(f"inventory_items[{i}].quantity cannot exceed {MAX_QUANTITY}")
        if inventory_id in seen:
            raise ValidationError(f"inventory_items lists inventory {inventory_id} more than once")
        seen.add(inventory_id)
        entries.append((inventory_id, quantity))
    return entries


def parse_stock_update(payload: dict) -> dict:
    """
    Manual stock update: exactly one of new_stock (absolute) or delta (signed).
    """
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    has_new = payload.get("new_stock") is not None
    has_delta = payload.get("delta") is not None
    if has_new == has_delta:
        raise ValidationError("Provide exactly one of new_stock or delta")

    movement_type = payload.get("type") or "adjustment"
    if movement_type not in MOVEMENT_TYPES:
        raise ValidationError(f"type must be one of {', '.join(MOVEMENT_TYPES)}")

    notes = payload.get("notes")
    if notes is not None:
        notes = str(notes).strip() or None

    result = {"type": movement_type, "notes": notes, "new_stock": None, "delta": None}
    if has_new:
        result["new_stock"] = parse_decimal(payload["new_stock"], "new_stock")
        if abs(result["new_stock"]) > MAX_QUANTITY:
            raise ValidationError(f"new_stock cannot exceed {MAX_QUANTITY}")
    else:
        result["delta"] = parse_decimal(payload["delta"], "delta")
        if result["delta"] == 0:
            raise ValidationError("delta must be non-zero")
    return result


def enforce_rules_cash_entry(patch: dict) -> None:
    if "type" in patch and patch["type"] not in CASH_ENTRY_TYPES:
        raise ValidationError(f"type must be one of {', '.join(CASH_ENTRY_TYPES)}")
    if "amount" in patch:
        if patch["amount"] is None or patch["amount"] <= 0:
            raise ValidationError("amount must be > 0")
        if patch["amount"] > MAX_AMOUNT:
            raise ValidationError(f"amount cannot exceed {MAX_AMOUNT}")


def parse_cart(payload: dict) -> tuple[list[CartLine], PaymentInfo]:
    """
    Parse a commit-sale request.

    Shape:
        {"items": [{"product_id": 1, "quantity": 2, "unit_price": "50000"}],
         "payment": {"method": "cash", "amount": "150000"}}

    Flat "payment_method"/"payment_amount" keys are accepted as well.
    unit_price may be omitted; the catalog price is used at commit time.
    """
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    raw_items = payload.get("items")
    if not isinstance(raw_items, list) or not raw_items:
        raise ValidationError("Cart must contain at least one item")

    lines: list[CartLine] = []
    for i, raw in enumerate(raw_items):
        if not isinstance(raw, dict):
            raise ValidationError(f"items[{i}] must be an object")
        if "product_id" not in raw or "quantity" not in raw:
            raise ValidationError(f"items[{i}] requires product_id and quantity")
        if isinstance(raw["quantity"], float):
            raise ValidationError(f"items[{i}].quantity must be a whole number")
        quantity = parse_int(raw["quantity"], f"items[{i}].quantity")
        if quantity <= 0:
            raise ValidationError(f"items[{i}].quantity must be > 0")
        if quantity > MAX_CART_QUANTITY:
            raise ValidationError(f"items[{i}].quantity cannot exceed {MAX_CART_QUANTITY}")
        unit_price = None
        if raw.get("unit_price") is not None:
            unit_price = parse_decimal(raw["unit_price"], f"items[{i}].unit_price")
            if unit_price < 0:
                raise ValidationError(f"items[{i}].unit_price must be >= 0")
            if unit_price > MAX_AMOUNT:
                raise ValidationError(f"items[{i}].unit_price cannot exceed {MAX_AMOUNT}")
        lines.append(CartLine(
            product_id=parse_int(raw["product_id"], f"items[{i}].product_id"),
            quantity=quantity,
            unit_price=unit_price,
        ))

    raw_payment = payload.get("payment")
    if raw_payment is None:
        raw_payment = {
            "method": payload.get("payment_method"),
            "amount": payload.get("payment_amount"),
        }
    if not isinstance(raw_payment, dict):
        raise ValidationError("payment must be an object")

    method = raw_payment.get("method")
    if method not in PAYMENT_METHODS:
        raise ValidationError(f"payment method must be one of {', '.join(PAYMENT_METHODS)}")

    amount = None
    if raw_payment.get("amount") is not None:
        amount = parse_decimal(raw_payment["amount"], "payment amount")
        if amount < 0:
            raise ValidationError("payment amount must be >= 0")
        if amount > MAX_AMOUNT:
            raise ValidationError(f"payment amount cannot exceed {MAX_AMOUNT}")
    elif method == "cash":
        raise ValidationError("payment amount is required for cash payments")

    return lines, PaymentInfo(method=method, amount=amount)
