"""
Sale Commit Coordinator

Turns a cart + payment into a committed Transaction. One sale is one DB
transaction: header, items, recipe-driven stock deductions with their
movements, and the cash ledger entry either all land or none do.

Sequence (inside a single locked unit of work):
1. Resolve products and price each line (cart price, else catalog price).
2. Settle payment: total, change, insufficient cash rejected.
3. Insert Transaction (status "completed") with a unique number.
4. Insert one TransactionItem per cart line.
5. Lock every consumed InventoryItem (ascending id), then per
   (cart line x ingredient) deduct quantity_per_unit * quantity and
   append an "out" StockMovement tied to the transaction.
6. Append one income/"sales" cash ledger entry for the total.

Printing is NOT part of this unit. Callers hand the committed id to the
printing service afterwards.
"""

from __future__ import annotations

import secrets
from decimal import Decimal

from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from ..models import InventoryItem, Product, Transaction, TransactionItem, User
from ..money import quantize_money, quantize_quantity
from ..time_utils import utcnow, parse_date_bound
from ..validation import (
    CartLine,
    PaymentInfo,
    NotFoundError,
    ValidationError,
    MAX_AMOUNT,
    MAX_CART_QUANTITY,
    PAYMENT_METHODS,
)
from . import cash_ledger_service
from .concurrency import begin_write_transaction, lock_for_update, run_with_retry
from .inventory_service import _apply_stock_delta
from .recipe_service import get_ingredients_for


class CommitFailed(Exception):
    """Raised when a sale could not be committed. Nothing was written."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class CommitValidationError(CommitFailed, ValidationError):
    """Malformed cart or payment."""


class ProductNotFoundError(CommitFailed, NotFoundError):
    """A cart line references a product that does not exist."""


class IngredientNotFoundError(CommitFailed, NotFoundError):
    """A recipe references an inventory item that does not exist."""


class InsufficientPaymentError(CommitFailed):
    """Tendered amount is below the cart total."""


class DuplicateTransactionNumberError(CommitFailed):
    """Generated transaction number already exists."""


class PersistenceError(CommitFailed):
    """Underlying store failure while writing the sale."""


TRANSACTION_STATUSES = ("pending", "completed", "cancelled")


def generate_transaction_number() -> str:
    """Time-ordered token with a random suffix, e.g. TXN-20261018140509123-3F2A9C."""
    now = utcnow()
    return f"TXN-{now:%Y%m%d%H%M%S}{now.microsecond // 1000:03d}-{secrets.token_hex(3).upper()}"


def _validate_cart(lines: list[CartLine], payment: PaymentInfo) -> None:
    if not lines:
        raise CommitValidationError("Cart must contain at least one item")

    for i, line in enumerate(lines):
        if not isinstance(line.quantity, int) or isinstance(line.quantity, bool) or line.quantity <= 0:
            raise CommitValidationError(
                "Quantity must be a positive integer",
                details={"line": i, "product_id": line.product_id},
            )
        if line.quantity > MAX_CART_QUANTITY:
            raise CommitValidationError(
                f"Quantity cannot exceed {MAX_CART_QUANTITY}",
                details={"line": i, "product_id": line.product_id},
            )
        if line.unit_price is not None and not 0 <= Decimal(line.unit_price) <= MAX_AMOUNT:
            raise CommitValidationError(
                f"Unit price must be between 0 and {MAX_AMOUNT}",
                details={"line": i, "product_id": line.product_id},
            )

    if payment.method not in PAYMENT_METHODS:
        raise CommitValidationError(f"Payment method must be one of {', '.join(PAYMENT_METHODS)}")
    if payment.method == "cash" and payment.amount is None:
        raise CommitValidationError("Payment amount is required for cash payments")
    if payment.amount is not None and Decimal(payment.amount) < 0:
        raise CommitValidationError("Payment amount must be >= 0")

    # Fail fast when the cart carries its own prices: no DB round trip needed
    if all(line.unit_price is not None for line in lines):
        total = sum(
            (quantize_money(line.unit_price) * line.quantity for line in lines),
            Decimal("0"),
        )
        total = quantize_money(total)
        _check_total(total)
        _settle_payment(payment, total)


def _check_total(total: Decimal) -> None:
    """A sale posts a positive income entry, so its total must fit (0, MAX_AMOUNT]."""
    if total <= 0:
        raise CommitValidationError("Sale total must be greater than zero", details={"total_amount": str(total)})
    if total > MAX_AMOUNT:
        raise CommitValidationError(
            f"Sale total cannot exceed {MAX_AMOUNT}",
            details={"total_amount": str(total)},
        )


def _settle_payment(payment: PaymentInfo, total: Decimal) -> tuple[Decimal, Decimal]:
    """Return (payment_amount, change_amount) or raise."""
    if payment.method == "cash":
        tendered = quantize_money(payment.amount)
        if tendered < total:
            raise InsufficientPaymentError(
                "Cash tendered is less than the total",
                details={"total_amount": str(total), "payment_amount": str(tendered)},
            )
        return tendered, tendered - total

    if payment.amount is None:
        return total, Decimal("0.00")

    tendered = quantize_money(payment.amount)
    if tendered < total:
        raise InsufficientPaymentError(
            "Payment amount is less than the total",
            details={"total_amount": str(total), "payment_amount": str(tendered)},
        )
    if tendered > total:
        raise CommitValidationError(
            "Non-cash payment cannot exceed the total",
            details={"total_amount": str(total), "payment_amount": str(tendered)},
        )
    return tendered, Decimal("0.00")


def _resolve_products(lines: list[CartLine]) -> dict[int, Product]:
    product_ids = {line.product_id for line in lines}
    products = {
        p.id: p
        for p in db.session.query(Product).filter(Product.id.in_(product_ids)).all()
    }
    for line in lines:
        product = products.get(line.product_id)
        if product is None:
            raise ProductNotFoundError(
                f"Product {line.product_id} not found",
                details={"product_id": line.product_id},
            )
        if not product.is_active:
            raise CommitValidationError(
                f"Product {product.name} is not available",
                details={"product_id": product.id},
            )
    return products


def _lock_inventory(inventory_ids: set[int]) -> dict[int, InventoryItem]:
    """Lock consumed rows in ascending id order so concurrent sales cannot deadlock."""
    if not inventory_ids:
        return {}
    rows = lock_for_update(
        db.session.query(InventoryItem)
        .filter(InventoryItem.id.in_(inventory_ids))
        .order_by(InventoryItem.id.asc())
        .populate_existing()
    ).all()
    locked = {row.id: row for row in rows}
    missing = sorted(inventory_ids - set(locked))
    if missing:
        raise IngredientNotFoundError(
            f"Inventory item {missing[0]} not found",
            details={"inventory_id": missing[0]},
        )
    return locked


def _is_number_collision(exc: IntegrityError) -> bool:
    message = str(exc.orig) if exc.orig is not None else str(exc)
    return "transaction_number" in message or "uq_transactions_number" in message


def _commit_once(
    lines: list[CartLine],
    payment: PaymentInfo,
    cashier_id: int | None,
    transaction_number: str,
) -> Transaction:
    def _op():
        begin_write_transaction()

        if cashier_id is not None and db.session.get(User, cashier_id) is None:
            raise CommitValidationError("Unknown cashier", details={"user_id": cashier_id})

        products = _resolve_products(lines)

        priced = []
        for line in lines:
            unit_price = line.unit_price
            if unit_price is None:
                unit_price = products[line.product_id].price
            unit_price = quantize_money(unit_price)
            priced.append((line, unit_price, quantize_money(unit_price * line.quantity)))

        total_amount = quantize_money(sum((row[2] for row in priced), Decimal("0")))
        _check_total(total_amount)
        payment_amount, change_amount = _settle_payment(payment, total_amount)

        exists = db.session.query(Transaction.id).filter_by(transaction_number=transaction_number).first()
        if exists:
            raise DuplicateTransactionNumberError(
                "Transaction number already exists",
                details={"transaction_number": transaction_number},
            )

        txn = Transaction(
            transaction_number=transaction_number,
            user_id=cashier_id,
            total_amount=total_amount,
            payment_method=payment.method,
            payment_amount=payment_amount,
            change_amount=change_amount,
            status="completed",
            created_at=utcnow(),
        )
        db.session.add(txn)
        db.session.flush()

        for line, unit_price, total_price in priced:
            db.session.add(TransactionItem(
                transaction_id=txn.id,
                product_id=line.product_id,
                quantity=line.quantity,
                unit_price=unit_price,
                total_price=total_price,
            ))
        db.session.flush()

        consumption = [
            (line, get_ingredients_for(line.product_id))
            for line, _, _ in priced
        ]
        inventory = _lock_inventory({
            ingredient.inventory_id
            for _, ingredients in consumption
            for ingredient in ingredients
        })

        for line, ingredients in consumption:
            for ingredient in ingredients:
                used = quantize_quantity(ingredient.quantity_per_unit * line.quantity)
                _apply_stock_delta(
                    inventory[ingredient.inventory_id],
                    Decimal("0") - used,
                    "out",
                    notes=f"Sale: {transaction_number}",
                    user_id=cashier_id,
                    transaction_id=txn.id,
                )

        cash_ledger_service.record(
            "income",
            cash_ledger_service.SALES_CATEGORY,
            total_amount,
            description=f"Sale: {transaction_number}",
            reference_id=str(txn.id),
            user_id=cashier_id,
            commit=False,
        )

        db.session.commit()
        return txn

    try:
        return run_with_retry(_op)
    except CommitFailed:
        raise
    except ValidationError as exc:
        raise CommitValidationError(str(exc)) from exc
    except IntegrityError as exc:
        if _is_number_collision(exc):
            raise DuplicateTransactionNumberError(
                "Transaction number already exists",
                details={"transaction_number": transaction_number},
            ) from exc
        raise PersistenceError("Failed to persist sale", details={"reason": str(exc.orig)}) from exc
    except (OperationalError, StaleDataError) as exc:
        raise PersistenceError(
            "Sale could not be committed because inventory is busy; retry the sale",
            details={"reason": str(exc)},
        ) from exc
    except SQLAlchemyError as exc:
        raise PersistenceError("Failed to persist sale", details={"reason": str(exc)}) from exc


def commit_sale(
    lines: list[CartLine],
    payment: PaymentInfo,
    cashier_id: int | None = None,
    *,
    number_factory=generate_transaction_number,
    number_attempts: int = 3,
) -> Transaction:
    """
    Commit one sale atomically and return the Transaction.

    Raises a CommitFailed subclass on any failure; in that case no
    transaction, item, stock movement or cash ledger row was written.
    A transaction-number collision rolls back the attempt and retries with
    a fresh number, up to number_attempts times.
    """
    _validate_cart(lines, payment)

    last_exc: DuplicateTransactionNumberError | None = None
    for _ in range(max(1, number_attempts)):
        try:
            return _commit_once(lines, payment, cashier_id, number_factory())
        except DuplicateTransactionNumberError as exc:
            last_exc = exc
    raise last_exc


def get_transaction(transaction_id: int) -> Transaction:
    txn = db.session.get(Transaction, transaction_id)
    if txn is None:
        raise NotFoundError(f"Transaction {transaction_id} not found")
    return txn


def get_transaction_items(transaction_id: int) -> list[TransactionItem]:
    get_transaction(transaction_id)
    return (
        db.session.query(TransactionItem)
        .filter_by(transaction_id=transaction_id)
        .order_by(TransactionItem.id.asc())
        .all()
    )


def list_transactions(
    *,
    status: str | None = None,
    start_date: str | None = None,
    end_date: str | None = None,
    limit: int = 200,
) -> list[Transaction]:
    """Newest first."""
    if status is not None and status not in TRANSACTION_STATUSES:
        raise ValidationError(f"status must be one of {', '.join(TRANSACTION_STATUSES)}")
    try:
        start = parse_date_bound(start_date)
        end = parse_date_bound(end_date, end=True)
    except ValueError as exc:
        raise ValidationError("start_date and end_date must be ISO-8601 dates") from exc

    q = db.session.query(Transaction)
    if status is not None:
        q = q.filter(Transaction.status == status)
    if start is not None:
        q = q.filter(Transaction.created_at >= start)
    if end is not None:
        q = q.filter(Transaction.created_at <= end)
    return q.order_by(Transaction.created_at.desc(), Transaction.id.desc()).limit(limit).all()


def receipt_view(transaction_id: int) -> dict:
    """Everything a receipt needs, with product names resolved."""
    txn = get_transaction(transaction_id)
    items = get_transaction_items(transaction_id)
    cashier = txn.user.display_name if txn.user else (str(txn.user_id) if txn.user_id else "-")
    return {
        "transaction": txn,
        "cashier": cashier,
        "items": [
            {
                "name": item.product.name if item.product else f"Product {item.product_id}",
                "quantity": item.quantity,
                "unit_price": item.unit_price,
                "total_price": item.total_price,
            }
            for item in items
        ],
    }
