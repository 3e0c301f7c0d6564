# Overview: Flask API routes for committing and reading sales; parses input and returns JSON responses.

# backend/warung_pos/routes/transactions.py
"""Transaction API routes"""

from flask import Blueprint, request, jsonify, g, current_app

from ..services import transaction_service
from ..services.printing_service import dispatch_receipt
from ..services.transaction_service import (
    CommitFailed,
    InsufficientPaymentError,
    DuplicateTransactionNumberError,
    PersistenceError,
)
from ..validation import parse_cart, ValidationError, NotFoundError
from ..decorators import require_auth


transactions_bp = Blueprint("transactions", __name__, url_prefix="/api/transactions")


def _commit_error_status(exc: CommitFailed) -> int:
    if isinstance(exc, ValidationError):
        return 400
    if isinstance(exc, NotFoundError):
        return 404
    if isinstance(exc, InsufficientPaymentError):
        return 400
    if isinstance(exc, DuplicateTransactionNumberError):
        return 409
    if isinstance(exc, PersistenceError):
        return 503
    return 500


@transactions_bp.post("")
@require_auth
def commit_transaction_route():
    """
    Commit a sale.

    Body:
        {"items": [{"product_id": 1, "quantity": 2, "unit_price": "50000"}],
         "payment": {"method": "cash", "amount": "150000"},
         "print_receipt": true}

    Returns 201 with the transaction and its items. Receipt printing (when
    requested or enabled by PRINT_ON_COMMIT) is queued after the commit and
    never changes the outcome.
    """
    payload = request.get_json(silent=True) or {}

    try:
        lines, payment = parse_cart(payload)
    except ValidationError as e:
        return jsonify({"error": str(e), "details": {}}), 400

    try:
        txn = transaction_service.commit_sale(lines, payment, cashier_id=g.current_user.id)
    except CommitFailed as e:
        status = _commit_error_status(e)
        if status >= 500:
            current_app.logger.warning("Sale commit failed: %s", e)
        return jsonify({"error": str(e), "details": e.details}), status
    except Exception:
        current_app.logger.exception("Failed to commit sale")
        return jsonify({"error": "Internal server error"}), 500

    print_status = None
    if current_app.config["PRINT_ON_COMMIT"] or payload.get("print_receipt") is True:
        try:
            dispatch_receipt(txn.id)
            print_status = "queued"
        except RuntimeError:
            # Pool already shut down; the receipt can be reprinted later
            current_app.logger.exception("Could not queue receipt for transaction %s", txn.id)
            print_status = "failed"

    items = transaction_service.get_transaction_items(txn.id)
    return jsonify({
        "transaction": txn.to_dict(),
        "items": [i.to_dict() for i in items],
        "print": print_status,
    }), 201


@transactions_bp.get("")
@require_auth
def list_transactions_route():
    """
    List transactions, newest first.

    Query params: status, start_date, end_date (ISO-8601, inclusive), limit.
    """
    limit = max(1, min(request.args.get("limit", 200, type=int), 1000))
    try:
        transactions = transaction_service.list_transactions(
            status=request.args.get("status"),
            start_date=request.args.get("start_date"),
            end_date=request.args.get("end_date"),
            limit=limit,
        )
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    return jsonify({"items": [t.to_dict() for t in transactions], "count": len(transactions)})


@transactions_bp.get("/<int:transaction_id>")
@require_auth
def get_transaction_route(transaction_id: int):
    try:
        txn = transaction_service.get_transaction(transaction_id)
        items = transaction_service.get_transaction_items(transaction_id)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404

    data = txn.to_dict()
    data["items"] = [i.to_dict() for i in items]
    return jsonify(data)


@transactions_bp.get("/<int:transaction_id>/items")
@require_auth
def get_transaction_items_route(transaction_id: int):
    """Line items with product names (receipt-ready)."""
    try:
        items = transaction_service.get_transaction_items(transaction_id)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404

    return jsonify({"items": [i.to_dict() for i in items], "count": len(items)})
