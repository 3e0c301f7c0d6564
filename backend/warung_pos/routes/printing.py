# Overview: Receipt printing routes; printing never alters a committed sale.

from flask import Blueprint, request, current_app

from ..extensions import printer
from ..services.printing_service import print_receipt, PrintError
from ..validation import parse_int, ValidationError, NotFoundError
from ..decorators import require_auth


printing_bp = Blueprint("printing", __name__, url_prefix="/api")


@printing_bp.post("/print-receipt")
@require_auth
def print_receipt_route():
    """
    Print (or reprint) a committed transaction's receipt synchronously.

    Body: {"transaction_id": 12}
    Returns {success, message}; a device failure is a 502 with success=false.
    """
    payload = request.get_json(silent=True) or {}

    try:
        if payload.get("transaction_id") is None:
            raise ValidationError("transaction_id is required")
        transaction_id = parse_int(payload["transaction_id"], "transaction_id")
        result = print_receipt(transaction_id)
    except ValidationError as e:
        return {"success": False, "message": str(e)}, 400
    except NotFoundError as e:
        return {"success": False, "message": str(e)}, 404
    except PrintError as e:
        current_app.logger.warning("Receipt print failed for transaction %s: %s", payload.get("transaction_id"), e)
        return {"success": False, "message": str(e), "details": e.details}, 502

    return result.to_dict(), 200


@printing_bp.get("/printer-status")
@require_auth
def printer_status_route():
    return printer.status()
