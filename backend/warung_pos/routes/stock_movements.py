# Overview: Read-only stock movement history.

from flask import Blueprint, request

from ..services import inventory_service
from ..validation import NotFoundError
from ..decorators import require_auth


stock_movements_bp = Blueprint("stock_movements", __name__, url_prefix="/api/stock-movements")


@stock_movements_bp.get("")
@require_auth
def list_stock_movements_route():
    """
    Stock movements, newest first.

    Query params:
    - inventory_id: int (optional) - restrict to one item
    - limit: int (optional, default 200, max 1000)
    """
    inventory_id = request.args.get("inventory_id", type=int)
    limit = max(1, min(request.args.get("limit", 200, type=int), 1000))

    try:
        movements = inventory_service.list_movements(inventory_id=inventory_id, limit=limit)
    except NotFoundError as e:
        return {"error": str(e)}, 404

    return {"items": [m.to_dict() for m in movements], "count": len(movements)}
