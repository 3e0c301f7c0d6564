# Overview: Flask API routes for the cash ledger (cash flow); parses input and returns JSON responses.

"""
Cash flow routes.

Entries are append-only. Sales post their own income entries during the
commit; this endpoint records everything else (purchases, salaries,
other income).
"""

from flask import Blueprint, request, g

from ..models import CashLedgerEntry
from ..services import cash_ledger_service
from ..time_utils import parse_date_bound
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_cash_entry,
    ValidationError,
)
from ..decorators import require_auth


cash_flow_bp = Blueprint("cash_flow", __name__, url_prefix="/api/cash-flow")

CASH_ENTRY_POLICY = ModelValidationPolicy(
    writable_fields={"type", "category", "amount", "description", "reference_id"},
    required_on_create={"type", "category", "amount"},
)


@cash_flow_bp.get("")
@require_auth
def list_cash_flow_route():
    """
    List cash ledger entries, newest first.

    Query params:
    - type: income|expense
    - category: exact match
    - start_date / end_date: ISO-8601, inclusive (a bare end date covers the whole day)
    """
    try:
        start = parse_date_bound(request.args.get("start_date"))
        end = parse_date_bound(request.args.get("end_date"), end=True)
    except ValueError:
        return {"error": "start_date and end_date must be ISO-8601 dates"}, 400

    try:
        entries = cash_ledger_service.list_entries(
            type=request.args.get("type"),
            category=request.args.get("category"),
            start=start,
            end=end,
        )
    except ValidationError as e:
        return {"error": str(e)}, 400

    return {
        "items": [e.to_dict() for e in entries],
        "count": len(entries),
        "totals": {k: format(v, "f") for k, v in cash_ledger_service.totals(entries).items()},
    }


@cash_flow_bp.post("")
@require_auth
def create_cash_flow_route():
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(
            model=CashLedgerEntry,
            payload=payload,
            policy=CASH_ENTRY_POLICY,
            partial=False,
        )
        enforce_rules_cash_entry(patch)
        entry = cash_ledger_service.record(
            patch["type"],
            patch["category"],
            patch["amount"],
            description=patch.get("description"),
            reference_id=patch.get("reference_id"),
            user_id=g.current_user.id,
        )
    except ValidationError as e:
        return {"error": str(e)}, 400

    return entry.to_dict(), 201
