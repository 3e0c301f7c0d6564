# backend/warung_pos/routes/system.py
"""
System health and version endpoints.

The print server is optional for selling: when it is down the service is
"degraded", not "unhealthy", because sales still commit.
"""

import time
from flask import Blueprint, current_app
from ..extensions import db, printer
from ..models import InventoryItem, Product, Transaction
from ..time_utils import utcnow

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    """
    Check database connectivity and basic operations.

    Returns dict with status and details.
    """
    start_time = time.time()
    try:
        product_count = db.session.query(Product).count()
        inventory_count = db.session.query(InventoryItem).count()
        transaction_count = db.session.query(Transaction).count()

        elapsed_ms = (time.time() - start_time) * 1000

        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "products": product_count,
                "inventory_items": inventory_count,
                "transactions": transaction_count,
            }
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error"
        }


def check_printer_health() -> dict:
    start_time = time.time()
    status = printer.status()
    elapsed_ms = (time.time() - start_time) * 1000

    if not status.get("connected"):
        return {
            "status": "degraded",
            "latency_ms": round(elapsed_ms, 2),
            "warning": "Receipt printer not reachable",
            "details": status,
        }

    return {
        "status": "healthy",
        "latency_ms": round(elapsed_ms, 2),
        "details": status,
    }


@system_bp.get("/health")
def health():
    """
    Health check endpoint.

    Returns:
    - 200: healthy, or degraded (printer down, sales still work)
    - 503: database unhealthy
    """
    start_time = time.time()

    database_health = check_database_health()
    printer_health = check_printer_health()

    all_checks = [database_health, printer_health]
    unhealthy_count = sum(1 for check in all_checks if check["status"] == "unhealthy")
    degraded_count = sum(1 for check in all_checks if check["status"] == "degraded")

    if unhealthy_count > 0:
        overall_status = "unhealthy"
        http_status = 503
    elif degraded_count > 0:
        overall_status = "degraded"
        http_status = 200  # Degraded is still operational
    else:
        overall_status = "healthy"
        http_status = 200

    total_elapsed_ms = (time.time() - start_time) * 1000

    response = {
        "status": overall_status,
        "timestamp": utcnow().isoformat() + "Z",
        "total_latency_ms": round(total_elapsed_ms, 2),
        "checks": {
            "database": database_health,
            "printer": printer_health,
        }
    }

    return response, http_status


@system_bp.get("/version")
def version():
    """
    Version endpoint for deployment debugging. Exposes no secrets or paths.
    """
    import sys

    env = "production" if not current_app.debug else "development"

    return {
        "api_version": "1.0.0",
        "environment": env,
        "python_version": sys.version.split()[0],
        "server_time": utcnow().isoformat() + "Z",
    }
