# backend/wholesale/routes/system.py
"""
System health and audit endpoints.

/api/health reports database reachability with per-table row counts so a
deploy can be smoke-tested without touching business data.
"""

import time
from flask import Blueprint, current_app, jsonify, request

from ..extensions import db
from ..models import Store, Product, Order, Invoice
from ..services.ledger_service import list_ledger_events
from ..time_utils import utcnow, to_utc_z
from .common import int_arg

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    """
    Check database connectivity with a few cheap counts.

    Returns dict with status and details.
    """
    start_time = time.time()
    try:
        details = {
            "stores": db.session.query(Store).count(),
            "products": db.session.query(Product).count(),
            "orders": db.session.query(Order).count(),
            "invoices": db.session.query(Invoice).count(),
        }
        elapsed_ms = (time.time() - start_time) * 1000
        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": details,
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error",
        }


@system_bp.get("/api/health")
def health():
    database = check_database_health()
    healthy = database["status"] == "healthy"
    body = {
        "status": "healthy" if healthy else "unhealthy",
        "timestamp": to_utc_z(utcnow()),
        "checks": {"database": database},
    }
    return jsonify(body), (200 if healthy else 503)


@system_bp.get("/api/ledger")
def ledger_events():
    """Audit ledger, newest first. Filters: store_id, order_id, category, limit."""
    events = list_ledger_events(
        store_id=int_arg("store_id"),
        order_id=int_arg("order_id"),
        event_category=request.args.get("category") or None,
        limit=min(int_arg("limit") or 200, 1000),
    )
    return jsonify({"events": [e.to_dict() for e in events]}), 200
