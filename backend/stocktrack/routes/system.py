# backend/stocktrack/routes/system.py
"""
System health endpoint.

Checks database connectivity and reports table counts for deployment
debugging.
"""

import time
from flask import Blueprint, current_app, jsonify
from ..extensions import db
from ..models import Unit, Sale, PendingUpdate
from stocktrack.time_utils import utcnow, to_utc_z

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    """
    Check database connectivity and basic operations.

    Returns dict with status and details.
    """
    start_time = time.time()
    try:
        unit_count = db.session.query(Unit).count()
        sale_count = db.session.query(Sale).count()
        pending_count = db.session.query(PendingUpdate).filter_by(decision="pending").count()

        elapsed_ms = (time.time() - start_time) * 1000

        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "units": unit_count,
                "sales": sale_count,
                "pending_updates": pending_count,
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


@system_bp.get("/health")
def health():
    database = check_database_health()
    healthy = database["status"] == "healthy"
    return jsonify({
        "status": "healthy" if healthy else "unhealthy",
        "time": to_utc_z(utcnow()),
        "database": database,
    }), 200 if healthy else 503
