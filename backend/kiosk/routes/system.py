# backend/kiosk/routes/system.py
"""
Health endpoint for the kiosk backend.
"""

import time

from flask import Blueprint, current_app
from sqlalchemy import text

from ..extensions import db
from kiosk.time_utils import utcnow

system_bp = Blueprint("system", __name__, url_prefix="/api")


def check_database_health() -> dict:
    """
    Check database connectivity with a trivial round-trip.

    Returns dict with status and latency.
    """
    start_time = time.time()
    try:
        db.session.execute(text("SELECT 1"))
        db.session.rollback()
        return {
            "status": "healthy",
            "latency_ms": round((time.time() - start_time) * 1000, 2),
        }
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round((time.time() - start_time) * 1000, 2),
            "error": "Database error",
        }


@system_bp.get("/health")
def health():
    """
    Returns:
    - 200 {"ok": true, "db": true} when the database answers
    - 503 {"ok": false, "db": false} otherwise
    """
    database = check_database_health()
    db_ok = database["status"] == "healthy"

    response = {
        "ok": db_ok,
        "db": db_ok,
        "timestamp": utcnow().isoformat() + "Z",
        "checks": {"database": database},
    }
    return response, 200 if db_ok else 503
