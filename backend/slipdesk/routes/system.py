# backend/slipdesk/routes/system.py
"""
System health endpoints.

Reports database reachability and latency for deployment debugging.
"""

import time
from flask import Blueprint, current_app
from sqlalchemy import text
from ..extensions import db
from ..time_utils import to_utc_z, utcnow

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    """
    Run SELECT 1 against the configured database.

    Returns dict with status and latency.
    """
    start_time = time.time()
    try:
        db.session.execute(text("SELECT 1"))
        elapsed_ms = (time.time() - start_time) * 1000
        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "dialect": db.engine.dialect.name,
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        db.session.rollback()
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error",
        }


def _health_response():
    start_time = time.time()
    database_health = check_database_health()
    healthy = database_health["status"] == "healthy"

    response = {
        "status": "healthy" if healthy else "unhealthy",
        "message": "Slipdesk API is running",
        "timestamp": to_utc_z(utcnow()),
        "total_latency_ms": round((time.time() - start_time) * 1000, 2),
        "checks": {"database": database_health},
    }
    return response, 200 if healthy else 503


@system_bp.get("/")
def index():
    return _health_response()


@system_bp.get("/api/health")
def health():
    """
    Health check endpoint.

    Returns:
    - 200: database reachable
    - 503: database check failed
    """
    return _health_response()
