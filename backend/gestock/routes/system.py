# backend/gestock/routes/system.py
"""
System health endpoint.

Pings the database and checks that the stock registry is seeded, for
deployment debugging and load balancer probes.
"""

import time

from flask import Blueprint, current_app
from sqlalchemy import text

from ..extensions import db
from ..models import Stock
from ..services.stock_service import STOCKS
from ..time_utils import to_utc_z, utcnow

system_bp = Blueprint("system", __name__, url_prefix="/api")


def check_database_health() -> dict:
    """
    Check database connectivity and that every stock row exists.

    Returns dict with status and details.
    """
    start_time = time.time()
    try:
        db.session.execute(text("SELECT 1"))
        seeded = db.session.query(Stock).count()
        elapsed_ms = (time.time() - start_time) * 1000

        details = {"stocks": seeded}
        if seeded < len(STOCKS):
            return {
                "status": "degraded",
                "latency_ms": round(elapsed_ms, 2),
                "warning": "Stock registry not seeded; run flask system init",
                "details": details,
            }
        return {"status": "healthy", "latency_ms": round(elapsed_ms, 2), "details": details}
    except Exception:
        db.session.rollback()
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error",
        }


@system_bp.get("/health")
def health():
    """
    Returns:
    - 200 {"status": "ok"} when the database answers (even if degraded)
    - 503 {"status": "unhealthy"} otherwise
    """
    database_health = check_database_health()
    healthy = database_health["status"] != "unhealthy"

    return {
        "status": "ok" if healthy else "unhealthy",
        "timestamp": to_utc_z(utcnow()),
        "checks": {"database": database_health},
    }, (200 if healthy else 503)
