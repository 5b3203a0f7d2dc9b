# backend/toursales/routes/system.py
"""
System health endpoint.

Reports database connectivity and the provider token cache state. The cached
token itself is never included.
"""

import time
from flask import Blueprint, current_app
from sqlalchemy import text

from ..extensions import db
from ..models import Sale
from toursales.time_utils import to_utc_z, utcnow

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    start_time = time.time()
    try:
        db.session.execute(text("SELECT 1"))
        sale_count = db.session.query(Sale).count()
        elapsed_ms = (time.time() - start_time) * 1000
        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {"sales": sale_count},
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error",
        }


def check_provider_token_health() -> dict:
    provider = current_app.extensions.get("tour_provider")
    if provider is None:
        return {"status": "unhealthy", "error": "Provider client not initialized"}
    # A cold or expired cache is normal: the next sale refreshes it
    return {"status": "healthy", "details": provider.token_cache.state()}


@system_bp.get("/health")
def health():
    """
    Returns:
    - 200: all checks healthy
    - 503: one or more checks unhealthy
    """
    start_time = time.time()

    database_health = check_database_health()
    token_health = check_provider_token_health()

    all_checks = [database_health, token_health]
    unhealthy = any(check["status"] == "unhealthy" for check in all_checks)

    response = {
        "status": "unhealthy" if unhealthy else "healthy",
        "environment": current_app.config.get("APP_ENV"),
        "timestamp": to_utc_z(utcnow()),
        "total_latency_ms": round((time.time() - start_time) * 1000, 2),
        "checks": {
            "database": database_health,
            "provider_token": token_health,
        },
    }
    return response, 503 if unhealthy else 200
