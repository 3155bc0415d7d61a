# backend/ledgerpos/routes/system.py
"""
System health and version endpoints.

Health covers the store and the in-process terminal sessions with their
autosave coordinators.
"""

import time
from flask import Blueprint, current_app
from ..extensions import db
from ..models import Account, DaySession, Product, Transaction
from ..models.transactions import STATUS_DRAFT
from ..services.terminal_service import terminals
from ledgerpos.time_utils import to_utc_z, utcnow

system_bp = Blueprint("system", __name__, url_prefix="/api")


def check_database_health() -> dict:
    """
    Check database connectivity and basic operations.

    Returns dict with status and details.
    """
    start_time = time.time()
    try:
        product_count = db.session.query(Product).count()
        account_count = db.session.query(Account).count()
        draft_count = db.session.query(Transaction).filter_by(status=STATUS_DRAFT).count()
        open_days = db.session.query(DaySession).filter_by(status="OPEN").count()

        elapsed_ms = (time.time() - start_time) * 1000

        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "products": product_count,
                "accounts": account_count,
                "drafts": draft_count,
                "open_day_sessions": open_days,
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


def check_autosave_health() -> dict:
    """
    Autosave is degraded when any terminal's last draft write failed.
    """
    statuses = terminals.autosave_statuses()
    failing = [tid for tid, status in statuses.items() if status["last_error"]]

    if failing:
        return {
            "status": "degraded",
            "warning": f"Autosave failing on: {', '.join(sorted(failing))}",
            "details": {"terminals": len(statuses)},
        }
    return {"status": "healthy", "details": {"terminals": len(statuses)}}


@system_bp.get("/health")
def health():
    """
    Health check endpoint.

    Returns:
    - 200: healthy or degraded
    - 503: database unreachable
    """
    start_time = time.time()

    database_health = check_database_health()
    autosave_health = check_autosave_health()

    all_checks = [database_health, autosave_health]
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
        "timestamp": to_utc_z(utcnow()),
        "total_latency_ms": round(total_elapsed_ms, 2),
        "checks": {
            "database": database_health,
            "autosave": autosave_health,
        }
    }

    return response, http_status


@system_bp.get("/version")
def version():
    """Non-sensitive deployment information."""
    import sys

    env = "production" if not current_app.debug else "development"

    return {
        "api_version": "1.0.0",
        "environment": env,
        "python_version": sys.version.split()[0],
        "server_time": to_utc_z(utcnow()),
    }
