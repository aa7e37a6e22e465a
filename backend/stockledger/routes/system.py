# backend/stockledger/routes/system.py
"""
System health endpoint.

Reports database connectivity and whether the ledger tables are provisioned.
"""

import time

from flask import Blueprint, current_app
from sqlalchemy import text

from ..extensions import db
from ..models import LEDGER_TABLES
from ..services import movement_store
from stockledger.time_utils import utcnow

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    start_time = time.time()
    try:
        db.session.execute(text("SELECT 1"))
        elapsed_ms = (time.time() - start_time) * 1000
        return {"status": "healthy", "latency_ms": round(elapsed_ms, 2)}
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error",
        }


def check_ledger_tables() -> dict:
    """
    Missing ledger tables degrade the service (reads come back empty,
    writes are dropped) but do not take it down.
    """
    try:
        missing = [t.name for t in LEDGER_TABLES if not movement_store.table_exists(t)]
    except Exception:
        current_app.logger.exception("Ledger table check failed")
        return {"status": "unhealthy", "error": "Ledger table check failed"}

    if missing:
        return {
            "status": "degraded",
            "warning": "Ledger tables missing; run `flask ledger install`",
            "details": {"missing_tables": missing},
        }
    return {"status": "healthy"}


@system_bp.get("/health")
def health():
    """
    Returns:
    - 200: healthy or degraded
    - 503: database unreachable
    """
    start_time = time.time()

    database_health = check_database_health()
    ledger_health = (
        check_ledger_tables()
        if database_health["status"] == "healthy"
        else {"status": "unhealthy", "error": "Database unavailable"}
    )

    all_checks = [database_health, ledger_health]
    if any(check["status"] == "unhealthy" for check in all_checks):
        overall_status = "unhealthy"
        http_status = 503
    elif any(check["status"] == "degraded" for check in all_checks):
        overall_status = "degraded"
        http_status = 200  # Degraded is still operational
    else:
        overall_status = "healthy"
        http_status = 200

    response = {
        "status": overall_status,
        "timestamp": utcnow().isoformat() + "Z",
        "total_latency_ms": round((time.time() - start_time) * 1000, 2),
        "checks": {
            "database": database_health,
            "ledger": ledger_health,
        },
    }
    return response, http_status
