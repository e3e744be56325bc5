# backend/posledger/routes/system.py
"""
System health endpoint.

Reports database connectivity plus the two bookkeeping checks an operator
cares about first: stock counters that break their invariant, and a trial
balance that does not net to zero.
"""

import time
from flask import Blueprint, current_app
from sqlalchemy import text

from ..extensions import db
from ..services.catalog_service import check_stock_invariants
from ..services.ledger_service import trial_balance
from ..time_utils import utcnow

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    """
    Check database connectivity and the stock/ledger consistency scans.

    Returns dict with status and details.
    """
    start_time = time.time()
    try:
        db.session.execute(text("SELECT 1"))
        violations = check_stock_invariants()
        totals = trial_balance()["totals"]
        elapsed_ms = (time.time() - start_time) * 1000

        degraded = bool(violations) or not totals["balanced"]
        return {
            "status": "degraded" if degraded else "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "stock_invariant_violations": len(violations),
                "ledger_difference_cents": totals["difference_cents"],
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
    """
    Returns:
    - 200: healthy, or degraded when stock counters or the books need attention
    - 503: database unreachable
    """
    database_health = check_database_health()
    http_status = 503 if database_health["status"] == "unhealthy" else 200

    return {
        "status": database_health["status"],
        "timestamp": utcnow().isoformat() + "Z",
        "checks": {
            "database": database_health,
        }
    }, http_status
