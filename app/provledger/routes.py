from flask import Blueprint, current_app

bp = Blueprint("routes", __name__)


@bp.get("/")
def index():
    return {"service": "provledger", "ledger": "/ledger", "health": "/health"}


@bp.get("/health")
def health():
    """Health check endpoint. Returns JSON."""
    return {"ok": True, "schema_ok": bool(current_app.config.get("_schema_health_ok", True))}


@bp.get("/healthz")
def healthz():
    """
    Fast liveness check for k8s/DO. No DB access, minimal overhead.
    """
    return "ok", 200
