import logging
from datetime import timedelta

from flask import Flask, g, jsonify, request, session
from dotenv import load_dotenv
from sqlalchemy import inspect as sa_inspect

from app.provledger.config import load_config
from app.provledger.db import init_db, teardown_db_session
from app.provledger.errors import LedgerError
from app.provledger.routes import bp as routes_bp
from app.provledger.auth import bp as auth_bp, load_current_user
from app.provledger.modules.ledger.admin import bp as ledger_bp

REQUIRED_TABLES = (
    "users",
    "audit_events",
    "ledger_state",
    "authorized_identities",
    "products",
    "product_locations",
    "product_handlers",
    "product_access",
)


def create_app() -> Flask:
    load_dotenv()
    app = Flask(__name__)
    app.config.from_mapping(load_config())
    app.config["PERMANENT_SESSION_LIFETIME"] = timedelta(hours=8)
    app.config["SESSION_REFRESH_EACH_REQUEST"] = True

    from app.provledger.security import ensure_csrf_token, validate_csrf

    @app.before_request
    def _csrf_guard():
        if request.path.startswith(("/health", "/healthz")):
            return None
        ensure_csrf_token()
        session.permanent = True
        if request.method in ("POST", "PUT", "PATCH", "DELETE"):
            # Login/logout establish the session, so they cannot carry a token yet.
            if (request.endpoint or "").startswith("auth."):
                return None
            if not validate_csrf(request):
                return jsonify({"error": "csrf_failed", "message": "CSRF token missing or invalid."}), 400

    # Production guardrails (fail fast with clear logs)
    env = (app.config.get("ENV") or "").strip().lower()
    if env in ("prod", "production"):
        if not app.config.get("DATABASE_URL") or str(app.config["DATABASE_URL"]).strip() == "":
            raise RuntimeError("DATABASE_URL is required in production.")
        if str(app.config["DATABASE_URL"]).startswith("sqlite"):
            raise RuntimeError("DATABASE_URL must be Postgres in production (not sqlite).")
        if not app.config.get("SECRET_KEY") or str(app.config["SECRET_KEY"]) in ("", "change-me"):
            raise RuntimeError("SECRET_KEY must be set to a strong value in production (not default).")

    init_db(app)

    def _dispose_engine_on_fork() -> None:
        import os
        if hasattr(os, "register_at_fork"):
            def _after_fork_child():
                engine = app.extensions.get("sqlalchemy_engine")
                if engine:
                    engine.dispose()
                    app.logger.info("Disposed DB engine after fork (pid=%s)", os.getpid())

            os.register_at_fork(after_in_child=_after_fork_child)

    _dispose_engine_on_fork()

    app.register_blueprint(routes_bp)
    app.register_blueprint(auth_bp, url_prefix="/auth")
    app.register_blueprint(ledger_bp, url_prefix="/ledger")

    def _load_user_wrapper():
        if request.path.startswith(("/health", "/healthz")):
            g.current_user = None
            return None
        return load_current_user()

    app.before_request(_load_user_wrapper)
    app.teardown_appcontext(teardown_db_session)

    # Migration health (lean): checked on the first request so tests/scripts can create tables after boot.
    app.config.setdefault("_schema_health_checked", False)
    app.config.setdefault("_schema_health_ok", True)
    app.config.setdefault("_schema_health_missing", [])

    def _run_schema_health_check() -> None:
        missing: list[str] = []
        try:
            engine = app.extensions.get("sqlalchemy_engine")
            if engine is None:
                raise RuntimeError("sqlalchemy_engine not initialized")
            insp = sa_inspect(engine)
            missing = [f"{t} (table)" for t in REQUIRED_TABLES if not insp.has_table(t)]
        except Exception as e:
            app.logger.exception("Schema health check failed: %s", e)

        if missing:
            app.config["_schema_health_missing"] = missing
            app.logger.error("DB schema out of date; run `alembic upgrade head`. Missing: %s", ", ".join(missing))
        app.config["_schema_health_ok"] = not missing
        app.config["_schema_health_checked"] = True

    @app.before_request
    def _schema_health_guardrail():  # type: ignore[no-redef]
        if not app.config.get("_schema_health_checked"):
            _run_schema_health_check()
        if app.config.get("_schema_health_ok"):
            return None
        if request.path.startswith("/ledger"):
            return jsonify({"error": "schema_out_of_date", "missing": app.config.get("_schema_health_missing") or []}), 500
        return None

    @app.errorhandler(LedgerError)
    def _err_ledger(e: LedgerError):  # type: ignore[no-redef]
        app.logger.warning(
            "Ledger rejected %s %s: %s (request_id=%s)", request.method, request.path, e.code, getattr(g, "request_id", None)
        )
        return jsonify(e.to_dict()), e.status_code

    @app.errorhandler(404)
    def _err_404(e):  # type: ignore[no-redef]
        return jsonify({"error": "not_found", "message": "Resource not found."}), 404

    @app.errorhandler(405)
    def _err_405(e):  # type: ignore[no-redef]
        return jsonify({"error": "method_not_allowed", "message": "Method not allowed."}), 405

    @app.errorhandler(413)
    def _err_413(e):  # type: ignore[no-redef]
        return jsonify({"error": "payload_too_large", "message": "Request body too large."}), 413

    @app.errorhandler(500)
    def _err_500(e):  # type: ignore[no-redef]
        app.logger.exception("Unhandled 500 (request_id=%s)", getattr(g, "request_id", None))
        return jsonify({"error": "internal_error", "message": "Internal server error."}), 500

    logging.getLogger(__name__).info("create_app() complete; app ready to serve")

    return app
