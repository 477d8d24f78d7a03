from collections.abc import Callable
from functools import wraps
from typing import Any

from flask import g, jsonify

from app.provledger.models import User


def current_identity() -> str | None:
    user: User | None = getattr(g, "current_user", None)
    if not user or not user.is_active:
        return None
    return user.identity


def require_login(fn: Callable[..., Any]) -> Callable[..., Any]:
    """Reject anonymous callers with 401; ledger permissions are checked by the ledger itself."""

    @wraps(fn)
    def wrapped(*args: Any, **kwargs: Any):
        if current_identity() is None:
            return jsonify({"error": "unauthenticated", "message": "Login required."}), 401
        return fn(*args, **kwargs)

    return wrapped
