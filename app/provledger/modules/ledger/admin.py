from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request
from sqlalchemy.orm import Session

from app.provledger.constants import MAX_PRODUCT_ID
from app.provledger.db import db_session, request_transaction
from app.provledger.errors import Unauthorized
from app.provledger.modules.ledger.service import (
    Ledger,
    event_to_dict,
    normalize_identity,
    open_ledger,
    product_details,
    product_summary,
)
from app.provledger.notifications import notifier_from_config
from app.provledger.rbac import current_identity, require_login

bp = Blueprint("ledger", __name__)


def _ledger(s: Session | None = None) -> Ledger:
    s = s or db_session()
    return open_ledger(s, notifier=notifier_from_config(current_app.config, s))


def _caller() -> str:
    ident = current_identity()
    if not ident:
        raise Unauthorized("Login required.")
    return ident


def _payload() -> dict:
    if request.is_json:
        data = request.get_json(silent=True)
        return data if isinstance(data, dict) else {}
    return request.form.to_dict()


def _parse_product_id(raw: str) -> int | None:
    if not (raw.isascii() and raw.isdigit()):
        return None
    value = int(raw)
    return value if value <= MAX_PRODUCT_ID else None


# ---------- Products ----------
@bp.post("/products")
@require_login
def products_register():
    data = _payload()
    with request_transaction() as s:
        product = _ledger(s).register(
            name=data.get("name"),
            description=data.get("description"),
            initial_location=data.get("initial_location", data.get("location")),
            caller=_caller(),
        )
    return jsonify(product_details(product)), 201


@bp.get("/products")
@require_login
def products_list():
    ledger = _ledger()
    products = ledger.list_products(caller=_caller())
    return jsonify({"products": [product_summary(p) for p in products], "total": ledger.total_count()})


@bp.get("/products/<int:product_id>")
@require_login
def product_detail(product_id: int):
    product = _ledger().get_details(product_id, caller=_caller())
    return jsonify(product_details(product))


@bp.post("/products/<int:product_id>/journey")
@require_login
def product_journey(product_id: int):
    data = _payload()
    with request_transaction() as s:
        product = _ledger(s).append_journey(
            product_id,
            location=data.get("location"),
            status=data.get("status"),
            caller=_caller(),
        )
    return jsonify(product_details(product))


@bp.post("/products/<int:product_id>/access")
@require_login
def product_grant_access(product_id: int):
    with request_transaction() as s:
        grant = _ledger(s).grant_access(product_id, _payload().get("identity"), caller=_caller())
    return jsonify({"product_id": product_id, "identity": grant.identity, "granted_by": grant.granted_by})


@bp.get("/products/<int:product_id>/summary")
def product_summary_get(product_id: int):
    return jsonify(product_summary(_ledger().get_summary(product_id)))


@bp.get("/products/<product_id>/verify")
def product_verify(product_id: str):
    # Public and total: malformed or out-of-range ids verify as false instead of 404.
    return jsonify({"id": product_id, "exists": _ledger().verify(_parse_product_id(product_id))})


# ---------- Identities ----------
@bp.post("/identities")
@require_login
def identities_authorize():
    with request_transaction() as s:
        row = _ledger(s).authorize_user(_payload().get("identity"), caller=_caller())
    return jsonify({"identity": row.identity, "authorized": True}), 201


@bp.get("/identities/<path:identity>")
def identities_get(identity: str):
    ident = normalize_identity(identity)
    return jsonify({"identity": ident, "authorized": _ledger().is_authorized(ident)})


# ---------- Ledger ----------
@bp.get("/stats")
def stats():
    ledger = _ledger()
    return jsonify({"total_count": ledger.total_count(), "administrator": ledger.administrator})


@bp.get("/events")
@require_login
def events_list():
    product_id = request.args.get("product_id", type=int)
    limit = request.args.get("limit", default=200, type=int)
    events = _ledger().events(caller=_caller(), product_id=product_id, limit=limit)
    return jsonify({"events": [event_to_dict(ev) for ev in events]})
