"""
Ledger service layer.

The `Ledger` handle owns every product record and the authorization tables.
Each operation checks all of its preconditions before touching state, so a
rejected call leaves nothing half-written. Mutations are flushed, never
committed; the caller decides when to commit.
"""
from __future__ import annotations

import json
import logging
from collections.abc import Callable
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import or_, select

from app.provledger.constants import (
    MAX_IDENTITY_LENGTH,
    MAX_LOCATION_LENGTH,
    MAX_NAME_LENGTH,
    MAX_PRODUCT_ID,
    STATUS_CREATED,
    ZERO_ADDRESS_RE,
    lookup_status,
)
from app.provledger.errors import AlreadyAuthorized, InvalidArgument, LedgerError, LedgerNotInitialized, NotFound, Unauthorized
from app.provledger.models import AuditEvent
from app.provledger.notifications import (
    ACCESS_GRANTED,
    MOVED,
    REGISTERED,
    STATUS_CHANGED,
    USER_AUTHORIZED,
    LedgerEvent,
    Notifier,
    NullNotifier,
)

from .models import AuthorizedIdentity, LedgerState, Product, ProductAccess, ProductHandler, ProductLocation

if TYPE_CHECKING:
    from sqlalchemy.orm import Session


logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def normalize_identity(value: object) -> str:
    if not isinstance(value, str):
        return ""
    return value.strip().lower()


def is_zero_identity(identity: str) -> bool:
    return not identity or bool(ZERO_ADDRESS_RE.match(identity))


def is_valid_product_id(product_id: object) -> bool:
    return isinstance(product_id, int) and not isinstance(product_id, bool) and 1 <= product_id <= MAX_PRODUCT_ID


def _require_identity(value: object, *, field: str = "identity") -> str:
    if value is not None and not isinstance(value, str):
        raise InvalidArgument(f"{field} must be a string.")
    identity = normalize_identity(value)
    if is_zero_identity(identity):
        raise InvalidArgument(f"{field} is required and must not be the zero identity.")
    if len(identity) > MAX_IDENTITY_LENGTH:
        raise InvalidArgument(f"{field} is too long (max {MAX_IDENTITY_LENGTH} characters).")
    return identity


def _require_text(value: object, *, field: str, max_length: int) -> str:
    """Validate opaque text; the value is stored exactly as given."""
    if value is not None and not isinstance(value, str):
        raise InvalidArgument(f"{field} must be a string.")
    if not value or not value.strip():
        raise InvalidArgument(f"{field} is required.")
    if len(value) > max_length:
        raise InvalidArgument(f"{field} is too long (max {max_length} characters).")
    return value


def _optional_text(value: object, *, field: str) -> str:
    if value is None:
        return ""
    if not isinstance(value, str):
        raise InvalidArgument(f"{field} must be a string.")
    return value


def initialize_ledger(s: "Session", *, administrator: str, clock: Clock | None = None) -> LedgerState:
    """
    Create the ledger state once. The initializing identity becomes the
    administrator and is globally authorized.
    """
    admin = _require_identity(administrator, field="administrator")
    if s.scalars(select(LedgerState)).first() is not None:
        raise LedgerError("Ledger is already initialized.")
    now = (clock or datetime.utcnow)()
    state = LedgerState(administrator=admin, product_count=0, created_at=now)
    s.add(state)
    if s.scalars(select(AuthorizedIdentity).where(AuthorizedIdentity.identity == admin)).first() is None:
        s.add(AuthorizedIdentity(identity=admin, authorized_at=now, authorized_by=admin))
    s.flush()
    logger.info("Ledger initialized (administrator=%s)", admin)
    return state


def open_ledger(s: "Session", *, notifier: Notifier | None = None, clock: Clock | None = None) -> "Ledger":
    state = s.scalars(select(LedgerState).order_by(LedgerState.id)).first()
    if state is None:
        raise LedgerNotInitialized("Ledger has not been initialized; run scripts/init_db.py.")
    return Ledger(s, state, notifier=notifier, clock=clock)


class Ledger:
    def __init__(
        self,
        s: "Session",
        state: LedgerState,
        *,
        notifier: Notifier | None = None,
        clock: Clock | None = None,
    ) -> None:
        self.s = s
        self.state = state
        self.notifier = notifier or NullNotifier()
        self.clock = clock or datetime.utcnow

    @property
    def administrator(self) -> str:
        return self.state.administrator

    # ---------- Accessors ----------

    def total_count(self) -> int:
        return self.state.product_count

    def is_authorized(self, identity: str | None) -> bool:
        ident = normalize_identity(identity)
        if is_zero_identity(ident):
            return False
        if ident == self.administrator:
            return True
        stmt = select(AuthorizedIdentity.id).where(AuthorizedIdentity.identity == ident)
        return self.s.scalars(stmt).first() is not None

    def has_access(self, product: Product, identity: str | None) -> bool:
        ident = normalize_identity(identity)
        if is_zero_identity(ident):
            return False
        if ident == self.administrator or ident == product.manufacturer:
            return True
        return any(grant.identity == ident for grant in product.access_grants)

    def verify(self, product_id: object) -> bool:
        if not is_valid_product_id(product_id):
            return False
        return self.s.get(Product, product_id) is not None

    # ---------- Internal ----------

    def _deny(self, op: str, err: LedgerError, **context: object) -> LedgerError:
        logger.warning("ledger.%s rejected: %s %s", op, err.message, context)
        return err

    def _get_product(self, op: str, product_id: int) -> Product:
        product = self.s.get(Product, product_id) if is_valid_product_id(product_id) else None
        if product is None:
            raise self._deny(op, NotFound(f"Product {product_id} does not exist."), product_id=product_id)
        return product

    def _require_access(self, op: str, product: Product, caller: str) -> None:
        if not self.is_authorized(caller):
            raise self._deny(op, Unauthorized("Caller is not an authorized identity."), caller=caller, product_id=product.id)
        if not self.has_access(product, caller):
            raise self._deny(op, Unauthorized(f"Caller has no access to product {product.id}."), caller=caller, product_id=product.id)

    def _emit(self, event_name: str, /, *, actor: str | None, **payload: object) -> None:
        self.notifier.notify(LedgerEvent(name=event_name, payload=payload, actor=actor))

    # ---------- Mutations ----------

    def register(self, *, name: object, description: object, initial_location: object, caller: str) -> Product:
        """Register a new product; the caller becomes its manufacturer and first handler."""
        caller_id = normalize_identity(caller)
        if not self.is_authorized(caller_id):
            raise self._deny("register", Unauthorized("Caller is not an authorized identity."), caller=caller_id)
        try:
            clean_name = _require_text(name, field="name", max_length=MAX_NAME_LENGTH)
            location = _require_text(initial_location, field="initial_location", max_length=MAX_LOCATION_LENGTH)
            clean_description = _optional_text(description, field="description")
        except InvalidArgument as e:
            raise self._deny("register", e, caller=caller_id)

        now = self.clock()
        new_id = self.state.product_count + 1
        product = Product(
            id=new_id,
            name=clean_name,
            description=clean_description,
            manufacturer=caller_id,
            created_at=now,
            updated_at=now,
            current_location=location,
            status=STATUS_CREATED,
        )
        product.journey.append(
            ProductLocation(sequence=0, location=location, recorded_at=now, status=STATUS_CREATED, recorded_by=caller_id)
        )
        product.handlers.append(ProductHandler(identity=caller_id, position=0, first_seen_at=now))
        product.access_grants.append(ProductAccess(identity=caller_id, granted_at=now, granted_by=caller_id))
        self.s.add(product)
        self.state.product_count = new_id
        self.s.flush()

        logger.info("ledger.register product_id=%s manufacturer=%s", new_id, caller_id)
        self._emit(REGISTERED, actor=caller_id, id=new_id, name=clean_name, creator=caller_id)
        return product

    def append_journey(self, product_id: int, *, location: object, status: object, caller: str) -> Product:
        """Move a product and set its status. Identical consecutive updates are all recorded."""
        caller_id = normalize_identity(caller)
        product = self._get_product("append_journey", product_id)
        self._require_access("append_journey", product, caller_id)
        try:
            new_location = _require_text(location, field="location", max_length=MAX_LOCATION_LENGTH)
        except InvalidArgument as e:
            raise self._deny("append_journey", e, caller=caller_id, product_id=product.id)
        new_status = lookup_status(status)
        if new_status is None:
            raise self._deny(
                "append_journey", InvalidArgument(f"Invalid status: {status!r}"), caller=caller_id, product_id=product.id
            )

        now = self.clock()
        product.current_location = new_location
        product.status = new_status
        product.updated_at = now
        product.journey.append(
            ProductLocation(
                sequence=len(product.journey),
                location=new_location,
                recorded_at=now,
                status=new_status,
                recorded_by=caller_id,
            )
        )
        if caller_id not in product.handler_identities:
            product.handlers.append(ProductHandler(identity=caller_id, position=len(product.handlers), first_seen_at=now))
        self.s.flush()

        logger.info("ledger.append_journey product_id=%s status=%s caller=%s", product.id, new_status, caller_id)
        self._emit(MOVED, actor=caller_id, id=product.id, new_location=new_location, caller=caller_id)
        self._emit(STATUS_CHANGED, actor=caller_id, id=product.id, new_status=new_status)
        return product

    def authorize_user(self, identity: str, *, caller: str) -> AuthorizedIdentity:
        caller_id = normalize_identity(caller)
        if caller_id != self.administrator:
            raise self._deny("authorize_user", Unauthorized("Only the administrator can authorize identities."), caller=caller_id)
        try:
            ident = _require_identity(identity)
        except InvalidArgument as e:
            raise self._deny("authorize_user", e, caller=caller_id)
        if self.is_authorized(ident):
            raise self._deny("authorize_user", AlreadyAuthorized(f"{ident} is already authorized."), caller=caller_id)

        row = AuthorizedIdentity(identity=ident, authorized_at=self.clock(), authorized_by=caller_id)
        self.s.add(row)
        self.s.flush()

        logger.info("ledger.authorize_user identity=%s", ident)
        self._emit(USER_AUTHORIZED, actor=caller_id, identity=ident)
        return row

    def grant_access(self, product_id: int, identity: str, *, caller: str) -> ProductAccess:
        """Grant per-product access. Re-granting an existing grant returns it unchanged."""
        caller_id = normalize_identity(caller)
        product = self._get_product("grant_access", product_id)
        if caller_id != product.manufacturer and caller_id != self.administrator:
            raise self._deny(
                "grant_access",
                Unauthorized("Only the manufacturer or the administrator can grant access."),
                caller=caller_id,
                product_id=product.id,
            )
        try:
            grantee = _require_identity(identity)
        except InvalidArgument as e:
            raise self._deny("grant_access", e, caller=caller_id, product_id=product.id)
        if not self.is_authorized(grantee):
            raise self._deny(
                "grant_access",
                InvalidArgument(f"{grantee} must be an authorized identity before being granted access."),
                caller=caller_id,
                product_id=product.id,
            )

        for grant in product.access_grants:
            if grant.identity == grantee:
                return grant
        grant = ProductAccess(identity=grantee, granted_at=self.clock(), granted_by=caller_id)
        product.access_grants.append(grant)
        self.s.flush()

        logger.info("ledger.grant_access product_id=%s identity=%s", product.id, grantee)
        self._emit(ACCESS_GRANTED, actor=caller_id, id=product.id, identity=grantee, granted_by=caller_id)
        return grant

    # ---------- Reads ----------

    def get_details(self, product_id: int, *, caller: str) -> Product:
        caller_id = normalize_identity(caller)
        product = self._get_product("get_details", product_id)
        self._require_access("get_details", product, caller_id)
        return product

    def get_summary(self, product_id: int) -> Product:
        return self._get_product("get_summary", product_id)

    def list_products(self, *, caller: str) -> list[Product]:
        """Products the caller may act on, in id order."""
        caller_id = normalize_identity(caller)
        if not self.is_authorized(caller_id):
            raise self._deny("list_products", Unauthorized("Caller is not an authorized identity."), caller=caller_id)
        stmt = select(Product).order_by(Product.id)
        if caller_id != self.administrator:
            granted = select(ProductAccess.product_id).where(ProductAccess.identity == caller_id)
            stmt = stmt.where(or_(Product.manufacturer == caller_id, Product.id.in_(granted)))
        return list(self.s.scalars(stmt))

    def events(self, *, caller: str, product_id: int | None = None, limit: int = 200) -> list[AuditEvent]:
        """Emitted ledger notifications, newest first (administrator only)."""
        caller_id = normalize_identity(caller)
        if caller_id != self.administrator:
            raise self._deny("events", Unauthorized("Only the administrator can read the event log."), caller=caller_id)
        stmt = select(AuditEvent).where(AuditEvent.action.like("ledger.%"))
        if product_id is not None:
            stmt = stmt.where(AuditEvent.entity_type == "Product", AuditEvent.entity_id == str(product_id))
        stmt = stmt.order_by(AuditEvent.id.desc()).limit(max(1, min(limit, 1000)))
        return list(self.s.scalars(stmt))


# ---------- Serialization ----------

def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def product_summary(product: Product) -> dict:
    return {
        "id": product.id,
        "name": product.name,
        "manufacturer": product.manufacturer,
        "status": product.status,
        "current_location": product.current_location,
    }


def product_details(product: Product) -> dict:
    return {
        "id": product.id,
        "name": product.name,
        "description": product.description,
        "manufacturer": product.manufacturer,
        "created_at": _iso(product.created_at),
        "current_location": product.current_location,
        "status": product.status,
        "location_history": product.location_history,
        "time_history": [_iso(t) for t in product.time_history],
        "journey": [
            {
                "location": entry.location,
                "timestamp": _iso(entry.recorded_at),
                "status": entry.status,
                "recorded_by": entry.recorded_by,
            }
            for entry in product.journey
        ],
        "handlers": product.handler_identities,
        "exists": True,
    }


def event_to_dict(ev: AuditEvent) -> dict:
    return {
        "id": ev.id,
        "created_at": _iso(ev.created_at),
        "action": ev.action,
        "actor": ev.actor_identity,
        "entity_type": ev.entity_type,
        "entity_id": ev.entity_id,
        "request_id": ev.request_id,
        "payload": json.loads(ev.metadata_json) if ev.metadata_json else {},
    }
