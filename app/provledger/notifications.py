from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy.orm import Session

from app.provledger.audit import record_event


REGISTERED = "Registered"
MOVED = "Moved"
STATUS_CHANGED = "StatusChanged"
USER_AUTHORIZED = "UserAuthorized"
ACCESS_GRANTED = "AccessGranted"

# Notification name -> audit action key
AUDIT_ACTIONS = {
    REGISTERED: "ledger.registered",
    MOVED: "ledger.moved",
    STATUS_CHANGED: "ledger.status_changed",
    USER_AUTHORIZED: "ledger.user_authorized",
    ACCESS_GRANTED: "ledger.access_granted",
}


class NotifierError(RuntimeError):
    pass


@dataclass(frozen=True)
class LedgerEvent:
    name: str
    payload: Mapping[str, Any] = field(default_factory=dict)
    actor: str | None = None

    @property
    def product_id(self) -> int | None:
        return self.payload.get("id")  # type: ignore[return-value]


class Notifier:
    """Receives ledger notifications after a mutation succeeds. Never answers back."""

    def notify(self, event: LedgerEvent) -> None:
        raise NotImplementedError


class NullNotifier(Notifier):
    def notify(self, event: LedgerEvent) -> None:
        return None


@dataclass(frozen=True)
class LoggingNotifier(Notifier):
    logger_name: str = __name__

    def notify(self, event: LedgerEvent) -> None:
        logging.getLogger(self.logger_name).info("ledger event %s %s", event.name, dict(event.payload))


@dataclass(frozen=True)
class AuditNotifier(Notifier):
    """Writes notifications into the audit trail in the caller's session (commits with the mutation)."""

    session: Session

    def notify(self, event: LedgerEvent) -> None:
        action = AUDIT_ACTIONS.get(event.name)
        if action is None:
            raise NotifierError(f"Unknown ledger event: {event.name}")
        pid = event.product_id
        record_event(
            self.session,
            actor=event.actor,
            action=action,
            entity_type="Product" if pid is not None else "Identity",
            entity_id=str(pid) if pid is not None else event.payload.get("identity"),
            metadata=dict(event.payload),
        )


@dataclass(frozen=True)
class CompositeNotifier(Notifier):
    notifiers: tuple[Notifier, ...]

    def notify(self, event: LedgerEvent) -> None:
        for n in self.notifiers:
            n.notify(event)


def notifier_from_config(config: Mapping[str, Any], s: Session) -> Notifier:
    backend = (config.get("LEDGER_NOTIFIER") or "audit").strip().lower()
    if backend == "audit":
        return AuditNotifier(s)
    if backend == "log":
        return LoggingNotifier()
    if backend == "both":
        return CompositeNotifier((AuditNotifier(s), LoggingNotifier()))
    raise NotifierError(f"Unsupported LEDGER_NOTIFIER: {backend}")
