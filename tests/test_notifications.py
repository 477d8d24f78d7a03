"""Tests for ledger notification sinks."""
import json
import logging

import pytest

from app.provledger import create_app
from app.provledger.models import AuditEvent, Base
from app.provledger.notifications import (
    AuditNotifier,
    CompositeNotifier,
    LedgerEvent,
    LoggingNotifier,
    NotifierError,
    notifier_from_config,
)


@pytest.fixture()
def session(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")
    app = create_app()
    Base.metadata.create_all(bind=app.extensions["sqlalchemy_engine"])
    s = app.extensions["sqlalchemy_sessionmaker"]()
    yield s
    s.close()


def test_audit_notifier_records_product_event(session):
    AuditNotifier(session).notify(
        LedgerEvent(name="Moved", payload={"id": 3, "new_location": "Port-B", "caller": "a@x.io"}, actor="a@x.io")
    )
    session.flush()

    ev = session.query(AuditEvent).one()
    assert ev.action == "ledger.moved"
    assert ev.entity_type == "Product"
    assert ev.entity_id == "3"
    assert ev.actor_identity == "a@x.io"
    assert ev.request_id is None
    assert json.loads(ev.metadata_json)["new_location"] == "Port-B"


def test_audit_notifier_records_identity_event(session):
    AuditNotifier(session).notify(LedgerEvent(name="UserAuthorized", payload={"identity": "b@x.io"}, actor="a@x.io"))
    session.flush()

    ev = session.query(AuditEvent).one()
    assert ev.action == "ledger.user_authorized"
    assert ev.entity_type == "Identity"
    assert ev.entity_id == "b@x.io"


def test_audit_notifier_rejects_unknown_event(session):
    with pytest.raises(NotifierError):
        AuditNotifier(session).notify(LedgerEvent(name="Teleported"))


def test_logging_notifier(caplog):
    with caplog.at_level(logging.INFO, logger="app.provledger.notifications"):
        LoggingNotifier().notify(LedgerEvent(name="StatusChanged", payload={"id": 1, "new_status": "Delivered"}))
    assert "StatusChanged" in caplog.text
    assert "Delivered" in caplog.text


def test_composite_notifier_fans_out_in_order():
    seen = []

    class Sink(LoggingNotifier):
        def notify(self, event):
            seen.append((self.logger_name, event.name))

    CompositeNotifier((Sink("first"), Sink("second"))).notify(LedgerEvent(name="Registered"))
    assert seen == [("first", "Registered"), ("second", "Registered")]


def test_notifier_from_config(session):
    assert isinstance(notifier_from_config({"LEDGER_NOTIFIER": "audit"}, session), AuditNotifier)
    assert isinstance(notifier_from_config({"LEDGER_NOTIFIER": "log"}, session), LoggingNotifier)
    both = notifier_from_config({"LEDGER_NOTIFIER": "both"}, session)
    assert isinstance(both, CompositeNotifier)
    assert len(both.notifiers) == 2
    with pytest.raises(NotifierError):
        notifier_from_config({"LEDGER_NOTIFIER": "smoke-signals"}, session)
