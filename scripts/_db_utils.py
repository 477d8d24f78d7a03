from __future__ import annotations

import os
from collections.abc import Generator
from contextlib import contextmanager

from sqlalchemy import create_engine, func, select
from sqlalchemy.orm import Session, sessionmaker

from app.provledger.modules.ledger.models import AuthorizedIdentity, LedgerState
from app.provledger.modules.ledger.service import Ledger, open_ledger
from app.provledger.notifications import AuditNotifier, CompositeNotifier, LoggingNotifier


def database_url_from_env() -> str:
    return (os.environ.get("DATABASE_URL") or "sqlite:///provledger.db").strip()


@contextmanager
def script_session(db_url: str) -> Generator[Session, None, None]:
    """Session for one script run. Commits on success; the engine lives only as long as the block."""
    engine = create_engine(db_url, future=True, pool_pre_ping=True)
    sm = sessionmaker(bind=engine, class_=Session, autoflush=False, expire_on_commit=False, future=True)
    s: Session = sm()
    try:
        yield s
        s.commit()
    except Exception:
        s.rollback()
        raise
    finally:
        s.close()
        engine.dispose()


@contextmanager
def script_ledger(db_url: str) -> Generator[Ledger, None, None]:
    """
    Ledger handle for administrative scripts. Notifications go to the audit trail
    and the log, and everything commits together when the block exits cleanly.
    """
    with script_session(db_url) as s:
        yield open_ledger(s, notifier=CompositeNotifier((AuditNotifier(s), LoggingNotifier())))


def ledger_report(s: Session) -> dict[str, object]:
    """Snapshot of ledger state for release logs. `initialized` is False before seeding."""
    state = s.scalars(select(LedgerState)).first()
    if state is None:
        return {"initialized": False, "administrator": None, "total_count": 0, "authorized_identities": 0}
    authorized = s.scalar(select(func.count()).select_from(AuthorizedIdentity)) or 0
    return {
        "initialized": True,
        "administrator": state.administrator,
        "total_count": state.product_count,
        "authorized_identities": int(authorized),
    }
