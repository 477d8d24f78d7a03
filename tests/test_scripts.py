"""Tests for the release/admin scripts against a throwaway SQLite database."""
import pytest
from sqlalchemy import create_engine

from app.provledger.errors import Unauthorized
from app.provledger.models import AuditEvent, Base, User
from scripts import init_db
from scripts._db_utils import ledger_report, script_ledger, script_session
from scripts.authorize_identity import authorize
from scripts.start import gunicorn_argv, parse_port

ADMIN = "admin@example.com"


@pytest.fixture()
def db_url(tmp_path, monkeypatch):
    url = f"sqlite:///{tmp_path/'scripts.db'}"
    monkeypatch.setenv("ADMIN_EMAIL", ADMIN)
    monkeypatch.setenv("ADMIN_PASSWORD", "pw")
    engine = create_engine(url, future=True)
    Base.metadata.create_all(bind=engine)
    engine.dispose()
    return url


def test_report_before_seed(db_url):
    with script_session(db_url) as s:
        assert ledger_report(s) == {
            "initialized": False,
            "administrator": None,
            "total_count": 0,
            "authorized_identities": 0,
        }


def test_seed_is_idempotent(db_url):
    init_db.seed_only(database_url=db_url)
    init_db.seed_only(database_url=db_url)
    with script_session(db_url) as s:
        report = ledger_report(s)
        assert s.query(User).filter(User.email == ADMIN).count() == 1
    assert report["initialized"] is True
    assert report["administrator"] == ADMIN
    assert report["authorized_identities"] == 1


def test_authorize_identity_script(db_url):
    init_db.seed_only(database_url=db_url)

    assert authorize(" Carrier@Example.com ", password="pw", database_url=db_url) is True
    assert authorize("carrier@example.com", database_url=db_url) is False

    with script_session(db_url) as s:
        assert ledger_report(s)["authorized_identities"] == 2
        assert s.query(User).filter(User.email == "carrier@example.com").count() == 1
        assert s.query(AuditEvent).filter(AuditEvent.action == "ledger.user_authorized").count() == 1


def test_script_ledger_rolls_back_rejected_work(db_url):
    init_db.seed_only(database_url=db_url)
    with pytest.raises(Unauthorized):
        with script_ledger(db_url) as ledger:
            ledger.register(name="Widget", description="", initial_location="Dock", caller=ADMIN)
            ledger.authorize_user("carrier@example.com", caller="carrier@example.com")
    with script_session(db_url) as s:
        assert ledger_report(s)["total_count"] == 0


class TestStart:
    @pytest.mark.parametrize("raw,expected", [(None, 8080), ("", 8080), (" 5000 ", 5000), ("65535", 65535)])
    def test_parse_port(self, raw, expected):
        assert parse_port(raw) == expected

    @pytest.mark.parametrize("raw", ["0", "65536", "http", "-1", "٣"])
    def test_parse_port_invalid(self, raw):
        with pytest.raises(ValueError):
            parse_port(raw)

    def test_single_worker(self):
        argv = gunicorn_argv(9000)
        assert argv[:2] == ["gunicorn", "app.wsgi:app"]
        assert argv[argv.index("--workers") + 1] == "1"
        assert argv[argv.index("--threads") + 1] == "1"
        assert "0.0.0.0:9000" in argv
