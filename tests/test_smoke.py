import pytest
from werkzeug.security import generate_password_hash

from app.provledger import create_app
from app.provledger.auth import _login_attempts
from app.provledger.db import session_scope
from app.provledger.models import Base, User


@pytest.fixture()
def client(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")
    monkeypatch.delenv("LEDGER_NOTIFIER", raising=False)
    _login_attempts.clear()

    app = create_app()

    engine = app.extensions["sqlalchemy_engine"]
    Base.metadata.create_all(bind=engine)

    with session_scope(app) as s:
        s.add(User(email="admin@example.com", password_hash=generate_password_hash("pw"), is_active=True))

    return app.test_client()


def test_health_ok(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json["ok"] is True
    assert r.json["schema_ok"] is True


def test_healthz(client):
    r = client.get("/healthz")
    assert r.status_code == 200
    assert r.data == b"ok"


def test_login_and_session(client):
    r = client.get("/auth/session")
    assert r.json["identity"] is None

    r = client.post("/auth/login", data={"email": "Admin@Example.com", "password": "pw"})
    assert r.status_code == 200
    assert r.json["identity"] == "admin@example.com"

    r = client.get("/auth/session")
    assert r.json["identity"] == "admin@example.com"
    assert r.json["csrf_token"]


def test_login_bad_password(client):
    r = client.post("/auth/login", json={"email": "admin@example.com", "password": "nope"})
    assert r.status_code == 401


def test_login_rate_limited(client):
    for _ in range(5):
        client.post("/auth/login", json={"email": "admin@example.com", "password": "nope"})
    r = client.post("/auth/login", json={"email": "admin@example.com", "password": "pw"})
    assert r.status_code == 429


def test_uninitialized_ledger_reports_503(client):
    r = client.get("/ledger/stats")
    assert r.status_code == 503
    assert r.json["error"] == "ledger_not_initialized"


def test_missing_tables_flagged(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'empty.db'}")
    monkeypatch.setenv("ENV", "test")
    app = create_app()
    c = app.test_client()

    r = c.get("/ledger/stats")
    assert r.status_code == 500
    assert "products (table)" in r.json["missing"]
    assert c.get("/health").json["schema_ok"] is False


def test_production_requires_postgres(monkeypatch):
    monkeypatch.setenv("ENV", "production")
    monkeypatch.setenv("SECRET_KEY", "a-strong-secret")
    monkeypatch.setenv("DATABASE_URL", "sqlite:///prod.db")
    with pytest.raises(RuntimeError):
        create_app()


def test_invalid_notifier_setting(monkeypatch):
    monkeypatch.setenv("LEDGER_NOTIFIER", "carrier-pigeon")
    with pytest.raises(RuntimeError):
        create_app()
