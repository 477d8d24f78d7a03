import os
from dataclasses import dataclass


VALID_NOTIFIERS = ("audit", "log", "both")


@dataclass(frozen=True)
class Settings:
    secret_key: str
    env: str
    database_url: str

    ledger_notifier: str


def _getenv(name: str, default: str = "") -> str:
    return (os.environ.get(name) or default).strip()


def load_settings() -> Settings:
    notifier = _getenv("LEDGER_NOTIFIER", "audit").lower()
    if notifier not in VALID_NOTIFIERS:
        raise RuntimeError(f"LEDGER_NOTIFIER must be one of {', '.join(VALID_NOTIFIERS)} (got {notifier!r}).")
    return Settings(
        secret_key=_getenv("SECRET_KEY", "change-me"),
        env=_getenv("ENV", "development"),
        database_url=_getenv("DATABASE_URL", "sqlite:///provledger.db"),
        ledger_notifier=notifier,
    )


def load_config() -> dict:
    s = load_settings()
    is_production = s.env in ("prod", "production")
    return {
        "SECRET_KEY": s.secret_key,
        "ENV": s.env,
        "DATABASE_URL": s.database_url,
        "LEDGER_NOTIFIER": s.ledger_notifier,
        # security defaults
        "SESSION_COOKIE_HTTPONLY": True,
        "SESSION_COOKIE_SAMESITE": "Lax",
        "SESSION_COOKIE_SECURE": is_production,  # Require HTTPS in production
        # JSON payloads only; 1MB is plenty
        "MAX_CONTENT_LENGTH": 1 * 1024 * 1024,
    }
