import os
import sys
from pathlib import Path

from sqlalchemy import select
from werkzeug.security import generate_password_hash

# Ensure repo root is on sys.path when running as a script (Windows-friendly).
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.provledger.models import User
from app.provledger.modules.ledger.models import LedgerState
from app.provledger.modules.ledger.service import initialize_ledger
from scripts._db_utils import database_url_from_env, script_session


def seed_only(*, database_url: str | None = None) -> None:
    """
    Seed the administrator account and ledger state in an idempotent way.
    Does NOT overwrite an existing admin user's password or an existing ledger.
    """
    admin_email = (os.environ.get("ADMIN_EMAIL") or "admin@provledger.local").strip().lower()
    admin_password = os.environ.get("ADMIN_PASSWORD") or "change-me"

    db_url = (database_url or database_url_from_env()).strip()

    with script_session(db_url) as s:
        user = s.query(User).filter(User.email == admin_email).one_or_none()
        if not user:
            user = User(email=admin_email, password_hash=generate_password_hash(admin_password), is_active=True)
            s.add(user)

        state = s.scalars(select(LedgerState)).first()
        if state is None:
            state = initialize_ledger(s, administrator=admin_email)
        elif state.administrator != admin_email:
            print(f"Ledger already administered by {state.administrator}; ADMIN_EMAIL ignored for ledger state.")

    print("Initialized database (seed_only).")
    print(f"Admin email: {admin_email}")
    print("Admin password: (from ADMIN_PASSWORD)")


def main() -> None:
    seed_only(database_url=None)


if __name__ == "__main__":
    main()
