#!/usr/bin/env python3
"""Authorize an identity on the ledger as the administrator (idempotent).

Usage:
  python scripts/authorize_identity.py --identity carrier@example.com
  python scripts/authorize_identity.py --identity carrier@example.com --password s3cret
"""

import argparse
import sys
from pathlib import Path

from werkzeug.security import generate_password_hash

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.provledger.errors import LedgerError
from app.provledger.models import User
from app.provledger.modules.ledger.service import normalize_identity
from scripts._db_utils import database_url_from_env, script_ledger


def authorize(identity: str, *, password: str | None = None, database_url: str | None = None) -> bool:
    """Returns True if the identity was newly authorized."""
    ident = normalize_identity(identity)
    with script_ledger(database_url or database_url_from_env()) as ledger:
        created = False
        if ledger.is_authorized(ident):
            print(f"Identity already authorized: {ident}")
        else:
            ledger.authorize_user(ident, caller=ledger.administrator)
            created = True
            print(f"Authorized {ident}")

        s = ledger.s
        if password and not s.query(User).filter(User.email == ident).one_or_none():
            s.add(User(email=ident, password_hash=generate_password_hash(password), is_active=True))
            print(f"Login account created for {ident}")
    return created


def main() -> None:
    parser = argparse.ArgumentParser()
    parser.add_argument("--identity", required=True, help="Identity (account email) to authorize")
    parser.add_argument("--password", help="Also create a login account with this password if none exists")
    args = parser.parse_args()
    try:
        authorize(args.identity, password=args.password)
    except LedgerError as e:
        print(f"Cannot authorize {args.identity}: {e.message}")
        sys.exit(1)


if __name__ == "__main__":
    main()
