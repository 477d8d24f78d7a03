#!/usr/bin/env python3
"""
Production startup script.

1. Runs migrations + seed (release.py), which refuses to continue without ledger state
2. Starts gunicorn (replaces this process via os.execvp)

Usage:
    python scripts/start.py
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


def parse_port(raw: str | None) -> int:
    port = (raw or "").strip()
    if not port:
        print("WARNING: PORT not set, using default 8080", flush=True)
        return 8080
    if not (port.isascii() and port.isdigit()) or not 1 <= int(port) <= 65535:
        raise ValueError(f"Invalid PORT value '{port}'. Must be integer 1-65535.")
    return int(port)


def gunicorn_argv(port: int) -> list[str]:
    # A single worker with a single thread keeps ledger writes serialized;
    # product ids come from a counter that is read then incremented.
    return [
        "gunicorn",
        "app.wsgi:app",
        "--bind", f"0.0.0.0:{port}",
        "--workers", "1",
        "--threads", "1",
        "--timeout", "60",
        "--preload",
        "--access-logfile", "-",
        "--error-logfile", "-",
    ]


def main() -> None:
    try:
        port = parse_port(os.environ.get("PORT"))
    except ValueError as e:
        print(f"ERROR: {e}", flush=True)
        sys.exit(1)
    print(f"PORT={port} validated", flush=True)

    print("=== Running release phase ===", flush=True)
    from scripts.release import run_release
    try:
        report = run_release()
    except Exception as e:
        print(f"Release failed: {e}", flush=True)
        sys.exit(1)

    print(f"=== Starting gunicorn (ledger administered by {report['administrator']}) ===", flush=True)
    print(f"Gunicorn binding to 0.0.0.0:{port}", flush=True)
    argv = gunicorn_argv(port)
    os.execvp(argv[0], argv)


if __name__ == "__main__":
    main()
