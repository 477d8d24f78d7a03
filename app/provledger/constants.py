"""
Central constants for the provenance ledger.
"""
from __future__ import annotations

import re

# Product status enumeration, in ordinal order. Any status may follow any other.
PRODUCT_STATUSES = ("Created", "InTransit", "Delivered", "Verified", "Recalled")

STATUS_CREATED = PRODUCT_STATUSES[0]

# Lower-cased name -> canonical name
_STATUS_BY_KEY = {name.lower(): name for name in PRODUCT_STATUSES}

# "0x" followed only by zeros: the null account address.
ZERO_ADDRESS_RE = re.compile(r"^0x0+$")

MAX_NAME_LENGTH = 255
MAX_LOCATION_LENGTH = 512
MAX_IDENTITY_LENGTH = 320

# Largest id the database INTEGER column holds (signed 64-bit).
MAX_PRODUCT_ID = 2**63 - 1


def lookup_status(value: object) -> str | None:
    """Resolve a status name (case-insensitive) or ordinal to its canonical name."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        if 0 <= value < len(PRODUCT_STATUSES):
            return PRODUCT_STATUSES[value]
        return None
    if isinstance(value, str):
        raw = value.strip()
        if raw.isascii() and raw.isdigit():
            return lookup_status(int(raw))
        return _STATUS_BY_KEY.get(raw.lower())
    return None
