# Overview: Shared helpers for entity snapshots (keys, scopes, JSON numbers).

from __future__ import annotations

import uuid
from decimal import Decimal

# Snapshot value for a NULL scope column (no group / every storage).
ANY_SCOPE = "*"


def new_key() -> str:
    """Server-assigned row key. Keys are never reused."""
    return str(uuid.uuid4())


def json_number(value):
    """Render a Numeric column for a JSON snapshot (int when integral)."""
    if value is None:
        return None
    if isinstance(value, Decimal):
        if value == value.to_integral_value():
            return int(value)
        return float(value)
    return value


def scope_key(value: str | None) -> str:
    return ANY_SCOPE if value is None else value
