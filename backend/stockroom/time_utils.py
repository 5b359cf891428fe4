# Overview: UTC time helpers shared by models, catalog payload parsing and the API.

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

"""
Time conventions:

- Datetimes held in the database are UTC-naive.
- ready2order sends either "YYYY-MM-DD HH:MM:SS" (UTC, no offset) or ISO-8601
  with "Z" / "+HH:MM"; both parse to UTC-naive.
- Snapshots and API output use ISO-8601 with a trailing "Z", to the second.
"""


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _as_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    Parse a catalog or request timestamp into a UTC-naive datetime.

    None or a blank string gives None; anything unparseable raises ValueError.
    """
    if value is None or not value.strip():
        return None

    text = value.strip()
    if text[-1] in "zZ":
        text = text[:-1] + "+00:00"

    return _as_utc(datetime.fromisoformat(text)).replace(tzinfo=None)


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """Render dt as "YYYY-MM-DDTHH:MM:SSZ"; naive values are taken as UTC."""
    if dt is None:
        return None
    return _as_utc(dt).replace(microsecond=0, tzinfo=None).isoformat() + "Z"
