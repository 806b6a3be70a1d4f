# blogshare/services/timeutil.py
from __future__ import annotations
from datetime import datetime, timezone
from typing import Any, Optional

from blogshare.errors import ValidationError


def utcnow() -> datetime:
    """Naive UTC – so speichert SQLite die Zeitstempel."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_timestamp(value: Any, field: str = "expiresAt") -> Optional[datetime]:
    """
    ISO-8601 (auch mit 'Z') -> naive UTC.
    Leere Werte bedeuten "kein Ablauf".
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str):
        raw = value.strip()
        if raw.endswith("Z"):
            raw = raw[:-1] + "+00:00"
        try:
            dt = datetime.fromisoformat(raw)
        except ValueError:
            raise ValidationError(f"{field} must be an ISO date") from None
    else:
        raise ValidationError(f"{field} must be an ISO date")
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def isoformat(dt: Optional[datetime]) -> Optional[str]:
    return dt.replace(microsecond=0).isoformat() + "Z" if dt else None
