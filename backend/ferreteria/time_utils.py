# Overview: UTC time helpers shared by models and services.

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional


def utcnow() -> datetime:
    """Naive UTC; every stored timestamp uses this form."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def days_from_now(days: int) -> datetime:
    """Naive UTC instant `days` after now (credit due dates)."""
    return utcnow() + timedelta(days=int(days))


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """ISO-8601 in whole seconds with a trailing 'Z'; naive values are read as UTC."""
    if dt is None:
        return None
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt.replace(microsecond=0).isoformat() + "Z"
