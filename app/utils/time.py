# app/utils/time.py
from __future__ import annotations

from datetime import datetime, timezone

UTC = timezone.utc


def utcnow() -> datetime:
    return datetime.now(UTC)


def as_utc(dt: datetime | None) -> datetime | None:
    if dt is None:
        return None
    if dt.tzinfo is None:
        # SQLite 读回的是 naive，统一假定为 UTC
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)
