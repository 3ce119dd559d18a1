"""
core/clock.py

Timestamp source for persisted rows.

`utcnow()` returns timezone-aware UTC timestamps that are strictly increasing
within the process, so rows created in the same microsecond still sort in
insertion order.
"""

import threading
from datetime import datetime, timedelta, timezone

_ONE_MICROSECOND = timedelta(microseconds=1)
_lock = threading.Lock()
_last: datetime | None = None


def utcnow() -> datetime:
    """Returns the current UTC time, bumped by 1µs if it would not advance."""
    global _last
    with _lock:
        now = datetime.now(timezone.utc)
        if _last is not None and now <= _last:
            now = _last + _ONE_MICROSECOND
        _last = now
        return now


def ensure_utc(value: datetime) -> datetime:
    """Treats naive datetimes (as returned by SQLite) as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
