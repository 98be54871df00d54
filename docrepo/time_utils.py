"""
Time Utilities

Timestamps and identifiers for stored documents.

Functions:
- utc_now(): current UTC time at BSON (millisecond) precision
- truncate_to_millis(dt): drop sub-millisecond digits
- next_after(previous): current time, strictly later than previous
- generate_id(): tick-based document identifier
- ensure_utc(dt): naive-as-UTC normalisation for query bounds
"""

import threading
import time
from datetime import datetime, timedelta, timezone

# 100ns ticks between 0001-01-01 and the Unix epoch
EPOCH_TICKS = 621_355_968_000_000_000

_id_lock = threading.Lock()
_last_ticks = 0


def truncate_to_millis(dt: datetime) -> datetime:
    """Drop microseconds below millisecond precision and normalise to UTC."""
    dt = ensure_utc(dt)
    return dt.replace(microsecond=dt.microsecond - dt.microsecond % 1000)


def utc_now() -> datetime:
    return truncate_to_millis(datetime.now(timezone.utc))


def next_after(previous: datetime | None) -> datetime:
    """Return the current time, bumped past previous when the clock has not moved."""
    now = utc_now()
    if previous is not None:
        previous = truncate_to_millis(previous)
        if now <= previous:
            now = previous + timedelta(milliseconds=1)
    return now


def generate_id() -> str:
    """
    Generate a document id from the current time in 100ns ticks.

    Ids are strictly increasing within the process, so two entities created
    inside the same tick still get distinct ids.
    """
    global _last_ticks

    with _id_lock:
        ticks = EPOCH_TICKS + time.time_ns() // 100
        if ticks <= _last_ticks:
            ticks = _last_ticks + 1
        _last_ticks = ticks
    return str(ticks)


def ensure_utc(dt: datetime) -> datetime:
    """Treat naive datetimes as UTC; convert aware ones to UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)
