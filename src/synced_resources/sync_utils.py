from __future__ import annotations

from datetime import datetime, timedelta, timezone

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_ONE_MS = timedelta(milliseconds=1)

# 2017-01-01T00:00:00Z. Clients hold synced_at values relative to this instant;
# deployments may move it (e.g. to a release date) via SYNC_BASE_TIME_MS.
DEFAULT_BASE_TIME_MS = 1483228800000

# Largest epoch-ms value that still maps to a datetime.
MAX_EPOCH_MS = (datetime.max.replace(tzinfo=timezone.utc) - _EPOCH) // _ONE_MS


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything is stored as UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def datetime_to_ms(value: datetime) -> int:
    return (as_utc(value) - _EPOCH) // _ONE_MS


def now_ms() -> int:
    return datetime_to_ms(utc_now())


def time_to_synced_at(instant: datetime | None = None, *, base_time: int) -> int:
    """Encode ``instant`` (default: now) as milliseconds since ``base_time``."""
    if instant is None:
        instant = utc_now()
    return datetime_to_ms(instant) - base_time


def synced_at_to_time(synced_at: int, base_time: int = 0) -> datetime:
    """Inverse of :func:`time_to_synced_at`.

    Decoded sync tokens already carry absolute milliseconds, so callers that
    work from a token leave ``base_time`` at 0.
    """
    return _EPOCH + timedelta(milliseconds=int(synced_at) + int(base_time))
