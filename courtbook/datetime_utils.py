"""Datetime helpers.

The database stores naive datetimes that are always UTC; these helpers keep
every value that crosses the API boundary in that form.
"""

from datetime import datetime, timezone, tzinfo


def utc_now() -> datetime:
    """Current time as a naive UTC datetime."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_utc_naive(value: datetime) -> datetime:
    """Convert an aware datetime to naive UTC. Naive input is assumed UTC."""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def to_local(value: datetime, tz: tzinfo) -> datetime:
    """Naive UTC datetime -> aware datetime in ``tz``."""
    return value.replace(tzinfo=timezone.utc).astimezone(tz)


def as_utc_iso(value: datetime | None) -> str | None:
    if value is None:
        return None
    return value.replace(tzinfo=timezone.utc).isoformat().replace("+00:00", "Z")
