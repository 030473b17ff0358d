"""Helpers for working with timezone-aware datetimes."""

from __future__ import annotations

from datetime import datetime, timezone


def utcnow() -> datetime:
    """Return a timezone-aware UTC ``datetime``."""

    return datetime.now(timezone.utc)


def coerce_utc(value: datetime | str | None) -> datetime | None:
    """Return a UTC-normalized datetime, assuming naive values are already UTC.

    SQLite hands timestamps back as ISO-8601 text, so strings are parsed first.
    """

    if value is None:
        return None

    if isinstance(value, str):
        value = datetime.fromisoformat(value)

    if value.tzinfo is None or value.utcoffset() is None:
        return value.replace(tzinfo=timezone.utc)

    return value.astimezone(timezone.utc)
