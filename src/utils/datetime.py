# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""DateTime utilities.

All datetimes handled by this package are timezone-aware UTC. Filter
payloads carry calendar dates (``YYYY-MM-DD``) taken from the UTC date of
each timestamp, matching what the backend expects.

Usage:
    from src.utils.datetime import utc_now, format_date

    format_date(utc_now())  # "2024-01-31"
"""

from collections.abc import Callable
from datetime import datetime, timedelta, timezone

# Injectable clock type used by caches, pollers and the session tracker.
Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Get current UTC time as timezone-aware datetime.

    Returns:
        Timezone-aware datetime representing current UTC time.
    """
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime | None) -> datetime | None:
    """Ensure a datetime is timezone-aware UTC.

    Args:
        dt: A datetime object (naive or aware) or None.

    Returns:
        Timezone-aware UTC datetime or None.

    Note:
        - If dt is None, returns None
        - If dt is naive, assumes UTC and adds tzinfo
        - If dt is aware, converts to UTC
    """
    if dt is None:
        return None

    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)

    return dt.astimezone(timezone.utc)


def days_ago(days: int, now: datetime | None = None) -> datetime:
    """Get a datetime N days before ``now`` (defaults to the current time)."""
    return (now or utc_now()) - timedelta(days=days)


def format_date(dt: datetime) -> str:
    """Format a datetime as its UTC calendar date.

    Args:
        dt: Datetime to format.

    Returns:
        Date string in ``YYYY-MM-DD`` form.
    """
    return ensure_utc(dt).date().isoformat()


def format_iso(dt: datetime | None) -> str | None:
    """Format a datetime as ISO 8601 string.

    Args:
        dt: Datetime to format.

    Returns:
        ISO 8601 formatted string or None.
    """
    if dt is None:
        return None

    return ensure_utc(dt).isoformat()


def parse_iso(iso_string: str | None) -> datetime | None:
    """Parse an ISO 8601 datetime string.

    Empty strings are treated like None since the backend sends ``""``
    when it has no expiry to report.

    Args:
        iso_string: ISO 8601 formatted string.

    Returns:
        Timezone-aware UTC datetime or None.

    Raises:
        ValueError: If the string is not valid ISO 8601.
    """
    if not iso_string:
        return None

    dt = datetime.fromisoformat(iso_string.replace("Z", "+00:00"))
    return ensure_utc(dt)


def seconds_between(start: datetime, end: datetime) -> float:
    """Elapsed seconds from ``start`` to ``end``."""
    return (ensure_utc(end) - ensure_utc(start)).total_seconds()
