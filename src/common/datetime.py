"""Datetime utilities for HTTP headers and epoch-millisecond timestamps."""

from datetime import datetime, timezone
from email.utils import parsedate_to_datetime


def http_date_to_millis(value: str | None) -> int | None:
    """Convert an HTTP date header (e.g. Last-Modified) to epoch milliseconds.

    Returns None when the header is missing or cannot be parsed.
    """
    if not value:
        return None
    try:
        parsed = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if parsed is None:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return int(parsed.timestamp() * 1000)


def millis_to_datetime(value: int) -> datetime:
    """Convert epoch milliseconds to an aware UTC datetime."""
    return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
