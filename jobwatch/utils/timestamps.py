"""UTC timestamp helpers.

All timestamps inside jobwatch are timezone-aware UTC datetimes. The storage
layer keeps them as ISO 8601 strings with a ``Z`` suffix.
"""

from datetime import datetime, timezone
from typing import Optional, Union


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """Treat naive datetimes as UTC and convert aware ones to UTC.

    Example:
        >>> ensure_utc(datetime(2025, 1, 1)).tzinfo == timezone.utc
        True
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO 8601 string (``Z`` suffix allowed) into UTC.

    Returns None for empty or unparsable input instead of raising.
    """
    if not value or not value.strip():
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return ensure_utc(datetime.fromisoformat(text))
    except ValueError:
        return None


def parse_epoch_millis(value: Union[int, float, str, None]) -> Optional[datetime]:
    """Convert a Unix timestamp in milliseconds to an aware UTC datetime."""
    if value in (None, "", 0):
        return None
    try:
        return datetime.fromtimestamp(float(value) / 1000, tz=timezone.utc)
    except (TypeError, ValueError, OverflowError, OSError):
        return None


def format_timestamp(dt: Optional[datetime]) -> Optional[str]:
    """Render a datetime as ``YYYY-MM-DDTHH:MM:SS.ffffffZ`` (UTC)."""
    if dt is None:
        return None
    return ensure_utc(dt).strftime("%Y-%m-%dT%H:%M:%S.%fZ")
