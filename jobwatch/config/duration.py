"""Duration strings for the scan interval ("15m", "1h30m", "PT15M", "P1D")."""

import re

_ISO_DURATION = re.compile(
    r"^P(?:(?P<days>\d+)D)?(?:T(?:(?P<hours>\d+)H)?(?:(?P<minutes>\d+)M)?(?:(?P<seconds>\d+)S)?)?$",
    re.IGNORECASE,
)
_HUMAN_PART = re.compile(r"(\d+)\s*([smhd])", re.IGNORECASE)
_UNIT_SECONDS = {"s": 1, "m": 60, "h": 3600, "d": 86400}


class DurationParseError(ValueError):
    """Raised when a duration string cannot be parsed or is out of range."""


def parse_duration(value: str) -> int:
    """Parse a duration string into seconds.

    Args:
        value: ISO-8601 ("PT15M") or compact human form ("15m", "1h30m")

    Returns:
        Duration in seconds

    Raises:
        DurationParseError: If the string is empty, malformed or zero

    Examples:
        >>> parse_duration("15m")
        900
        >>> parse_duration("PT1H30M")
        5400
    """
    text = (value or "").strip()
    if not text:
        raise DurationParseError("Duration string cannot be empty")

    if text[0] in "pP":
        match = _ISO_DURATION.match(text)
        if not match or text.upper() in ("P", "PT"):
            raise DurationParseError(f"Invalid ISO-8601 duration: '{value}'")
        parts = {key: int(val) for key, val in match.groupdict().items() if val}
        seconds = (
            parts.get("days", 0) * 86400
            + parts.get("hours", 0) * 3600
            + parts.get("minutes", 0) * 60
            + parts.get("seconds", 0)
        )
    else:
        compact = text.replace(" ", "")
        pieces = _HUMAN_PART.findall(compact)
        if not pieces or "".join(n + u for n, u in pieces).lower() != compact.lower():
            raise DurationParseError(
                f"Invalid duration: '{value}'. Use forms like '30s', '15m', '1h30m' or 'PT15M'"
            )
        seconds = sum(int(number) * _UNIT_SECONDS[unit.lower()] for number, unit in pieces)

    if seconds <= 0:
        raise DurationParseError(f"Duration must be positive: '{value}'")
    return seconds


def validate_duration_range(seconds: int, min_seconds: int = 300, max_seconds: int = 86400) -> None:
    """Check that a parsed duration lies within ``[min_seconds, max_seconds]``.

    Raises:
        DurationParseError: If the duration is outside the range
    """
    if seconds < min_seconds:
        raise DurationParseError(
            f"Duration of {seconds}s is shorter than the minimum of {min_seconds}s"
        )
    if seconds > max_seconds:
        raise DurationParseError(
            f"Duration of {seconds}s is longer than the maximum of {max_seconds}s"
        )
