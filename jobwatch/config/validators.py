"""Non-fatal configuration advisories."""

import warnings
from typing import Any, Dict, List

from .duration import DurationParseError, parse_duration

_PROFILE_CRITERIA = ("title", "keywords", "location", "contract_types", "salary_range", "day_rate_range")


def check_for_warnings(config_dict: Dict[str, Any]) -> List[str]:
    """Inspect a raw config mapping for settings that are legal but suspicious.

    Args:
        config_dict: Parsed YAML before validation

    Returns:
        Warning messages (empty when nothing stands out)
    """
    messages = []

    for site in config_dict.get("sites") or []:
        if isinstance(site, dict) and site.get("enabled") is False:
            messages.append(f"Site '{site.get('name', 'unknown')}' is disabled and will be skipped")

    for profile in config_dict.get("profiles") or []:
        if not isinstance(profile, dict):
            continue
        location = profile.get("location") or {}
        has_location = isinstance(location, dict) and any(
            location.get(key) for key in ("city", "state", "country")
        )
        if not has_location and not any(
            profile.get(key) for key in _PROFILE_CRITERIA if key != "location"
        ):
            messages.append(
                f"Profile '{profile.get('id', 'unknown')}' has no criteria and will match every posting"
            )

    interval = config_dict.get("scan_interval")
    seconds = _interval_seconds(interval)
    if seconds is not None and seconds < 600:
        messages.append(f"Short scan_interval ({interval}) may trigger board rate limits")

    executor = config_dict.get("executor") or {}
    if isinstance(executor, dict):
        workers = executor.get("max_workers")
        if isinstance(workers, int) and workers > 10:
            messages.append(f"max_workers={workers} runs many units at once; boards may throttle")

    return messages


def emit_warnings(messages: List[str]) -> None:
    """Emit each message as a UserWarning."""
    for message in messages:
        warnings.warn(message, UserWarning, stacklevel=2)


def _interval_seconds(value: Any):
    """Parsed scan interval, or None when absent or malformed (model validation reports it)."""
    if not isinstance(value, str):
        return None
    try:
        return parse_duration(value)
    except DurationParseError:
        return None
