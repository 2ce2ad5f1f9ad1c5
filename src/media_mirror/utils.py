"""Utility functions for media-mirror."""

import re
from datetime import timedelta

_DURATION_RE = re.compile(r"^\s*(\d+)\s*([smhdw])\s*$", re.IGNORECASE)
_DURATION_UNITS = {
    "s": "seconds",
    "m": "minutes",
    "h": "hours",
    "d": "days",
    "w": "weeks",
}


def humanize_size(size: float) -> str:
    """Convert bytes to human-readable format."""
    for unit in ["B", "KB", "MB", "GB"]:
        if size < 1024.:
            return f"{size:.1f} {unit}"
        size /= 1024
    return f"{size:.1f} TB"


def parse_duration(value: str) -> timedelta:
    """Parse a trailing window such as ``30m``, ``12h``, ``7d`` or ``2w``.

    Raises:
        ValueError: If the string is not a recognised duration
    """
    m = _DURATION_RE.match(value)
    if not m:
        raise ValueError(f"Invalid duration {value!r} (expected e.g. 12h, 7d, 2w)")
    amount, unit = m.groups()
    return timedelta(**{_DURATION_UNITS[unit.lower()]: int(amount)})


def shorten_url(url: str, limit: int = 96) -> str:
    """Truncate long URLs for log output (hosted URLs carry signed queries)."""
    return url if len(url) <= limit else url[:limit] + "..."
