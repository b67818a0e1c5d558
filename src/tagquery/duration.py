"""Duration parsing utilities."""

import math
import re

from tagquery.types import Duration

_DURATION_PATTERN = re.compile(r"^(\d+(?:\.\d+)?)(ms|s|m|h|d)$")
_UNITS: dict[str, int] = {
    "ms": 1,
    "s": 1000,
    "m": 60_000,
    "h": 3_600_000,
    "d": 86_400_000,
}


def parse_duration(duration: Duration) -> int | float:
    """Parse duration string to milliseconds. Passthrough if already a number.

    ``math.inf`` is accepted and means "never".
    """
    if isinstance(duration, bool):
        raise TypeError(f"Invalid duration: {duration!r}")

    if isinstance(duration, (int, float)):
        if math.isnan(duration) or duration < 0:
            raise ValueError(f"Invalid duration: {duration!r}")
        return duration

    match = _DURATION_PATTERN.match(duration.strip())
    if not match:
        raise ValueError(f"Invalid duration: {duration!r}")

    value, unit = match.groups()
    if "." in value:
        return float(value) * _UNITS[unit]
    return int(value) * _UNITS[unit]
