from __future__ import annotations

import math
import re
from typing import Union

# Hemisphere prefix, e.g. N59°26'13.056" or w 69° 05' 18.44"
_DMS_PATTERN = re.compile(
    r"""^\s*
    (?P<hemisphere>[NSEW])\s*
    (?P<degrees>\d{1,3})\s*°\s*
    (?P<minutes>\d{1,2})\s*'\s*
    (?P<seconds>\d+(?:\.\d+)?)\s*"\s*
    $""",
    re.VERBOSE | re.IGNORECASE,
)

_NEGATIVE_HEMISPHERES = ("S", "W")


def dms_to_decimal(text: str) -> float:
    """
    Decimal degrees from a hemisphere-prefixed DMS string.

        N59°26'13.056"  -> 59.43696
        W69°05'18.444"  -> -69.0884567
    """
    match = _DMS_PATTERN.match(text)
    if match is None:
        raise ValueError(f"Bad DMS format: {text!r}")

    degrees, minutes, seconds = (
        float(match.group(name)) for name in ("degrees", "minutes", "seconds")
    )
    if minutes >= 60 or seconds >= 60:
        raise ValueError(f"Bad DMS format: {text!r}")

    sign = -1.0 if match.group("hemisphere").upper() in _NEGATIVE_HEMISPHERES else 1.0
    return sign * (degrees + minutes / 60.0 + seconds / 3600.0)


def parse_angle(value: Union[str, float, int]) -> float:
    """Decimal degrees from a number, a numeric string or a DMS string."""
    if isinstance(value, (int, float)):
        degrees = float(value)
    else:
        stripped = str(value).strip()
        try:
            degrees = float(stripped)
        except ValueError:
            degrees = dms_to_decimal(stripped)
    if not math.isfinite(degrees):
        raise ValueError(f"Bad angle: {value!r}")
    return degrees
