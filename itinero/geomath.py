"""Distance and clock-time helpers shared by every planning component."""

from __future__ import annotations

import math
import re
import unicodedata
from datetime import time
from math import asin, cos, radians, sin, sqrt
from typing import Iterable, Optional, Sequence, Tuple

MINUTES_PER_DAY = 24 * 60
EARTH_RADIUS_KM = 6371.0

_TIME_PATTERN = re.compile(r"^\s*(\d{1,2}):(\d{2})(?::\d{2})?\s*$")

# Urban averages including stops and traffic (km/h) and typical waits (min).
TRAVEL_SPEEDS_KMH = {
    "walking": 5.0,
    "car": 35.0,
    "bus": 20.0,
    "metro": 30.0,
    "train": 60.0,
    "taxi": 30.0,
}
TRAVEL_WAIT_MINUTES = {
    "walking": 0,
    "car": 5,
    "bus": 10,
    "metro": 5,
    "train": 10,
    "taxi": 8,
}
MIN_TRAVEL_MINUTES = 5
MAX_WALKING_DISTANCE_KM = 2.0

Coordinates = Tuple[float, float]


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Return the great-circle distance in kilometres between two coordinates."""

    d_lat = radians(lat2 - lat1)
    d_lon = radians(lon2 - lon1)
    a = sin(d_lat / 2) ** 2 + cos(radians(lat1)) * cos(radians(lat2)) * sin(d_lon / 2) ** 2
    c = 2 * asin(sqrt(min(1.0, a)))
    return EARTH_RADIUS_KM * c


def parse_time(value: str) -> int:
    """Convert an ``HH:MM`` string to minutes since midnight.

    Hours above 23 are accepted so that late events (``25:30``) can be
    expressed by callers that already work on an extended clock.
    """

    match = _TIME_PATTERN.match(value)
    if not match:
        raise ValueError(f"Invalid time {value!r}; expected HH:MM")
    hours, minutes = int(match.group(1)), int(match.group(2))
    if minutes > 59 or hours > 47:
        raise ValueError(f"Invalid time {value!r}; expected HH:MM")
    return hours * 60 + minutes


def format_time(minutes: int) -> str:
    """Render minutes since midnight as ``HH:MM``, wrapping past midnight."""

    wrapped = int(minutes) % MINUTES_PER_DAY
    return f"{wrapped // 60:02d}:{wrapped % 60:02d}"


def coerce_minutes(value: object) -> int:
    """Accept minutes, ``HH:MM`` strings or :class:`datetime.time` values."""

    if isinstance(value, bool):
        raise ValueError("Boolean is not a valid time")
    if isinstance(value, int):
        if value < 0:
            raise ValueError(f"Negative time {value!r}")
        return value
    if isinstance(value, float) and value.is_integer() and value >= 0:
        return int(value)
    if isinstance(value, time):
        return value.hour * 60 + value.minute
    if isinstance(value, str):
        return parse_time(value)
    raise ValueError(f"Unsupported time value {value!r}")


def normalise_interval(start: int, end: int) -> Tuple[int, int]:
    """Return ``(start, end)`` with ``end`` moved past midnight when needed."""

    if end < start:
        end += MINUTES_PER_DAY
    return start, end


def intervals_overlap(a_start: int, a_end: int, b_start: int, b_end: int) -> bool:
    return a_start < b_end and b_start < a_end


def percentile(values: Sequence[float], p: float) -> float:
    """Nearest-rank percentile: the sorted value at ``ceil(p * n) - 1``."""

    if not values:
        return 0.0
    ordered = sorted(values)
    n = len(ordered)
    index = max(0, min(n - 1, math.ceil(p * n) - 1))
    return ordered[index]


def centroid(points: Iterable[Coordinates]) -> Optional[Coordinates]:
    """Arithmetic mean of coordinates, ``None`` when there are none."""

    collected = list(points)
    if not collected:
        return None
    lat = sum(point[0] for point in collected) / len(collected)
    lon = sum(point[1] for point in collected) / len(collected)
    return (lat, lon)


def is_geocoded(lat: Optional[float], lon: Optional[float]) -> bool:
    """``(0, 0)`` and missing values mean the place was never geocoded."""

    if lat is None or lon is None:
        return False
    return not (lat == 0 and lon == 0)


def is_valid_coordinates(lat: Optional[float], lon: Optional[float]) -> bool:
    if lat is None or lon is None:
        return False
    if not (math.isfinite(lat) and math.isfinite(lon)):
        return False
    return -90.0 <= lat <= 90.0 and -180.0 <= lon <= 180.0


def estimate_travel_minutes(distance_km: float, mode: str = "walking") -> int:
    """Door-to-door minutes for an urban hop, waiting time included."""

    try:
        speed = TRAVEL_SPEEDS_KMH[mode]
    except KeyError:
        raise ValueError(f"Unknown travel mode {mode!r}") from None
    riding = math.ceil(max(0.0, distance_km) / speed * 60)
    return max(riding + TRAVEL_WAIT_MINUTES[mode], MIN_TRAVEL_MINUTES)


def suggest_travel_mode(distance_km: float) -> str:
    """Pick a sensible urban mode for a hop of the given length."""

    if distance_km <= MAX_WALKING_DISTANCE_KM:
        return "walking"
    if distance_km <= 5:
        return "metro"
    if distance_km <= 15:
        return "bus"
    return "car"


def normalise_name(value: str) -> str:
    """Lowercase, trim and strip accents for tolerant name matching."""

    decomposed = unicodedata.normalize("NFD", value.strip().lower())
    return "".join(char for char in decomposed if not unicodedata.combining(char))


def normalise_title(value: str) -> str:
    """Case- and whitespace-insensitive key used to spot repeated titles."""

    return " ".join(value.lower().split())


__all__ = [
    "Coordinates",
    "EARTH_RADIUS_KM",
    "MAX_WALKING_DISTANCE_KM",
    "MINUTES_PER_DAY",
    "TRAVEL_SPEEDS_KMH",
    "TRAVEL_WAIT_MINUTES",
    "centroid",
    "coerce_minutes",
    "estimate_travel_minutes",
    "format_time",
    "haversine_km",
    "intervals_overlap",
    "is_geocoded",
    "is_valid_coordinates",
    "normalise_interval",
    "normalise_name",
    "normalise_title",
    "parse_time",
    "percentile",
    "suggest_travel_mode",
]
