"""Great-circle distance and time-delta helpers.

Pure functions; no I/O.
"""

from __future__ import annotations

import math
from datetime import datetime, timezone

EARTH_RADIUS_KM = 6371.0


def distance_km(a: tuple[float, float], b: tuple[float, float]) -> float:
    """Haversine distance in kilometres between two ``(lat, lng)`` pairs."""
    lat1, lng1 = a
    lat2, lng2 = b
    dlat = math.radians(lat2 - lat1)
    dlng = math.radians(lng2 - lng1)
    h = (
        math.sin(dlat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(dlng / 2) ** 2
    )
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))


def _as_utc(value: datetime) -> datetime:
    # Naive timestamps are stored as UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def hours_between(t1: datetime, t2: datetime) -> float:
    """Absolute difference between two timestamps in hours."""
    return abs((_as_utc(t1) - _as_utc(t2)).total_seconds()) / 3600.0


def to_naive_utc(value: datetime) -> datetime:
    """Normalize a timestamp to the naive-UTC form the store uses."""
    return _as_utc(value).replace(tzinfo=None)
