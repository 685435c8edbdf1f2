# gpxstages/analyze/geodesic.py
"""
Surface distance and speed helpers.
"""

from __future__ import annotations

import datetime as _dt
from typing import Optional, Union

from haversine import haversine, Unit

LatLon = tuple[float, float]


def _lat_lon(p) -> LatLon:
    if isinstance(p, tuple):
        return p
    return (p.lat, p.lon)


def distance_metres(p1: Union[LatLon, object], p2: Union[LatLon, object]) -> float:
    """
    Great-circle surface distance in metres between two coordinates.

    Accepts (lat, lon) tuples or anything with lat/lon attributes. A degree
    of longitude shrinks with latitude, so this never works on raw degrees.
    """
    return haversine(_lat_lon(p1), _lat_lon(p2), unit=Unit.METERS)


def speed_kmh(metres: float, seconds: float) -> Optional[float]:
    """Speed in km/h from metres and seconds, None for a non-positive duration."""
    if seconds <= 0:
        return None
    return (metres / seconds) * 3.6


def speed_kmh_from_duration(metres: float, duration: Optional[_dt.timedelta]) -> Optional[float]:
    if duration is None:
        return None
    return speed_kmh(metres, duration.total_seconds())
