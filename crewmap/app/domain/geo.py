"""
Geo math utilities.

Great-circle distance and compass heading deltas. Pure functions, no
error states; used by the sync engine and trail aggregation.
"""

from math import asin, cos, radians, sin, sqrt
from typing import Any, Tuple, Union

EARTH_RADIUS_M = 6_371_000  # Earth radius in meters

Point = Union[Tuple[float, float], Any]


def _coords(point: Point) -> Tuple[float, float]:
    """Accept a (lat, lon) tuple or anything with latitude/longitude attributes."""
    if isinstance(point, tuple):
        return point[0], point[1]
    return point.latitude, point.longitude


def distance_meters(a: Point, b: Point) -> float:
    """
    Great-circle distance between two points via the Haversine formula.

    Args:
        a: First point, (lat, lon) in degrees or an object with coordinates
        b: Second point

    Returns:
        Distance in meters
    """
    lat1, lon1 = _coords(a)
    lat2, lon2 = _coords(b)
    lat1, lon1, lat2, lon2 = map(radians, [lat1, lon1, lat2, lon2])
    dlat = lat2 - lat1
    dlon = lon2 - lon1

    h = sin(dlat / 2) ** 2 + cos(lat1) * cos(lat2) * sin(dlon / 2) ** 2
    # Rounding can push h just past 1 for near-antipodal points
    h = min(1.0, max(0.0, h))
    c = 2 * asin(sqrt(h))

    return EARTH_RADIUS_M * c


def angle_delta_degrees(a: float, b: float) -> float:
    """
    Absolute difference between two compass headings, wraparound aware.

    angle_delta_degrees(355, 5) == 10, never 350. Result is in [0, 180].
    """
    d = abs(a - b) % 360
    if d > 180:
        d = 360 - d
    return d
