"""Great-circle helpers on a spherical Earth.

Points are ``(latitude, longitude)`` tuples in decimal degrees.  Both
functions are total: degenerate input (identical or antipodal points)
yields a finite value instead of raising or returning ``nan``.
"""

from __future__ import annotations

import math

# Sphere radius used for all distance work (6378 km, in meters).
EARTH_RADIUS_M = 6378000.0

Point = tuple[float, float]


def distance(p1: Point, p2: Point) -> float:
    """Return the great-circle distance between *p1* and *p2* in meters."""
    lat1, lon1 = math.radians(p1[0]), math.radians(p1[1])
    lat2, lon2 = math.radians(p2[0]), math.radians(p2[1])

    h = (
        math.sin((lat2 - lat1) / 2) ** 2
        + math.cos(lat1) * math.cos(lat2) * math.sin((lon2 - lon1) / 2) ** 2
    )
    # rounding can push h just outside [0, 1]
    h = min(1.0, max(0.0, h))
    result = 2 * EARTH_RADIUS_M * math.asin(math.sqrt(h))
    if not math.isfinite(result):
        return 0.0
    return result


def waypoint(p1: Point, p2: Point, fraction: float) -> Point:
    """Return the point at *fraction* of the way from *p1* to *p2*.

    Follows the great circle through both points.  ``fraction <= 0``
    returns *p1* and ``fraction >= 1`` returns *p2* unchanged.
    """
    if fraction <= 0:
        return (p1[0], p1[1])
    if fraction >= 1:
        return (p2[0], p2[1])

    delta = distance(p1, p2) / EARTH_RADIUS_M
    if delta == 0:
        return (p1[0], p1[1])

    sin_delta = math.sin(delta)
    if abs(sin_delta) < 1e-12:
        # Antipodal: every great circle qualifies, fall back to a straight blend.
        return (
            p1[0] + (p2[0] - p1[0]) * fraction,
            p1[1] + (p2[1] - p1[1]) * fraction,
        )

    lat1, lon1 = math.radians(p1[0]), math.radians(p1[1])
    lat2, lon2 = math.radians(p2[0]), math.radians(p2[1])

    a = math.sin((1 - fraction) * delta) / sin_delta
    b = math.sin(fraction * delta) / sin_delta

    x = a * math.cos(lat1) * math.cos(lon1) + b * math.cos(lat2) * math.cos(lon2)
    y = a * math.cos(lat1) * math.sin(lon1) + b * math.cos(lat2) * math.sin(lon2)
    z = a * math.sin(lat1) + b * math.sin(lat2)

    lat = math.atan2(z, math.sqrt(x * x + y * y))
    lon = math.atan2(y, x)
    return (math.degrees(lat), math.degrees(lon))
