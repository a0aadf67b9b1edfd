"""Temporal interpolation between two samples of the same device.

Two independent dimensions are handled::

    location path   lat/lon (great circle) + altitude + cumulative distance
    battery path    battery charge

Both split the gap between ``previous`` and ``current`` into
``ceil(time_diff / interval_ms)`` equal steps and synthesize one sample per
inner step.  A gap of zero or less (duplicate or out-of-order timestamp)
produces nothing.

Altitude, distance and battery of each synthesized sample are derived from
the *preceding synthesized sample* plus a per-step delta, not recomputed
from the endpoints, so rounding compounds over long gaps.
"""

from __future__ import annotations

import math
from dataclasses import replace
from typing import Optional

from owntracks_exporter import geodesy
from owntracks_exporter.models import Sample

# Default interpolation granularity: one synthesized point per minute.
INTERVAL_MS = 60000


def count_points(time_diff: int, interval_ms: int = INTERVAL_MS) -> int:
    """Number of steps the gap is split into (``1`` means no inner points)."""
    return math.ceil(time_diff / interval_ms)


def interpolate_location(
    previous: Optional[Sample],
    current: Sample,
    interval_ms: int = INTERVAL_MS,
) -> list[Sample]:
    """Return the samples to record for the location dimension.

    The list is in recording order and, when non-empty, always ends with
    *current* itself.  ``current.distance`` is updated in place to the
    running total carried from *previous*.

    Parameters
    ----------
    previous:
        Last processed sample for the device, or ``None`` for a new device.
    current:
        The freshly received sample.
    interval_ms:
        Interpolation granularity in milliseconds.

    Returns
    -------
    list[Sample]
        Empty when the time gap is zero or negative.
    """
    if previous is None:
        if current.distance is None:
            current.distance = 0.0
        return [current]

    time_diff = current.timestamp - previous.timestamp
    if time_diff <= 0:
        return []

    distance_diff = geodesy.distance(previous.point, current.point)
    if not math.isfinite(distance_diff):
        distance_diff = 0.0
    previous_distance = previous.distance or 0.0
    current.distance = previous_distance + distance_diff

    points = count_points(time_diff, interval_ms)
    if points <= 1:
        return [current]

    previous_altitude = previous.altitude or 0.0
    current_altitude = current.altitude or 0.0

    step_ms = math.ceil(time_diff / points)
    altitude_step = (current_altitude - previous_altitude) / points
    distance_step = distance_diff / points

    out: list[Sample] = []
    last_timestamp = previous.timestamp
    last_altitude = previous_altitude
    last_distance = previous_distance
    for i in range(1, points):
        lat, lon = geodesy.waypoint(previous.point, current.point, i / points)
        last_timestamp += step_ms
        last_altitude += altitude_step
        last_distance += distance_step
        out.append(
            Sample(
                tid=current.tid,
                timestamp=last_timestamp,
                latitude=lat,
                longitude=lon,
                altitude=last_altitude,
                distance=last_distance,
            )
        )

    out.append(current)
    return out


def interpolate_battery(
    previous: Optional[Sample],
    current: Sample,
    interval_ms: int = INTERVAL_MS,
) -> list[Sample]:
    """Return the samples to record for the battery dimension.

    *current* comes first whenever it carries a battery value; synthesized
    samples follow.  Nothing is interpolated when *previous* is missing or
    has no battery value, and nothing at all is returned when *previous*
    is not older than *current*.
    """
    if current.battery is None:
        return []
    if previous is None:
        return [current]

    time_diff = current.timestamp - previous.timestamp
    if time_diff <= 0:
        return []

    out = [current]
    if previous.battery is None:
        return out

    points = count_points(time_diff, interval_ms)
    if points <= 1:
        return out

    step_ms = math.ceil(time_diff / points)
    battery_step = (current.battery - previous.battery) / points

    last_timestamp = previous.timestamp
    last_battery = previous.battery
    for _ in range(1, points):
        last_timestamp += step_ms
        last_battery += battery_step
        out.append(replace(current, timestamp=last_timestamp, battery=last_battery))

    return out
