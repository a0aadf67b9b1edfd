"""Render report buckets and request counters as Prometheus text.

Output layout per metric family::

    # HELP <prefix>_<metric> <description>
    # TYPE <prefix>_<metric> <gauge|counter>
    <prefix>_<metric>{tid="<device>"[,<tag>="<subkey>"]} <value> [<timestamp_ms>]

Families appear in a fixed order and lines within a family are sorted by
device, then tag value, then timestamp.  Rendering drains the report
store; request counters are read without being reset.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable
from typing import Any, NamedTuple, Optional

from owntracks_exporter.report import ReportStore, RequestCounters

logger = logging.getLogger(__name__)

CONTENT_TYPE = "text/plain; version=0.0.4; charset=utf-8"

DEFAULT_PREFIX = "owntracks"


class MetricFamily(NamedTuple):
    name: str
    kind: str
    help: str


FAMILIES = (
    MetricFamily("location", "gauge", "Reported or interpolated position in decimal degrees"),
    MetricFamily("altitude", "gauge", "Altitude above sea level in meters"),
    MetricFamily("distance", "counter", "Cumulative great-circle distance travelled in meters"),
    MetricFamily("battery_charge", "gauge", "Device battery charge in percent"),
    MetricFamily("requests", "counter", "Payloads received per device and payload type"),
)


class _Line(NamedTuple):
    tid: str
    tags: tuple[tuple[str, str], ...]
    timestamp: Optional[int]
    value: Any


def render(
    report: ReportStore,
    counters: RequestCounters,
    prefix: str = DEFAULT_PREFIX,
) -> str:
    """Drain *report* and return the exposition text for it plus *counters*."""
    lines: dict[str, list[_Line]] = {family.name: [] for family in FAMILIES}

    for (tid, timestamp), bucket in report.drain().items():
        if bucket.coordinate is not None:
            lat, lon = bucket.coordinate
            lines["location"].append(_Line(tid, (("coordinate", "lat"),), timestamp, lat))
            lines["location"].append(_Line(tid, (("coordinate", "lon"),), timestamp, lon))
        if bucket.altitude is not None:
            lines["altitude"].append(_Line(tid, (), timestamp, bucket.altitude))
        if bucket.distance is not None:
            lines["distance"].append(_Line(tid, (), timestamp, bucket.distance))
        if bucket.battery_charge is not None:
            lines["battery_charge"].append(_Line(tid, (), timestamp, bucket.battery_charge))

    for (metric, tags), count in counters.snapshot().items():
        tag_map = dict(tags)
        tid = tag_map.pop("tid", "")
        lines.setdefault(metric, []).append(
            _Line(tid, tuple(sorted(tag_map.items())), None, count)
        )

    out: list[str] = []
    for family in FAMILIES:
        family_lines = lines.get(family.name)
        if not family_lines:
            continue
        out.extend(_render_family(prefix, family, family_lines))
    return "".join(out)


def _render_family(prefix: str, family: MetricFamily, lines: Iterable[_Line]) -> list[str]:
    name = f"{prefix}_{family.name}"
    out = [f"# HELP {name} {family.help}\n", f"# TYPE {name} {family.kind}\n"]
    for line in sorted(lines, key=lambda ln: (ln.tid, ln.tags, ln.timestamp or 0)):
        labels = ",".join(
            f'{key}="{_escape(value)}"' for key, value in (("tid", line.tid),) + line.tags
        )
        value = _format_value(line.value)
        if value is None:
            logger.warning(
                "Skipping %s sample for %s at %s: non-numeric value %r",
                name,
                line.tid,
                line.timestamp,
                line.value,
            )
            continue
        text = f"{name}{{{labels}}} {value}"
        if line.timestamp is not None:
            text += f" {line.timestamp}"
        out.append(text + "\n")
    return out


def _escape(value: str) -> str:
    """Escape a label value per the text exposition format."""
    return str(value).replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n")


def _format_value(value: Any) -> Optional[str]:
    """Text form of *value*, or ``None`` when it is not a number."""
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, int):
        return str(value)
    try:
        value = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "+Inf" if value > 0 else "-Inf"
    return repr(value)
