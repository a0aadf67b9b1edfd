"""In-memory report buckets and request counters.

``ReportStore`` is drained on every scrape; ``RequestCounters`` lives for
the whole process.  Each store guards its dict with its own lock so a drain
can never interleave with a ``record``.
"""

from __future__ import annotations

import logging
import threading
from typing import Any

from owntracks_exporter.models import ReportBucket, Sample

logger = logging.getLogger(__name__)

BucketKey = tuple[str, int]
CounterKey = tuple[str, tuple[tuple[str, str], ...]]

REPORT_FIELDS = frozenset(ReportBucket.__dataclass_fields__)


class ReportStore:
    """Sparse ``(tid, timestamp_ms) → ReportBucket`` map."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._buckets: dict[BucketKey, ReportBucket] = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._buckets)

    def record(self, tid: str, timestamp: int, field: str, value: Any) -> None:
        """Set *field* of the ``(tid, timestamp)`` bucket, creating it if needed."""
        if field not in REPORT_FIELDS:
            logger.debug("Ignoring unknown report field %s for %s", field, tid)
            return
        with self._lock:
            bucket = self._buckets.get((tid, timestamp))
            if bucket is None:
                bucket = ReportBucket()
                self._buckets[(tid, timestamp)] = bucket
            setattr(bucket, field, value)

    def record_location(self, sample: Sample) -> None:
        """Write the coordinate, altitude and distance axes of *sample*."""
        self.record(sample.tid, sample.timestamp, "coordinate", sample.point)
        if sample.altitude is not None:
            self.record(sample.tid, sample.timestamp, "altitude", sample.altitude)
        if sample.distance is not None:
            self.record(sample.tid, sample.timestamp, "distance", sample.distance)

    def record_battery(self, sample: Sample) -> None:
        """Write the battery axis of *sample*."""
        if sample.battery is not None:
            self.record(sample.tid, sample.timestamp, "battery_charge", sample.battery)

    def drain(self) -> dict[BucketKey, ReportBucket]:
        """Return every bucket and leave the store empty."""
        with self._lock:
            buckets = self._buckets
            self._buckets = {}
        logger.debug("Drained %d report buckets", len(buckets))
        return buckets


class RequestCounters:
    """Monotonic per-``(metric, tags)`` counters; never drained."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._counts: dict[CounterKey, int] = {}

    def increment(self, tid: str, payload_type: str, metric: str = "requests") -> int:
        key: CounterKey = (metric, (("tid", tid), ("type", payload_type)))
        with self._lock:
            self._counts[key] = self._counts.get(key, 0) + 1
            return self._counts[key]

    def snapshot(self) -> dict[CounterKey, int]:
        with self._lock:
            return dict(self._counts)
