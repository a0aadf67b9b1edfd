"""Application context and the per-payload ingest pipeline.

One location payload flows through::

    classify → count → filter → previous sample from tracker
      → location interpolation → record
      → battery interpolation  → record
      → tracker update → reply (cards + peer locations)

``TrackingContext`` owns every store; nothing here is module-global, so a
test (or a second server) simply builds its own context.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional

from owntracks_exporter.cards import CardDistributor
from owntracks_exporter.classifier import classify
from owntracks_exporter.config import AppConfig, FilterConfig
from owntracks_exporter.exposition import DEFAULT_PREFIX, render
from owntracks_exporter.filter import SampleFilter
from owntracks_exporter.interpolate import (
    INTERVAL_MS,
    interpolate_battery,
    interpolate_location,
)
from owntracks_exporter.models import Card, MalformedPayload, Sample
from owntracks_exporter.report import ReportStore, RequestCounters
from owntracks_exporter.tracker import DeviceStateTracker

logger = logging.getLogger(__name__)


@dataclass
class TrackingContext:
    """Every piece of mutable state the service keeps in memory."""

    report: ReportStore = field(default_factory=ReportStore)
    counters: RequestCounters = field(default_factory=RequestCounters)
    devices: DeviceStateTracker = field(default_factory=DeviceStateTracker)
    cards: CardDistributor = field(default_factory=lambda: CardDistributor({}))
    interval_ms: int = INTERVAL_MS
    prefix: str = DEFAULT_PREFIX

    @classmethod
    def from_config(cls, cfg: AppConfig, cards: Optional[dict[str, Card]] = None) -> "TrackingContext":
        return cls(
            cards=CardDistributor(
                cards or {},
                resend_interval=cfg.cards.resend_interval_seconds,
            ),
            interval_ms=cfg.interpolation.interval_ms,
            prefix=cfg.metrics.prefix,
        )


class LocationPipeline:
    """Runs raw request bodies through the interpolation and reporting core."""

    def __init__(
        self,
        context: TrackingContext,
        sample_filter: Optional[SampleFilter] = None,
    ) -> None:
        self._ctx = context
        self._filter = sample_filter or SampleFilter(FilterConfig())

    @property
    def context(self) -> TrackingContext:
        return self._ctx

    def handle(self, raw: str | bytes) -> list[dict]:
        """Process one request body and return the reply objects."""
        result = classify(raw)

        if isinstance(result, MalformedPayload):
            logger.warning(
                "Malformed payload (%s): %s",
                result.code,
                result.message,
            )
            return []

        if isinstance(result, dict):
            tid = str(result.get("tid") or "unknown")
            self._ctx.counters.increment(tid, str(result["_type"]))
            logger.debug("Ignoring %s payload from %s", result["_type"], tid)
            return []

        self._ctx.counters.increment(result.tid, result.type)
        sample = self._filter.apply(result)
        if sample is None:
            return []
        return self.submit(sample)

    def submit(self, sample: Sample) -> list[dict]:
        """Record *sample* (with interpolation) and build the reply for its device."""
        previous = self._ctx.devices.get(sample.tid)

        located = interpolate_location(previous, sample, self._ctx.interval_ms)
        for point in located:
            self._ctx.report.record_location(point)

        charged = interpolate_battery(previous, sample, self._ctx.interval_ms)
        for point in charged:
            self._ctx.report.record_battery(point)

        if not located and not charged and previous is not None:
            logger.debug(
                "Skipped interpolation for %s: timestamp %d not after %d",
                sample.tid,
                sample.timestamp,
                previous.timestamp,
            )
        else:
            logger.debug(
                "Recorded %s: %d location points, %d battery points",
                sample.tid,
                len(located),
                len(charged),
            )

        self._ctx.devices.set(sample.tid, sample)

        reply = [card.to_wire() for card in self._ctx.cards.due_for(sample.tid)]
        reply.extend(peer.to_wire() for peer in self._ctx.devices.snapshot_excluding(sample.tid))
        return reply

    def scrape(self) -> str:
        """Render the exposition text, draining the report buckets."""
        return render(self._ctx.report, self._ctx.counters, prefix=self._ctx.prefix)
