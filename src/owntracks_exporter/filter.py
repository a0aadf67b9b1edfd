"""Sample filtering by device identity and reported accuracy.

Filter chain (evaluated in order)::

    1. ``tid`` in ``drop_device_ids``                          → drop
    2. ``keep_device_ids`` non-empty AND ``tid`` not in list   → drop
    3. ``max_accuracy_m`` set AND ``accuracy`` above it        → drop
    4. Otherwise                                               → pass

The accuracy gate is off unless ``max_accuracy_m`` is configured; turning
it on changes how distance accumulates, since dropped samples never become
an interpolation baseline.
"""

from __future__ import annotations

import logging
from typing import Optional

from owntracks_exporter.config import FilterConfig
from owntracks_exporter.models import Sample

logger = logging.getLogger(__name__)


class SampleFilter:
    """Stateless filter that decides whether a sample is processed."""

    def __init__(self, config: FilterConfig) -> None:
        self._drop_device_ids: set[str] = set(config.drop_device_ids)
        self._keep_device_ids: set[str] = set(config.keep_device_ids)
        self._max_accuracy_m: Optional[float] = config.max_accuracy_m

    def apply(self, sample: Sample) -> Optional[Sample]:
        """Evaluate the filter chain.

        Parameters
        ----------
        sample:
            Location sample from the classifier.

        Returns
        -------
        Sample or None
            The input unchanged when it passes, ``None`` when filtered.
        """
        # 1. Drop by explicit device deny-list
        if sample.tid in self._drop_device_ids:
            logger.debug("Filtered device %s: in drop_device_ids", sample.tid)
            return None

        # 2. Keep-list (allow-list)
        if self._keep_device_ids and sample.tid not in self._keep_device_ids:
            logger.debug("Filtered device %s: not in keep_device_ids", sample.tid)
            return None

        # 3. Accuracy gate
        if (
            self._max_accuracy_m is not None
            and sample.accuracy is not None
            and sample.accuracy > self._max_accuracy_m
        ):
            logger.debug(
                "Filtered device %s: accuracy %.1f m above %.1f m",
                sample.tid,
                sample.accuracy,
                self._max_accuracy_m,
            )
            return None

        return sample
