"""Last processed sample per device.

Holds one ``Sample`` per ``tid`` for the lifetime of the process.  The
entry is the last sample *processed*, whatever its timestamp, and is the
``previous`` baseline for the next interpolation of that device.  The map
is **not** persisted; on restart every device starts without a baseline.
"""

from __future__ import annotations

import threading
from typing import Optional

from owntracks_exporter.models import PeerLocation, Sample


class DeviceStateTracker:
    """Thread-safe ``tid → Sample`` map."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._state: dict[str, Sample] = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._state)

    def get(self, tid: str) -> Optional[Sample]:
        with self._lock:
            return self._state.get(tid)

    def set(self, tid: str, sample: Sample) -> None:
        with self._lock:
            self._state[tid] = sample

    def snapshot_excluding(self, tid: str) -> list[PeerLocation]:
        """Last known positions of every device other than *tid*, sorted by tid."""
        with self._lock:
            others = [s for key, s in self._state.items() if key != tid]

        return [
            PeerLocation(
                tid=s.tid,
                latitude=s.latitude,
                longitude=s.longitude,
                timestamp=s.timestamp // 1000,
                accuracy=s.accuracy,
                battery=s.battery,
                altitude=s.altitude,
                velocity=s.velocity,
            )
            for s in sorted(others, key=lambda s: s.tid)
        ]
