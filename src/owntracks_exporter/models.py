"""Dataclass models for the OwnTracks exporter.

``Sample`` is the unit of work flowing through the interpolator; the other
models are either report storage (``ReportBucket``) or reply objects that
are turned into OwnTracks wire dicts before ``orjson.dumps()``.
"""

from dataclasses import dataclass
from typing import Optional


@dataclass
class Sample:
    """A single location/status observation for one device.

    Timestamps are milliseconds.  Synthesized (interpolated) samples use the
    same type as the ones decoded from client payloads.
    """

    tid: str
    timestamp: int
    latitude: float
    longitude: float
    altitude: Optional[float] = None
    battery: Optional[float] = None
    distance: Optional[float] = None
    accuracy: Optional[float] = None
    velocity: Optional[float] = None
    created_at: Optional[int] = None
    type: str = "location"

    @property
    def point(self) -> tuple[float, float]:
        return (self.latitude, self.longitude)


@dataclass
class ReportBucket:
    """Latest values of each metric axis for one ``(tid, timestamp)`` key."""

    coordinate: Optional[tuple[float, float]] = None
    altitude: Optional[float] = None
    distance: Optional[float] = None
    battery_charge: Optional[float] = None


@dataclass
class PeerLocation:
    """Last known position of another device, as sent back to a client."""

    tid: str
    latitude: float
    longitude: float
    timestamp: int
    accuracy: Optional[float] = None
    battery: Optional[float] = None
    altitude: Optional[float] = None
    velocity: Optional[float] = None

    def to_wire(self) -> dict:
        """OwnTracks ``location`` object with absent fields omitted."""
        wire = {
            "_type": "location",
            "tid": self.tid,
            "lat": self.latitude,
            "lon": self.longitude,
            "tst": self.timestamp,
            "acc": self.accuracy,
            "batt": self.battery,
            "alt": self.altitude,
            "vel": self.velocity,
        }
        return {k: v for k, v in wire.items() if v is not None}


@dataclass(frozen=True)
class Card:
    """Static friend card: display name and base64-encoded face image."""

    tid: str
    name: str
    face: str

    def to_wire(self) -> dict:
        return {"_type": "card", "tid": self.tid, "name": self.name, "face": self.face}


@dataclass
class MalformedPayload:
    """Request body that could not be turned into a usable payload.

    Logged and answered with an empty reply; never raised to the client.
    """

    code: str = ""
    message: str = ""
    raw_payload: str = ""
    raw_payload_truncated: bool = False
