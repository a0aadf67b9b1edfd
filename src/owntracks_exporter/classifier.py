"""Classify raw OwnTracks HTTP bodies into samples, other payloads, or malformed records.

Classification pipeline::

    raw bytes
      │
      ├─ JSON parse failure / not an object  → MalformedPayload(code="parse_error")
      ├─ missing ``_type``                   → MalformedPayload(code="schema_mismatch")
      ├─ ``_type`` ≠ "location"              → dict  (counted, otherwise ignored)
      ├─ location without tid/lat/lon/tst    → MalformedPayload(code="missing_fields")
      ├─ non-numeric lat/lon/tst             → MalformedPayload(code="type_error")
      └─ valid location                      → Sample  (timestamps in ms)
"""

from __future__ import annotations

import math
from typing import Any, Optional, Union

import orjson

from owntracks_exporter.models import MalformedPayload, Sample

# Maximum bytes of raw payload preserved in malformed records.
MAX_RAW_PAYLOAD_BYTES = 4096

REQUIRED_LOCATION_FIELDS = ("tid", "lat", "lon", "tst")


def classify(raw: str | bytes) -> Union[Sample, dict, MalformedPayload]:
    """Classify a single request body.

    Parameters
    ----------
    raw:
        The body exactly as received from the client.

    Returns
    -------
    Sample
        A well-formed ``location`` payload, timestamps normalized to ms.
    dict
        Any other decoded OwnTracks payload (``transition``, ``lwt``, ...).
    MalformedPayload
        When the body cannot be parsed or fails structural checks.
    """
    # Step 1: parse JSON
    try:
        msg = orjson.loads(raw)
    except orjson.JSONDecodeError as exc:
        return _malformed("parse_error", str(exc), raw)

    if not isinstance(msg, dict):
        return _malformed("parse_error", "Payload is not a JSON object", raw)

    # Step 2: check payload type
    payload_type = msg.get("_type")
    if not payload_type:
        return _malformed("schema_mismatch", "Missing field: _type", raw)
    if payload_type != "location":
        return msg

    # Step 3: require the location core
    missing = [k for k in REQUIRED_LOCATION_FIELDS if msg.get(k) is None]
    if missing:
        return _malformed(
            "missing_fields",
            f"Location payload missing required field(s): {', '.join(missing)}",
            raw,
        )

    # Step 4: numeric core must be real numbers
    try:
        latitude = _required_float(msg["lat"])
        longitude = _required_float(msg["lon"])
        timestamp = int(_required_float(msg["tst"])) * 1000
    except (TypeError, ValueError) as exc:
        return _malformed("type_error", f"Location payload has non-numeric core field: {exc}", raw)

    return Sample(
        tid=str(msg["tid"]),
        timestamp=timestamp,
        latitude=latitude,
        longitude=longitude,
        altitude=_optional_float(msg.get("alt")),
        battery=_optional_float(msg.get("batt")),
        accuracy=_optional_float(msg.get("acc")),
        velocity=_optional_float(msg.get("vel")),
        created_at=_optional_ms(msg.get("created_at")),
    )


# ── helpers ─────────────────────────────────────────────────────────


def _required_float(value: Any) -> float:
    """Coerce *value* to a finite float; numeric strings are accepted."""
    if isinstance(value, bool):
        raise TypeError(f"expected a number, got {value!r}")
    result = float(value)
    if not math.isfinite(result):
        raise ValueError(f"expected a finite number, got {value!r}")
    return result


def _optional_float(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _optional_ms(value: Any) -> Optional[int]:
    seconds = _optional_float(value)
    return None if seconds is None else int(seconds * 1000)


def _malformed(code: str, message: str, raw: str | bytes) -> MalformedPayload:
    """Build a :class:`MalformedPayload` with truncation handling."""
    raw_str = raw if isinstance(raw, str) else raw.decode("utf-8", errors="replace")
    truncated = len(raw_str.encode("utf-8")) > MAX_RAW_PAYLOAD_BYTES
    if truncated:
        raw_str = raw_str[:MAX_RAW_PAYLOAD_BYTES]

    return MalformedPayload(
        code=code,
        message=message,
        raw_payload=raw_str,
        raw_payload_truncated=truncated,
    )
