"""Tests for the classifier module."""

import orjson
import pytest

from owntracks_exporter.classifier import classify, MAX_RAW_PAYLOAD_BYTES
from owntracks_exporter.models import MalformedPayload, Sample


VALID_LOCATION = {
    "_type": "location",
    "tid": "jd",
    "tst": 1739644321,
    "created_at": 1739644322,
    "lat": 37.7749295,
    "lon": -122.4194155,
    "alt": 10,
    "batt": 87,
    "acc": 12,
    "vel": 4,
    "conn": "w",
}


def test_valid_location() -> None:
    """A well-formed location payload becomes a Sample in ms."""
    result = classify(orjson.dumps(VALID_LOCATION))
    assert isinstance(result, Sample)
    assert result.tid == "jd"
    assert result.timestamp == 1739644321000
    assert result.created_at == 1739644322000
    assert result.latitude == 37.7749295
    assert result.longitude == -122.4194155
    assert result.altitude == 10.0
    assert result.battery == 87.0
    assert result.accuracy == 12.0
    assert result.velocity == 4.0
    assert result.distance is None


def test_str_body_accepted() -> None:
    """Bodies may arrive as text as well as bytes."""
    result = classify(orjson.dumps(VALID_LOCATION).decode())
    assert isinstance(result, Sample)


def test_optional_fields_absent() -> None:
    """Only tid/lat/lon/tst → optional axes are None."""
    raw = orjson.dumps({"_type": "location", "tid": "jd", "tst": 10, "lat": 1.0, "lon": 2.0})
    result = classify(raw)
    assert isinstance(result, Sample)
    assert result.altitude is None
    assert result.battery is None
    assert result.created_at is None


def test_invalid_json() -> None:
    """Broken JSON yields a MalformedPayload with ``parse_error``."""
    result = classify(b"{not valid json!!!")
    assert isinstance(result, MalformedPayload)
    assert result.code == "parse_error"


def test_non_object_json() -> None:
    """A JSON array is not a payload."""
    result = classify(b"[1, 2, 3]")
    assert isinstance(result, MalformedPayload)
    assert result.code == "parse_error"


def test_missing_type() -> None:
    """No ``_type`` → schema_mismatch."""
    result = classify(orjson.dumps({"tid": "jd"}))
    assert isinstance(result, MalformedPayload)
    assert result.code == "schema_mismatch"


def test_other_payload_type_returned_as_dict() -> None:
    """Non-location payloads are passed back for counting only."""
    result = classify(orjson.dumps({"_type": "lwt", "tst": 1}))
    assert result == {"_type": "lwt", "tst": 1}


@pytest.mark.parametrize("field", ["tid", "lat", "lon", "tst"])
def test_missing_location_field(field: str) -> None:
    """Location without one of its core fields → missing_fields."""
    payload = {k: v for k, v in VALID_LOCATION.items() if k != field}
    result = classify(orjson.dumps(payload))
    assert isinstance(result, MalformedPayload)
    assert result.code == "missing_fields"
    assert field in result.message


def test_raw_payload_truncation() -> None:
    """Payloads exceeding 4096 bytes are truncated in malformed records."""
    big_str = "x" * (MAX_RAW_PAYLOAD_BYTES + 1000)
    raw = f'{{"not": "{big_str}"'  # intentionally invalid JSON (no closing brace)
    result = classify(raw)
    assert isinstance(result, MalformedPayload)
    assert result.raw_payload_truncated is True
    assert len(result.raw_payload) <= MAX_RAW_PAYLOAD_BYTES


def test_numeric_strings_coerced() -> None:
    """String lat/lon/tst that parse as numbers become floats."""
    payload = {**VALID_LOCATION, "lat": "51.5", "lon": "-0.12", "tst": "1739644321"}
    result = classify(orjson.dumps(payload))
    assert isinstance(result, Sample)
    assert result.latitude == 51.5
    assert isinstance(result.latitude, float)
    assert result.longitude == -0.12
    assert result.timestamp == 1739644321000


@pytest.mark.parametrize(
    "field, value",
    [
        ("lat", "abc"),
        ("lon", [1, 2]),
        ("lat", True),
        ("lon", {"deg": 1}),
        ("tst", "yesterday"),
        ("lat", "nan"),
    ],
)
def test_non_numeric_core_field(field: str, value: object) -> None:
    """lat/lon/tst that are not finite numbers → type_error."""
    payload = {**VALID_LOCATION, field: value}
    result = classify(orjson.dumps(payload))
    assert isinstance(result, MalformedPayload)
    assert result.code == "type_error"
