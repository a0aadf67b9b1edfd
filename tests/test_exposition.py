"""Tests for the exposition module."""

from owntracks_exporter.exposition import render
from owntracks_exporter.models import Sample
from owntracks_exporter.report import ReportStore, RequestCounters


def _data_lines(text: str) -> list[str]:
    return [line for line in text.splitlines() if not line.startswith("#")]


def test_full_render() -> None:
    """Every axis and the request counter render with headers and timestamps."""
    report = ReportStore()
    counters = RequestCounters()
    report.record_location(
        Sample(tid="X", timestamp=60000, latitude=1.5, longitude=2.5, altitude=10.0, distance=3.0)
    )
    report.record_battery(
        Sample(tid="X", timestamp=60000, latitude=1.5, longitude=2.5, battery=80.0)
    )
    counters.increment("X", "location")
    counters.increment("X", "location")

    lines = render(report, counters).splitlines()

    assert lines == [
        "# HELP owntracks_location Reported or interpolated position in decimal degrees",
        "# TYPE owntracks_location gauge",
        'owntracks_location{tid="X",coordinate="lat"} 1.5 60000',
        'owntracks_location{tid="X",coordinate="lon"} 2.5 60000',
        "# HELP owntracks_altitude Altitude above sea level in meters",
        "# TYPE owntracks_altitude gauge",
        'owntracks_altitude{tid="X"} 10.0 60000',
        "# HELP owntracks_distance Cumulative great-circle distance travelled in meters",
        "# TYPE owntracks_distance counter",
        'owntracks_distance{tid="X"} 3.0 60000',
        "# HELP owntracks_battery_charge Device battery charge in percent",
        "# TYPE owntracks_battery_charge gauge",
        'owntracks_battery_charge{tid="X"} 80.0 60000',
        "# HELP owntracks_requests Payloads received per device and payload type",
        "# TYPE owntracks_requests counter",
        'owntracks_requests{tid="X",type="location"} 2',
    ]


def test_lines_sorted_by_device_then_timestamp() -> None:
    """Within a family: device first, then timestamp."""
    report = ReportStore()
    report.record("b", 2000, "altitude", 4.0)
    report.record("a", 3000, "altitude", 3.0)
    report.record("b", 1000, "altitude", 2.0)
    report.record("a", 1000, "altitude", 1.0)

    lines = _data_lines(render(report, RequestCounters()))

    assert lines == [
        'owntracks_altitude{tid="a"} 1.0 1000',
        'owntracks_altitude{tid="a"} 3.0 3000',
        'owntracks_altitude{tid="b"} 2.0 1000',
        'owntracks_altitude{tid="b"} 4.0 2000',
    ]


def test_headers_emitted_once_per_family() -> None:
    """Many devices share one HELP/TYPE pair."""
    report = ReportStore()
    for tid in ("a", "b", "c"):
        report.record(tid, 1, "battery_charge", 50.0)

    text = render(report, RequestCounters())

    assert text.count("# TYPE owntracks_battery_charge gauge") == 1
    assert len(_data_lines(text)) == 3


def test_render_drains_report_but_keeps_counters() -> None:
    """Second render has no buckets but still reports request counts."""
    report = ReportStore()
    counters = RequestCounters()
    report.record("X", 1, "altitude", 1.0)
    counters.increment("X", "location")

    render(report, counters)
    second = render(report, counters)

    assert len(report) == 0
    assert _data_lines(second) == ['owntracks_requests{tid="X",type="location"} 1']


def test_empty_render() -> None:
    """Nothing recorded, nothing counted → empty payload."""
    assert render(ReportStore(), RequestCounters()) == ""


def test_custom_prefix() -> None:
    """The metric prefix is configurable."""
    report = ReportStore()
    report.record("X", 1, "distance", 9.0)
    assert 'tracks_distance{tid="X"} 9.0 1' in render(report, RequestCounters(), prefix="tracks")


def test_label_values_escaped() -> None:
    """Quotes and backslashes in device ids cannot break the line format."""
    report = ReportStore()
    report.record('a"b\\c', 1, "altitude", 1.0)

    (line,) = _data_lines(render(report, RequestCounters()))

    assert line == 'owntracks_altitude{tid="a\\"b\\\\c"} 1.0 1'


def test_non_finite_values() -> None:
    """NaN propagated from bad input renders as Prometheus NaN."""
    report = ReportStore()
    report.record("X", 1, "altitude", float("nan"))
    report.record("X", 2, "altitude", float("inf"))

    assert _data_lines(render(report, RequestCounters())) == [
        'owntracks_altitude{tid="X"} NaN 1',
        'owntracks_altitude{tid="X"} +Inf 2',
    ]


def test_non_numeric_value_skipped_without_losing_others() -> None:
    """A bucket holding a non-number is dropped; other devices still render."""
    report = ReportStore()
    report.record_location(
        Sample(tid="OK", timestamp=60000, latitude=1.0, longitude=2.0, altitude=7.0)
    )
    report.record("S", 1, "altitude", "abc")

    text = render(report, RequestCounters())

    assert 'owntracks_altitude{tid="OK"} 7.0 60000' in _data_lines(text)
    assert 'tid="S"' not in text
    assert len(report) == 0
