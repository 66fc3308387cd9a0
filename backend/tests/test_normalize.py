"""Tests for report validation and feed column normalization."""
from __future__ import annotations

from datetime import datetime, timedelta, timezone

import polars as pl
import pytest

from seawatch.errors import InvalidReport
from seawatch.models.position_report import PositionReport
from seawatch.modules.normalize import normalize_report_frame, parse_timestamp_flexible, validate_report

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


def _report(**overrides) -> PositionReport:
    fields = dict(
        vessel_id="366000001", lat=20.0, lon=-80.0, timestamp=NOW,
        speed_knots=10.0, course_degrees=90.0, heading_degrees=92.0,
    )
    fields.update(overrides)
    return PositionReport(**fields)


# ── Timestamps ────────────────────────────────────────────────────────────────

@pytest.mark.parametrize("raw", [
    "2025-06-01T12:00:00Z",
    "2025-06-01T12:00:00+00:00",
    "2025-06-01T14:00:00+02:00",
    "2025-06-01 12:00:00",
    "06/01/2025 12:00:00",
    1748779200,
    datetime(2025, 6, 1, 12, 0),
])
def test_parse_timestamp_formats(raw):
    parsed = parse_timestamp_flexible(raw)
    assert parsed is not None
    assert parsed.tzinfo is not None
    assert parsed == NOW


@pytest.mark.parametrize("raw", ["", "not a date", None, 12, True])
def test_parse_timestamp_garbage_returns_none(raw):
    assert parse_timestamp_flexible(raw) is None


# ── Validation ────────────────────────────────────────────────────────────────

def test_valid_report_normalized():
    out = validate_report(_report(vessel_id=" 366000001 ", classification=" Tanker ", name=" MV X "), now=NOW)
    assert out.vessel_id == "366000001"
    assert out.classification == "tanker"
    assert out.name == "MV X"
    assert out.timestamp == NOW
    assert out.heading_degrees == 92.0


@pytest.mark.parametrize("overrides,code", [
    ({"vessel_id": ""}, "missing_vessel_id"),
    ({"vessel_id": None}, "missing_vessel_id"),
    ({"lat": "abc"}, "invalid_lat"),
    ({"lat": float("nan")}, "invalid_lat"),
    ({"lat": 90.01}, "lat_out_of_range"),
    ({"lon": 181.0}, "lon_out_of_range"),
    ({"speed_knots": -0.1}, "negative_speed"),
    ({"speed_knots": 102.3}, "speed_unavailable"),
    ({"course_degrees": 400.0}, "course_out_of_range"),
    ({"heading_degrees": 400.0}, "heading_out_of_range"),
    ({"timestamp": None}, "missing_timestamp"),
    ({"timestamp": "yesterday-ish"}, "invalid_timestamp"),
    ({"timestamp": NOW + timedelta(days=8)}, "future_timestamp"),
])
def test_invalid_reports_rejected_with_code(overrides, code):
    with pytest.raises(InvalidReport) as exc_info:
        validate_report(_report(**overrides), now=NOW)
    assert exc_info.value.code == code


def test_boundary_coordinates_accepted():
    out = validate_report(_report(lat=-90.0, lon=180.0), now=NOW)
    assert (out.lat, out.lon) == (-90.0, 180.0)


def test_future_within_tolerance_accepted():
    out = validate_report(_report(timestamp=NOW + timedelta(days=6)), now=NOW)
    assert out.timestamp == NOW + timedelta(days=6)


def test_ais_sentinels():
    """COG 360 means 'not available' → 0; heading 511 falls back to course."""
    out = validate_report(_report(course_degrees=360.0, heading_degrees=511.0), now=NOW)
    assert out.course_degrees == 0.0
    assert out.heading_degrees == 0.0

    out = validate_report(_report(course_degrees=45.0, heading_degrees=None), now=NOW)
    assert out.heading_degrees == 45.0


def test_heading_360_wraps_to_zero():
    assert validate_report(_report(heading_degrees=360.0), now=NOW).heading_degrees == 0.0


def test_validate_does_not_mutate_input():
    report = _report(vessel_id=" 1 ", timestamp="2025-06-01T12:00:00Z")
    validate_report(report, now=NOW)
    assert report.vessel_id == " 1 "
    assert report.timestamp == "2025-06-01T12:00:00Z"


# ── Column normalization ──────────────────────────────────────────────────────

def test_normalize_frame_aliases():
    df = pl.DataFrame({
        "MMSI": [366000001],
        "Latitude": [20.0],
        "Longitude": [-80.0],
        "SOG": [10.0],
        "COG": [90.0],
        "BaseDateTime": ["2025-06-01T12:00:00"],
        "ShipName": ["MV OCEAN STAR"],
    })
    out = normalize_report_frame(df)
    assert {"vessel_id", "lat", "lon", "speed_knots", "course_degrees", "timestamp", "name"} <= set(out.columns)
    assert out["vessel_id"].dtype == pl.Utf8
    assert out["vessel_id"][0] == "366000001"


def test_normalize_frame_keeps_canonical_column():
    """An existing canonical column is never clobbered by an alias."""
    df = pl.DataFrame({"vessel_id": ["a"], "mmsi": ["b"], "lat": [1.0], "lon": [2.0], "timestamp": ["x"]})
    out = normalize_report_frame(df)
    assert out["vessel_id"][0] == "a"
    assert "mmsi" in out.columns


def test_normalize_frame_first_alias_wins():
    df = pl.DataFrame({"speed": [5.0], "sog": [6.0]})
    out = normalize_report_frame(df)
    assert out["speed_knots"][0] == 5.0
    assert "sog" in out.columns
