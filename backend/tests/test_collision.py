"""Tests for collision-risk detection (CPA/TCPA screening)."""
from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from seawatch.models.base import AlertKindEnum
from seawatch.models.position_report import PositionReport
from seawatch.modules.collision_detector import detect_collision_risk, scan_collision_pairs
from seawatch.modules.track_store import VesselTrackStore
from seawatch.utils.geo import closest_point_of_approach, dead_reckon

T0 = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)

THRESHOLDS = dict(search_radius_km=25.0, cpa_threshold_km=1.0, horizon_minutes=30.0)


def _tracks(*specs):
    """Build track snapshots from (vessel_id, lat, lon, speed, course) tuples."""
    store = VesselTrackStore()
    for vessel_id, lat, lon, speed, course in specs:
        store.upsert(vessel_id, PositionReport(
            vessel_id=vessel_id, lat=lat, lon=lon, timestamp=T0,
            speed_knots=speed, course_degrees=course, heading_degrees=course,
        ))
    return {t.vessel_id: t for t in store.snapshot_all()}


class TestHeadOn:
    def test_head_on_pair_flagged(self):
        """Two vessels ~22 km apart closing at 36 kn meet in ~20 min."""
        tracks = _tracks(
            ("A", 20.0, -80.0, 18.0, 90.0),
            ("B", 20.0, -79.79, 18.0, 270.0),
        )
        candidates = detect_collision_risk(tracks["A"], tracks.values(), **THRESHOLDS)
        assert len(candidates) == 1
        c = candidates[0]
        assert c.kind == AlertKindEnum.COLLISION_RISK
        assert (c.vessel_id, c.counterpart_id) == ("A", "B")
        assert c.evidence["cpa_km"] < 0.05
        assert c.evidence["tcpa_minutes"] == pytest.approx(19.8, abs=0.5)
        assert 0.6 <= c.confidence <= 0.7
        assert c.detected_at == T0

    def test_pair_is_canonical_from_either_side(self):
        tracks = _tracks(
            ("B", 20.0, -80.0, 18.0, 90.0),
            ("A", 20.0, -79.79, 18.0, 270.0),
        )
        from_b = detect_collision_risk(tracks["B"], tracks.values(), **THRESHOLDS)
        from_a = detect_collision_risk(tracks["A"], tracks.values(), **THRESHOLDS)
        assert from_a[0].correlation_key == from_b[0].correlation_key
        assert from_b[0].vessel_id == "A"
        assert from_b[0].counterpart_id == "B"

    def test_slower_pair_beyond_horizon_not_flagged(self):
        """10 kn each → ~36 min to CPA, outside a 30-min horizon."""
        tracks = _tracks(
            ("A", 20.0, -80.0, 10.0, 90.0),
            ("B", 20.0, -79.79, 10.0, 270.0),
        )
        assert detect_collision_risk(tracks["A"], tracks.values(), **THRESHOLDS) == []


class TestNoRisk:
    def test_diverging_vessels(self):
        tracks = _tracks(
            ("A", 20.0, -80.0, 18.0, 270.0),
            ("B", 20.0, -79.9, 18.0, 90.0),
        )
        assert detect_collision_risk(tracks["A"], tracks.values(), **THRESHOLDS) == []

    def test_outside_search_radius(self):
        tracks = _tracks(
            ("A", 20.0, -80.0, 20.0, 90.0),
            ("B", 20.0, -79.5, 20.0, 270.0),
        )
        assert detect_collision_risk(tracks["A"], tracks.values(), **THRESHOLDS) == []

    def test_parallel_courses_well_apart(self):
        tracks = _tracks(
            ("A", 20.0, -80.0, 12.0, 0.0),
            ("B", 20.0, -79.95, 12.0, 0.0),
        )
        assert detect_collision_risk(tracks["A"], tracks.values(), **THRESHOLDS) == []

    def test_both_stationary(self):
        tracks = _tracks(
            ("A", 20.0, -80.0, 0.0, 0.0),
            ("B", 20.0, -80.001, 0.0, 0.0),
        )
        assert detect_collision_risk(tracks["A"], tracks.values(), **THRESHOLDS) == []

    def test_lone_vessel(self):
        tracks = _tracks(("A", 20.0, -80.0, 18.0, 90.0))
        assert detect_collision_risk(tracks["A"], tracks.values(), **THRESHOLDS) == []


def test_one_candidate_per_neighbour():
    tracks = _tracks(
        ("A", 20.0, -80.0, 18.0, 90.0),
        ("B", 20.0, -79.79, 18.0, 270.0),
    )
    neighbours = [tracks["A"], tracks["B"], tracks["B"]]
    assert len(detect_collision_risk(tracks["A"], neighbours, **THRESHOLDS)) == 1


def test_across_antimeridian():
    tracks = _tracks(
        ("A", 0.0, 179.95, 10.0, 90.0),
        ("B", 0.0, -179.95, 10.0, 270.0),
    )
    candidates = detect_collision_risk(tracks["A"], tracks.values(), **THRESHOLDS)
    assert len(candidates) == 1
    assert candidates[0].evidence["distance_km"] == pytest.approx(11.1, abs=0.2)
    assert len(scan_collision_pairs(tracks.values(), **THRESHOLDS)) == 1


class TestScanPairs:
    def test_each_pair_once(self):
        tracks = _tracks(
            ("A", 20.0, -80.0, 18.0, 90.0),
            ("B", 20.0, -79.79, 18.0, 270.0),
            ("C", 35.0, 10.0, 12.0, 0.0),
        )
        candidates = scan_collision_pairs(tracks.values(), **THRESHOLDS)
        assert [(c.vessel_id, c.counterpart_id) for c in candidates] == [("A", "B")]

    def test_pair_across_grid_cells(self):
        """Vessels straddling a 1° cell boundary are still compared."""
        tracks = _tracks(
            ("A", 20.0, -80.05, 18.0, 90.0),
            ("B", 20.0, -79.9, 18.0, 270.0),
        )
        assert len(scan_collision_pairs(tracks.values(), **THRESHOLDS)) == 1

    def test_high_latitude_neighbours(self):
        """At 85°N a 1° cell is under 10 km wide; neighbours two cells away are still found."""
        tracks = _tracks(
            ("A", 85.0, 10.0, 15.0, 90.0),
            ("B", 85.0, 11.9, 15.0, 270.0),
        )
        assert len(scan_collision_pairs(tracks.values(), **THRESHOLDS)) == 1


def test_cpa_same_velocity():
    cpa_m, tcpa_s = closest_point_of_approach(0.0, 0.0, 10.0, 45.0, 0.0, 0.01, 10.0, 45.0)
    assert tcpa_s == 0.0
    assert cpa_m == pytest.approx(1112, rel=0.01)


def _timed_tracks(*specs):
    """Build tracks from (vessel_id, minutes after T0, lat, lon, speed, course) tuples."""
    store = VesselTrackStore()
    for vessel_id, minutes, lat, lon, speed, course in specs:
        store.upsert(vessel_id, PositionReport(
            vessel_id=vessel_id, lat=lat, lon=lon, timestamp=T0 + timedelta(minutes=minutes),
            speed_knots=speed, course_degrees=course, heading_degrees=course,
        ))
    return {t.vessel_id: t for t in store.snapshot_all()}


class TestReportTiming:
    def test_older_report_projected_forward(self):
        """B's 10-minute-old position is advanced 2.5 nm west before CPA."""
        tracks = _timed_tracks(
            ("A", 10, 10.0, 70.0, 15.0, 90.0),
            ("B", 0, 10.0, 70.2, 15.0, 270.0),
        )
        (c,) = detect_collision_risk(tracks["A"], tracks.values(), max_report_age_minutes=30.0, **THRESHOLDS)
        assert c.detected_at == T0 + timedelta(minutes=10)
        assert c.evidence["distance_km"] == pytest.approx(17.27, abs=0.05)
        assert c.evidence["tcpa_minutes"] == pytest.approx(18.65, abs=0.1)
        assert c.evidence["positions"]["B"]["projected_lon"] == pytest.approx(70.1577, abs=0.0005)
        assert c.evidence["positions"]["B"]["lon"] == 70.2

    def test_vessel_that_already_passed_not_flagged(self):
        """Three hours on, B is far behind A; the raw reports would look head-on."""
        tracks = _timed_tracks(
            ("B", 0, 10.0, 70.1, 15.0, 270.0),
            ("A", 180, 10.0, 70.0, 15.0, 90.0),
        )
        assert detect_collision_risk(tracks["A"], tracks.values(), max_report_age_minutes=240.0, **THRESHOLDS) == []

    def test_neighbour_older_than_age_cap_skipped(self):
        tracks = _timed_tracks(
            ("A", 45, 20.0, -79.9, 18.0, 90.0),
            ("B", 0, 20.0, -79.79, 0.0, 0.0),
        )
        assert detect_collision_risk(tracks["A"], tracks.values(), max_report_age_minutes=30.0, **THRESHOLDS) == []
        assert scan_collision_pairs(tracks.values(), max_report_age_minutes=30.0, **THRESHOLDS) == []
        flagged = detect_collision_risk(tracks["A"], tracks.values(), max_report_age_minutes=60.0, **THRESHOLDS)
        assert len(flagged) == 1


def test_dead_reckon():
    lat, lon = dead_reckon(10.0, 70.0, 15.0, 90.0, 600.0)
    assert lat == pytest.approx(10.0, abs=1e-9)
    assert lon == pytest.approx(70.0423, abs=0.0005)
    assert dead_reckon(10.0, 70.0, 0.0, 90.0, 600.0) == (10.0, 70.0)
    # Wraps across the antimeridian
    _, lon = dead_reckon(0.0, 179.99, 20.0, 90.0, 600.0)
    assert -180.0 < lon < -179.9
