"""Tests for the in-memory VesselTrack store."""
from __future__ import annotations

import threading
from datetime import datetime, timedelta, timezone

import pytest

from seawatch.errors import InvalidReport, StaleReport
from seawatch.models.position_report import PositionReport
from seawatch.modules.track_store import VesselTrackStore

T0 = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


def _report(vessel_id="366000001", minutes=0.0, lat=20.0, lon=-80.0, speed=10.0, course=90.0,
            heading=None, **kwargs) -> PositionReport:
    return PositionReport(
        vessel_id=vessel_id,
        lat=lat,
        lon=lon,
        timestamp=T0 + timedelta(minutes=minutes),
        speed_knots=speed,
        course_degrees=course,
        heading_degrees=heading if heading is not None else course,
        **kwargs,
    )


class TestUpsert:
    def test_first_report_creates_track(self):
        store = VesselTrackStore()
        track = store.upsert("366000001", _report(classification="cargo", name="MV OCEAN STAR"))
        assert track.vessel_id == "366000001"
        assert track.report_count == 1
        assert len(track.position_history) == 1
        assert track.classification == "cargo"
        assert track.name == "MV OCEAN STAR"
        assert track.speed_delta is None
        assert track.heading_delta is None
        assert "366000001" in store
        assert len(store) == 1

    def test_second_report_sets_deltas(self):
        """Speed/heading deltas come from the two most recent samples."""
        store = VesselTrackStore()
        store.upsert("v", _report("v", speed=10.0, course=350.0))
        track = store.upsert("v", _report("v", minutes=1, speed=7.5, course=20.0))
        assert track.speed_delta == pytest.approx(-2.5)
        assert track.heading_delta == pytest.approx(30.0)
        assert track.last_report_at == T0 + timedelta(minutes=1)

    def test_heading_delta_wraps_negative(self):
        store = VesselTrackStore()
        store.upsert("v", _report("v", course=10.0))
        track = store.upsert("v", _report("v", minutes=1, course=340.0))
        assert track.heading_delta == pytest.approx(-30.0)

    def test_equal_timestamp_is_accepted(self):
        store = VesselTrackStore()
        store.upsert("v", _report("v", lat=20.0))
        track = store.upsert("v", _report("v", lat=20.001))
        assert track.lat == pytest.approx(20.001)
        assert track.report_count == 2

    def test_stale_report_raises_and_leaves_state(self):
        store = VesselTrackStore()
        store.upsert("v", _report("v", minutes=10, lat=21.0))
        with pytest.raises(StaleReport):
            store.upsert("v", _report("v", minutes=5, lat=22.0))
        track = store.get("v")
        assert track.lat == 21.0
        assert track.report_count == 1

    def test_unknown_classification_does_not_overwrite(self):
        store = VesselTrackStore()
        store.upsert("v", _report("v", classification="tanker"))
        track = store.upsert("v", _report("v", minutes=1))
        assert track.classification == "tanker"

    @pytest.mark.parametrize("field,value,code", [
        ("lat", 91.0, "lat_out_of_range"),
        ("lon", -180.5, "lon_out_of_range"),
        ("speed_knots", -1.0, "negative_speed"),
    ])
    def test_out_of_range_rejected(self, field, value, code):
        store = VesselTrackStore()
        report = _report("v")
        setattr(report, field, value)
        with pytest.raises(InvalidReport) as exc_info:
            store.upsert("v", report)
        assert exc_info.value.code == code
        assert len(store) == 0

    def test_unnormalized_timestamp_rejected(self):
        store = VesselTrackStore()
        report = _report("v")
        report.timestamp = "2025-06-01T12:00:00Z"
        with pytest.raises(InvalidReport):
            store.upsert("v", report)


class TestHistoryBound:
    def test_history_never_exceeds_capacity(self):
        store = VesselTrackStore(history_capacity=5)
        for i in range(12):
            track = store.upsert("v", _report("v", minutes=i))
            assert len(track.position_history) <= 5
        assert track.report_count == 12
        # Oldest samples evicted first
        assert track.position_history[0].timestamp == T0 + timedelta(minutes=7)
        assert track.position_history[-1].timestamp == T0 + timedelta(minutes=11)

    def test_capacity_below_two_rejected(self):
        with pytest.raises(ValueError):
            VesselTrackStore(history_capacity=1)


class TestSnapshots:
    def test_snapshot_is_detached(self):
        """Mutating a returned track never changes the store."""
        store = VesselTrackStore()
        track = store.upsert("v", _report("v", lat=20.0))
        track.lat = 0.0
        assert isinstance(track.position_history, tuple)
        assert store.get("v").lat == 20.0

    def test_snapshot_all_returns_every_track(self):
        store = VesselTrackStore()
        for vid in ("a", "b", "c"):
            store.upsert(vid, _report(vid))
        assert sorted(t.vessel_id for t in store.snapshot_all()) == ["a", "b", "c"]

    def test_get_unknown_returns_none(self):
        assert VesselTrackStore().get("nope") is None


class TestSilence:
    def test_silent_tracks_and_evict(self):
        store = VesselTrackStore()
        store.upsert("old", _report("old", minutes=0))
        store.upsert("fresh", _report("fresh", minutes=50))
        now = T0 + timedelta(minutes=60)

        silent = store.silent_tracks(now, silence_minutes=30)
        assert [t.vessel_id for t in silent] == ["old"]

        assert store.evict_silent(now, silence_minutes=30) == 1
        assert "old" not in store
        assert "fresh" in store

    def test_clear(self):
        store = VesselTrackStore()
        store.upsert("v", _report("v"))
        store.clear()
        assert len(store) == 0


def test_concurrent_upserts_for_distinct_vessels():
    """Parallel writers for different vessels never lose a report."""
    store = VesselTrackStore(history_capacity=200)

    def _writer(vid: str) -> None:
        for i in range(100):
            store.upsert(vid, _report(vid, minutes=i))

    threads = [threading.Thread(target=_writer, args=(f"v{i}",)) for i in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(store) == 8
    assert all(t.report_count == 100 for t in store.snapshot_all())
