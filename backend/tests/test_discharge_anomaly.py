"""Tests for discharge-observation evaluation and kinematic/silence anomalies."""
from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from seawatch.models.base import AlertKindEnum
from seawatch.models.discharge_observation import DischargeObservation
from seawatch.models.position_report import PositionReport
from seawatch.modules.anomaly_detector import detect_kinematic_anomaly, detect_silence
from seawatch.modules.discharge_detector import evaluate_discharge
from seawatch.modules.track_store import VesselTrackStore

T0 = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


def _track(*samples, vessel_id="538000005"):
    store = VesselTrackStore()
    track = None
    for minutes, lat, lon, sog in samples:
        track = store.upsert(vessel_id, PositionReport(
            vessel_id=vessel_id, lat=lat, lon=lon,
            timestamp=T0 + timedelta(minutes=minutes), speed_knots=sog,
        ))
    return track


# ── Discharge ─────────────────────────────────────────────────────────────────

class TestDischarge:
    def test_observation_becomes_candidate(self):
        obs = DischargeObservation(
            source="sar_imagery", confidence=0.9, observed_at=T0,
            lat=18.0, lon=-76.0, slick_area_km2=2.5,
        )
        c = evaluate_discharge("538000007", obs, min_confidence=0.3)
        assert c.kind == AlertKindEnum.ILLEGAL_DISCHARGE
        assert c.confidence == 0.9
        assert c.detected_at == T0
        assert (c.lat, c.lon) == (18.0, -76.0)
        assert c.evidence["source"] == "sar_imagery"
        assert c.evidence["slick_area_km2"] == 2.5

    def test_weak_observation_ignored(self):
        obs = DischargeObservation(source="sensor", confidence=0.1, observed_at=T0)
        assert evaluate_discharge("538000007", obs, min_confidence=0.3) is None

    def test_naive_observation_time_taken_as_utc(self):
        obs = DischargeObservation(source="sensor", confidence=0.9, observed_at=T0.replace(tzinfo=None))
        c = evaluate_discharge("538000007", obs, min_confidence=0.3)
        assert c.detected_at == T0
        assert c.detected_at.tzinfo is not None
        assert c.evidence["observed_at"] == "2025-06-01T12:00:00+00:00"

    def test_position_falls_back_to_track(self):
        track = _track((0, 17.5, -77.0, 10.0))
        obs = DischargeObservation(source="aerial_patrol", confidence=0.6, observed_at=T0)
        c = evaluate_discharge(track.vessel_id, obs, track=track, min_confidence=0.3)
        assert (c.lat, c.lon) == (17.5, -77.0)

    def test_confidence_clamped(self):
        obs = DischargeObservation(source="sensor", confidence=1.7, observed_at=T0)
        assert evaluate_discharge("1", obs, min_confidence=0.3).confidence == 1.0

    def test_vessel_id_required(self):
        obs = DischargeObservation(source="sensor", confidence=0.9, observed_at=T0)
        with pytest.raises(ValueError):
            evaluate_discharge("", obs)


# ── Position jumps ────────────────────────────────────────────────────────────

class TestPositionJump:
    def test_impossible_jump_flagged(self):
        """60 nm in 10 minutes implies 360 kn."""
        track = _track((0, 21.0, -70.0, 12.0), (10, 22.0, -70.0, 12.0))
        c = detect_kinematic_anomaly(track, max_implied_sog_kn=50.0)
        assert c is not None
        assert c.kind == AlertKindEnum.ANOMALY
        assert c.evidence["reason"] == "position_jump"
        assert c.evidence["implied_sog_kn"] == pytest.approx(360, rel=0.01)
        assert c.confidence == 1.0

    def test_plausible_move_not_flagged(self):
        """2 nm in 10 minutes = 12 kn."""
        track = _track((0, 21.0, -70.0, 12.0), (10, 21.0333, -70.0, 12.0))
        assert detect_kinematic_anomaly(track, max_implied_sog_kn=50.0) is None

    def test_tiny_jump_with_zero_interval_ignored(self):
        """GPS noise at an identical timestamp never counts as a jump."""
        track = _track((0, 21.0, -70.0, 0.0), (0, 21.001, -70.0, 0.0))
        assert detect_kinematic_anomaly(track, max_implied_sog_kn=50.0) is None

    def test_jump_with_zero_interval_flagged(self):
        track = _track((0, 21.0, -70.0, 0.0), (0, 21.5, -70.0, 0.0))
        c = detect_kinematic_anomaly(track, max_implied_sog_kn=50.0)
        assert c is not None
        assert c.evidence["implied_sog_kn"] is None

    def test_first_report_returns_none(self):
        assert detect_kinematic_anomaly(_track((0, 21.0, -70.0, 0.0))) is None


# ── Silence ───────────────────────────────────────────────────────────────────

class TestSilence:
    def test_silent_vessel_flagged(self):
        track = _track((0, 21.0, -70.0, 12.0))
        c = detect_silence(track, now=T0 + timedelta(minutes=60), silence_minutes=30.0)
        assert c is not None
        assert c.evidence["reason"] == "ais_silence"
        assert c.evidence["silent_minutes"] == 60.0
        assert c.confidence == pytest.approx(0.4)
        assert c.detected_at == T0 + timedelta(minutes=60)

    def test_recent_report_not_flagged(self):
        track = _track((0, 21.0, -70.0, 12.0))
        assert detect_silence(track, now=T0 + timedelta(minutes=10), silence_minutes=30.0) is None

    def test_silence_confidence_capped(self):
        track = _track((0, 21.0, -70.0, 12.0))
        c = detect_silence(track, now=T0 + timedelta(days=2), silence_minutes=30.0)
        assert c.confidence == 0.7
