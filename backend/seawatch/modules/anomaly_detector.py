"""Kinematic and silence anomalies.

Two signals share the ``anomaly`` alert kind:
  - position_jump — the two latest samples imply a speed no vessel can make
    (spoofed or corrupted positions);
  - ais_silence   — no report for the configured silence period; evaluated
    by an explicit sweep, never by ingestion.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from seawatch.config import settings as _settings
from seawatch.models.alert import CandidateAlert
from seawatch.models.base import AlertKindEnum
from seawatch.models.vessel_track import VesselTrack
from seawatch.utils.geo import haversine_nm

logger = logging.getLogger(__name__)

_MAX_IMPLIED_SOG_KN: float = _settings.ANOMALY_MAX_IMPLIED_SOG_KN
_SILENCE_MINUTES: float = _settings.TRACK_SILENCE_MINUTES

# Position noise allowance: jumps shorter than this never count
_MIN_JUMP_NM: float = 0.5


def detect_kinematic_anomaly(
    track: VesselTrack,
    max_implied_sog_kn: float = _MAX_IMPLIED_SOG_KN,
) -> Optional[CandidateAlert]:
    """Flag a position jump between the two most recent samples."""
    if not track.vessel_id:
        raise ValueError("track.vessel_id is required")

    prev, last = track.previous_sample, track.latest_sample
    if prev is None or last is None:
        return None

    jump_nm = haversine_nm(prev.lat, prev.lon, last.lat, last.lon)
    if jump_nm < _MIN_JUMP_NM:
        return None
    hours = (last.timestamp - prev.timestamp).total_seconds() / 3600.0
    implied_sog = jump_nm / hours if hours > 0 else float("inf")
    if implied_sog <= max_implied_sog_kn:
        return None

    # 0.5 just over the limit, approaching 1.0 at 3× the limit or more
    ratio = implied_sog / max_implied_sog_kn if implied_sog != float("inf") else 3.0
    confidence = min(1.0, 0.5 + 0.25 * (ratio - 1.0))
    return CandidateAlert(
        vessel_id=track.vessel_id,
        kind=AlertKindEnum.ANOMALY,
        confidence=round(confidence, 4),
        detected_at=last.timestamp,
        lat=last.lat,
        lon=last.lon,
        evidence={
            "reason": "position_jump",
            "jump_nm": round(jump_nm, 3),
            "interval_seconds": round(hours * 3600.0, 1),
            "implied_sog_kn": None if implied_sog == float("inf") else round(implied_sog, 1),
            "reported_sog_kn": last.speed_knots,
        },
    )


def detect_silence(
    track: VesselTrack,
    now: datetime,
    silence_minutes: float = _SILENCE_MINUTES,
) -> Optional[CandidateAlert]:
    """Flag a vessel that stopped reporting ``silence_minutes`` ago or more."""
    if not track.vessel_id:
        raise ValueError("track.vessel_id is required")

    silent_for = (now - track.last_report_at).total_seconds() / 60.0
    if silent_for < silence_minutes:
        return None

    # Grows with silence duration; capped below critical
    confidence = min(0.7, 0.3 + 0.1 * (silent_for / silence_minutes - 1.0))
    return CandidateAlert(
        vessel_id=track.vessel_id,
        kind=AlertKindEnum.ANOMALY,
        confidence=round(confidence, 4),
        detected_at=now,
        lat=track.lat,
        lon=track.lon,
        evidence={
            "reason": "ais_silence",
            "last_report_at": track.last_report_at.isoformat(),
            "silent_minutes": round(silent_for, 1),
        },
    )
