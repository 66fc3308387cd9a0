"""Loitering detection.

Detects vessels exhibiting sustained low-speed movement confined to a small
area.  Loitering is a pre-STS and illegal-fishing indicator: vessels slow to
near-zero SOG while waiting for a transfer partner, often in open water.

Algorithm (per track snapshot):
  1. Take samples within the trailing window, measured back from the track's
     own latest sample timestamp (data time, never wall clock).
  2. Require at least the minimum sample count — sparse histories never alert.
  3. Every sample must lie within the confinement radius of the centroid.
  4. Mean SOG over the window must be below the loitering threshold.

Confidence: 1 − ½·(mean_sog / max_sog) − ½·(max_spread / radius), floored
at 0.05 so a qualifying track always yields a positive confidence.
"""
from __future__ import annotations

import logging
from datetime import timedelta
from typing import Optional

from seawatch.config import settings as _settings
from seawatch.models.alert import CandidateAlert
from seawatch.models.base import AlertKindEnum
from seawatch.models.vessel_track import VesselTrack
from seawatch.utils.geo import centroid, haversine_meters

logger = logging.getLogger(__name__)

# ── Constants ──────────────────────────────────────────────────────────────────

_WINDOW_MINUTES: float = _settings.LOITER_WINDOW_MINUTES
_RADIUS_M: float = _settings.LOITER_RADIUS_M
_MAX_MEAN_SOG_KN: float = _settings.LOITER_MAX_MEAN_SOG_KN
_MIN_SAMPLES: int = _settings.LOITER_MIN_SAMPLES

_MIN_CONFIDENCE: float = 0.05


def detect_loitering(
    track: VesselTrack,
    window_minutes: float = _WINDOW_MINUTES,
    radius_m: float = _RADIUS_M,
    max_mean_sog_kn: float = _MAX_MEAN_SOG_KN,
    min_samples: int = _MIN_SAMPLES,
) -> Optional[CandidateAlert]:
    """Return a loitering candidate for ``track`` or None."""
    if not track.vessel_id:
        raise ValueError("track.vessel_id is required")

    latest = track.latest_sample
    if latest is None:
        return None

    window_start = latest.timestamp - timedelta(minutes=window_minutes)
    window = [s for s in track.position_history if s.timestamp >= window_start]
    if len(window) < min_samples:
        logger.debug(
            "Vessel %s: only %d samples in %.0f-min window — skipping loitering detection",
            track.vessel_id, len(window), window_minutes,
        )
        return None

    mean_sog = sum(s.speed_knots for s in window) / len(window)
    if mean_sog >= max_mean_sog_kn:
        return None

    c_lat, c_lon = centroid([(s.lat, s.lon) for s in window])
    max_spread_m = max(haversine_meters(c_lat, c_lon, s.lat, s.lon) for s in window)
    if max_spread_m > radius_m:
        return None

    confidence = 1.0 - 0.5 * (mean_sog / max_mean_sog_kn) - 0.5 * (max_spread_m / radius_m)
    confidence = round(max(_MIN_CONFIDENCE, min(1.0, confidence)), 4)
    duration_min = (latest.timestamp - window[0].timestamp).total_seconds() / 60.0

    return CandidateAlert(
        vessel_id=track.vessel_id,
        kind=AlertKindEnum.LOITERING,
        confidence=confidence,
        detected_at=latest.timestamp,
        lat=c_lat,
        lon=c_lon,
        evidence={
            "sample_count": len(window),
            "window_start": window[0].timestamp.isoformat(),
            "window_end": latest.timestamp.isoformat(),
            "duration_minutes": round(duration_min, 1),
            "mean_sog_kn": round(mean_sog, 3),
            "max_spread_m": round(max_spread_m, 1),
            "centroid": {"lat": c_lat, "lon": c_lon},
        },
    )
