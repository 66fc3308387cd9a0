"""Grounding detection.

A grounding candidate is raised when a vessel's speed collapses from a
non-trivial value to near zero between two consecutive reports while its
latest position lies inside a restricted (shallow-water / coastal) zone.
Zone membership is a collaborator lookup supplied by the caller.
"""
from __future__ import annotations

import logging
from typing import Callable, Optional

from seawatch.config import settings as _settings
from seawatch.models.alert import CandidateAlert
from seawatch.models.base import AlertKindEnum
from seawatch.models.vessel_track import VesselTrack

logger = logging.getLogger(__name__)

_MIN_PRIOR_SOG_KN: float = _settings.GROUNDING_MIN_PRIOR_SOG_KN
_MAX_SOG_KN: float = _settings.GROUNDING_MAX_SOG_KN
_MAX_INTERVAL_MINUTES: float = _settings.GROUNDING_MAX_INTERVAL_MINUTES

# Prior speed at which confidence saturates
_FULL_CONFIDENCE_SOG_KN: float = 15.0


def detect_grounding(
    track: VesselTrack,
    is_in_restricted_zone: Callable[[float, float], bool],
    min_prior_sog_kn: float = _MIN_PRIOR_SOG_KN,
    max_sog_kn: float = _MAX_SOG_KN,
    max_interval_minutes: float = _MAX_INTERVAL_MINUTES,
) -> Optional[CandidateAlert]:
    """Return a grounding candidate for ``track`` or None."""
    if not track.vessel_id:
        raise ValueError("track.vessel_id is required")

    prev, last = track.previous_sample, track.latest_sample
    if prev is None or last is None:
        return None
    if prev.speed_knots <= min_prior_sog_kn or last.speed_knots >= max_sog_kn:
        return None

    interval_min = (last.timestamp - prev.timestamp).total_seconds() / 60.0
    if interval_min > max_interval_minutes:
        # Too long between reports to call the stop sudden
        return None
    if not is_in_restricted_zone(last.lat, last.lon):
        return None

    # 0.5 at the minimum qualifying prior speed, 1.0 at full-confidence speed
    span = max(_FULL_CONFIDENCE_SOG_KN - min_prior_sog_kn, 1e-6)
    confidence = 0.5 + 0.5 * min(1.0, (prev.speed_knots - min_prior_sog_kn) / span)

    logger.debug(
        "Vessel %s: SOG %.1f → %.1f kn in %.1f min inside restricted zone",
        track.vessel_id, prev.speed_knots, last.speed_knots, interval_min,
    )
    return CandidateAlert(
        vessel_id=track.vessel_id,
        kind=AlertKindEnum.GROUNDING,
        confidence=round(confidence, 4),
        detected_at=last.timestamp,
        lat=last.lat,
        lon=last.lon,
        evidence={
            "prior_speed_knots": prev.speed_knots,
            "speed_knots": last.speed_knots,
            "speed_delta": track.speed_delta,
            "interval_minutes": round(interval_min, 2),
            "in_restricted_zone": True,
        },
    )
