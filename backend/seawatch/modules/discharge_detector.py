"""Discharge-anomaly evaluation.

Real discharge detection (SAR slick imagery, aerial patrols, on-board
sensors) happens outside the engine.  This module only turns an externally
supplied ``DischargeObservation`` attributed to a vessel into a candidate.
"""
from __future__ import annotations

import logging
from typing import Optional

from seawatch.config import settings as _settings
from seawatch.models.alert import CandidateAlert
from seawatch.models.base import AlertKindEnum
from seawatch.models.discharge_observation import DischargeObservation
from seawatch.models.vessel_track import VesselTrack
from seawatch.modules.normalize import as_utc

logger = logging.getLogger(__name__)

_MIN_CONFIDENCE: float = _settings.DISCHARGE_MIN_CONFIDENCE


def evaluate_discharge(
    vessel_id: str,
    observation: DischargeObservation,
    track: Optional[VesselTrack] = None,
    min_confidence: float = _MIN_CONFIDENCE,
) -> Optional[CandidateAlert]:
    """Candidate for an observation, or None when it is too weak to act on.

    Position falls back to the vessel's last known track position when the
    observation carries none.
    """
    if not vessel_id:
        raise ValueError("vessel_id is required")

    confidence = min(1.0, max(0.0, float(observation.confidence)))
    if confidence < min_confidence:
        logger.debug(
            "Discharge observation for %s from %s below threshold (%.2f < %.2f)",
            vessel_id, observation.source, confidence, min_confidence,
        )
        return None

    observed_at = as_utc(observation.observed_at)
    lat, lon = observation.lat, observation.lon
    if (lat is None or lon is None) and track is not None:
        lat, lon = track.lat, track.lon

    evidence = {
        "source": observation.source,
        "observed_at": observed_at.isoformat(),
        "observation_confidence": confidence,
    }
    if observation.slick_area_km2 is not None:
        evidence["slick_area_km2"] = observation.slick_area_km2
    if observation.details:
        evidence["details"] = dict(observation.details)

    return CandidateAlert(
        vessel_id=vessel_id,
        kind=AlertKindEnum.ILLEGAL_DISCHARGE,
        confidence=round(confidence, 4),
        detected_at=observed_at,
        lat=lat,
        lon=lon,
        evidence=evidence,
    )
