"""Collision-risk detector.

For a vessel V, screens neighbours within a great-circle search radius and
extrapolates both tracks linearly from course and speed to find the closest
point of approach (CPA).  A candidate is raised when the CPA distance falls
under the threshold within the look-ahead horizon.

The two latest reports rarely share a timestamp, so the older position is
dead-reckoned forward to the newer one first.  A neighbour whose report is
older than ``max_report_age_minutes`` is not screened at all.

Confidence blends two margins equally:
  0.5 × (1 − cpa / threshold) + 0.5 × (1 − tcpa / horizon)

Pairs are canonicalised: ``vessel_id`` is the lexically smaller id and
``counterpart_id`` the larger, so (A, B) and (B, A) correlate to one alert.

Performance note: ``scan_collision_pairs`` indexes tracks into a 1-degree
lat/lon grid so that only vessels in the same or adjacent cells are compared,
avoiding an O(n²) full cross-product.
"""
from __future__ import annotations

import logging
import math
from collections import defaultdict
from typing import Iterable

from seawatch.config import settings as _settings
from seawatch.models.alert import CandidateAlert
from seawatch.models.base import AlertKindEnum
from seawatch.models.vessel_track import VesselTrack
from seawatch.utils.geo import closest_point_of_approach, dead_reckon, haversine_meters

logger = logging.getLogger(__name__)

# ── Constants ─────────────────────────────────────────────────────────────────

_SEARCH_RADIUS_KM: float = _settings.COLLISION_SEARCH_RADIUS_KM
_CPA_THRESHOLD_KM: float = _settings.COLLISION_CPA_THRESHOLD_KM
_HORIZON_MINUTES: float = _settings.COLLISION_HORIZON_MINUTES
_MAX_REPORT_AGE_MINUTES: float = _settings.COLLISION_MAX_REPORT_AGE_MINUTES

# Both vessels effectively stationary: no closing course to evaluate
_MIN_RELATIVE_SOG_KN: float = 0.1

_GRID_DEG: float = 1.0


def _evaluate_pair(
    a: VesselTrack,
    b: VesselTrack,
    search_radius_km: float,
    cpa_threshold_km: float,
    horizon_minutes: float,
    max_report_age_minutes: float,
) -> CandidateAlert | None:
    if a.speed_knots < _MIN_RELATIVE_SOG_KN and b.speed_knots < _MIN_RELATIVE_SOG_KN:
        return None

    # Both vessels are dead-reckoned to the newer of the two reports
    detected_at = max(a.last_report_at, b.last_report_at)
    projected: dict[str, tuple[float, float]] = {}
    for t in (a, b):
        gap_s = (detected_at - t.last_report_at).total_seconds()
        if gap_s > max_report_age_minutes * 60.0:
            return None
        projected[t.vessel_id] = dead_reckon(t.lat, t.lon, t.speed_knots, t.course_degrees, gap_s)
    a_lat, a_lon = projected[a.vessel_id]
    b_lat, b_lon = projected[b.vessel_id]

    distance_m = haversine_meters(a_lat, a_lon, b_lat, b_lon)
    if distance_m > search_radius_km * 1000.0:
        return None

    cpa_m, tcpa_s = closest_point_of_approach(
        a_lat, a_lon, a.speed_knots, a.course_degrees,
        b_lat, b_lon, b.speed_knots, b.course_degrees,
    )
    tcpa_min = tcpa_s / 60.0
    threshold_m = cpa_threshold_km * 1000.0
    if tcpa_min < 0 or tcpa_min > horizon_minutes or cpa_m >= threshold_m:
        return None

    confidence = 0.5 * (1 - cpa_m / threshold_m) + 0.5 * (1 - tcpa_min / horizon_minutes)
    confidence = round(min(1.0, max(0.0, confidence)), 4)

    first, second = (a, b) if a.vessel_id <= b.vessel_id else (b, a)
    return CandidateAlert(
        vessel_id=first.vessel_id,
        counterpart_id=second.vessel_id,
        kind=AlertKindEnum.COLLISION_RISK,
        confidence=confidence,
        detected_at=detected_at,
        lat=(a_lat + b_lat) / 2,
        lon=(a_lon + b_lon) / 2,
        evidence={
            "vessel_ids": [first.vessel_id, second.vessel_id],
            "distance_km": round(distance_m / 1000.0, 3),
            "cpa_km": round(cpa_m / 1000.0, 3),
            "tcpa_minutes": round(tcpa_min, 2),
            "positions": {
                t.vessel_id: {
                    "lat": t.lat, "lon": t.lon,
                    "speed_knots": t.speed_knots, "course_degrees": t.course_degrees,
                    "reported_at": t.last_report_at.isoformat(),
                    "projected_lat": round(projected[t.vessel_id][0], 6),
                    "projected_lon": round(projected[t.vessel_id][1], 6),
                }
                for t in (first, second)
            },
        },
    )


def detect_collision_risk(
    track: VesselTrack,
    neighbours: Iterable[VesselTrack],
    search_radius_km: float = _SEARCH_RADIUS_KM,
    cpa_threshold_km: float = _CPA_THRESHOLD_KM,
    horizon_minutes: float = _HORIZON_MINUTES,
    max_report_age_minutes: float = _MAX_REPORT_AGE_MINUTES,
) -> list[CandidateAlert]:
    """Collision candidates for ``track`` against a consistent neighbour snapshot.

    ``neighbours`` may include ``track`` itself (e.g. a full ``snapshot_all``);
    it is skipped.  At most one candidate is emitted per distinct neighbour.
    """
    if not track.vessel_id:
        raise ValueError("track.vessel_id is required")

    candidates: list[CandidateAlert] = []
    seen: set[str] = set()
    for other in neighbours:
        if other.vessel_id == track.vessel_id or other.vessel_id in seen:
            continue
        seen.add(other.vessel_id)
        candidate = _evaluate_pair(
            track, other, search_radius_km, cpa_threshold_km, horizon_minutes, max_report_age_minutes,
        )
        if candidate is not None:
            candidates.append(candidate)
    return candidates


_GRID_COLS: int = round(360 / _GRID_DEG)


def _grid_cell(lat: float, lon: float) -> tuple[int, int]:
    return (math.floor(lat / _GRID_DEG), _wrap_col(math.floor(lon / _GRID_DEG)))


def _wrap_col(col: int) -> int:
    # Columns wrap at the antimeridian; lon 180 shares a column with lon -180
    half = _GRID_COLS // 2
    return (col + half) % _GRID_COLS - half


def _lon_cell_span(row: int, search_radius_km: float) -> int:
    """Longitude cells to scan either side; cells narrow towards the poles."""
    poleward_lat = max(abs(row * _GRID_DEG), abs((row + 1) * _GRID_DEG))
    cell_width_km = 111.32 * _GRID_DEG * max(math.cos(math.radians(min(poleward_lat, 89.9))), 1e-3)
    return min(_GRID_COLS // 2, max(1, math.ceil(search_radius_km / cell_width_km)))


def scan_collision_pairs(
    tracks: Iterable[VesselTrack],
    search_radius_km: float = _SEARCH_RADIUS_KM,
    cpa_threshold_km: float = _CPA_THRESHOLD_KM,
    horizon_minutes: float = _HORIZON_MINUTES,
    max_report_age_minutes: float = _MAX_REPORT_AGE_MINUTES,
) -> list[CandidateAlert]:
    """Evaluate every unordered pair once over a whole-fleet snapshot."""
    grid: dict[tuple[int, int], list[VesselTrack]] = defaultdict(list)
    for t in tracks:
        grid[_grid_cell(t.lat, t.lon)].append(t)

    candidates: list[CandidateAlert] = []
    seen_pairs: set[tuple[str, str]] = set()
    for (row, col), cell_tracks in grid.items():
        nearby: list[VesselTrack] = []
        lon_span = _lon_cell_span(row, search_radius_km)
        for dr in (-1, 0, 1):
            for dc in range(-lon_span, lon_span + 1):
                nearby.extend(grid.get((row + dr, _wrap_col(col + dc)), ()))
        for a in cell_tracks:
            for b in nearby:
                if a.vessel_id == b.vessel_id:
                    continue
                pair = (min(a.vessel_id, b.vessel_id), max(a.vessel_id, b.vessel_id))
                if pair in seen_pairs:
                    continue
                seen_pairs.add(pair)
                candidate = _evaluate_pair(
                    a, b, search_radius_km, cpa_threshold_km, horizon_minutes, max_report_age_minutes,
                )
                if candidate is not None:
                    candidates.append(candidate)

    logger.debug("Collision scan: %d pairs evaluated, %d candidates", len(seen_pairs), len(candidates))
    return candidates
