"""Shared geodesic and kinematic utilities.

Canonical implementations of haversine distance and closest-point-of-approach
(CPA) used by the collision, loitering and anomaly detectors.
"""
from __future__ import annotations

import math

_EARTH_RADIUS_NM: float = 3440.065   # Earth mean radius in nautical miles
_EARTH_RADIUS_M: float = 6_371_000.0  # Earth mean radius in metres
KNOTS_TO_MPS: float = 1852.0 / 3600.0


def haversine_nm(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance in nautical miles between two WGS-84 coordinates."""
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlam = math.radians(lon2 - lon1)
    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlam / 2) ** 2
    return _EARTH_RADIUS_NM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def haversine_meters(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance in metres between two WGS-84 coordinates."""
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlam = math.radians(lon2 - lon1)
    a = (
        math.sin(dphi / 2) ** 2
        + math.cos(phi1) * math.cos(phi2) * math.sin(dlam / 2) ** 2
    )
    return _EARTH_RADIUS_M * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def local_offset_meters(
    lat0: float, lon0: float, lat: float, lon: float
) -> tuple[float, float]:
    """(east, north) offset in metres of (lat, lon) from (lat0, lon0).

    Equirectangular projection about the mid latitude; accurate to well under
    1% over the tens of kilometres collision screening looks at.
    """
    dlon = (lon - lon0 + 180.0) % 360.0 - 180.0  # antimeridian wrap
    mid_lat = math.radians((lat + lat0) / 2)
    east = math.radians(dlon) * math.cos(mid_lat) * _EARTH_RADIUS_M
    north = math.radians(lat - lat0) * _EARTH_RADIUS_M
    return east, north


def velocity_mps(speed_knots: float, course_degrees: float) -> tuple[float, float]:
    """(east, north) velocity in m/s for a speed over ground and course."""
    v = speed_knots * KNOTS_TO_MPS
    course = math.radians(course_degrees)
    return v * math.sin(course), v * math.cos(course)


def closest_point_of_approach(
    lat1: float, lon1: float, sog1: float, cog1: float,
    lat2: float, lon2: float, sog2: float, cog2: float,
) -> tuple[float, float]:
    """Linear CPA between two vessels.

    Returns:
        (cpa_meters, tcpa_seconds). ``tcpa_seconds`` is negative when the
        vessels are already opening; in that case ``cpa_meters`` is the CPA
        that lay in the past.
    """
    rx, ry = local_offset_meters(lat1, lon1, lat2, lon2)
    v1x, v1y = velocity_mps(sog1, cog1)
    v2x, v2y = velocity_mps(sog2, cog2)
    wx, wy = v2x - v1x, v2y - v1y

    w2 = wx * wx + wy * wy
    if w2 < 1e-9:
        # Same velocity: separation never changes
        return math.hypot(rx, ry), 0.0

    tcpa = -(rx * wx + ry * wy) / w2
    cx, cy = rx + wx * tcpa, ry + wy * tcpa
    return math.hypot(cx, cy), tcpa


def centroid(points: list[tuple[float, float]]) -> tuple[float, float]:
    """Arithmetic mean (lat, lon) of a small cluster of points."""
    lat = sum(p[0] for p in points) / len(points)
    lon = sum(p[1] for p in points) / len(points)
    return lat, lon


def dead_reckon(
    lat: float, lon: float, speed_knots: float, course_degrees: float, seconds: float
) -> tuple[float, float]:
    """(lat, lon) after holding speed and course for ``seconds``.

    Flat-earth step, the inverse of ``local_offset_meters``; fine for the
    minutes-scale gaps between two vessels' latest reports.
    """
    if seconds == 0 or speed_knots == 0:
        return lat, lon
    vx, vy = velocity_mps(speed_knots, course_degrees)
    new_lat = lat + math.degrees(vy * seconds / _EARTH_RADIUS_M)
    new_lat = max(-90.0, min(90.0, new_lat))
    cos_lat = max(math.cos(math.radians((lat + new_lat) / 2)), 1e-6)
    new_lon = lon + math.degrees(vx * seconds / (_EARTH_RADIUS_M * cos_lat))
    new_lon = (new_lon + 180.0) % 360.0 - 180.0
    return new_lat, new_lon
