"""Synthetic position feed for demos and load testing.

Generates a small fleet in the Caribbean / western Atlantic box and moves
each vessel along its course every tick, with the same jitter the operator
dashboard's mock data uses (±0.005° position, ±1 kn speed).  Output is
deterministic for a given seed and timestamped in data time.
"""
from __future__ import annotations

import math
import random
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Iterator, Optional

from seawatch.models.position_report import PositionReport
from seawatch.utils.geo import KNOTS_TO_MPS

_NAME_PREFIXES = ["Ocean", "Sea", "Marine", "Blue", "Deep", "Atlantic", "Pacific"]
_NAME_SUFFIXES = ["Star", "Wave", "Breeze", "Storm", "Dawn", "Crown", "Pearl"]
_VESSEL_TYPES = ["Cargo", "Tanker", "Fishing", "Passenger", "Military"]

_BASE_MMSI: int = 100_000_000
_POSITION_JITTER_DEG: float = 0.005
_SPEED_JITTER_KN: float = 1.0
_METERS_PER_DEG_LAT: float = 111_320.0


@dataclass
class _SimVessel:
    vessel_id: str
    name: str
    classification: str
    lat: float
    lon: float
    speed_knots: float
    course_degrees: float


def _spawn(rng: random.Random, index: int) -> _SimVessel:
    return _SimVessel(
        vessel_id=str(_BASE_MMSI + index),
        name=f"MV {rng.choice(_NAME_PREFIXES)} {rng.choice(_NAME_SUFFIXES)}",
        classification=rng.choice(_VESSEL_TYPES).lower(),
        lat=20.0 + rng.uniform(-10.0, 10.0),
        lon=-80.0 + rng.uniform(-20.0, 20.0),
        speed_knots=rng.uniform(0.0, 20.0),
        course_degrees=rng.uniform(0.0, 360.0),
    )


def _step(rng: random.Random, vessel: _SimVessel, interval_seconds: float) -> None:
    distance_m = vessel.speed_knots * KNOTS_TO_MPS * interval_seconds
    course = math.radians(vessel.course_degrees)
    dlat = distance_m * math.cos(course) / _METERS_PER_DEG_LAT
    dlon = distance_m * math.sin(course) / (_METERS_PER_DEG_LAT * max(math.cos(math.radians(vessel.lat)), 0.01))

    vessel.lat = max(-89.9, min(89.9, vessel.lat + dlat + rng.uniform(-_POSITION_JITTER_DEG, _POSITION_JITTER_DEG)))
    lon = vessel.lon + dlon + rng.uniform(-_POSITION_JITTER_DEG, _POSITION_JITTER_DEG)
    vessel.lon = ((lon + 180.0) % 360.0) - 180.0
    vessel.speed_knots = max(0.0, vessel.speed_knots + rng.uniform(-_SPEED_JITTER_KN, _SPEED_JITTER_KN))


def synthetic_feed(
    vessel_count: int = 10,
    steps: int = 60,
    interval_seconds: float = 60.0,
    start: Optional[datetime] = None,
    seed: Optional[int] = None,
) -> Iterator[PositionReport]:
    """Yield ``vessel_count * (steps + 1)`` reports, one per vessel per tick.

    Reports within a tick are ordered by vessel id; ticks are ``interval_seconds``
    apart starting at ``start`` (default: now, UTC, truncated to the second).
    """
    if vessel_count < 0 or steps < 0:
        raise ValueError("vessel_count and steps must be non-negative")
    if interval_seconds <= 0:
        raise ValueError("interval_seconds must be positive")

    rng = random.Random(seed)
    start = start or datetime.now(timezone.utc).replace(microsecond=0)
    fleet = [_spawn(rng, i) for i in range(vessel_count)]

    for tick in range(steps + 1):
        timestamp = start + timedelta(seconds=tick * interval_seconds)
        for vessel in fleet:
            if tick:
                _step(rng, vessel, interval_seconds)
            yield PositionReport(
                vessel_id=vessel.vessel_id,
                lat=round(vessel.lat, 6),
                lon=round(vessel.lon, 6),
                timestamp=timestamp,
                speed_knots=round(vessel.speed_knots, 2),
                course_degrees=round(vessel.course_degrees, 1) % 360.0,
                heading_degrees=round(vessel.course_degrees, 1) % 360.0,
                classification=vessel.classification,
                name=vessel.name,
            )
