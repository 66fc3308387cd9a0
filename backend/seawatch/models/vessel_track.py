"""VesselTrack entity — authoritative per-vessel state owned by the track store."""
from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional


@dataclass(frozen=True)
class PositionSample:
    lat: float
    lon: float
    speed_knots: float
    course_degrees: float
    heading_degrees: float
    timestamp: datetime


@dataclass
class VesselTrack:
    """Current kinematic state plus a bounded window of recent samples.

    Instances handed out by ``VesselTrackStore`` are detached copies; the
    ``position_history`` of a copy is a tuple so readers cannot mutate it.
    """

    vessel_id: str
    lat: float
    lon: float
    speed_knots: float
    course_degrees: float
    heading_degrees: float
    classification: str
    last_report_at: datetime
    name: Optional[str] = None
    report_count: int = 0
    position_history: deque[PositionSample] | tuple[PositionSample, ...] = field(default_factory=deque)

    @property
    def latest_sample(self) -> Optional[PositionSample]:
        return self.position_history[-1] if self.position_history else None

    @property
    def previous_sample(self) -> Optional[PositionSample]:
        return self.position_history[-2] if len(self.position_history) >= 2 else None

    @property
    def speed_delta(self) -> Optional[float]:
        """Speed change (knots) between the two most recent samples."""
        prev, last = self.previous_sample, self.latest_sample
        if prev is None or last is None:
            return None
        return last.speed_knots - prev.speed_knots

    @property
    def heading_delta(self) -> Optional[float]:
        """Signed heading change in degrees, normalised to (-180, 180]."""
        prev, last = self.previous_sample, self.latest_sample
        if prev is None or last is None:
            return None
        delta = (last.heading_degrees - prev.heading_degrees) % 360.0
        return delta - 360.0 if delta > 180.0 else delta

    def snapshot(self) -> "VesselTrack":
        """Detached copy with an immutable history."""
        return VesselTrack(
            vessel_id=self.vessel_id,
            lat=self.lat,
            lon=self.lon,
            speed_knots=self.speed_knots,
            course_degrees=self.course_degrees,
            heading_degrees=self.heading_degrees,
            classification=self.classification,
            last_report_at=self.last_report_at,
            name=self.name,
            report_count=self.report_count,
            position_history=tuple(self.position_history),
        )

    def to_dict(self) -> dict:
        return {
            "vessel_id": self.vessel_id,
            "name": self.name,
            "lat": self.lat,
            "lon": self.lon,
            "speed_knots": self.speed_knots,
            "course_degrees": self.course_degrees,
            "heading_degrees": self.heading_degrees,
            "classification": self.classification,
            "last_report_at": self.last_report_at.isoformat(),
            "report_count": self.report_count,
            "heading_delta": self.heading_delta,
            "speed_delta": self.speed_delta,
        }
