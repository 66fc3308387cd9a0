"""PositionReport — one decoded position report from the inbound feed."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional


@dataclass
class PositionReport:
    vessel_id: str
    lat: float
    lon: float
    timestamp: Any  # datetime, ISO 8601 string or Unix epoch until normalised
    speed_knots: float = 0.0
    course_degrees: float = 0.0
    heading_degrees: Optional[float] = None
    classification: str = "unknown"
    name: Optional[str] = None

    @classmethod
    def from_dict(cls, row: dict[str, Any]) -> "PositionReport":
        """Build a report from a normalised feed row (see ``normalize.REPORT_ALIASES``)."""
        return cls(
            vessel_id=row.get("vessel_id"),
            lat=row.get("lat"),
            lon=row.get("lon"),
            timestamp=row.get("timestamp"),
            speed_knots=row.get("speed_knots") if row.get("speed_knots") is not None else 0.0,
            course_degrees=row.get("course_degrees") if row.get("course_degrees") is not None else 0.0,
            heading_degrees=row.get("heading_degrees"),
            classification=row.get("classification") or "unknown",
            name=row.get("name"),
        )

