"""DischargeObservation — externally supplied evidence of a possible oil discharge."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional


@dataclass
class DischargeObservation:
    source: str  # e.g. "sar_imagery", "aerial_patrol", "sensor"
    confidence: float
    observed_at: datetime
    lat: Optional[float] = None
    lon: Optional[float] = None
    slick_area_km2: Optional[float] = None
    details: dict[str, Any] = field(default_factory=dict)
