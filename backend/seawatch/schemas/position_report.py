"""Pydantic schemas for inbound position reports."""
from __future__ import annotations

from datetime import datetime
from typing import Optional, Union

from pydantic import BaseModel, Field

from seawatch.models.position_report import PositionReport


class PositionReportCreate(BaseModel):
    """One position report as posted to ``POST /reports``.

    Range checks happen in the engine (``normalize.validate_report``) so the
    HTTP, CSV and CLI paths reject the same reports with the same codes.
    """

    vessel_id: str = Field(..., description="MMSI or other stable vessel identifier")
    lat: float
    lon: float
    timestamp: Union[datetime, float, str]
    speed_knots: float = 0.0
    course_degrees: float = 0.0
    heading_degrees: Optional[float] = None
    classification: str = "unknown"
    name: Optional[str] = None

    def to_report(self) -> PositionReport:
        return PositionReport(**self.model_dump())


class IngestResponse(BaseModel):
    outcome: str
    vessel_id: str
    status: Optional[str] = None


class BulkIngestResponse(BaseModel):
    accepted: int = 0
    stale: int = 0
    rejected: int = 0
