"""Pydantic schemas for VesselTrack reads — used by FastAPI for response typing."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from seawatch.models.base import VesselStatusEnum
from seawatch.models.vessel_track import VesselTrack


class PositionSampleRead(BaseModel):
    lat: float
    lon: float
    speed_knots: float
    course_degrees: float
    heading_degrees: float
    timestamp: datetime

    model_config = {"from_attributes": True}


class VesselRead(BaseModel):
    vessel_id: str
    name: Optional[str] = None
    classification: str
    lat: float
    lon: float
    speed_knots: float
    course_degrees: float
    heading_degrees: float
    last_report_at: datetime
    report_count: int = 0
    speed_delta: Optional[float] = None
    heading_delta: Optional[float] = None
    status: VesselStatusEnum = VesselStatusEnum.NORMAL

    model_config = {"from_attributes": True}

    @classmethod
    def from_track(cls, track: VesselTrack, status: VesselStatusEnum) -> "VesselRead":
        read = cls.model_validate(track)
        read.status = status
        return read


class VesselDetailRead(VesselRead):
    position_history: list[PositionSampleRead] = []
