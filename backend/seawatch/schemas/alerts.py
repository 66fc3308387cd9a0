"""Pydantic schemas for alert reads, the change stream and discharge observations."""
from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator

from seawatch.models.alert import Alert, AlertChange
from seawatch.models.base import AlertChangeEnum, AlertKindEnum, AlertStatusEnum, SeverityEnum
from seawatch.models.discharge_observation import DischargeObservation
from seawatch.modules.normalize import as_utc


class AlertRead(BaseModel):
    alert_id: str
    kind: AlertKindEnum
    severity: SeverityEnum
    status: AlertStatusEnum
    title: str
    description: str
    vessel_id: Optional[str] = None
    counterpart_id: Optional[str] = None
    lat: Optional[float] = None
    lon: Optional[float] = None
    confidence: float
    evidence: dict[str, Any] = {}
    detection_count: int = 1
    created_at: datetime
    updated_at: datetime
    detected_at: datetime
    acknowledged_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None

    model_config = {"from_attributes": True}

    @classmethod
    def from_alert(cls, alert: Alert) -> "AlertRead":
        return cls.model_validate(alert)


class AlertChangeRead(BaseModel):
    seq: int
    change: AlertChangeEnum
    changed_at: datetime
    alert: AlertRead

    @classmethod
    def from_change(cls, change: AlertChange) -> "AlertChangeRead":
        return cls(
            seq=change.seq,
            change=change.change,
            changed_at=change.changed_at,
            alert=AlertRead.from_alert(change.alert),
        )


class AlertChangesResponse(BaseModel):
    latest_seq: int
    changes: list[AlertChangeRead]


class DischargeObservationCreate(BaseModel):
    source: str = Field(..., min_length=1)
    confidence: float = Field(..., ge=0.0, le=1.0)
    observed_at: datetime
    lat: Optional[float] = Field(default=None, ge=-90.0, le=90.0)
    lon: Optional[float] = Field(default=None, ge=-180.0, le=180.0)
    slick_area_km2: Optional[float] = Field(default=None, ge=0.0)
    details: dict[str, Any] = {}

    @field_validator("observed_at")
    @classmethod
    def _observed_at_utc(cls, v: datetime) -> datetime:
        return as_utc(v)

    def to_observation(self) -> DischargeObservation:
        return DischargeObservation(**self.model_dump())
