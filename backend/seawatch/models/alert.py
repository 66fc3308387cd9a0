"""Alert entities — detector candidates and canonical correlator-owned alerts."""
from __future__ import annotations

import copy
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from seawatch.models.base import AlertChangeEnum, AlertKindEnum, AlertStatusEnum, SeverityEnum


@dataclass
class CandidateAlert:
    """Unconfirmed hazard signal emitted by a detector; consumed immediately."""

    vessel_id: str
    kind: AlertKindEnum
    confidence: float
    detected_at: datetime
    evidence: dict[str, Any] = field(default_factory=dict)
    lat: Optional[float] = None
    lon: Optional[float] = None
    # Other vessel of a collision pair; None for single-vessel kinds
    counterpart_id: Optional[str] = None

    @property
    def correlation_key(self) -> tuple[str, AlertKindEnum, Optional[str]]:
        return (self.vessel_id, self.kind, self.counterpart_id)


@dataclass
class Alert:
    alert_id: str
    kind: AlertKindEnum
    severity: SeverityEnum
    title: str
    description: str
    vessel_id: Optional[str]
    created_at: datetime
    updated_at: datetime
    detected_at: datetime
    confidence: float
    status: AlertStatusEnum = AlertStatusEnum.ACTIVE
    counterpart_id: Optional[str] = None
    lat: Optional[float] = None
    lon: Optional[float] = None
    evidence: dict[str, Any] = field(default_factory=dict)
    detection_count: int = 1
    acknowledged_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None

    @property
    def is_open(self) -> bool:
        return self.status != AlertStatusEnum.RESOLVED

    @property
    def correlation_key(self) -> tuple[Optional[str], AlertKindEnum, Optional[str]]:
        return (self.vessel_id, self.kind, self.counterpart_id)

    def copy(self) -> "Alert":
        return copy.deepcopy(self)

    def to_dict(self) -> dict:
        return {
            "alert_id": self.alert_id,
            "kind": self.kind.value,
            "severity": self.severity.value,
            "status": self.status.value,
            "title": self.title,
            "description": self.description,
            "vessel_id": self.vessel_id,
            "counterpart_id": self.counterpart_id,
            "lat": self.lat,
            "lon": self.lon,
            "confidence": self.confidence,
            "evidence": self.evidence,
            "detection_count": self.detection_count,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "detected_at": self.detected_at.isoformat(),
            "acknowledged_at": self.acknowledged_at.isoformat() if self.acknowledged_at else None,
            "resolved_at": self.resolved_at.isoformat() if self.resolved_at else None,
        }


@dataclass(frozen=True)
class AlertChange:
    """One entry of the alert change stream."""

    seq: int
    change: AlertChangeEnum
    alert: Alert
    changed_at: datetime
