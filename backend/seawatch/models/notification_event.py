"""NotificationEvent — one surfaced alert transition (creation or escalation)."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from seawatch.models.alert import Alert
from seawatch.models.base import AlertKindEnum, SeverityEnum, TransitionKindEnum


@dataclass
class NotificationEvent:
    alert_id: str
    transition_kind: TransitionKindEnum
    kind: AlertKindEnum
    severity: SeverityEnum
    title: str
    description: str
    alert_created_at: datetime
    emitted_at: datetime
    vessel_id: Optional[str] = None
    lat: Optional[float] = None
    lon: Optional[float] = None
    # None while pending; True once every sink took it; False when retries ran out
    delivered: Optional[bool] = None
    attempts: int = 0

    @classmethod
    def from_alert(
        cls,
        alert: Alert,
        transition_kind: TransitionKindEnum,
        emitted_at: datetime,
    ) -> "NotificationEvent":
        return cls(
            alert_id=alert.alert_id,
            transition_kind=transition_kind,
            kind=alert.kind,
            severity=alert.severity,
            title=alert.title,
            description=alert.description,
            alert_created_at=alert.created_at,
            emitted_at=emitted_at,
            vessel_id=alert.vessel_id,
            lat=alert.lat,
            lon=alert.lon,
        )

    def payload(self) -> dict:
        """Outbound notification payload consumed by sinks."""
        return {
            "alert_id": self.alert_id,
            "transition_kind": self.transition_kind.value,
            "kind": self.kind.value,
            "severity": self.severity.value,
            "title": self.title,
            "description": self.description,
            "vessel_id": self.vessel_id,
            "lat": self.lat,
            "lon": self.lon,
            "emitted_at": self.emitted_at.isoformat(),
        }
