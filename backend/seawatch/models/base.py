"""Shared enums for all models."""
from __future__ import annotations

import enum


class AlertKindEnum(str, enum.Enum):
    COLLISION_RISK = "collision_risk"
    ILLEGAL_DISCHARGE = "illegal_discharge"
    LOITERING = "loitering"
    GROUNDING = "grounding"
    ANOMALY = "anomaly"


class SeverityEnum(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        """Ordering rank: low=0 … critical=3."""
        return _SEVERITY_ORDER.index(self)


_SEVERITY_ORDER = [SeverityEnum.LOW, SeverityEnum.MEDIUM, SeverityEnum.HIGH, SeverityEnum.CRITICAL]


class AlertStatusEnum(str, enum.Enum):
    ACTIVE = "active"
    ACKNOWLEDGED = "acknowledged"
    RESOLVED = "resolved"


class AlertChangeEnum(str, enum.Enum):
    CREATED = "created"
    REFRESHED = "refreshed"
    ESCALATED = "escalated"
    ACKNOWLEDGED = "acknowledged"
    RESOLVED = "resolved"


class TransitionKindEnum(str, enum.Enum):
    CREATED = "created"
    ESCALATED = "escalated"


class IngestOutcomeEnum(str, enum.Enum):
    ACCEPTED = "accepted"
    STALE = "stale"


class VesselStatusEnum(str, enum.Enum):
    # Dashboard colouring derived from a vessel's open alerts
    NORMAL = "normal"
    WARNING = "warning"
    DANGER = "danger"
