"""In-memory engine entities."""
from seawatch.models.base import (
    AlertChangeEnum,
    AlertKindEnum,
    AlertStatusEnum,
    IngestOutcomeEnum,
    SeverityEnum,
    TransitionKindEnum,
    VesselStatusEnum,
)
from seawatch.models.position_report import PositionReport
from seawatch.models.vessel_track import PositionSample, VesselTrack
from seawatch.models.alert import Alert, AlertChange, CandidateAlert
from seawatch.models.discharge_observation import DischargeObservation
from seawatch.models.notification_event import NotificationEvent
