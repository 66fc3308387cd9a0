"""Alert correlation.

Deduplicates detector candidates into canonical alerts and owns the alert
lifecycle.

Correlation key: (vessel_id, kind, counterpart_id).  ``counterpart_id`` is
only set for collision-risk pairs, so every other kind correlates on
(vessel_id, kind).  While an alert for a key is open (active or
acknowledged), further candidates refresh it instead of creating a new one.

Severity from confidence:
  ≥ 0.85 → critical,  ≥ 0.60 → high,  ≥ 0.35 → medium,  otherwise low
An open alert's severity only ever moves up; a move up is an escalation.

Status is monotonic: active → acknowledged → resolved, or active → resolved.
Resolved alerts are kept for audit; a later candidate for the same key opens
a fresh alert.
"""
from __future__ import annotations

import logging
import threading
import uuid
from collections import deque
from datetime import datetime, timezone
from typing import Callable, Optional

from seawatch.errors import AlertNotFound, InvalidTransition
from seawatch.models.alert import Alert, AlertChange, CandidateAlert
from seawatch.models.base import AlertChangeEnum, AlertKindEnum, AlertStatusEnum, SeverityEnum
from seawatch.modules.normalize import as_utc

logger = logging.getLogger(__name__)

AlertListener = Callable[[AlertChange], None]

# (min_confidence, severity), highest first
_SEVERITY_THRESHOLDS: list[tuple[float, SeverityEnum]] = [
    (0.85, SeverityEnum.CRITICAL),
    (0.60, SeverityEnum.HIGH),
    (0.35, SeverityEnum.MEDIUM),
]


def severity_for_confidence(confidence: float) -> SeverityEnum:
    for threshold, severity in _SEVERITY_THRESHOLDS:
        if confidence >= threshold:
            return severity
    return SeverityEnum.LOW


def _describe_collision(c: CandidateAlert) -> tuple[str, str]:
    ev = c.evidence
    return (
        "Collision Risk",
        f"Vessels {c.vessel_id} and {c.counterpart_id} on closing courses: "
        f"CPA {ev.get('cpa_km', 0):.2f} km in {ev.get('tcpa_minutes', 0):.1f} min.",
    )


def _describe_discharge(c: CandidateAlert) -> tuple[str, str]:
    ev = c.evidence
    area = ev.get("slick_area_km2")
    area_txt = f" covering {area:.2f} km²" if area is not None else ""
    return (
        "Illegal Discharge",
        f"Possible discharge{area_txt} attributed to vessel {c.vessel_id} "
        f"(source: {ev.get('source', 'unknown')}).",
    )


def _describe_loitering(c: CandidateAlert) -> tuple[str, str]:
    ev = c.evidence
    return (
        "Loitering",
        f"Vessel {c.vessel_id} loitering for {ev.get('duration_minutes', 0):.0f} min "
        f"within {ev.get('max_spread_m', 0):.0f} m at mean {ev.get('mean_sog_kn', 0):.1f} kn.",
    )


def _describe_grounding(c: CandidateAlert) -> tuple[str, str]:
    ev = c.evidence
    return (
        "Grounding",
        f"Vessel {c.vessel_id} stopped from {ev.get('prior_speed_knots', 0):.1f} kn to "
        f"{ev.get('speed_knots', 0):.1f} kn inside a restricted zone.",
    )


def _describe_anomaly(c: CandidateAlert) -> tuple[str, str]:
    ev = c.evidence
    if ev.get("reason") == "ais_silence":
        return (
            "AIS Silence",
            f"Vessel {c.vessel_id} has not reported for {ev.get('silent_minutes', 0):.0f} min.",
        )
    return (
        "Track Anomaly",
        f"Vessel {c.vessel_id} position jumped {ev.get('jump_nm', 0):.1f} nm "
        f"(implied {ev.get('implied_sog_kn') or 'unbounded'} kn).",
    )


_DESCRIBERS: dict[AlertKindEnum, Callable[[CandidateAlert], tuple[str, str]]] = {
    AlertKindEnum.COLLISION_RISK: _describe_collision,
    AlertKindEnum.ILLEGAL_DISCHARGE: _describe_discharge,
    AlertKindEnum.LOITERING: _describe_loitering,
    AlertKindEnum.GROUNDING: _describe_grounding,
    AlertKindEnum.ANOMALY: _describe_anomaly,
}


class AlertCorrelator:
    def __init__(self, changelog_size: int = 1000):
        self._alerts: dict[str, Alert] = {}
        self._open_by_key: dict[tuple, str] = {}
        self._changes: deque[AlertChange] = deque(maxlen=changelog_size)
        self._seq = 0
        self._listeners: list[AlertListener] = []
        self._lock = threading.RLock()

    # ── Correlation ───────────────────────────────────────────────────────────

    def correlate(self, candidate: CandidateAlert) -> Alert:
        """Create or refresh the open alert for the candidate's key."""
        if not candidate.vessel_id:
            raise ValueError("candidate.vessel_id is required")
        if candidate.kind is AlertKindEnum.COLLISION_RISK and not candidate.counterpart_id:
            raise ValueError("collision_risk candidates require counterpart_id")

        title, description = _DESCRIBERS[candidate.kind](candidate)
        severity = severity_for_confidence(candidate.confidence)
        detected_at = as_utc(candidate.detected_at)

        with self._lock:
            alert_id = self._open_by_key.get(candidate.correlation_key)
            if alert_id is None:
                alert = Alert(
                    alert_id=uuid.uuid4().hex,
                    kind=candidate.kind,
                    severity=severity,
                    title=title,
                    description=description,
                    vessel_id=candidate.vessel_id,
                    counterpart_id=candidate.counterpart_id,
                    lat=candidate.lat,
                    lon=candidate.lon,
                    confidence=candidate.confidence,
                    evidence=dict(candidate.evidence),
                    created_at=detected_at,
                    updated_at=detected_at,
                    detected_at=detected_at,
                )
                self._alerts[alert.alert_id] = alert
                self._open_by_key[candidate.correlation_key] = alert.alert_id
                change = self._record(AlertChangeEnum.CREATED, alert, detected_at)
                logger.info(
                    "Alert %s created: %s %s (%s, confidence %.2f)",
                    alert.alert_id, alert.kind.value, alert.vessel_id, alert.severity.value, alert.confidence,
                )
            else:
                alert = self._alerts[alert_id]
                escalated = severity.rank > alert.severity.rank
                if escalated:
                    logger.info(
                        "Alert %s escalated: %s → %s", alert.alert_id, alert.severity.value, severity.value
                    )
                    alert.severity = severity
                alert.confidence = candidate.confidence
                alert.evidence = dict(candidate.evidence)
                alert.title, alert.description = title, description
                if candidate.lat is not None and candidate.lon is not None:
                    alert.lat, alert.lon = candidate.lat, candidate.lon
                alert.detected_at = max(alert.detected_at, detected_at)
                alert.updated_at = max(alert.updated_at, detected_at)
                alert.detection_count += 1
                change = self._record(
                    AlertChangeEnum.ESCALATED if escalated else AlertChangeEnum.REFRESHED,
                    alert,
                    detected_at,
                )
            result = alert.copy()
            # Listeners run under the lock so every consumer sees changes in seq order
            self._notify(change)
        return result

    # ── Lifecycle ─────────────────────────────────────────────────────────────

    def acknowledge(self, alert_id: str, now: Optional[datetime] = None) -> Alert:
        """active → acknowledged.  Idempotent on acknowledged alerts.

        Raises:
            AlertNotFound: unknown id.
            InvalidTransition: alert already resolved.
        """
        now = as_utc(now) if now is not None else datetime.now(timezone.utc)
        change = None
        with self._lock:
            alert = self._require(alert_id)
            if alert.status == AlertStatusEnum.RESOLVED:
                raise InvalidTransition(f"Alert {alert_id} is resolved and cannot be acknowledged")
            if alert.status == AlertStatusEnum.ACTIVE:
                alert.status = AlertStatusEnum.ACKNOWLEDGED
                alert.acknowledged_at = now
                alert.updated_at = max(alert.updated_at, now)
                change = self._record(AlertChangeEnum.ACKNOWLEDGED, alert, now)
            result = alert.copy()
            if change is not None:
                self._notify(change)
        return result

    def resolve(self, alert_id: str, now: Optional[datetime] = None) -> Alert:
        """active|acknowledged → resolved.  Resolving twice is a no-op success.

        Raises:
            AlertNotFound: unknown id.
        """
        now = as_utc(now) if now is not None else datetime.now(timezone.utc)
        change = None
        with self._lock:
            alert = self._require(alert_id)
            if alert.status != AlertStatusEnum.RESOLVED:
                alert.status = AlertStatusEnum.RESOLVED
                alert.resolved_at = now
                alert.updated_at = max(alert.updated_at, now)
                self._open_by_key.pop(alert.correlation_key, None)
                change = self._record(AlertChangeEnum.RESOLVED, alert, now)
            result = alert.copy()
            if change is not None:
                self._notify(change)
        return result

    # ── Alert feed ────────────────────────────────────────────────────────────

    def get(self, alert_id: str) -> Alert:
        with self._lock:
            return self._require(alert_id).copy()

    def snapshot(
        self,
        status: Optional[AlertStatusEnum] = None,
        kind: Optional[AlertKindEnum] = None,
        severity: Optional[SeverityEnum] = None,
        vessel_id: Optional[str] = None,
    ) -> list[Alert]:
        """Current state of all alerts, newest first."""
        with self._lock:
            alerts = [
                a.copy() for a in self._alerts.values()
                if (status is None or a.status == status)
                and (kind is None or a.kind == kind)
                and (severity is None or a.severity == severity)
                and (vessel_id is None or vessel_id in (a.vessel_id, a.counterpart_id))
            ]
        alerts.sort(key=lambda a: a.created_at, reverse=True)
        return alerts

    def open_alerts(self, vessel_id: Optional[str] = None) -> list[Alert]:
        with self._lock:
            return [
                self._alerts[aid].copy() for aid in self._open_by_key.values()
                if vessel_id is None or vessel_id in (self._alerts[aid].vessel_id, self._alerts[aid].counterpart_id)
            ]

    def changes_since(self, seq: int = 0) -> list[AlertChange]:
        """Change-stream entries with ``seq`` greater than the given one.

        The log is bounded; consumers that fall behind should compare the
        first returned ``seq`` with ``seq + 1`` and resync from ``snapshot``.
        """
        with self._lock:
            return [c for c in self._changes if c.seq > seq]

    @property
    def latest_seq(self) -> int:
        with self._lock:
            return self._seq

    def subscribe(self, listener: AlertListener) -> Callable[[], None]:
        """Push-mode feed; returns an unsubscribe callable."""
        with self._lock:
            self._listeners.append(listener)

        def _unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return _unsubscribe

    def __len__(self) -> int:
        with self._lock:
            return len(self._alerts)

    # ── Internal helpers ──────────────────────────────────────────────────────

    def _require(self, alert_id: str) -> Alert:
        alert = self._alerts.get(alert_id)
        if alert is None:
            raise AlertNotFound(f"Alert {alert_id} not found")
        return alert

    def _record(self, change: AlertChangeEnum, alert: Alert, at: datetime) -> AlertChange:
        self._seq += 1
        entry = AlertChange(seq=self._seq, change=change, alert=alert.copy(), changed_at=at)
        self._changes.append(entry)
        return entry

    def _notify(self, change: AlertChange) -> None:
        for listener in list(self._listeners):
            try:
                listener(change)
            except Exception:
                logger.exception("Alert listener %r failed on %s", listener, change.change.value)
