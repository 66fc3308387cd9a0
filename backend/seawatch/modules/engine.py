"""Monitoring engine — wires the ingestion → detection → correlation → dispatch
pipeline together.

Scheduling model:
  - Per-vessel serialisation: a report's ingest, detection and correlation
    run under that vessel's lock, so two reports for one vessel are never
    processed concurrently and detection always happens after its upsert.
  - ``run(feed, workers=N)`` shards the feed by vessel id across N worker
    threads; each shard preserves feed order.
  - Collision detection reads neighbours through ``snapshot_all`` (copy on
    read), never through live records.
  - Notification delivery is a queue hand-off; ingestion never waits on it.

Detector failures are isolated: an exception in one detector is logged and
skipped, and never aborts other detectors or other vessels' reports.
"""
from __future__ import annotations

import logging
import queue
import threading
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from io import IOBase
from typing import Callable, Iterable, Iterator, Optional

from seawatch.config import Settings, settings as default_settings
from seawatch.errors import InvalidReport
from seawatch.models.alert import Alert, CandidateAlert
from seawatch.models.base import AlertKindEnum, AlertStatusEnum, SeverityEnum, VesselStatusEnum
from seawatch.models.discharge_observation import DischargeObservation
from seawatch.models.position_report import PositionReport
from seawatch.models.vessel_track import VesselTrack
from seawatch.modules.alert_correlator import AlertCorrelator
from seawatch.modules.anomaly_detector import detect_kinematic_anomaly, detect_silence
from seawatch.modules.collision_detector import detect_collision_risk
from seawatch.modules.discharge_detector import evaluate_discharge
from seawatch.modules.grounding_detector import detect_grounding
from seawatch.modules.ingest import IngestResult, ReportIngestor, read_report_csv
from seawatch.modules.loitering_detector import detect_loitering
from seawatch.modules.normalize import as_utc
from seawatch.modules.notification_dispatcher import NotificationDispatcher
from seawatch.modules.sinks import FeedSink, NotificationSink, VoiceAnnouncementSink, WebhookSink
from seawatch.modules.track_store import VesselTrackStore
from seawatch.modules.zone_lookup import ZoneCheck, ZoneLookup

logger = logging.getLogger(__name__)

Detector = Callable[[VesselTrack], list[CandidateAlert]]

_STATUS_BY_SEVERITY = {
    SeverityEnum.CRITICAL: VesselStatusEnum.DANGER,
    SeverityEnum.HIGH: VesselStatusEnum.WARNING,
}


class MonitoringEngine:
    def __init__(
        self,
        store: VesselTrackStore,
        correlator: AlertCorrelator,
        dispatcher: NotificationDispatcher,
        zone_check: ZoneCheck,
        config: Settings = default_settings,
    ):
        self.store = store
        self.correlator = correlator
        self.dispatcher = dispatcher
        self.zone_check = zone_check
        self.config = config
        self.ingestor = ReportIngestor(store, max_future_minutes=config.REPORT_MAX_FUTURE_MINUTES)
        self.detector_errors = 0
        self._errors_lock = threading.Lock()

        # vessel id -> [lock, holders]; entries for untracked vessels go when unused
        self._vessel_locks: dict[str, list] = {}
        self._locks_guard = threading.Lock()

        correlator.subscribe(dispatcher.handle_change)

        self.detectors: list[tuple[str, Detector]] = [
            ("collision_risk", self._run_collision),
            ("loitering", lambda t: _as_list(detect_loitering(
                t,
                window_minutes=config.LOITER_WINDOW_MINUTES,
                radius_m=config.LOITER_RADIUS_M,
                max_mean_sog_kn=config.LOITER_MAX_MEAN_SOG_KN,
                min_samples=config.LOITER_MIN_SAMPLES,
            ))),
            ("grounding", lambda t: _as_list(detect_grounding(
                t,
                self.zone_check,
                min_prior_sog_kn=config.GROUNDING_MIN_PRIOR_SOG_KN,
                max_sog_kn=config.GROUNDING_MAX_SOG_KN,
                max_interval_minutes=config.GROUNDING_MAX_INTERVAL_MINUTES,
            ))),
            ("anomaly", lambda t: _as_list(detect_kinematic_anomaly(
                t, max_implied_sog_kn=config.ANOMALY_MAX_IMPLIED_SOG_KN,
            ))),
        ]

    # ── Ingestion ─────────────────────────────────────────────────────────────

    def ingest(self, report: PositionReport) -> IngestResult:
        """Run one report through the whole pipeline.

        Raises:
            InvalidReport: report rejected; no state change.
        """
        vessel_key = str(report.vessel_id).strip() if report.vessel_id is not None else ""
        with self._vessel_lock(vessel_key):
            result = self.ingestor.ingest(report)
            if result.accepted and result.track is not None:
                for candidate in self.detect(result.track):
                    self.correlator.correlate(candidate)
        return result

    def detect(self, track: VesselTrack) -> list[CandidateAlert]:
        """Run every per-report detector against a track snapshot."""
        candidates: list[CandidateAlert] = []
        for name, detector in self.detectors:
            try:
                candidates.extend(detector(track))
            except Exception:
                with self._errors_lock:
                    self.detector_errors += 1
                logger.exception("Detector %s failed for vessel %s", name, track.vessel_id)
        return candidates

    def _run_collision(self, track: VesselTrack) -> list[CandidateAlert]:
        return detect_collision_risk(
            track,
            self.store.snapshot_all(),
            search_radius_km=self.config.COLLISION_SEARCH_RADIUS_KM,
            cpa_threshold_km=self.config.COLLISION_CPA_THRESHOLD_KM,
            horizon_minutes=self.config.COLLISION_HORIZON_MINUTES,
            max_report_age_minutes=self.config.COLLISION_MAX_REPORT_AGE_MINUTES,
        )

    def run(self, feed: Iterable[PositionReport], workers: int = 1) -> dict:
        """Consume a feed to exhaustion; returns ingest counts for this run.

        Invalid reports are counted and skipped, never raised.
        """
        counts = {"accepted": 0, "stale": 0, "rejected": 0}
        counts_lock = threading.Lock()

        def _process(report: PositionReport) -> None:
            try:
                outcome = self.ingest(report).outcome.value
            except InvalidReport:
                outcome = "rejected"
            with counts_lock:
                counts[outcome] += 1

        if workers <= 1:
            for report in feed:
                _process(report)
            return counts

        shards: list[queue.Queue] = [queue.Queue(maxsize=1000) for _ in range(workers)]

        def _worker(q: queue.Queue) -> None:
            while True:
                report = q.get()
                if report is None:
                    return
                try:
                    _process(report)
                except Exception:
                    logger.exception("Unexpected failure processing report for %s", report.vessel_id)

        threads = [
            threading.Thread(target=_worker, args=(q,), name=f"ingest-{i}", daemon=True)
            for i, q in enumerate(shards)
        ]
        for t in threads:
            t.start()
        for report in feed:
            shards[hash(str(report.vessel_id)) % workers].put(report)
        for q in shards:
            q.put(None)
        for t in threads:
            t.join()
        return counts

    def ingest_csv(self, file: IOBase | bytes | str, workers: int = 1) -> dict:
        """Bulk ingestion from CSV; see ``ingest.read_report_csv``."""
        return self.run(read_report_csv(file), workers=workers)

    # ── Out-of-band detection ─────────────────────────────────────────────────

    def report_discharge(self, vessel_id: str, observation: DischargeObservation) -> Optional[Alert]:
        """Evaluate an external discharge observation; returns the alert if raised."""
        with self._vessel_lock(vessel_id):
            candidate = evaluate_discharge(
                vessel_id,
                observation,
                track=self.store.get(vessel_id),
                min_confidence=self.config.DISCHARGE_MIN_CONFIDENCE,
            )
            if candidate is None:
                return None
            return self.correlator.correlate(candidate)

    def sweep_silence(self, now: Optional[datetime] = None) -> list[Alert]:
        """Raise anomaly alerts for vessels silent past the configured period."""
        now = as_utc(now) if now is not None else datetime.now(timezone.utc)
        alerts: list[Alert] = []
        for track in self.store.silent_tracks(now, self.config.TRACK_SILENCE_MINUTES):
            with self._vessel_lock(track.vessel_id):
                candidate = detect_silence(track, now, silence_minutes=self.config.TRACK_SILENCE_MINUTES)
                if candidate is not None:
                    alerts.append(self.correlator.correlate(candidate))
        return alerts

    def evict_silent(self, now: Optional[datetime] = None) -> int:
        """Forget vessels silent past the configured period, with their locks."""
        now = as_utc(now) if now is not None else datetime.now(timezone.utc)
        evicted = self.store.evict_silent(now, self.config.TRACK_SILENCE_MINUTES)
        self._prune_locks()
        return evicted

    # ── Queries ───────────────────────────────────────────────────────────────

    def vessel_status(self, vessel_id: str) -> VesselStatusEnum:
        """Dashboard colouring from the vessel's worst open alert."""
        open_alerts = [a for a in self.correlator.open_alerts(vessel_id) if a.status == AlertStatusEnum.ACTIVE]
        if not open_alerts:
            return VesselStatusEnum.NORMAL
        worst = max(open_alerts, key=lambda a: a.severity.rank).severity
        return _STATUS_BY_SEVERITY.get(worst, VesselStatusEnum.NORMAL)

    def statistics(self, now: Optional[datetime] = None) -> dict:
        """Figures behind the dashboard statistic cards."""
        alerts = self.correlator.snapshot()
        if now is not None:
            now = as_utc(now)
        else:
            # Data time: latest activity seen by the engine
            stamps = [a.updated_at for a in alerts] + [t.last_report_at for t in self.store.snapshot_all()]
            now = max(stamps) if stamps else datetime.now(timezone.utc)
        day_ago = now - timedelta(hours=24)
        return {
            "total_vessels": len(self.store),
            "active_alerts": sum(1 for a in alerts if a.status == AlertStatusEnum.ACTIVE),
            "acknowledged_alerts": sum(1 for a in alerts if a.status == AlertStatusEnum.ACKNOWLEDGED),
            "critical_alerts": sum(1 for a in alerts if a.is_open and a.severity == SeverityEnum.CRITICAL),
            "oil_spill_risks": sum(1 for a in alerts if a.is_open and a.kind == AlertKindEnum.ILLEGAL_DISCHARGE),
            "last_24h_incidents": sum(1 for a in alerts if a.created_at >= day_ago),
            "reports": dict(self.ingestor.counters),
            "pending_notifications": self.dispatcher.pending_count,
        }

    # ── Internal helpers ──────────────────────────────────────────────────────

    @contextmanager
    def _vessel_lock(self, vessel_id: str) -> Iterator[None]:
        """Hold the vessel's lock; the entry is dropped once unused if no track exists."""
        with self._locks_guard:
            entry = self._vessel_locks.get(vessel_id)
            if entry is None:
                entry = self._vessel_locks[vessel_id] = [threading.Lock(), 0]
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._locks_guard:
                entry[1] -= 1
                if entry[1] == 0 and vessel_id not in self.store:
                    del self._vessel_locks[vessel_id]

    def _prune_locks(self) -> None:
        with self._locks_guard:
            for vessel_id in [v for v, (_, holders) in self._vessel_locks.items() if holders == 0]:
                if vessel_id not in self.store:
                    del self._vessel_locks[vessel_id]


def _as_list(candidate: Optional[CandidateAlert]) -> list[CandidateAlert]:
    return [candidate] if candidate is not None else []


def build_engine(
    config: Settings = default_settings,
    sinks: Optional[list[NotificationSink]] = None,
    zone_check: Optional[ZoneCheck] = None,
) -> MonitoringEngine:
    """Assemble an engine from settings.

    Default sinks: the UI feed, the voice announcer (if enabled) and a webhook
    (if ``NOTIFY_WEBHOOK_URL`` is set).
    """
    if sinks is None:
        sinks = [FeedSink(maxlen=config.NOTIFICATION_FEED_SIZE)]
        if config.VOICE_ALERTS_ENABLED:
            sinks.append(VoiceAnnouncementSink())
        if config.NOTIFY_WEBHOOK_URL:
            sinks.append(WebhookSink(config.NOTIFY_WEBHOOK_URL, timeout=config.NOTIFY_WEBHOOK_TIMEOUT))
    if zone_check is None:
        zone_check = ZoneLookup.from_yaml(config.ZONES_CONFIG)

    return MonitoringEngine(
        store=VesselTrackStore(history_capacity=config.TRACK_HISTORY_CAPACITY),
        correlator=AlertCorrelator(changelog_size=config.ALERT_CHANGELOG_SIZE),
        dispatcher=NotificationDispatcher(
            sinks,
            min_severity=SeverityEnum(config.NOTIFY_MIN_SEVERITY),
            retry_delays=config.DISPATCH_RETRY_DELAYS,
        ),
        zone_check=zone_check,
        config=config,
    )
