"""Notification dispatch.

Turns alert creations and escalations into NotificationEvents and fans them
out to the configured sinks.

Rules:
  - Only new or escalated alerts at or above the minimum severity (default
    high) that are not resolved are announced.
  - At most one event per (alert_id, transition_kind), ever.
  - Delivery order: severity (critical first), then alert ``created_at``
    (FIFO).  Events for one alert keep their emission order: only the head
    event of each alert sits in the priority heap.
  - Each sink delivery is retried with bounded backoff; an event that still
    fails is marked undelivered, logged, and never blocks later events.

Ingestion never waits on delivery: ``on_alert_changed`` only enqueues.  The
queue is drained by the background worker (``start``/``stop``) or, in
synchronous setups and tests, by ``dispatch_pending``.
"""
from __future__ import annotations

import heapq
import itertools
import logging
import threading
from collections import deque
from datetime import datetime, timezone
from typing import Optional

from seawatch.errors import DeliveryFailure
from seawatch.models.alert import Alert, AlertChange
from seawatch.models.base import AlertChangeEnum, AlertStatusEnum, SeverityEnum, TransitionKindEnum
from seawatch.models.notification_event import NotificationEvent
from seawatch.modules.sinks import NotificationSink
from seawatch.utils.retry import DEFAULT_DELAYS, call_with_backoff

logger = logging.getLogger(__name__)


class NotificationDispatcher:
    def __init__(
        self,
        sinks: list[NotificationSink],
        min_severity: SeverityEnum = SeverityEnum.HIGH,
        retry_delays: list[float] | None = None,
    ):
        self.sinks = list(sinks)
        self.min_severity = min_severity
        self.retry_delays = list(DEFAULT_DELAYS if retry_delays is None else retry_delays)

        self._events: dict[tuple[str, TransitionKindEnum], NotificationEvent] = {}
        self._pending: dict[str, deque[NotificationEvent]] = {}
        self._heap: list[tuple[int, datetime, int, str]] = []
        self._scheduled: set[str] = set()  # alerts with a heap entry or in flight
        self._seq = itertools.count()
        self._cond = threading.Condition()
        self._worker: Optional[threading.Thread] = None
        self._stopping = False

    # ── Intake ────────────────────────────────────────────────────────────────

    def on_alert_changed(self, alert: Alert, is_new_or_escalated: bool) -> Optional[NotificationEvent]:
        """Enqueue a notification for the alert's transition, if warranted.

        Returns the new event, or None when nothing was enqueued.
        """
        if not alert.alert_id:
            raise ValueError("alert.alert_id is required")
        if not is_new_or_escalated:
            return None
        if alert.status == AlertStatusEnum.RESOLVED:
            return None
        if alert.severity.rank < self.min_severity.rank:
            return None

        transition = (
            TransitionKindEnum.CREATED if alert.detection_count <= 1 else TransitionKindEnum.ESCALATED
        )
        key = (alert.alert_id, transition)
        with self._cond:
            if key in self._events:
                logger.debug("Alert %s already announced for %s", alert.alert_id, transition.value)
                return None
            event = NotificationEvent.from_alert(alert, transition, emitted_at=datetime.now(timezone.utc))
            self._events[key] = event
            self._pending.setdefault(alert.alert_id, deque()).append(event)
            if alert.alert_id not in self._scheduled:
                self._push(event)
            self._cond.notify()
        logger.info(
            "Queued %s notification for alert %s (%s)",
            transition.value, alert.alert_id, alert.severity.value,
        )
        return event

    def handle_change(self, change: AlertChange) -> None:
        """Correlator listener adapter."""
        self.on_alert_changed(
            change.alert,
            change.change in (AlertChangeEnum.CREATED, AlertChangeEnum.ESCALATED),
        )

    # ── Delivery ──────────────────────────────────────────────────────────────

    def dispatch_pending(self, max_events: Optional[int] = None) -> int:
        """Deliver queued events in priority order on the calling thread.

        Returns the number of events processed (delivered or given up on).
        """
        processed = 0
        while max_events is None or processed < max_events:
            with self._cond:
                event = self._pop()
            if event is None:
                break
            self._deliver(event)
            processed += 1
        return processed

    def _deliver(self, event: NotificationEvent) -> None:
        failed: list[str] = []
        for sink in self.sinks:
            try:
                event.attempts += call_with_backoff(sink.deliver, event, delays=self.retry_delays)
            except DeliveryFailure as exc:
                event.attempts += exc.attempts
                failed.append(sink.name)
                logger.error(
                    "Notification for alert %s (%s) undelivered to %s after %d attempt(s): %s",
                    event.alert_id, event.transition_kind.value, sink.name, exc.attempts, exc.message,
                )
            except Exception:
                event.attempts += 1
                failed.append(sink.name)
                logger.exception(
                    "Sink %s crashed delivering alert %s", sink.name, event.alert_id
                )

        with self._cond:
            event.delivered = not failed
            self._advance(event.alert_id)

    # ── Worker ────────────────────────────────────────────────────────────────

    def start(self) -> None:
        with self._cond:
            if self._worker is not None and self._worker.is_alive():
                return
            self._stopping = False
            self._worker = threading.Thread(target=self._run, name="notification-dispatcher", daemon=True)
            self._worker.start()
        logger.info("Notification dispatcher started with %d sink(s)", len(self.sinks))

    def stop(self, timeout: float = 5.0) -> None:
        with self._cond:
            self._stopping = True
            self._cond.notify_all()
            worker = self._worker
        if worker is not None:
            worker.join(timeout)
        self._worker = None
        logger.info("Notification dispatcher stopped (%d pending)", self.pending_count)

    def _run(self) -> None:
        while True:
            with self._cond:
                while not self._heap and not self._stopping:
                    self._cond.wait()
                if self._stopping:
                    return
                event = self._pop()
            if event is not None:
                self._deliver(event)

    # ── Queries ───────────────────────────────────────────────────────────────

    @property
    def pending_count(self) -> int:
        with self._cond:
            return sum(len(q) for q in self._pending.values())

    def events(self, alert_id: Optional[str] = None) -> list[NotificationEvent]:
        """Every event emitted so far (optionally for one alert), in emission order."""
        with self._cond:
            events = [e for (aid, _), e in self._events.items() if alert_id is None or aid == alert_id]
        return sorted(events, key=lambda e: e.emitted_at)

    # ── Queue internals (caller holds self._cond) ────────────────────────────

    def _push(self, event: NotificationEvent) -> None:
        heapq.heappush(
            self._heap,
            (-event.severity.rank, event.alert_created_at, next(self._seq), event.alert_id),
        )
        self._scheduled.add(event.alert_id)

    def _pop(self) -> Optional[NotificationEvent]:
        if not self._heap:
            return None
        _, _, _, alert_id = heapq.heappop(self._heap)
        return self._pending[alert_id][0]

    def _advance(self, alert_id: str) -> None:
        queue = self._pending[alert_id]
        queue.popleft()
        if queue:
            self._push(queue[0])
            self._cond.notify()
        else:
            del self._pending[alert_id]
            self._scheduled.discard(alert_id)
