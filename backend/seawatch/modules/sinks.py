"""Notification sinks.

Sinks are handed to the dispatcher at construction; there is no global
registry.  A sink raises ``DeliveryFailure`` when it cannot take delivery;
the dispatcher owns retries.

Sinks:
  FeedSink               — bounded in-memory feed behind the UI notification bell
  VoiceAnnouncementSink  — spoken announcement text for a text-to-speech speaker
  WebhookSink            — JSON POST to an external endpoint (httpx)
"""
from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from collections import deque
from dataclasses import dataclass
from typing import Callable, Optional

import httpx

from seawatch.errors import DeliveryFailure
from seawatch.models.base import SeverityEnum
from seawatch.models.notification_event import NotificationEvent
from seawatch.utils.retry import is_retryable_status

logger = logging.getLogger(__name__)


class NotificationSink(ABC):
    name: str = "sink"

    @abstractmethod
    def deliver(self, event: NotificationEvent) -> None:
        """Take delivery of one event or raise ``DeliveryFailure``."""


class FeedSink(NotificationSink):
    name = "feed"

    def __init__(self, maxlen: int = 200):
        self._items: deque[dict] = deque(maxlen=maxlen)
        self._lock = threading.Lock()

    def deliver(self, event: NotificationEvent) -> None:
        with self._lock:
            self._items.appendleft(event.payload())

    def recent(self, limit: Optional[int] = None) -> list[dict]:
        """Newest first."""
        with self._lock:
            items = list(self._items)
        return items if limit is None else items[:limit]

    def clear(self) -> None:
        with self._lock:
            self._items.clear()


@dataclass(frozen=True)
class VoiceAnnouncement:
    text: str
    rate: float
    pitch: float
    volume: float


def build_announcement(event: NotificationEvent) -> VoiceAnnouncement:
    """Spoken form of an event; critical alerts are read slower and higher."""
    critical = event.severity == SeverityEnum.CRITICAL
    emphasis = "CRITICAL ALERT" if critical else "HIGH PRIORITY ALERT"
    text = f"{emphasis}: {event.title}. {event.description}"
    if event.vessel_id:
        text += f" Ship MMSI: {event.vessel_id}"
    return VoiceAnnouncement(
        text=text,
        rate=0.85 if critical else 0.9,
        pitch=1.2 if critical else 1.1,
        volume=0.9,
    )


def _log_speaker(announcement: VoiceAnnouncement) -> None:
    logger.info("Voice announcement: %s", announcement.text)


class VoiceAnnouncementSink(NotificationSink):
    """Hands announcements to a speaker callable (TTS engine, UI bridge…).

    Announcements are serialised: one utterance at a time, in delivery order.
    """

    name = "voice"

    def __init__(self, speaker: Callable[[VoiceAnnouncement], None] | None = None, enabled: bool = True):
        self.speaker = speaker or _log_speaker
        self.enabled = enabled
        self._lock = threading.Lock()

    def deliver(self, event: NotificationEvent) -> None:
        if not self.enabled:
            return
        announcement = build_announcement(event)
        with self._lock:
            try:
                self.speaker(announcement)
            except DeliveryFailure:
                raise
            except Exception as exc:
                raise DeliveryFailure(f"Speaker failed: {exc}") from exc


class WebhookSink(NotificationSink):
    name = "webhook"

    def __init__(self, url: str, timeout: float = 5.0, client: httpx.Client | None = None):
        self.url = url
        self.timeout = timeout
        self._client = client

    def deliver(self, event: NotificationEvent) -> None:
        try:
            if self._client is not None:
                resp = self._client.post(self.url, json=event.payload(), timeout=self.timeout)
            else:
                resp = httpx.post(self.url, json=event.payload(), timeout=self.timeout)
        except (httpx.TransportError, OSError) as exc:
            raise DeliveryFailure(f"{type(exc).__name__} posting to {self.url[:120]}") from exc

        if resp.status_code < 400:
            return
        raise DeliveryFailure(
            f"HTTP {resp.status_code} from {self.url[:120]}",
            retryable=is_retryable_status(resp.status_code),
        )
