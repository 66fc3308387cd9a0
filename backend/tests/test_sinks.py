"""Tests for notification sinks (feed, voice, webhook)."""
from __future__ import annotations

from datetime import datetime, timezone
from unittest.mock import MagicMock

import httpx
import pytest

from seawatch.errors import DeliveryFailure
from seawatch.models.base import AlertKindEnum, SeverityEnum, TransitionKindEnum
from seawatch.models.notification_event import NotificationEvent
from seawatch.modules.sinks import FeedSink, VoiceAnnouncementSink, WebhookSink, build_announcement

T0 = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


def _event(alert_id="a1", severity=SeverityEnum.CRITICAL) -> NotificationEvent:
    return NotificationEvent(
        alert_id=alert_id,
        transition_kind=TransitionKindEnum.CREATED,
        kind=AlertKindEnum.COLLISION_RISK,
        severity=severity,
        title="Collision Risk",
        description="Vessels A and B on closing courses.",
        alert_created_at=T0,
        emitted_at=T0,
        vessel_id="366000001",
    )


class TestFeedSink:
    def test_newest_first_and_bounded(self):
        feed = FeedSink(maxlen=2)
        for i in range(3):
            feed.deliver(_event(f"a{i}"))
        assert [p["alert_id"] for p in feed.recent()] == ["a2", "a1"]
        assert len(feed.recent(limit=1)) == 1

    def test_payload_shape(self):
        feed = FeedSink()
        feed.deliver(_event())
        payload = feed.recent()[0]
        assert payload["severity"] == "critical"
        assert payload["transition_kind"] == "created"
        assert payload["emitted_at"] == T0.isoformat()
        feed.clear()
        assert feed.recent() == []


class TestVoice:
    def test_critical_announcement(self):
        ann = build_announcement(_event())
        assert ann.text.startswith("CRITICAL ALERT: Collision Risk.")
        assert ann.text.endswith("Ship MMSI: 366000001")
        assert (ann.rate, ann.pitch, ann.volume) == (0.85, 1.2, 0.9)

    def test_high_announcement(self):
        ann = build_announcement(_event(severity=SeverityEnum.HIGH))
        assert ann.text.startswith("HIGH PRIORITY ALERT:")
        assert (ann.rate, ann.pitch) == (0.9, 1.1)

    def test_speaker_receives_announcement(self):
        speaker = MagicMock()
        VoiceAnnouncementSink(speaker=speaker).deliver(_event())
        speaker.assert_called_once()
        assert "CRITICAL ALERT" in speaker.call_args[0][0].text

    def test_disabled_sink_is_silent(self):
        speaker = MagicMock()
        VoiceAnnouncementSink(speaker=speaker, enabled=False).deliver(_event())
        speaker.assert_not_called()

    def test_speaker_error_becomes_delivery_failure(self):
        sink = VoiceAnnouncementSink(speaker=MagicMock(side_effect=OSError("no audio device")))
        with pytest.raises(DeliveryFailure) as exc_info:
            sink.deliver(_event())
        assert exc_info.value.retryable


def _client(handler) -> httpx.Client:
    return httpx.Client(transport=httpx.MockTransport(handler))


class TestWebhook:
    def test_posts_json_payload(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["body"] = request.read()
            return httpx.Response(202)

        WebhookSink("https://hooks.example.com/alerts", client=_client(handler)).deliver(_event())
        assert seen["url"] == "https://hooks.example.com/alerts"
        assert b'"alert_id":"a1"' in seen["body"].replace(b" ", b"")

    @pytest.mark.parametrize("status,retryable", [(503, True), (429, True), (403, False), (404, False)])
    def test_http_errors(self, status, retryable):
        sink = WebhookSink("https://hooks.example.com/alerts", client=_client(lambda r: httpx.Response(status)))
        with pytest.raises(DeliveryFailure) as exc_info:
            sink.deliver(_event())
        assert exc_info.value.retryable is retryable
        assert str(status) in exc_info.value.message

    def test_transport_error_is_retryable(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        sink = WebhookSink("https://hooks.example.com/alerts", client=_client(handler))
        with pytest.raises(DeliveryFailure) as exc_info:
            sink.deliver(_event())
        assert exc_info.value.retryable
