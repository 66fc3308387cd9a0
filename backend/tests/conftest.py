"""Shared test fixtures: an isolated engine per test and an API client bound to it."""
import pytest
from fastapi.testclient import TestClient

from seawatch.api.deps import get_engine
from seawatch.config import Settings
from seawatch.main import app
from seawatch.modules.engine import build_engine
from seawatch.modules.sinks import FeedSink
from seawatch.modules.zone_lookup import ZoneLookup

# Square shoal around 17.1N 78.3W, [lon, lat] ring
TEST_ZONES = {
    "zones": [
        {
            "name": "Test Shoal",
            "zone_type": "shallow_water",
            "coordinates": [[-78.4, 17.0], [-78.2, 17.0], [-78.2, 17.2], [-78.4, 17.2], [-78.4, 17.0]],
        }
    ]
}


@pytest.fixture
def test_settings():
    """Default thresholds, no retry sleeps, no voice or webhook sinks."""
    return Settings(
        DISPATCH_RETRY_DELAYS=[0.0, 0.0],
        VOICE_ALERTS_ENABLED=False,
        NOTIFY_WEBHOOK_URL=None,
    )


@pytest.fixture
def zone_lookup():
    return ZoneLookup.from_config(TEST_ZONES)


@pytest.fixture
def feed_sink():
    return FeedSink(maxlen=100)


@pytest.fixture
def engine(test_settings, zone_lookup, feed_sink):
    """Engine with an in-memory feed sink; dispatch is driven by the test."""
    return build_engine(test_settings, sinks=[feed_sink], zone_check=zone_lookup)


@pytest.fixture
def api_client(engine):
    """TestClient with the engine dependency overridden to the test engine."""
    app.dependency_overrides[get_engine] = lambda: engine
    with TestClient(app) as client:
        yield client
    app.dependency_overrides.clear()
