"""FastAPI dependencies."""
from __future__ import annotations

from fastapi import Request

from seawatch.modules.engine import MonitoringEngine


def get_engine(request: Request) -> MonitoringEngine:
    """The engine built in the application lifespan (see ``seawatch.main``)."""
    return request.app.state.engine
