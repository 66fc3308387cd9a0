from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile

from seawatch.api.deps import get_engine
from seawatch.models.base import AlertKindEnum, AlertStatusEnum, SeverityEnum
from seawatch.modules.engine import MonitoringEngine
from seawatch.modules.sinks import FeedSink
from seawatch.schemas.alerts import (
    AlertChangeRead,
    AlertChangesResponse,
    AlertRead,
    DischargeObservationCreate,
)
from seawatch.schemas.position_report import BulkIngestResponse, IngestResponse, PositionReportCreate
from seawatch.schemas.vessel import VesselDetailRead, VesselRead

logger = logging.getLogger(__name__)

router = APIRouter()

_MAX_UPLOAD_SIZE_MB: float = 50.0


def _check_upload_size(file: UploadFile) -> None:
    """Reject uploads exceeding _MAX_UPLOAD_SIZE_MB."""
    file.file.seek(0, 2)  # seek to end
    size_mb = file.file.tell() / (1024 * 1024)
    file.file.seek(0)  # reset
    if size_mb > _MAX_UPLOAD_SIZE_MB:
        raise HTTPException(
            status_code=413,
            detail=f"File too large ({size_mb:.1f} MB). Maximum is {_MAX_UPLOAD_SIZE_MB:.0f} MB.",
        )


# ---------------------------------------------------------------------------
# Ingestion
# ---------------------------------------------------------------------------

@router.post("/reports", tags=["ingestion"], response_model=IngestResponse)
def post_report(body: PositionReportCreate, engine: MonitoringEngine = Depends(get_engine)):
    """Ingest one position report. Invalid reports answer 422; stale ones are accepted but dropped."""
    result = engine.ingest(body.to_report())
    return IngestResponse(
        outcome=result.outcome.value,
        vessel_id=result.vessel_id,
        status=engine.vessel_status(result.vessel_id).value,
    )


@router.post("/reports/csv", tags=["ingestion"], response_model=BulkIngestResponse)
def import_reports_csv(
    file: UploadFile = File(...),
    engine: MonitoringEngine = Depends(get_engine),
):
    """Ingest a CSV feed. Invalid rows are counted as rejected, never fatal."""
    _check_upload_size(file)
    try:
        counts = engine.ingest_csv(file.file)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc))
    logger.info("CSV import %s: %s", file.filename, counts)
    return BulkIngestResponse(**counts)


# ---------------------------------------------------------------------------
# Vessels
# ---------------------------------------------------------------------------

@router.get("/vessels", tags=["vessels"])
def list_vessels(
    classification: Optional[str] = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=1000),
    engine: MonitoringEngine = Depends(get_engine),
):
    """Current state of every tracked vessel, with dashboard status."""
    tracks = sorted(engine.store.snapshot_all(), key=lambda t: t.vessel_id)
    if classification:
        tracks = [t for t in tracks if t.classification == classification.lower()]
    items = [
        VesselRead.from_track(t, engine.vessel_status(t.vessel_id))
        for t in tracks[skip:skip + limit]
    ]
    return {"items": items, "total": len(tracks)}


@router.get("/vessels/{vessel_id}", tags=["vessels"], response_model=VesselDetailRead)
def get_vessel(vessel_id: str, engine: MonitoringEngine = Depends(get_engine)):
    track = engine.store.get(vessel_id)
    if track is None:
        raise HTTPException(status_code=404, detail="Vessel not found")
    return VesselDetailRead.from_track(track, engine.vessel_status(vessel_id))


@router.post("/vessels/{vessel_id}/discharge-observations", tags=["vessels"])
def post_discharge_observation(
    vessel_id: str,
    body: DischargeObservationCreate,
    engine: MonitoringEngine = Depends(get_engine),
):
    """Attach external discharge evidence (SAR, patrol, sensor) to a vessel."""
    alert = engine.report_discharge(vessel_id, body.to_observation())
    if alert is None:
        return {"status": "ignored", "alert": None}
    return {"status": "ok", "alert": AlertRead.from_alert(alert)}


# ---------------------------------------------------------------------------
# Alerts
# ---------------------------------------------------------------------------

@router.get("/alerts", tags=["alerts"])
def list_alerts(
    status: Optional[AlertStatusEnum] = None,
    kind: Optional[AlertKindEnum] = None,
    severity: Optional[SeverityEnum] = None,
    vessel_id: Optional[str] = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=500),
    engine: MonitoringEngine = Depends(get_engine),
):
    """Alert feed, newest first."""
    alerts = engine.correlator.snapshot(status=status, kind=kind, severity=severity, vessel_id=vessel_id)
    items = [AlertRead.from_alert(a) for a in alerts[skip:skip + limit]]
    return {"items": items, "total": len(alerts)}


@router.get("/alerts/changes", tags=["alerts"], response_model=AlertChangesResponse)
def list_alert_changes(
    since: int = Query(0, ge=0),
    engine: MonitoringEngine = Depends(get_engine),
):
    """Change-stream entries after ``since``; poll with the returned ``latest_seq``."""
    changes = engine.correlator.changes_since(since)
    return AlertChangesResponse(
        latest_seq=engine.correlator.latest_seq,
        changes=[AlertChangeRead.from_change(c) for c in changes],
    )


@router.get("/alerts/{alert_id}", tags=["alerts"], response_model=AlertRead)
def get_alert(alert_id: str, engine: MonitoringEngine = Depends(get_engine)):
    return AlertRead.from_alert(engine.correlator.get(alert_id))


@router.post("/alerts/{alert_id}/acknowledge", tags=["alerts"], response_model=AlertRead)
def acknowledge_alert(alert_id: str, engine: MonitoringEngine = Depends(get_engine)):
    return AlertRead.from_alert(engine.correlator.acknowledge(alert_id))


@router.post("/alerts/{alert_id}/resolve", tags=["alerts"], response_model=AlertRead)
def resolve_alert(alert_id: str, engine: MonitoringEngine = Depends(get_engine)):
    return AlertRead.from_alert(engine.correlator.resolve(alert_id))


# ---------------------------------------------------------------------------
# Notifications & dashboard
# ---------------------------------------------------------------------------

@router.get("/notifications", tags=["notifications"])
def list_notifications(
    limit: int = Query(50, ge=1, le=500),
    engine: MonitoringEngine = Depends(get_engine),
):
    """Recent notifications from the UI feed sink, newest first."""
    feed = next((s for s in engine.dispatcher.sinks if isinstance(s, FeedSink)), None)
    items = feed.recent(limit) if feed is not None else []
    return {"items": items, "pending": engine.dispatcher.pending_count}


@router.get("/stats", tags=["dashboard"])
def get_stats(engine: MonitoringEngine = Depends(get_engine)):
    return engine.statistics()
