"""Position report ingestion.

Validates, normalizes, and applies reports to the VesselTrack store.
Rejects and logs invalid records (never silently drops); stale reports are
counted and dropped without being an error to the caller.
"""
from __future__ import annotations

import io
import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from io import IOBase
from typing import Any, Iterator, Optional

import polars as pl

from seawatch.errors import InvalidReport, StaleReport
from seawatch.models.base import IngestOutcomeEnum
from seawatch.models.position_report import PositionReport
from seawatch.models.vessel_track import VesselTrack
from seawatch.modules.normalize import REQUIRED_COLUMNS, normalize_report_frame, validate_report
from seawatch.modules.track_store import VesselTrackStore

logger = logging.getLogger(__name__)


@dataclass
class IngestResult:
    outcome: IngestOutcomeEnum
    vessel_id: str
    # Track snapshot after the upsert; for stale reports, the unchanged track
    track: Optional[VesselTrack] = None

    @property
    def accepted(self) -> bool:
        return self.outcome == IngestOutcomeEnum.ACCEPTED


class ReportIngestor:
    def __init__(self, store: VesselTrackStore, max_future_minutes: float = 10_080.0):
        self.store = store
        self.max_future = timedelta(minutes=max_future_minutes)
        self._counter_lock = threading.Lock()
        self.counters = {"accepted": 0, "stale": 0, "rejected": 0}

    def ingest(self, report: PositionReport, now: datetime | None = None) -> IngestResult:
        """Validate and apply one report.

        Raises:
            InvalidReport: malformed or out-of-range fields; no state change.
        """
        try:
            normalized = validate_report(report, now=now, max_future=self.max_future)
            track = self.store.upsert(normalized.vessel_id, normalized)
        except InvalidReport as exc:
            logger.warning("Rejected report: %s | vessel=%r", exc.message, report.vessel_id)
            self._count("rejected")
            raise
        except StaleReport as exc:
            logger.debug("Dropped stale report: %s", exc.message)
            self._count("stale")
            return IngestResult(
                outcome=IngestOutcomeEnum.STALE,
                vessel_id=normalized.vessel_id,
                track=self.store.get(normalized.vessel_id),
            )

        self._count("accepted")
        return IngestResult(outcome=IngestOutcomeEnum.ACCEPTED, vessel_id=track.vessel_id, track=track)

    def _count(self, key: str) -> None:
        with self._counter_lock:
            self.counters[key] += 1


def read_report_csv(file: IOBase | bytes | str) -> Iterator[PositionReport]:
    """Yield PositionReports from a CSV feed, in file order.

    Column names are normalised through ``normalize.REPORT_ALIASES``.
    Row-level validation happens later, in ``ReportIngestor.ingest``.

    Raises:
        ValueError: if a required column is missing.
    """
    raw: Any
    if hasattr(file, "read"):
        raw = file.read()
    else:
        raw = file

    # Strip a UTF-8 BOM before handing bytes to polars
    if isinstance(raw, bytes) and raw[:3] == b"\xef\xbb\xbf":
        raw = raw[3:]

    if isinstance(raw, bytes):
        df = pl.read_csv(io.BytesIO(raw), infer_schema_length=1000)
    else:
        df = pl.read_csv(io.StringIO(raw), infer_schema_length=1000)

    df = normalize_report_frame(df)

    missing = REQUIRED_COLUMNS - set(df.columns)
    if missing:
        raise ValueError(f"CSV missing required columns: {sorted(missing)}")

    for row in df.iter_rows(named=True):
        yield PositionReport.from_dict(row)
