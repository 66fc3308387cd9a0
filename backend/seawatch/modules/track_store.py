"""VesselTrack store — authoritative in-memory per-vessel state.

All mutation goes through ``upsert``; cross-vessel reads go through
``snapshot_all``. Both run under a single store lock so a reader never
observes a partially written record, and every track handed out is a detached
copy (see ``VesselTrack.snapshot``).
"""
from __future__ import annotations

import logging
import threading
from collections import deque
from datetime import datetime, timedelta
from typing import Optional

from seawatch.errors import InvalidReport, StaleReport
from seawatch.models.position_report import PositionReport
from seawatch.models.vessel_track import PositionSample, VesselTrack

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_CAPACITY: int = 50


class VesselTrackStore:
    def __init__(self, history_capacity: int = DEFAULT_HISTORY_CAPACITY):
        if history_capacity < 2:
            raise ValueError("history_capacity must be at least 2 (deltas need two samples)")
        self.history_capacity = history_capacity
        self._tracks: dict[str, VesselTrack] = {}
        self._lock = threading.RLock()

    def upsert(self, vessel_id: str, report: PositionReport) -> VesselTrack:
        """Create or update the track for ``vessel_id`` from a normalized report.

        Raises:
            InvalidReport: coordinates/speed out of range; store unchanged.
            StaleReport: report older than the track's ``last_report_at``.
        """
        _check_ranges(vessel_id, report)
        ts: datetime = report.timestamp
        sample = PositionSample(
            lat=report.lat,
            lon=report.lon,
            speed_knots=report.speed_knots,
            course_degrees=report.course_degrees,
            heading_degrees=report.heading_degrees if report.heading_degrees is not None else report.course_degrees,
            timestamp=ts,
        )

        with self._lock:
            track = self._tracks.get(vessel_id)
            if track is None:
                track = VesselTrack(
                    vessel_id=vessel_id,
                    lat=sample.lat,
                    lon=sample.lon,
                    speed_knots=sample.speed_knots,
                    course_degrees=sample.course_degrees,
                    heading_degrees=sample.heading_degrees,
                    classification=report.classification,
                    last_report_at=ts,
                    name=report.name,
                    position_history=deque(maxlen=self.history_capacity),
                )
                self._tracks[vessel_id] = track
                logger.debug("New track %s at (%.4f, %.4f)", vessel_id, sample.lat, sample.lon)
            elif ts < track.last_report_at:
                raise StaleReport(
                    f"Report for {vessel_id} at {ts.isoformat()} precedes "
                    f"last report {track.last_report_at.isoformat()}"
                )
            else:
                track.lat = sample.lat
                track.lon = sample.lon
                track.speed_knots = sample.speed_knots
                track.course_degrees = sample.course_degrees
                track.heading_degrees = sample.heading_degrees
                track.last_report_at = ts
                if report.classification and report.classification != "unknown":
                    track.classification = report.classification
                if report.name:
                    track.name = report.name

            # deque(maxlen=...) evicts the oldest sample on overflow
            track.position_history.append(sample)
            track.report_count += 1
            return track.snapshot()

    def get(self, vessel_id: str) -> Optional[VesselTrack]:
        with self._lock:
            track = self._tracks.get(vessel_id)
            return track.snapshot() if track is not None else None

    def snapshot_all(self) -> list[VesselTrack]:
        """Point-in-time copies of every track."""
        with self._lock:
            return [t.snapshot() for t in self._tracks.values()]

    def silent_tracks(self, now: datetime, silence_minutes: float) -> list[VesselTrack]:
        """Tracks with no report for at least ``silence_minutes`` before ``now``."""
        cutoff = now - timedelta(minutes=silence_minutes)
        with self._lock:
            return [t.snapshot() for t in self._tracks.values() if t.last_report_at <= cutoff]

    def evict_silent(self, now: datetime, silence_minutes: float) -> int:
        """Drop silent tracks; returns the number evicted. Never called implicitly."""
        cutoff = now - timedelta(minutes=silence_minutes)
        with self._lock:
            silent = [vid for vid, t in self._tracks.items() if t.last_report_at <= cutoff]
            for vid in silent:
                del self._tracks[vid]
        if silent:
            logger.info("Evicted %d silent tracks (no report since %s)", len(silent), cutoff.isoformat())
        return len(silent)

    def clear(self) -> None:
        with self._lock:
            self._tracks.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._tracks)

    def __contains__(self, vessel_id: object) -> bool:
        with self._lock:
            return vessel_id in self._tracks


def _check_ranges(vessel_id: str, report: PositionReport) -> None:
    if not vessel_id:
        raise InvalidReport("Missing vessel id", code="missing_vessel_id")
    if not (-90 <= report.lat <= 90):
        raise InvalidReport(f"Latitude out of range: {report.lat}", code="lat_out_of_range")
    if not (-180 <= report.lon <= 180):
        raise InvalidReport(f"Longitude out of range: {report.lon}", code="lon_out_of_range")
    if report.speed_knots < 0:
        raise InvalidReport(f"Negative speed: {report.speed_knots}", code="negative_speed")
    if not isinstance(report.timestamp, datetime):
        raise InvalidReport(f"Unnormalized timestamp {report.timestamp!r}", code="invalid_timestamp")
