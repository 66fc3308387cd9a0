"""Position report normalization and validation.

Every report entering the engine passes through ``validate_report``; a report
that fails validation raises ``InvalidReport`` with a machine-readable code
and never reaches the track store.
"""
from __future__ import annotations

import logging
import math
from datetime import datetime, timedelta, timezone
from typing import Any

import polars as pl

from seawatch.errors import InvalidReport
from seawatch.models.position_report import PositionReport

logger = logging.getLogger(__name__)


# --- Shared helpers ---

_COMMON_TIMESTAMP_FORMATS = [
    "%m/%d/%Y %H:%M:%S",
    "%d/%m/%Y %H:%M:%S",
    "%Y/%m/%d %H:%M:%S",
    "%m/%d/%Y %H:%M",
    "%d-%m-%Y %H:%M:%S",
]

# AIS "not available" sentinels (ITU-R M.1371)
_SOG_NOT_AVAILABLE_KN: float = 102.2
_COG_NOT_AVAILABLE_DEG: float = 360.0
_HEADING_NOT_AVAILABLE: float = 511.0

# Feed column aliases → canonical report field names
REPORT_ALIASES: dict[str, str] = {
    "mmsi": "vessel_id",
    "vesselid": "vessel_id",
    "ship_id": "vessel_id",
    "latitude": "lat",
    "longitude": "lon",
    "speed": "speed_knots",
    "sog": "speed_knots",
    "speedknots": "speed_knots",
    "course": "course_degrees",
    "cog": "course_degrees",
    "coursedegrees": "course_degrees",
    "heading": "heading_degrees",
    "headingdegrees": "heading_degrees",
    "shiptype": "classification",
    "ship_type": "classification",
    "vessel_type": "classification",
    "vesseltype": "classification",
    "shipname": "name",
    "ship_name": "name",
    "vessel_name": "name",
    "vesselname": "name",
    "time": "timestamp",
    "datetime": "timestamp",
    "basedatetime": "timestamp",
    "lastupdate": "timestamp",
    "timestamp_utc": "timestamp",
}

REQUIRED_COLUMNS = {"vessel_id", "lat", "lon", "timestamp"}


def as_utc(dt: datetime) -> datetime:
    """Aware UTC copy of a caller-supplied datetime; naive values are taken as UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)



def parse_timestamp_flexible(ts: Any) -> datetime | None:
    """Parse a timestamp from various formats into an aware UTC datetime.

    Returns None if parsing fails.
    Supports: datetime (naive is taken as UTC), ISO 8601, Unix epoch,
    and common strftime formats.
    """
    if isinstance(ts, datetime):
        return ts if ts.tzinfo else ts.replace(tzinfo=timezone.utc)

    # Unix epoch (int or float)
    if isinstance(ts, (int, float)) and not isinstance(ts, bool) and ts > 1_000_000_000:
        try:
            return datetime.fromtimestamp(ts, tz=timezone.utc)
        except (OSError, ValueError, OverflowError):
            return None

    if isinstance(ts, str):
        ts_str = ts.strip()
        if not ts_str:
            return None

        # Try ISO format first
        try:
            parsed = datetime.fromisoformat(ts_str.replace("Z", "+00:00"))
            return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
        except ValueError:
            pass

        for fmt in _COMMON_TIMESTAMP_FORMATS:
            try:
                return datetime.strptime(ts_str, fmt).replace(tzinfo=timezone.utc)
            except ValueError:
                continue

    return None


def _as_float(value: Any, field_name: str) -> float:
    try:
        result = float(value)
    except (TypeError, ValueError):
        raise InvalidReport(f"Invalid {field_name}: {value!r}", code=f"invalid_{field_name}")
    if not math.isfinite(result):
        raise InvalidReport(f"Non-finite {field_name}: {value!r}", code=f"invalid_{field_name}")
    return result


def validate_report(
    report: PositionReport,
    now: datetime | None = None,
    max_future: timedelta = timedelta(days=7),
) -> PositionReport:
    """Validate a report and return its normalized copy.

    Raises:
        InvalidReport: with ``code`` naming the failed rule.
    """
    vessel_id = str(report.vessel_id).strip() if report.vessel_id is not None else ""
    if not vessel_id:
        raise InvalidReport("Missing vessel id", code="missing_vessel_id")

    lat = _as_float(report.lat, "lat")
    lon = _as_float(report.lon, "lon")
    if not (-90 <= lat <= 90):
        raise InvalidReport(f"Latitude out of range: {lat}", code="lat_out_of_range")
    if not (-180 <= lon <= 180):
        raise InvalidReport(f"Longitude out of range: {lon}", code="lon_out_of_range")

    # --- SOG with AIS sentinel handling ---
    sog = _as_float(report.speed_knots, "speed")
    if sog < 0:
        raise InvalidReport(f"Negative speed: {sog}", code="negative_speed")
    if sog >= _SOG_NOT_AVAILABLE_KN:
        raise InvalidReport(f"Speed not available (sentinel {sog})", code="speed_unavailable")

    # --- COG: sentinel 360.0 means "not available" ---
    cog = _as_float(report.course_degrees, "course")
    if cog >= _COG_NOT_AVAILABLE_DEG or cog < 0:
        if cog != _COG_NOT_AVAILABLE_DEG:
            raise InvalidReport(f"Course out of range: {cog}", code="course_out_of_range")
        cog = 0.0

    # --- Heading: 511 means "not available"; fall back to course ---
    if report.heading_degrees is None:
        heading = cog
    else:
        heading = _as_float(report.heading_degrees, "heading")
        if heading == _HEADING_NOT_AVAILABLE:
            heading = cog
        elif heading < 0 or heading > 360:
            raise InvalidReport(f"Heading out of range: {heading}", code="heading_out_of_range")
        heading %= 360.0

    # --- Timestamp ---
    if report.timestamp is None:
        raise InvalidReport("Missing timestamp", code="missing_timestamp")
    ts = parse_timestamp_flexible(report.timestamp)
    if ts is None:
        raise InvalidReport(f"Unparseable timestamp {report.timestamp!r}", code="invalid_timestamp")
    now = now or datetime.now(timezone.utc)
    if ts > now + max_future:
        logger.warning("Future timestamp rejected for %s: %s", vessel_id, ts)
        raise InvalidReport(f"Future timestamp rejected: {ts}", code="future_timestamp")

    return PositionReport(
        vessel_id=vessel_id,
        lat=lat,
        lon=lon,
        timestamp=ts.astimezone(timezone.utc),
        speed_knots=sog,
        course_degrees=cog,
        heading_degrees=heading,
        classification=(str(report.classification).strip().lower() or "unknown")
        if report.classification is not None else "unknown",
        name=str(report.name).strip() if report.name else None,
    )


def normalize_report_frame(df: pl.DataFrame) -> pl.DataFrame:
    """Rename feed columns to canonical report field names."""
    # Normalize column names to lowercase
    df = df.rename({col: col.lower().strip() for col in df.columns})
    actual_renames: dict[str, str] = {}
    for alias, canonical in REPORT_ALIASES.items():
        # First alias present wins; never clobber an existing canonical column
        if alias in df.columns and canonical not in df.columns and canonical not in actual_renames.values():
            actual_renames[alias] = canonical
    if actual_renames:
        df = df.rename(actual_renames)

    # MMSI-like identifiers may be inferred as integers
    if "vessel_id" in df.columns and df["vessel_id"].dtype != pl.Utf8:
        df = df.with_columns(pl.col("vessel_id").cast(pl.Utf8))
    return df
