#!/usr/bin/env python3
"""Generate a sample position feed (CSV) exercising every hazard detector.

Writes reports for 6 scenario vessels, each with a distinct profile:
  A  Eastbound vessel      — head-on collision course with B
  B  Westbound vessel      — head-on collision course with A
  C  Drifting vessel       — loitering: 8 reports under 0.5 kn inside ~60 m
  D  Tanker                — grounding: 12 kn to a stop on Pedro Bank Shoals
  E  Position jump         — 60 nm in 10 minutes (implied >300 kn)
  F  Clean vessel          — steady transit, no alerts

Replay it with:  seawatch replay data/sample_feed.csv
"""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path

import polars as pl
import typer

cli = typer.Typer(help="Generate a sample position feed for SeaWatch development/testing.")

# ---------------------------------------------------------------------------
# Reference timestamp: all reports are relative to this instant.
# ---------------------------------------------------------------------------
BASE_TIME = datetime(2026, 2, 1, 6, 0, 0, tzinfo=timezone.utc)


def _row(mmsi: str, name: str, ship_type: str, minutes: float, lat: float, lon: float,
         sog: float, cog: float) -> dict:
    return {
        "mmsi": mmsi,
        "ship_name": name,
        "ship_type": ship_type,
        "timestamp": (BASE_TIME + timedelta(minutes=minutes)).isoformat(),
        "lat": round(lat, 6),
        "lon": round(lon, 6),
        "sog": sog,
        "cog": cog,
        "heading": cog,
    }


# ---------------------------------------------------------------------------
# Scenario generators
# ---------------------------------------------------------------------------

def _reports_collision_pair() -> list[dict]:
    """A at 20N 80W heading east, B ~22 km east heading west; both 18 kn."""
    return [
        _row("538100001", "MV OCEAN STAR", "cargo", 0, 20.0, -80.0, 18.0, 90.0),
        _row("538100002", "MV BLUE WAVE", "tanker", 0, 20.0, -79.79, 18.0, 270.0),
    ]


def _reports_loiterer() -> list[dict]:
    rows = []
    for i in range(8):
        rows.append(_row(
            "538100003", "MV DEEP DAWN", "fishing", i * 5,
            18.5 + 0.0001 * (i % 3), -75.0 + 0.0001 * (i % 2), 0.3, 0.0,
        ))
    return rows


def _reports_grounding() -> list[dict]:
    return [
        _row("538100004", "MV ATLANTIC CROWN", "tanker", 0, 17.05, -78.35, 12.0, 45.0),
        _row("538100004", "MV ATLANTIC CROWN", "tanker", 10, 17.10, -78.30, 0.2, 45.0),
    ]


def _reports_position_jump() -> list[dict]:
    return [
        _row("538100005", "MV MARINE PEARL", "passenger", 0, 21.0, -70.0, 12.0, 0.0),
        _row("538100005", "MV MARINE PEARL", "passenger", 10, 22.0, -70.0, 12.0, 0.0),
    ]


def _reports_clean() -> list[dict]:
    # 10 kn due north ≈ 0.0278° lat per 10 minutes
    return [
        _row("538100006", "MV SEA BREEZE", "cargo", i * 10, 24.0 + 0.0278 * i, -76.0, 10.0, 0.0)
        for i in range(4)
    ]


SCENARIOS = [
    _reports_collision_pair,
    _reports_loiterer,
    _reports_grounding,
    _reports_position_jump,
    _reports_clean,
]


@cli.command()
def generate(
    output: Path = typer.Option(Path("data/sample_feed.csv"), "--output", "-o", help="CSV file to write"),
) -> None:
    """Write the sample feed, ordered by timestamp."""
    rows = [row for scenario in SCENARIOS for row in scenario()]
    df = pl.DataFrame(rows).sort("timestamp", maintain_order=True)

    output.parent.mkdir(parents=True, exist_ok=True)
    df.write_csv(output)
    typer.echo(f"Wrote {df.height} reports for {df['mmsi'].n_unique()} vessels to {output}")


if __name__ == "__main__":
    cli()
