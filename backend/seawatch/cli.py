"""SeaWatch CLI — vessel tracking and hazard alerts for maritime operators.

Commands:
  replay    — replay a CSV position feed and print the resulting alerts
  simulate  — run the synthetic fleet feed through the engine
  serve     — run the HTTP API
"""
from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from seawatch.config import settings
from seawatch.models.alert import Alert
from seawatch.models.base import SeverityEnum
from seawatch.modules.engine import MonitoringEngine, build_engine
from seawatch.modules.simulator import synthetic_feed

app = typer.Typer(
    name="seawatch",
    help="Real-time vessel tracking and hazard alerting.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)
console = Console()

_SEVERITY_STYLE = {
    SeverityEnum.CRITICAL: "bold red",
    SeverityEnum.HIGH: "red",
    SeverityEnum.MEDIUM: "yellow",
    SeverityEnum.LOW: "dim",
}


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@app.command("replay")
def replay(
    file: Path = typer.Argument(..., help="CSV feed (mmsi/lat/lon/timestamp columns, aliases accepted)"),
    workers: int = typer.Option(1, "--workers", "-w", min=1, help="Ingest worker threads (sharded by vessel)"),
):
    """Replay a recorded position feed through the detectors."""
    if not file.exists():
        console.print(f"[red]File not found:[/red] {file}")
        raise typer.Exit(1)

    engine = build_engine(settings)
    with console.status(f"[bold]Replaying {file.name}..."):
        try:
            with open(file, "rb") as f:
                counts = engine.ingest_csv(f, workers=workers)
        except ValueError as exc:
            console.print(f"[red]Cannot read feed:[/red] {exc}")
            raise typer.Exit(1)
        engine.dispatcher.dispatch_pending()

    _print_summary(engine, counts)


@app.command("simulate")
def simulate(
    vessels: int = typer.Option(10, "--vessels", "-n", min=1, help="Fleet size"),
    steps: int = typer.Option(60, "--steps", min=0, help="Ticks to simulate"),
    interval: float = typer.Option(60.0, "--interval", help="Seconds between ticks"),
    seed: Optional[int] = typer.Option(None, "--seed", help="Random seed for a reproducible run"),
    start: Optional[datetime] = typer.Option(None, "--start", help="Data time of the first tick (UTC)"),
):
    """Run the synthetic fleet feed through the engine."""
    engine = build_engine(settings)
    feed = synthetic_feed(vessel_count=vessels, steps=steps, interval_seconds=interval, start=start, seed=seed)
    with console.status(f"[bold]Simulating {vessels} vessels for {steps} ticks..."):
        counts = engine.run(feed)
        engine.dispatcher.dispatch_pending()

    _print_summary(engine, counts)


@app.command("serve")
def serve(
    host: str = typer.Option("127.0.0.1", "--host"),
    port: int = typer.Option(8000, "--port"),
):
    """Run the HTTP API."""
    import uvicorn

    console.print(f"API running at [cyan]http://{host}:{port}/docs[/cyan] — press Ctrl+C to stop")
    uvicorn.run("seawatch.main:app", host=host, port=port)


# ---------------------------------------------------------------------------
# Output helpers
# ---------------------------------------------------------------------------


def _print_summary(engine: MonitoringEngine, counts: dict) -> None:
    console.print(
        f"Reports: [green]{counts['accepted']} accepted[/green], "
        f"{counts['stale']} stale, [red]{counts['rejected']} rejected[/red]"
    )
    alerts = engine.correlator.snapshot()
    if not alerts:
        console.print("[green]No alerts raised.[/green]")
        return
    _print_alerts_table(console, alerts)
    stats = engine.statistics()
    console.print(
        f"{stats['total_vessels']} vessels tracked, "
        f"{stats['critical_alerts']} critical, "
        f"{len(engine.dispatcher.events())} notification(s) emitted"
    )


def _print_alerts_table(con: Console, alerts: list[Alert]) -> None:
    """Print a Rich table of alerts."""
    table = Table(title=f"Alerts ({len(alerts)})")
    table.add_column("Severity")
    table.add_column("Kind", style="cyan")
    table.add_column("Vessel")
    table.add_column("Title")
    table.add_column("Confidence")
    table.add_column("Detections")
    table.add_column("Created (UTC)")

    for a in alerts:
        vessel = a.vessel_id or "?"
        if a.counterpart_id:
            vessel = f"{vessel} / {a.counterpart_id}"
        table.add_row(
            f"[{_SEVERITY_STYLE[a.severity]}]{a.severity.value}[/]",
            a.kind.value,
            vessel,
            a.title,
            f"{a.confidence:.2f}",
            str(a.detection_count),
            a.created_at.strftime("%Y-%m-%d %H:%M:%S"),
        )
    con.print(table)


if __name__ == "__main__":
    app()
