"""FerryWatch CLI — WSF trip tracking and duration predictions.

Commands:
  init-db        — create database tables
  tick           — fetch vessel locations and advance trips (once or --loop)
  train          — retrain per-route models from completed trips or WSF history
  delete-models  — remove every stored model
  models         — list stored models and their metrics
  predict        — predictions for one vessel's active trip
  status         — trip / model counts and last training run
  seed-demo      — load synthetic completed trips (no API key needed)
"""
from __future__ import annotations

import logging
import time

import typer
from rich.console import Console
from rich.table import Table

from ferrywatch.config import settings
from ferrywatch.models.base import TrainingSourceEnum


app = typer.Typer(
    name="ferrywatch",
    help="Washington State Ferries trip tracking and duration predictions.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)
console = Console()


@app.callback()
def main(
    log_level: str = typer.Option(settings.LOG_LEVEL, "--log-level", help="Python logging level"),
):
    logging.basicConfig(level=log_level.upper())


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@app.command("init-db")
def init_db_cmd():
    """Create all database tables."""
    from ferrywatch.database import init_db

    init_db()
    console.print("[green]Database ready.[/green]")


@app.command("tick")
def tick(
    loop: bool = typer.Option(False, "--loop", help="Keep ticking until interrupted"),
    interval: int = typer.Option(
        settings.ORCHESTRATOR_INTERVAL_SECONDS, "--interval", help="Seconds between ticks with --loop"
    ),
):
    """Fetch current vessel locations and update the trip lifecycle."""
    from ferrywatch.database import SessionLocal
    from ferrywatch.errors import FeedError
    from ferrywatch.modules.trip_orchestrator import run_orchestrator_tick
    from ferrywatch.modules.wsf_client import WsfClient
    from ferrywatch.utils.terminals import build_terminal_lookup

    lookup = build_terminal_lookup(settings.TERMINAL_OVERRIDES_CONFIG)
    with WsfClient() as client:
        while True:
            db = SessionLocal()
            try:
                summary = run_orchestrator_tick(db, client, lookup)
                console.print(
                    f"{summary['locations']} locations: "
                    f"[green]{summary['created']} created[/green], "
                    f"[cyan]{summary['completed']} completed[/cyan], "
                    f"{summary['updated']} updated"
                    + (f", [red]{summary['failed']} failed[/red]" if summary["failed"] else "")
                )
            except FeedError as e:
                console.print(f"[red]Feed error: {e}[/red]")
                if not loop:
                    raise typer.Exit(1)
            finally:
                db.close()
            if not loop:
                break
            time.sleep(interval)


@app.command("train")
def train(
    source: TrainingSourceEnum = typer.Option(
        TrainingSourceEnum.COMPLETED_TRIPS, "--source", help="completed = recorded trips, wsf = WSF history"
    ),
):
    """Retrain every terminal-pair model."""
    from ferrywatch.database import SessionLocal
    from ferrywatch.modules.training_pipeline import run_training_pipeline
    from ferrywatch.modules.wsf_client import WsfClient
    from ferrywatch.utils.terminals import build_terminal_lookup

    lookup = build_terminal_lookup(settings.TERMINAL_OVERRIDES_CONFIG)
    db = SessionLocal()
    client = WsfClient() if source is TrainingSourceEnum.WSF_HISTORY else None
    try:
        with console.status("[bold]Training models..."):
            result = run_training_pipeline(
                db, lookup, source=source, history_source=client
            )
    except Exception as e:
        console.print(f"[red]Training failed: {e}[/red]")
        raise typer.Exit(1)
    finally:
        if client is not None:
            client.close()
        db.close()

    color = "green" if result.status == "completed" else "yellow"
    console.print(
        f"[{color}]Run {result.run_id} {result.status}[/{color}]: "
        f"{result.training_records} records, {result.models_trained} models, "
        f"{result.null_models} null, {result.models_stored} stored"
    )
    if result.data_quality.rejected:
        rejected = ", ".join(f"{k}={v}" for k, v in result.data_quality.rejected.items())
        console.print(f"  Rejected: {rejected}")
    for err in result.errors:
        console.print(f"  [red]{err.step} {err.terminal_pair or ''}: {err.message}[/red]")


@app.command("delete-models")
def delete_models(
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
):
    """Delete every stored model."""
    from ferrywatch.database import SessionLocal
    from ferrywatch.modules.trip_store import delete_all_models

    if not yes and not typer.confirm("Delete all stored models?"):
        raise typer.Exit(0)
    db = SessionLocal()
    try:
        deleted = delete_all_models(db)
    finally:
        db.close()
    console.print(f"Deleted {deleted} models.")


@app.command("models")
def models():
    """List stored models."""
    from ferrywatch.database import SessionLocal
    from ferrywatch.modules.trip_store import list_models

    db = SessionLocal()
    try:
        rows = list_models(db)
        if not rows:
            console.print("[yellow]No models stored. Run [cyan]ferrywatch train[/cyan].[/yellow]")
            return
        table = Table(title=f"Stored Models ({len(rows)})")
        table.add_column("Pair", style="cyan")
        table.add_column("Type")
        table.add_column("MAE")
        table.add_column("R²")
        table.add_column("Strategy")
        table.add_column("Examples")
        for row in rows:
            if row.is_null_model:
                table.add_row(row.terminal_pair_key, row.model_type.value, "-", "-", "[dim]null[/dim]", "-")
                continue
            evaluation = row.evaluation_json or {}
            examples = evaluation.get("train_count", 0) + evaluation.get("test_count", 0)
            table.add_row(
                row.terminal_pair_key,
                row.model_type.value,
                f"{row.mae:.2f}",
                f"{row.r2:.3f}",
                evaluation.get("strategy", "-"),
                str(examples),
            )
        console.print(table)
    finally:
        db.close()


@app.command("predict")
def predict(vessel_id: int = typer.Argument(..., help="WSF vessel id")):
    """Show at-dock and at-sea predictions for a vessel's active trip."""
    from ferrywatch.database import SessionLocal
    from ferrywatch.modules.predictor import predict_for_vessel

    db = SessionLocal()
    try:
        result = predict_for_vessel(db, vessel_id)
    finally:
        db.close()
    if result is None:
        console.print(f"[red]No active trip for vessel {vessel_id}[/red]")
        raise typer.Exit(1)

    console.print(f"[bold]{result.vessel_abbrev}[/bold] {result.terminal_pair or '(no destination)'}")
    for label, pred in (("At dock", result.at_dock), ("At sea", result.at_sea)):
        if pred is None or pred.value is None:
            console.print(f"  {label}: [dim]{pred.reason if pred else 'n/a'}[/dim]")
            continue
        band = f" ({pred.lower:.1f} to {pred.upper:.1f})" if pred.lower is not None else ""
        when = pred.predicted_time.strftime("%H:%M UTC") if pred.predicted_time else ""
        console.print(f"  {label}: [green]{pred.value:.1f} min[/green]{band} → {when}")


@app.command("status")
def status():
    """Show trip, model and training-run counts."""
    from ferrywatch.database import SessionLocal
    from ferrywatch.models import ActiveVesselTrip, CompletedVesselTrip, ModelParameters, TrainingRun

    db = SessionLocal()
    try:
        console.print("[bold]Trips[/bold]")
        console.print(f"  Active: {db.query(ActiveVesselTrip).count()}")
        console.print(f"  Completed: {db.query(CompletedVesselTrip).count():,}")

        console.print("\n[bold]Models[/bold]")
        total = db.query(ModelParameters).count()
        null_count = db.query(ModelParameters).filter(ModelParameters.coefficients.is_(None)).count()
        console.print(f"  Stored: {total} ({null_count} null)")

        last_run = db.query(TrainingRun).order_by(TrainingRun.run_id.desc()).first()
        if last_run:
            color = {"completed": "green", "partial": "yellow"}.get(last_run.status, "red")
            console.print(
                f"  Last training run: [{color}]{last_run.status}[/{color}] "
                f"at {last_run.started_at:%Y-%m-%d %H:%M} UTC ({last_run.source})"
            )
        else:
            console.print("  Last training run: [yellow]never[/yellow]")
    finally:
        db.close()


@app.command("seed-demo")
def seed_demo(
    days: int = typer.Option(14, "--days", help="Days of synthetic trips to generate"),
):
    """Load synthetic completed trips for a demo fleet."""
    from ferrywatch.database import SessionLocal, init_db
    from ferrywatch.modules.sample_data import seed_demo_trips

    init_db()
    db = SessionLocal()
    try:
        with console.status("[bold]Generating demo trips..."):
            result = seed_demo_trips(db, days=days)
    finally:
        db.close()
    console.print(
        f"[green]Seeded {result['trips']:,} trips for {result['vessels']} vessels.[/green]\n"
        "Run [cyan]ferrywatch train[/cyan] next."
    )
