"""Command-line interface for the work tracker."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import List, Optional

import typer

from .aggregator import format_short
from .paths import get_config_path, get_db_path, get_legacy_log_path
from .tracker import WorkTracker

app = typer.Typer(help="Local-first work time tracker.")
projects_app = typer.Typer(help="Manage project keywords.", no_args_is_help=True)
config_app = typer.Typer(help="Inspect or change settings.", no_args_is_help=True)
app.add_typer(projects_app, name="projects")
app.add_typer(config_app, name="config")

EXPORT_FORMATS = ("csv", "json", "daily", "projects")


@dataclass(slots=True)
class CliState:
    db_path: Path
    config_path: Path


@app.callback(no_args_is_help=True)
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logs."),
    db_path: Optional[Path] = typer.Option(
        None,
        "--db",
        path_type=Path,
        help="Location of the activity SQLite database.",
    ),
    config_path: Optional[Path] = typer.Option(
        None,
        "--config",
        path_type=Path,
        help="Location of the JSON settings file.",
    ),
) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    ctx.obj = CliState(
        db_path=db_path or get_db_path(),
        config_path=config_path or get_config_path(),
    )


def _open_tracker(ctx: typer.Context) -> WorkTracker:
    state: CliState = ctx.obj
    return WorkTracker.from_paths(state.config_path, state.db_path)


def _parse_day(value: Optional[str], default: date, name: str) -> date:
    if not value:
        return default
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError as exc:
        raise typer.BadParameter(f"{name} must use YYYY-MM-DD") from exc


@app.command()
def collect(
    ctx: typer.Context,
    interval: Optional[int] = typer.Option(
        None,
        "--interval",
        min=1,
        help="Sampling interval in seconds (overrides settings).",
    ),
    afk_threshold: Optional[int] = typer.Option(
        None,
        "--afk-threshold",
        min=1,
        help="Seconds of inactivity before the user counts as AFK.",
    ),
    goal: Optional[int] = typer.Option(
        None,
        "--goal",
        min=1,
        help="Daily goal in minutes for notifications.",
    ),
) -> None:
    """Run the background collector until interrupted."""
    from .activity_source import ActivitySourceError, detect_activity_source

    try:
        source = detect_activity_source()
    except ActivitySourceError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=1)
    tracker = _open_tracker(ctx)

    def config_provider():
        return tracker.config.with_overrides(
            interval_seconds=interval,
            afk_threshold_seconds=afk_threshold,
            goal_minutes=goal,
        )

    collector = tracker.create_collector(source, config_provider)
    try:
        collector.run_forever()
    finally:
        tracker.close()


@app.command()
def summary(
    ctx: typer.Context,
    date: Optional[str] = typer.Option(
        None,
        "--date",
        help="Date (YYYY-MM-DD) to summarize. Defaults to today.",
    ),
) -> None:
    """Print work sessions and goal progress for one day."""
    from .reporting import SummaryPrinter

    tracker = _open_tracker(ctx)
    try:
        target = _parse_day(date, tracker.today(), "--date")
        SummaryPrinter(tracker).print_daily_summary(target)
    finally:
        tracker.close()


@app.command()
def week(
    ctx: typer.Context,
    days: int = typer.Option(7, "--days", min=1, max=365, help="Number of days to include."),
) -> None:
    """Print daily totals for the last few days."""
    from .reporting import SummaryPrinter

    tracker = _open_tracker(ctx)
    try:
        SummaryPrinter(tracker).print_work_summary(days)
    finally:
        tracker.close()


@app.command()
def stats(
    ctx: typer.Context,
    start: Optional[str] = typer.Option(None, "--start", help="First day (YYYY-MM-DD)."),
    end: Optional[str] = typer.Option(None, "--end", help="Last day (YYYY-MM-DD)."),
) -> None:
    """Print time per project for a date range (default: last 30 days)."""
    from .reporting import format_projects

    tracker = _open_tracker(ctx)
    try:
        end_day = _parse_day(end, tracker.today(), "--end")
        start_day = _parse_day(start, end_day - timedelta(days=30), "--start")
        if end_day < start_day:
            raise typer.BadParameter("--end must be on or after --start")
        project_stats = tracker.project_stats(start_day, end_day)
        if not project_stats:
            typer.echo("No work recorded in the selected range.")
            return
        typer.echo(f"Projects {start_day.isoformat()} to {end_day.isoformat()}")
        typer.echo("-" * 40)
        for line in format_projects(project_stats):
            typer.echo(line)
        total = sum(stat.total_seconds for stat in project_stats)
        typer.echo(f"\nTotal: {format_short(total)}")
    finally:
        tracker.close()


@app.command()
def export(
    ctx: typer.Context,
    format: str = typer.Option("csv", "--format", "-f", help="One of: csv, json, daily, projects."),
    start: Optional[str] = typer.Option(None, "--start", help="First day (YYYY-MM-DD)."),
    end: Optional[str] = typer.Option(None, "--end", help="Last day (YYYY-MM-DD)."),
    output: Optional[Path] = typer.Option(None, "--output", "-o", path_type=Path),
) -> None:
    """Export sessions, summaries or project totals to a file."""
    from .exporter import Exporter, ExportError, generate_filename

    if format not in EXPORT_FORMATS:
        raise typer.BadParameter(f"--format must be one of {', '.join(EXPORT_FORMATS)}")

    tracker = _open_tracker(ctx)
    try:
        end_day = _parse_day(end, tracker.today(), "--end")
        start_day = _parse_day(start, end_day - timedelta(days=30), "--start")
        if end_day < start_day:
            raise typer.BadParameter("--end must be on or after --start")
        extension = "json" if format == "json" else "csv"
        kind = {"csv": "sessions", "json": "full"}.get(format, format)
        path = output or Path(generate_filename(kind, start_day, end_day, extension))

        exporter = Exporter(tracker)
        writers = {
            "csv": exporter.export_sessions_csv,
            "json": exporter.export_json,
            "daily": exporter.export_daily_summary_csv,
            "projects": exporter.export_projects_csv,
        }
        try:
            result = writers[format](start_day, end_day, path)
        except ExportError as exc:
            typer.echo(str(exc), err=True)
            raise typer.Exit(code=1)
        typer.echo(f"Exported {result.record_count} record(s) to {result.path}")
    finally:
        tracker.close()


@app.command()
def migrate(
    ctx: typer.Context,
    log: Optional[Path] = typer.Option(None, "--log", path_type=Path, help="Legacy text log to import."),
) -> None:
    """Import the legacy flat-text activity log into the database."""
    tracker = _open_tracker(ctx)
    try:
        result = tracker.migrate_legacy_log(log or get_legacy_log_path())
    finally:
        tracker.close()
    if result.already_done:
        typer.echo(f"Already migrated ({result.migrated} entries).")
    else:
        typer.echo(f"Migrated {result.migrated} entries, skipped {result.skipped} line(s).")


@app.command()
def doctor() -> None:
    """Check that the platform tools needed for sampling are available."""
    from .activity_source import ActivitySourceError, detect_activity_source

    try:
        report = detect_activity_source().check_dependencies()
    except ActivitySourceError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=1)
    typer.echo(f"Platform: {report.platform}")
    for name in report.missing:
        typer.echo(f"Missing: {name}")
    for warning in report.warnings:
        typer.echo(f"Warning: {warning}")
    if not report.available:
        raise typer.Exit(code=1)
    typer.echo("Activity sampling is available.")


@projects_app.command("list")
def projects_list(ctx: typer.Context) -> None:
    tracker = _open_tracker(ctx)
    try:
        keywords = tracker.config_store.get_project_keywords()
    finally:
        tracker.close()
    if not keywords:
        typer.echo("No project keywords configured.")
        return
    for name, words in keywords.items():
        typer.echo(f"{name}: {', '.join(words)}")


@projects_app.command("set")
def projects_set(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Project name."),
    keywords: List[str] = typer.Argument(..., help="Case-insensitive keywords."),
) -> None:
    tracker = _open_tracker(ctx)
    try:
        tracker.config_store.set_project_keywords(name, keywords)
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc
    finally:
        tracker.close()
    typer.echo(f"Saved keywords for {name}.")


@projects_app.command("remove")
def projects_remove(ctx: typer.Context, name: str = typer.Argument(...)) -> None:
    tracker = _open_tracker(ctx)
    try:
        removed = tracker.config_store.remove_project(name)
    finally:
        tracker.close()
    if not removed:
        typer.echo(f"No project named {name}.", err=True)
        raise typer.Exit(code=1)
    typer.echo(f"Removed {name}.")


@config_app.command("show")
def config_show(ctx: typer.Context) -> None:
    tracker = _open_tracker(ctx)
    try:
        typer.echo(json.dumps(tracker.config.to_dict(), indent=2))
    finally:
        tracker.close()


@config_app.command("set")
def config_set(
    ctx: typer.Context,
    key: str = typer.Argument(..., help="Dotted key, e.g. notifications.dailySummaryTime."),
    value: str = typer.Argument(..., help="JSON value; bare words are taken as strings."),
) -> None:
    try:
        parsed = json.loads(value)
    except json.JSONDecodeError:
        parsed = value
    tracker = _open_tracker(ctx)
    try:
        tracker.config_store.set(key, parsed)
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc
    finally:
        tracker.close()
    typer.echo(f"{key} = {json.dumps(parsed)}")


@app.command()
def web(
    ctx: typer.Context,
    host: str = typer.Option("127.0.0.1", "--host", help="Interface to bind the dashboard."),
    port: int = typer.Option(
        8765, "--port", min=1, max=65535, help="TCP port for the dashboard."
    ),
    collect: bool = typer.Option(
        True,
        "--collect/--no-collect",
        help="Run the activity collector alongside the dashboard.",
    ),
    open_browser: bool = typer.Option(
        False,
        "--open-browser/--no-open-browser",
        help="Open the API docs in your default browser.",
    ),
    log_level: str = typer.Option("info", "--log-level", help="Uvicorn log level."),
) -> None:
    """Start the local dashboard API with the background collector."""
    from .server_runner import run_dashboard

    run_dashboard(
        tracker=_open_tracker(ctx),
        host=host,
        port=port,
        open_browser=open_browser,
        collect=collect,
        log_level=log_level,
    )
