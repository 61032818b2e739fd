"""Command-line interface for the break history log."""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

import typer

from .config import AppSettings, HistorySettings, load_app_settings
from .db import KeyValueStore
from .history import EventLog
from .models import DEFAULT_RANGE, HistoryEventType, HistoryFilter
from .paths import get_db_path, get_settings_path

app = typer.Typer(help="Local break history log.")

_DB_HELP = "Location of the history SQLite database."
_SETTINGS_HELP = "Location of the application settings JSON file."


@app.callback(no_args_is_help=True)
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logs.")) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


def _open_log(db_path: Optional[Path], settings_path: Optional[Path]) -> EventLog:
    resolved_settings = settings_path or get_settings_path()
    return EventLog(
        KeyValueStore.open(db_path or get_db_path()),
        lambda: load_app_settings(resolved_settings),
    )


def _parse_time(value: Optional[str]) -> Optional[int]:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError as exc:
        raise typer.BadParameter(f"Invalid datetime: {value!r}") from exc
    return int(parsed.timestamp() * 1000)


def _parse_metadata(items: list[str]) -> Optional[dict[str, Any]]:
    if not items:
        return None
    metadata: dict[str, Any] = {}
    for item in items:
        key, sep, value = item.partition("=")
        if not sep or not key:
            raise typer.BadParameter(f"Expected KEY=VALUE, got {item!r}")
        metadata[key] = value
    return metadata


@app.command()
def record(
    event_type: HistoryEventType = typer.Argument(..., help="Event type, e.g. BREAK_START."),
    duration: Optional[int] = typer.Option(
        None, "--duration", min=0, help="Break length in seconds."
    ),
    meta: list[str] = typer.Option([], "--meta", help="Extra KEY=VALUE metadata."),
    db_path: Optional[Path] = typer.Option(None, "--db", path_type=Path, help=_DB_HELP),
    settings_path: Optional[Path] = typer.Option(
        None, "--settings", path_type=Path, help=_SETTINGS_HELP
    ),
) -> None:
    """Append an event to the history."""
    log = _open_log(db_path, settings_path)
    try:
        log.add_event(event_type, duration, _parse_metadata(meta))
    finally:
        log.store.close()


@app.command()
def history(
    range_value: Optional[str] = typer.Option(
        None, "--range", help="24_HOURS, 3_DAYS, 7_DAYS, 14_DAYS, 30_DAYS or CUSTOM."
    ),
    start: Optional[str] = typer.Option(None, "--start", help="CUSTOM start (ISO datetime)."),
    end: Optional[str] = typer.Option(None, "--end", help="Range end (ISO datetime)."),
    db_path: Optional[Path] = typer.Option(None, "--db", path_type=Path, help=_DB_HELP),
    settings_path: Optional[Path] = typer.Option(
        None, "--settings", path_type=Path, help=_SETTINGS_HELP
    ),
) -> None:
    """List recorded events, newest first."""
    from .reporting import HistoryPrinter

    start_ms, end_ms = _parse_time(start), _parse_time(end)
    history_filter = None
    if range_value or start_ms or end_ms:
        history_filter = HistoryFilter(range_value or DEFAULT_RANGE, start_ms, end_ms)

    log = _open_log(db_path, settings_path)
    try:
        printer = HistoryPrinter()
        if not log.settings.history_enabled:
            printer.print_disabled()
            return
        printer.print_events(log.get_history(history_filter))
    finally:
        log.store.close()


@app.command()
def timeline(
    range_value: str = typer.Option(DEFAULT_RANGE.value, "--range", help="Named range."),
    start: Optional[str] = typer.Option(None, "--start", help="CUSTOM start (ISO datetime)."),
    end: Optional[str] = typer.Option(None, "--end", help="Range end (ISO datetime)."),
    db_path: Optional[Path] = typer.Option(None, "--db", path_type=Path, help=_DB_HELP),
    settings_path: Optional[Path] = typer.Option(
        None, "--settings", path_type=Path, help=_SETTINGS_HELP
    ),
) -> None:
    """Show work, break and offline periods for a range."""
    from .reporting import HistoryPrinter

    log = _open_log(db_path, settings_path)
    try:
        printer = HistoryPrinter()
        if not log.settings.history_enabled:
            printer.print_disabled()
            return
        printer.print_timeline(log.timeline(range_value, _parse_time(start), _parse_time(end)))
    finally:
        log.store.close()


@app.command()
def clear(
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation."),
    db_path: Optional[Path] = typer.Option(None, "--db", path_type=Path, help=_DB_HELP),
) -> None:
    """Delete every recorded event."""
    if not yes:
        typer.confirm("Delete all break history?", abort=True)
    with KeyValueStore.open(db_path or get_db_path()) as store:
        EventLog(store, AppSettings).clear()
    typer.echo("History cleared.")


@app.command()
def sweep(
    retention_days: float = typer.Option(
        90.0, "--retention-days", min=0.0, help="Drop events older than this many days."
    ),
    db_path: Optional[Path] = typer.Option(None, "--db", path_type=Path, help=_DB_HELP),
) -> None:
    """Run the retention sweep once."""
    config = HistorySettings.from_intervals(retention_days=retention_days)
    with KeyValueStore.open(db_path or get_db_path()) as store:
        removed = EventLog(store, AppSettings, config=config).cleanup_old_history()
    typer.echo(f"Removed {removed} expired events.")


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", "--host", help="Interface to bind the API."),
    port: int = typer.Option(8766, "--port", min=1, max=65535, help="TCP port for the API."),
    db_path: Optional[Path] = typer.Option(None, "--db", path_type=Path, help=_DB_HELP),
    settings_path: Optional[Path] = typer.Option(
        None, "--settings", path_type=Path, help=_SETTINGS_HELP
    ),
    retention_days: float = typer.Option(
        90.0, "--retention-days", min=1.0, help="Days of history to keep."
    ),
    cleanup_hours: float = typer.Option(
        12.0, "--cleanup-interval", min=0.01, help="Hours between retention sweeps."
    ),
    open_browser: bool = typer.Option(
        False,
        "--open-browser/--no-open-browser",
        help="Open the API docs in your default browser.",
    ),
) -> None:
    """Serve the history API with periodic retention sweeps."""
    from .server_runner import run_server

    run_server(
        host=host,
        port=port,
        db_path=db_path,
        settings_path=settings_path,
        config=HistorySettings.from_intervals(retention_days, cleanup_hours),
        open_browser=open_browser,
    )
