"""Offline auto-reply CLI.

Runs the API server and the job worker, and inspects settings and
metrics directly against the configured database.

Usage:
    autoreply serve                    Start the HTTP API
    autoreply drain --limit 20         Process pending reply jobs
    autoreply jobs status              Show job counts by status
    autoreply settings show AGENT_ID   Show an agent's settings
    autoreply metrics AGENT_ID         Show decision metrics
"""

import logging
from datetime import UTC, datetime, timedelta
from typing import Optional

import typer
from rich.console import Console

from src.cli.output import (
    format_drain_summary,
    format_job_counts,
    format_metrics,
    format_process_result,
    format_settings,
)
from src.db.connection import get_db_context, init_db
from src.errors.domain import ValidationError
from src.services.auto_reply_config import DEFAULT_DRAIN_LIMIT
from src.services.auto_reply_service import AutoReplyService
from src.services.auto_reply_types import DAY_KEYS
from src.services.reply_decision_log import DecisionLogService
from src.services.reply_settings_service import ReplySettingsService

_log = logging.getLogger(__name__)

app = typer.Typer(
    name="autoreply",
    help="Offline auto-reply engine",
    no_args_is_help=True,
)
jobs_app = typer.Typer(help="Inspect and process reply jobs")
settings_app = typer.Typer(help="Manage per-agent auto-reply settings")

app.add_typer(jobs_app, name="jobs")
app.add_typer(settings_app, name="settings")

console = Console()

_RANGES = {"24h": timedelta(hours=24), "7d": timedelta(days=7)}


def parse_day_option(value: str) -> tuple[str, dict]:
    """Parse a --day option such as 'mon=09:00-18:00', 'sat=off' or 'sun=on'.

    Returns:
        (day key, partial day entry)

    Raises:
        typer.BadParameter: On an unknown day or malformed value.
    """
    key, sep, window = value.partition("=")
    key = key.strip().lower()
    window = window.strip().lower()
    if not sep or key not in DAY_KEYS:
        raise typer.BadParameter(f"Expected <day>=<start>-<end>|on|off, got {value!r}")
    if window == "off":
        return key, {"enabled": False}
    if window == "on":
        return key, {"enabled": True}
    start, dash, end = window.partition("-")
    if not dash:
        raise typer.BadParameter(f"Expected a HH:MM-HH:MM window, got {window!r}")
    return key, {"enabled": True, "start": start.strip(), "end": end.strip()}


# --- Server ---


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", help="Bind address"),
    port: int = typer.Option(8000, help="Bind port"),
    log_level: str = typer.Option("info", help="uvicorn log level"),
):
    """Start the auto-reply HTTP API."""
    import uvicorn

    _log.info("Starting API on %s:%d", host, port)
    uvicorn.run(
        "src.api.main:app",
        host=host,
        port=port,
        log_level=log_level,
        lifespan="on",
    )


@app.command()
def version():
    """Show the installed version."""
    from importlib.metadata import PackageNotFoundError
    from importlib.metadata import version as pkg_version

    try:
        v = pkg_version("offline-autoreply")
    except PackageNotFoundError:
        v = "unknown"
    console.print(f"[bold]offline-autoreply[/bold] v{v}")


# --- Jobs ---


@app.command()
def drain(
    limit: int = typer.Option(DEFAULT_DRAIN_LIMIT, help="Max jobs to process (1-50)"),
    as_json: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """Process pending reply jobs, oldest first."""
    init_db()
    with get_db_context() as db:
        summary = AutoReplyService(db).process_pending(limit)
    typer.echo(format_drain_summary(summary, as_json=as_json))


@jobs_app.command("status")
def jobs_status(
    as_json: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """Show reply job counts by status."""
    init_db()
    with get_db_context() as db:
        counts = AutoReplyService(db).job_status_counts()
    typer.echo(format_job_counts(counts, as_json=as_json))


@jobs_app.command("process")
def jobs_process(
    message_id: str = typer.Argument(..., help="Triggering client message ID"),
    as_json: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """Process the reply job of one message."""
    init_db()
    with get_db_context() as db:
        result = AutoReplyService(db).process_job(message_id)
    typer.echo(format_process_result(result, as_json=as_json))


# --- Settings ---


@settings_app.command("show")
def settings_show(
    agent_id: str = typer.Argument(..., help="Agent ID"),
    as_json: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """Show an agent's auto-reply settings."""
    init_db()
    with get_db_context() as db:
        settings = ReplySettingsService(db).get_settings(agent_id)
    typer.echo(format_settings(settings, as_json=as_json))


@settings_app.command("set")
def settings_set(
    agent_id: str = typer.Argument(..., help="Agent ID"),
    enabled: Optional[bool] = typer.Option(
        None, "--enable/--disable", help="Turn auto-reply on or off"
    ),
    timezone: Optional[str] = typer.Option(None, help="IANA timezone name"),
    cooldown: Optional[int] = typer.Option(None, help="Cooldown in minutes (1-60)"),
    max_replies: Optional[int] = typer.Option(
        None, help="Max automated replies per conversation per 24h (1-30)"
    ),
    day: Optional[list[str]] = typer.Option(
        None, help="Day window, e.g. mon=09:00-18:00, sat=off (repeatable)"
    ),
    as_json: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """Update an agent's auto-reply settings."""
    patch: dict = {}
    if enabled is not None:
        patch["enabled"] = enabled
    if timezone is not None:
        patch["timezone"] = timezone
    if cooldown is not None:
        patch["cooldown_minutes"] = cooldown
    if max_replies is not None:
        patch["max_replies_per_conversation_per_24h"] = max_replies
    day_updates = [parse_day_option(value) for value in day or []]

    if not patch and not day_updates:
        console.print("[yellow]Nothing to update.[/yellow]")
        raise typer.Exit(1)

    init_db()
    with get_db_context() as db:
        service = ReplySettingsService(db)
        if day_updates:
            schedule: dict[str, dict] = {}
            for key, entry in day_updates:
                schedule[key] = {**schedule.get(key, {}), **entry}
            patch["week_schedule"] = schedule
        try:
            settings = service.upsert_settings(agent_id, patch)
        except ValidationError as e:
            console.print(f"[red]Error:[/red] {e}")
            raise typer.Exit(1) from None
    typer.echo(format_settings(settings, as_json=as_json))


# --- Metrics ---


@app.command()
def metrics(
    agent_id: str = typer.Argument(..., help="Agent ID"),
    range_: str = typer.Option("24h", "--range", help="24h or 7d"),
    as_json: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """Show auto-reply decision metrics for an agent."""
    if range_ not in _RANGES:
        raise typer.BadParameter("range must be 24h or 7d")
    init_db()
    since = datetime.now(UTC) - _RANGES[range_]
    with get_db_context() as db:
        summary = DecisionLogService(db).summarize(agent_id, since)
    typer.echo(format_metrics(agent_id, range_, summary, as_json=as_json))


if __name__ == "__main__":
    app()
