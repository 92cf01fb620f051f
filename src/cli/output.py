"""CLI output formatters for Rich tables and JSON.

Provides human-readable Rich output (default) and machine-parseable JSON
output (--json flag). All formatting goes through these functions so the
CLI commands stay clean.
"""

import json
from typing import Any

from rich.console import Console
from rich.table import Table

from src.services.auto_reply_types import DAY_KEYS, DrainSummary, ProcessResult, ReplySettings

console = Console()

# Decision/status color map
STATUS_COLORS = {
    "PENDING": "yellow",
    "PROCESSING": "blue",
    "SENT": "green",
    "SKIPPED": "dim",
    "FAILED": "red",
}


def _render(renderable: Any) -> str:
    with console.capture() as capture:
        console.print(renderable)
    return capture.get()


def _colored(status: str) -> str:
    color = STATUS_COLORS.get(status, "white")
    return f"[{color}]{status}[/{color}]"


def format_settings(settings: ReplySettings, as_json: bool = False) -> str:
    """Format an agent's settings as a Rich table or JSON.

    Args:
        settings: Settings to display.
        as_json: If True, return JSON string instead of Rich output.

    Returns:
        Formatted string output.
    """
    if as_json:
        return json.dumps(settings.to_dict(), indent=2)

    enabled = "[green]yes[/green]" if settings.enabled else "[red]no[/red]"
    table = Table(title=f"Auto-reply settings: {settings.agent_id}")
    table.add_column("Day", style="cyan")
    table.add_column("Available")
    table.add_column("Window")
    for key in DAY_KEYS:
        day = settings.week_schedule.day(key)
        table.add_row(
            key,
            "yes" if day.enabled else "[dim]no[/dim]",
            f"{day.start}-{day.end}",
        )

    header = (
        f"[bold]Enabled:[/bold]     {enabled}\n"
        f"[bold]Timezone:[/bold]    {settings.timezone}\n"
        f"[bold]Cooldown:[/bold]    {settings.cooldown_minutes} min\n"
        f"[bold]Max per 24h:[/bold] {settings.max_replies_per_conversation_per_24h}"
    )
    return _render(header) + _render(table)


def format_process_result(result: ProcessResult, as_json: bool = False) -> str:
    if as_json:
        return json.dumps(result.to_dict(), indent=2)
    line = _colored(result.status)
    if result.reason:
        line += f" ({result.reason})"
    if not result.claimed:
        line += " [dim]not claimed by this call[/dim]"
    if result.generated_message_id:
        line += f"\nReply message: {result.generated_message_id}"
    return _render(line)


def format_drain_summary(summary: DrainSummary, as_json: bool = False) -> str:
    """Format the counters of a drain run."""
    if as_json:
        return json.dumps(summary.to_dict(), indent=2)
    return _render(
        f"Processed {summary.processed}: "
        f"[green]{summary.sent} sent[/green], "
        f"{summary.skipped} skipped, "
        f"[red]{summary.failed} failed[/red]"
    )


def format_job_counts(counts: dict[str, int], as_json: bool = False) -> str:
    if as_json:
        return json.dumps(counts, indent=2)
    table = Table(title="Reply jobs")
    table.add_column("Status")
    table.add_column("Count", justify="right")
    for status, count in counts.items():
        table.add_row(_colored(status), str(count))
    return _render(table)


def format_metrics(
    agent_id: str, range_label: str, summary: dict[str, Any], as_json: bool = False
) -> str:
    """Format a decision log summary.

    Args:
        agent_id: Agent the summary belongs to.
        range_label: '24h' or '7d'.
        summary: Output of DecisionLogService.summarize().
        as_json: If True, return JSON string instead of Rich output.

    Returns:
        Formatted string output.
    """
    if as_json:
        return json.dumps({"agent_id": agent_id, "range": range_label, **summary}, indent=2)

    counts = summary["counts"]
    header = (
        f"[bold]{agent_id}[/bold] last {range_label}: "
        f"[green]{counts['sent']} sent[/green], "
        f"{counts['skipped']} skipped, [red]{counts['failed']} failed[/red]"
    )
    output = _render(header)

    if summary["skipped_by_reason"]:
        reasons = Table(title="Skip reasons")
        reasons.add_column("Reason")
        reasons.add_column("Count", justify="right")
        for row in summary["skipped_by_reason"]:
            reasons.add_row(row["reason"], str(row["count"]))
        output += _render(reasons)

    if summary["recent"]:
        recent = Table(title="Recent decisions")
        recent.add_column("When")
        recent.add_column("Decision")
        recent.add_column("Reason")
        recent.add_column("Contact")
        for row in summary["recent"]:
            recent.add_row(
                row["created_at"][:19],
                _colored(row["decision"]),
                row["reason"] or "—",
                row["contact_name"] or "—",
            )
        output += _render(recent)
    return output
