"""
Typer CLI for the portal engagement core.

Commands:
    portal db init                    - Initialize database tables
    portal info                       - Show configuration and XP economy
    portal classify                   - Classify ad-hoc metrics
    portal replay TRACE               - Replay a recorded interaction trace and classify it
    portal ledger USER                - Show a student's XP, level and class balances
    portal submissions RESOURCE       - List submissions for a resource
    portal bank upload RESOURCE FILE  - Validate and store a review-question bank
    portal events add NAME MULT       - Start an XP multiplier event
    portal classes set NAME           - Set a class's XP rate and telemetry thresholds
    portal whitelist add EMAIL CLASS  - Admit an email into a class

Usage:
    portal --help
    portal classify --time 1500 --keys 1200
    portal replay trace.json --class "AP Physics"
    portal events add "Double XP Weekend" 2.0 --hours 48
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import TypeVar

import typer
from loguru import logger
from pydantic import ValidationError
from rich import print as rprint
from rich.console import Console
from rich.table import Table

from config import get_settings
from src.logging_setup import configure_logging
from src.rewards.ledger import LevelCurve
from src.rewards.questions import QuestionAwardService, QuestionBankError
from src.store.sql_store import SqlEngagementStore
from src.telemetry.classifier import (
    DEFAULT_THRESHOLDS,
    BelowEngagementFloor,
    ClassPolicy,
    SubmissionStatus,
    TelemetryThresholds,
    classify,
    summarize_for_teacher,
)
from src.telemetry.metrics import TelemetryMetrics, epoch_ms
from src.telemetry.replay import InteractionTrace, replay_trace

T = TypeVar("T")

app = typer.Typer(
    help="portal: engagement telemetry, classification and XP administration",
    no_args_is_help=True,
)

console = Console()

STATUS_STYLES = {
    SubmissionStatus.FLAGGED: "red",
    SubmissionStatus.SUPPORT_NEEDED: "yellow",
    SubmissionStatus.SUCCESS: "green",
    SubmissionStatus.NORMAL: "cyan",
    SubmissionStatus.STARTED: "dim",
}


@app.callback()
def main_callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
):
    """Portal engagement core administration."""
    configure_logging("DEBUG" if verbose else None)


# ========================================
# Helpers
# ========================================


def _with_store(action: Callable[[SqlEngagementStore], Awaitable[T]]) -> T:
    """Run ``action`` against the configured store and dispose it afterwards."""

    async def runner() -> T:
        store = SqlEngagementStore.from_settings()
        try:
            return await action(store)
        finally:
            await store.close()

    return asyncio.run(runner())


def _load_policy(class_type: str | None) -> ClassPolicy:
    if not class_type:
        return ClassPolicy(xp_per_minute=get_settings().default_xp_per_minute)
    return _with_store(lambda store: store.get_class_policy(class_type))


def _print_classification(metrics: TelemetryMetrics, policy: ClassPolicy) -> None:
    table = Table(title="Metrics")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")
    table.add_row("Active time", f"{metrics.engagement_time}s")
    table.add_row("Keystrokes", str(metrics.keystrokes))
    table.add_row("Pastes", str(metrics.paste_count))
    table.add_row("Clicks", str(metrics.click_count))
    console.print(table)

    try:
        result = classify(metrics, policy.thresholds, policy.xp_per_minute)
    except BelowEngagementFloor as e:
        rprint(f"[yellow]⚠[/yellow] Not classifiable: {e}")
        raise typer.Exit(1)

    style = STATUS_STYLES[result.status]
    rprint(f"\nStatus: [{style}]{result.status.value}[/{style}]  Score: [bold]{result.score} XP[/bold]")
    rprint(f"[dim]{result.feedback}[/dim]")
    rprint(f"Teacher summary: {summarize_for_teacher(metrics)}")


# ========================================
# DATABASE COMMANDS
# ========================================

db_app = typer.Typer(help="Database management")
app.add_typer(db_app, name="db")


@db_app.command("init")
def db_init() -> None:
    """
    Initialize database tables from SQLAlchemy models.

    Safe to run multiple times (idempotent).
    """
    from src.db.database import init_db

    logger.info("Initializing database tables...")
    _with_store(lambda store: init_db(store.engine))
    rprint("[green]✓[/green] Database initialized!")


# ========================================
# CLASSIFICATION COMMANDS
# ========================================


@app.command("classify")
def classify_metrics(
    engagement_time: int = typer.Option(..., "--time", "-t", help="Active seconds"),
    keystrokes: int = typer.Option(0, "--keys", "-k", help="Keystrokes"),
    paste_count: int = typer.Option(0, "--pastes", "-p", help="Paste events"),
    click_count: int = typer.Option(0, "--clicks", "-c", help="Clicks"),
    class_type: str = typer.Option(None, "--class", help="Use this class's stored policy"),
) -> None:
    """Classify a metrics summary without storing anything."""
    metrics = TelemetryMetrics(
        paste_count=paste_count,
        engagement_time=engagement_time,
        keystrokes=keystrokes,
        click_count=click_count,
    )
    _print_classification(metrics, _load_policy(class_type))


@app.command("replay")
def replay(
    trace_file: Path = typer.Argument(..., help="JSON interaction trace"),
    class_type: str = typer.Option(None, "--class", help="Use this class's stored policy"),
) -> None:
    """
    Replay a recorded interaction trace through the collector and classify it.

    Examples:
        portal replay session.json
        portal replay session.json --class "AP Physics"
    """
    if not trace_file.exists():
        rprint(f"[red]Error: Trace not found: {trace_file}[/red]")
        raise typer.Exit(1)

    try:
        trace = InteractionTrace.model_validate_json(trace_file.read_text(encoding="utf-8"))
    except ValidationError as e:
        rprint(f"[red]Error: Invalid trace: {e}[/red]")
        raise typer.Exit(1)

    rprint(f"Replaying {len(trace.events)} events over {(trace.end - trace.start) // 1000}s")
    _print_classification(replay_trace(trace), _load_policy(class_type))


# ========================================
# LEDGER & SUBMISSIONS
# ========================================


@app.command("ledger")
def show_ledger(user_id: str = typer.Argument(..., help="Student id")) -> None:
    """Show a student's XP, level, currency and per-class XP."""
    snapshot = _with_store(lambda store: store.get_ledger(user_id))
    if snapshot is None:
        rprint(f"[red]Error: No profile for {user_id}[/red]")
        raise typer.Exit(1)

    curve = LevelCurve(get_settings().xp_per_level)
    rprint(f"[bold]{user_id}[/bold]")
    rprint(f"  XP: {snapshot.xp}  Level: {snapshot.level(curve)}  Flux: {snapshot.currency}")
    rprint(f"  Progress to next level: {curve.progress(snapshot.xp):.0%}")

    if snapshot.class_xp:
        table = Table(title="Class XP")
        table.add_column("Class", style="cyan")
        table.add_column("XP", justify="right", style="green")
        for class_type, xp in sorted(snapshot.class_xp.items()):
            table.add_row(class_type, str(xp))
        console.print(table)


@app.command("submissions")
def list_submissions(
    resource_id: str = typer.Argument(..., help="Resource id"),
    include_archived: bool = typer.Option(False, "--all", "-a", help="Include archived submissions"),
) -> None:
    """List submissions for a resource, pinned first."""
    rows = _with_store(
        lambda store: store.list_submissions(
            assignment_id=resource_id, include_archived=include_archived
        )
    )
    if not rows:
        rprint(f"[yellow]No submissions for {resource_id}[/yellow]")
        return

    table = Table(title=f"Submissions for {resource_id} ({len(rows)})")
    table.add_column("ID", style="dim")
    table.add_column("Student", style="cyan")
    table.add_column("Status")
    table.add_column("XP", justify="right")
    table.add_column("Active", justify="right")
    table.add_column("Source", style="dim")
    table.add_column("Summary")

    for row in rows:
        style = STATUS_STYLES[row.status]
        pin = "📌 " if row.is_pinned else ""
        table.add_row(
            f"{pin}{row.id}",
            row.user_name,
            f"[{style}]{row.status.value}[/{style}]",
            str(row.score),
            f"{row.metrics.engagement_time}s",
            row.source,
            summarize_for_teacher(row.metrics),
        )
    console.print(table)


# ========================================
# QUESTION BANKS
# ========================================

bank_app = typer.Typer(help="Review-question banks")
app.add_typer(bank_app, name="bank")


@bank_app.command("upload")
def bank_upload(
    resource_id: str = typer.Argument(..., help="Resource the bank belongs to"),
    bank_file: Path = typer.Argument(..., help="JSON array of questions"),
    title: str = typer.Option("", "--title", help="Resource title"),
    class_type: str = typer.Option("", "--class", help="Class of the resource"),
) -> None:
    """Validate a question bank and store it (replacing any previous bank)."""
    if not bank_file.exists():
        rprint(f"[red]Error: File not found: {bank_file}[/red]")
        raise typer.Exit(1)

    try:
        raw = json.loads(bank_file.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        rprint(f"[red]Error: Invalid JSON: {e}[/red]")
        raise typer.Exit(1)
    if isinstance(raw, dict):
        raw = raw.get("questions", [])
    if not isinstance(raw, list):
        rprint("[red]Error: Expected a JSON array of questions[/red]")
        raise typer.Exit(1)

    async def upload(store: SqlEngagementStore):
        service = QuestionAwardService(store)
        return await service.upload_question_bank(
            resource_id, raw, title=title, class_type=class_type, uploaded_by="cli"
        )

    try:
        validation = _with_store(upload)
    except QuestionBankError as e:
        rprint(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    rprint(f"[green]✓[/green] Stored {len(validation.questions)} questions for {resource_id}")
    for tier, count in validation.tiers.items():
        rprint(f"  Tier {tier}: {count}")
    if validation.rejected:
        rprint(f"[yellow]⚠[/yellow] Skipped {len(validation.rejected)}:")
        for message in validation.rejected[:10]:
            rprint(f"  [dim]{message}[/dim]")


# ========================================
# ECONOMY & ACCESS
# ========================================

events_app = typer.Typer(help="XP multiplier events")
app.add_typer(events_app, name="events")


@events_app.command("add")
def events_add(
    name: str = typer.Argument(..., help="Event name"),
    multiplier: float = typer.Argument(..., help="XP multiplier (>= 1.0)"),
    class_type: str = typer.Option(None, "--class", help="Limit to one class (default: global)"),
    hours: float = typer.Option(None, "--hours", help="Expire after this many hours"),
) -> None:
    """Start an XP multiplier event."""
    if multiplier < 1.0:
        rprint("[red]Error: Multiplier must be at least 1.0[/red]")
        raise typer.Exit(1)

    expires_at = epoch_ms() + int(hours * 3_600_000) if hours else None
    event_id = _with_store(
        lambda store: store.add_xp_event(name, multiplier, target_class=class_type, expires_at_ms=expires_at)
    )
    scope = class_type or "all classes"
    rprint(f"[green]✓[/green] Event {event_id}: {name} x{multiplier} for {scope}")


classes_app = typer.Typer(help="Per-class policy")
app.add_typer(classes_app, name="classes")


@classes_app.command("set")
def classes_set(
    class_name: str = typer.Argument(..., help="Class name"),
    xp_per_minute: int = typer.Option(None, "--rate", help="XP per active minute"),
    thresholds: str = typer.Option(None, "--thresholds", help='JSON, e.g. {"flagPasteCount": 3}'),
) -> None:
    """Set a class's XP rate and telemetry thresholds."""
    raw = None
    if thresholds:
        try:
            raw = json.loads(thresholds)
            TelemetryThresholds.model_validate(raw)
        except (json.JSONDecodeError, ValidationError) as e:
            rprint(f"[red]Error: Invalid thresholds: {e}[/red]")
            raise typer.Exit(1)

    _with_store(lambda store: store.save_class_config(class_name, xp_per_minute, raw))
    rprint(f"[green]✓[/green] Saved policy for {class_name}")


whitelist_app = typer.Typer(help="Whitelist management")
app.add_typer(whitelist_app, name="whitelist")


@whitelist_app.command("add")
def whitelist_add(
    email: str = typer.Argument(..., help="Email to admit"),
    class_type: str = typer.Argument(..., help="Class to enroll into"),
    section: str = typer.Option(None, "--section", help="Section label"),
) -> None:
    """Admit an email; re-adding merges the class into its list."""
    entry = _with_store(lambda store: store.add_to_whitelist(email, class_type, section))
    rprint(f"[green]✓[/green] {entry.email}: {', '.join(entry.class_types)}")


# ========================================
# INFO
# ========================================


@app.command("info")
def show_info() -> None:
    """Show configuration and XP economy."""
    settings = get_settings()

    table = Table(title="Portal Configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Database URL", settings.database_url)
    table.add_row("Admin email", settings.admin_email or "Not set")
    table.add_row("Engagement floor", f"{settings.min_engagement_seconds}s")
    table.add_row("Engagement ceiling", f"{settings.max_engagement_seconds}s")
    table.add_row("Cooldown", f"{settings.engagement_cooldown_seconds}s")
    table.add_row("Watermarks", str(settings.watermark_path))
    table.add_row("Log Level", settings.log_level)
    console.print(table)

    economy = Table(title="XP Economy")
    economy.add_column("Setting", style="cyan")
    economy.add_column("Value", justify="right")
    for key, value in settings.get_economy_config().items():
        economy.add_row(key, str(value))
    console.print(economy)

    defaults = Table(title="Default Telemetry Thresholds")
    defaults.add_column("Threshold", style="cyan")
    defaults.add_column("Value", justify="right")
    for key, value in DEFAULT_THRESHOLDS.model_dump().items():
        defaults.add_row(key, str(value))
    console.print(defaults)


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
