"""
Instrument Tracker: terminal interface.

A Rich terminal front-end over the Tracker. It only renders results; every
decision (what to pick, how to aggregate, what is valid) lives in the core.

Commands:
- tracker next       - Recommend what to practice next
- tracker log        - Record a practice session
- tracker history    - Browse and search past sessions
- tracker stats      - Rolling-window statistics and streak
- tracker items      - Instruments/areas with weights and availability
- tracker export     - Write a JSON backup
- tracker import     - Restore a JSON backup
- tracker settings   - Daily goal, default person, nudge and confetti
"""
from __future__ import annotations

import sys
from pathlib import Path
from typing import List, Optional
from zoneinfo import ZoneInfoNotFoundError

import typer
from loguru import logger
from rich.console import Console
from rich.panel import Panel
from rich.prompt import Confirm
from rich.table import Table

from config import get_settings

from .catalog import DIFFICULTIES, PEOPLE, Catalog
from .clock import SystemClock, days_since, local_tz, resolve_zone
from .errors import TrackerError
from .ledger import SessionInput
from .scheduler import ScoringConfig
from .tracker import Tracker

# =============================================================================
# CLI Setup
# =============================================================================

app = typer.Typer(
    name="tracker",
    help="Instrument Tracker: what should I practice next?",
    no_args_is_help=True,
)
console = Console()


STYLES = {
    "ok": "bold green",
    "error": "bold red",
    "info": "bold cyan",
    "warning": "bold yellow",
    "dim": "dim",
}


def fmt_minutes(minutes: int) -> str:
    """90 -> '1h 30m'."""
    if minutes < 60:
        return f"{minutes} min"
    hours, rest = divmod(minutes, 60)
    return f"{hours}h {rest}m" if rest else f"{hours}h"


def open_tracker() -> Tracker:
    """Build a Tracker from application settings."""
    settings = get_settings()
    catalog = Catalog.from_file(settings.tracker_catalog_file) if settings.tracker_catalog_file else None
    try:
        clock = SystemClock(resolve_zone(settings.tracker_timezone))
    except (ZoneInfoNotFoundError, ValueError) as e:
        console.print(f"[red]Unknown time zone {settings.tracker_timezone!r}: {e}[/red]")
        raise typer.Exit(1)
    return Tracker.open(
        db_path=settings.tracker_db_path,
        catalog=catalog,
        clock=clock,
        scoring=ScoringConfig.from_settings(settings),
        storage_key=settings.tracker_storage_key,
        backup_dir=settings.tracker_backup_dir,
    )


def fail(error: Exception) -> None:
    console.print(f"[{STYLES['error']}]{error}[/{STYLES['error']}]")
    raise typer.Exit(1)


def require_item(tracker: Tracker, item_id: str) -> None:
    if item_id not in tracker.catalog:
        console.print(f"[red]Unknown item: {item_id}[/red]")
        console.print(f"Known items: {', '.join(tracker.catalog.ids)}")
        raise typer.Exit(1)


# =============================================================================
# Commands
# =============================================================================


@app.command("next")
def next_(
    alternate: bool = typer.Option(
        False,
        "--alternate",
        "-a",
        help="Steer away from the previous suggestion",
    ),
) -> None:
    """Recommend what to practice next."""
    tracker = open_tracker()
    item_id = tracker.pick_alternate() if alternate else tracker.pick_next()

    if item_id is None:
        console.print("\n[yellow]Nothing to pick.[/yellow]")
        console.print("Mark at least one instrument as available (tracker available ITEM).")
        raise typer.Exit(0)

    item = tracker.catalog.get(item_id)
    state = tracker.document.items[item_id]
    weight = tracker.document.settings.weights.get(item_id, 2)
    days = days_since(state.last_studied_at, tracker.store.clock.now())

    lines = [
        f"Last studied: {'never' if state.last_studied_at is None else f'{days} days ago'}",
        f"Last 7 days: {fmt_minutes(state.minutes_week)}",
        f"Last 30 days: {fmt_minutes(state.minutes_month)}",
        f"Priority: x{tracker.scheduler.config.weight_multiplier(weight, rounded=True)}",
    ]
    if state.condition:
        lines.append(f"Condition: {state.condition}")

    console.print(
        Panel(
            "\n".join(lines),
            title=f"[bold cyan]{item.icon} {item.name}[/bold cyan]" if item else item_id,
            border_style="cyan",
        )
    )


@app.command()
def log(
    item: str = typer.Argument(..., help="Catalog id of the instrument/area"),
    minutes: int = typer.Option(0, "--minutes", "-m", help="Total minutes (defaults to the component sum)"),
    tech: int = typer.Option(0, "--tech", help="Technique minutes"),
    theory: int = typer.Option(0, "--theory", help="Theory minutes"),
    rep: int = typer.Option(0, "--rep", help="Repertoire minutes"),
    tech_notes: str = typer.Option("", "--tech-notes"),
    theory_notes: str = typer.Option("", "--theory-notes"),
    rep_notes: str = typer.Option("", "--rep-notes"),
    mood: int = typer.Option(4, "--mood", min=1, max=5, help="1-5"),
    difficulty: str = typer.Option("easy", "--difficulty", "-d", help="/".join(DIFFICULTIES)),
    who: Optional[str] = typer.Option(None, "--who", "-w", help="Who practiced (" + "/".join(PEOPLE) + ")"),
    tag: Optional[List[str]] = typer.Option(None, "--tag", "-t", help="Tag (repeatable)"),
    day: Optional[str] = typer.Option(None, "--date", help="Backdate to YYYY-MM-DD (keeps the current time)"),
) -> None:
    """Record a practice session."""
    tracker = open_tracker()
    require_item(tracker, item)

    payload = SessionInput(
        instrument_id=item,
        minutes_total=minutes,
        date=day,
        who=who,
        mood=mood,
        difficulty=difficulty,
        tech_minutes=tech,
        tech_notes=tech_notes,
        theory_minutes=theory,
        theory_notes=theory_notes,
        rep_minutes=rep,
        rep_notes=rep_notes,
        tags=tag or [],
    )
    try:
        session = tracker.add_session(payload)
    except TrackerError as e:
        fail(e)

    console.print(
        f"[green]Logged {fmt_minutes(session.minutes_total)} of "
        f"{tracker.catalog.name_of(session.instrument_id)}[/green] [dim]({session.id})[/dim]"
    )
    summary = tracker.summary(days=1)
    if summary.streak_days > 1:
        console.print(f"Streak: {summary.streak_days} days")
    if tracker.document.settings.show_confetti and summary.goal_reached:
        console.print(f"[{STYLES['ok']}]🎉 Daily goal of {summary.streak_goal_min} min reached![/{STYLES['ok']}]")


@app.command()
def history(
    days: int = typer.Option(30, "--days", help="Trailing window in days"),
    item: Optional[str] = typer.Option(None, "--item", "-i", help="Only this item"),
    who: Optional[str] = typer.Option(None, "--who", "-w", help="Only this person"),
    search: str = typer.Option("", "--search", "-s", help="Text search"),
) -> None:
    """Browse past sessions, newest first."""
    tracker = open_tracker()
    sessions = tracker.ledger.filter_sessions(days=days, instrument_id=item, who=who, query=search)

    if not sessions:
        console.print("\n[yellow]No sessions match.[/yellow]")
        raise typer.Exit(0)

    table = Table()
    table.add_column("When")
    table.add_column("Item")
    table.add_column("Who")
    table.add_column("Total", justify="right")
    table.add_column("Tech/Theory/Rep", justify="right")
    table.add_column("Mood")
    table.add_column("Tags", style="dim")
    table.add_column("ID", style="dim")

    tz = local_tz(tracker.store.clock.now())
    for s in sessions:
        table.add_row(
            s.at.astimezone(tz).strftime("%Y-%m-%d %H:%M"),
            tracker.catalog.name_of(s.instrument_id),
            s.who,
            fmt_minutes(s.minutes_total),
            f"{s.tech.minutes}/{s.theory.minutes}/{s.rep.minutes}",
            f"{s.mood} · {s.difficulty}",
            ", ".join(s.tags[:8]),
            s.id,
        )

    console.print(table)


@app.command()
def delete(session_id: str = typer.Argument(..., help="Session id")) -> None:
    """Delete one session."""
    tracker = open_tracker()
    if tracker.delete_session(session_id):
        console.print(f"[green]Deleted {session_id}[/green]")
    else:
        console.print(f"[yellow]No session {session_id}[/yellow]")


@app.command()
def clear(
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
) -> None:
    """Delete every session and reset statistics."""
    tracker = open_tracker()
    count = len(tracker.document.sessions)
    if not yes and not Confirm.ask(f"Delete all {count} sessions?"):
        raise typer.Exit(0)
    tracker.clear_all()
    console.print(f"[green]Cleared {count} sessions.[/green]")


@app.command()
def stats(days: int = typer.Option(30, "--days", help="Trailing window in days")) -> None:
    """Show practice statistics."""
    tracker = open_tracker()
    summary = tracker.summary(days=days)

    console.print(f"\n[bold cyan]Last {days} days[/bold cyan]")
    console.print("=" * 40)

    table = Table(show_header=False, box=None)
    table.add_column("Metric", style="dim")
    table.add_column("Value", style="bold")
    table.add_row("Total time", fmt_minutes(summary.total_minutes))
    table.add_row("Sessions", str(summary.total_sessions))
    for name, value in summary.component_minutes.items():
        table.add_row(f"  {name}", fmt_minutes(value))
    table.add_row("Streak", f"{summary.streak_days} days")
    goal = "[green]reached[/green]" if summary.goal_reached else "[yellow]pending[/yellow]"
    table.add_row("Today", f"{fmt_minutes(summary.minutes_today)} / {summary.streak_goal_min} min {goal}")
    table.add_row("Active items", str(summary.active_items))
    table.add_row("Available now", str(summary.available_items))
    console.print(table)
    if tracker.document.settings.daily_nudge and not summary.goal_reached:
        missing = summary.streak_goal_min - summary.minutes_today
        console.print(f"\n[{STYLES['warning']}]{missing} min left to reach today's goal.[/{STYLES['warning']}]")


@app.command()
def items() -> None:
    """List instruments and areas with their state."""
    tracker = open_tracker()
    tracker.recompute()
    doc = tracker.document
    config = tracker.scheduler.config

    table = Table()
    table.add_column("ID")
    table.add_column("Name")
    table.add_column("Type", style="dim")
    table.add_column("Status")
    table.add_column("Weight", justify="right")
    table.add_column("7d", justify="right")
    table.add_column("30d", justify="right")
    table.add_column("Condition", style="dim")

    for item in tracker.catalog:
        state = doc.items[item.id]
        if state.archived:
            status = "[dim]archived[/dim]"
        elif state.available:
            status = "[green]available[/green]"
        else:
            status = "[yellow]away[/yellow]"
        weight = doc.settings.weights.get(item.id, 2)
        table.add_row(
            item.id,
            f"{item.icon} {item.name}",
            item.type,
            status,
            f"{weight:g} (x{config.weight_multiplier(weight, rounded=True)})",
            fmt_minutes(state.minutes_week),
            fmt_minutes(state.minutes_month),
            state.condition,
        )

    console.print(table)


@app.command()
def weight(
    item: str = typer.Argument(..., help="Catalog id"),
    value: float = typer.Argument(..., help="Manual priority 0-5"),
) -> None:
    """Set the manual priority of an item."""
    tracker = open_tracker()
    require_item(tracker, item)
    stored = tracker.set_weight(item, value)
    console.print(f"[green]{item} weight set to {stored:g}[/green]")


@app.command()
def available(
    item: str = typer.Argument(..., help="Catalog id"),
    off: bool = typer.Option(False, "--off", help="Mark as not at hand"),
) -> None:
    """Mark an item as at hand (or not)."""
    tracker = open_tracker()
    require_item(tracker, item)
    state = tracker.set_available(item, not off)
    console.print(f"[green]{item} {'available' if state.available else 'not available'}[/green]")


@app.command()
def archive(
    item: str = typer.Argument(..., help="Catalog id"),
    restore: bool = typer.Option(False, "--restore", help="Bring an archived item back"),
) -> None:
    """Archive an item (excluded from recommendations)."""
    tracker = open_tracker()
    require_item(tracker, item)
    state = tracker.set_archived(item, not restore)
    console.print(f"[green]{item} {'archived' if state.archived else 'restored'}[/green]")


@app.command()
def condition(
    item: str = typer.Argument(..., help="Catalog id"),
    text: str = typer.Argument("", help="Free text, e.g. 'headphones only'"),
) -> None:
    """Set a note about when the item can be practiced."""
    tracker = open_tracker()
    require_item(tracker, item)
    tracker.set_condition(item, text)
    console.print(f"[green]{item} condition updated[/green]")


@app.command("avoid-repeat")
def avoid_repeat(
    state: str = typer.Argument(..., help="on or off"),
) -> None:
    """Toggle the penalty for suggesting the same item twice in a row."""
    if state not in ("on", "off"):
        console.print("[red]Use 'on' or 'off'[/red]")
        raise typer.Exit(1)
    tracker = open_tracker()
    tracker.set_avoid_repeat(state == "on")
    console.print(f"[green]Avoid repeat {state}[/green]")


@app.command("settings")
def settings_(
    goal: Optional[int] = typer.Option(None, "--goal", help="Daily minutes goal"),
    who: Optional[str] = typer.Option(None, "--who", "-w", help="Default person (" + "/".join(PEOPLE) + ")"),
    nudge: Optional[bool] = typer.Option(None, "--nudge/--no-nudge", help="Remind when today's goal is pending"),
    confetti: Optional[bool] = typer.Option(None, "--confetti/--no-confetti", help="Celebrate logged sessions"),
) -> None:
    """Show or change tracker settings."""
    tracker = open_tracker()
    try:
        if goal is not None:
            tracker.set_streak_goal(goal)
        if who is not None:
            tracker.set_default_who(who)
        if nudge is not None:
            tracker.set_daily_nudge(nudge)
        if confetti is not None:
            tracker.set_show_confetti(confetti)
    except TrackerError as e:
        fail(e)

    current = tracker.document.settings
    table = Table(show_header=False, box=None)
    table.add_column("Setting", style="dim")
    table.add_column("Value", style="bold")
    table.add_row("Daily goal", f"{current.streak_goal_min} min")
    table.add_row("Default person", current.default_who)
    table.add_row("Daily nudge", "on" if current.daily_nudge else "off")
    table.add_row("Confetti", "on" if current.show_confetti else "off")
    table.add_row("Avoid repeat", "on" if current.avoid_repeat else "off")
    console.print(table)


@app.command()
def export(
    path: Optional[Path] = typer.Argument(None, help="Target file (defaults to the backup dir)"),
) -> None:
    """Write a JSON backup of everything."""
    tracker = open_tracker()
    written = tracker.export_backup(path)
    console.print(f"[green]Backup written: {written}[/green]")


@app.command("import")
def import_(
    path: Path = typer.Argument(..., help="Backup file to restore"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
) -> None:
    """Replace all data with a JSON backup."""
    tracker = open_tracker()
    if not yes and not Confirm.ask("Replace current data with this backup?"):
        raise typer.Exit(0)
    try:
        doc = tracker.import_backup(path)
    except TrackerError as e:
        fail(e)
    console.print(f"[green]Restored {len(doc.sessions)} sessions from {path.name}[/green]")


# =============================================================================
# Entry Point
# =============================================================================

def main() -> None:
    """CLI entry point."""
    # Configure logging
    logger.remove()
    logger.add(
        sys.stderr,
        level=get_settings().log_level,
        format="<level>{message}</level>",
    )

    app()


if __name__ == "__main__":
    main()
