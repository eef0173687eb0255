"""
earwise: Ear-Training CLI.

A Rich terminal interface for adaptive interval, chord and progression
practice.

Commands:
- earwise study     - Start a practice session
- earwise progress  - Show unlock tiers and card mastery
- earwise stats     - Show lifetime statistics
- earwise unlock    - Unlock a card by hand
- earwise relock    - Remove a card from practice
- earwise prefs     - Show or change preferences
- earwise export    - Write all progress to a file
- earwise import    - Replace progress from an export file
- earwise reset     - Forget all progress
"""
from __future__ import annotations

import sys
from pathlib import Path
from typing import Optional

import typer
from loguru import logger
from rich.console import Console
from rich.panel import Panel
from rich.prompt import Confirm, Prompt
from rich.table import Table

from ..audio import ConsolePlayer
from ..config import get_settings
from ..engine.card import CardKey
from ..engine.runner import AnswerFeedback, SessionPhase, SessionProgress, SessionRunner, SessionSummary
from ..engine.state import DomainState
from ..errors import EarwiseError, InvalidBundleError, UnknownCardError, UnknownDomainError
from ..storage.store import build_store
from ..trainer import Trainer

# =============================================================================
# CLI Setup
# =============================================================================

app = typer.Typer(
    name="earwise",
    help="earwise: adaptive ear-training practice",
    no_args_is_help=True,
)
console = Console()


# =============================================================================
# Styling
# =============================================================================

STYLES = {
    "correct": "bold green",
    "incorrect": "bold red",
    "info": "bold cyan",
    "warning": "bold yellow",
    "dim": "dim",
    "variant": {
        "ascending": "cyan",
        "descending": "magenta",
        "harmonic": "yellow",
        "block": "blue",
        "listen": "green",
    },
}


def style_variant(variant: str) -> str:
    """Get styled variant string."""
    color = STYLES["variant"].get(variant, "white")
    return f"[{color}]{variant}[/{color}]"


def mastery_bar(mastery: float, width: int = 10) -> str:
    filled = round(mastery * width)
    color = "green" if mastery >= 0.7 else "yellow" if mastery >= 0.4 else "red"
    return f"[{color}]{'█' * filled}[/{color}][dim]{'░' * (width - filled)}[/dim] {mastery * 100:3.0f}%"


def describe_pitch(pitch: tuple) -> str:
    """Reference rendering of a pitch pattern, shown only after answering."""
    if pitch and isinstance(pitch[0], tuple):
        return "  ".join(f"{offset:+d} {quality}" for offset, quality in pitch)
    return "-".join(str(step) for step in pitch) + " semitones"


# =============================================================================
# Presentation Sink
# =============================================================================


class RichSink:
    """Renders session events to the console."""

    def __init__(self, console: Console):
        self.console = console

    def session_progress(self, progress: SessionProgress) -> None:
        header = f"Question {progress.index + 1}/{progress.total}  |  {style_variant(progress.card.variant)}"
        body = "[bold yellow]NEW[/bold yellow] Listen closely." if progress.is_new else "Listen and name it."
        self.console.print(Panel(body, title=header, title_align="left", border_style="cyan", padding=(0, 2)))

    def answer_feedback(self, feedback: AnswerFeedback) -> None:
        if feedback.correct:
            line = f"[green]✓[/green] [{STYLES['correct']}]{feedback.item.name}[/{STYLES['correct']}]"
            line += f"  [dim]{feedback.response_ms / 1000:.1f}s, grade {feedback.grade}[/dim]"
        else:
            line = (
                f"[red]✗[/red] [{STYLES['incorrect']}]It was {feedback.item.name}[/{STYLES['incorrect']}]"
                f"  [dim](you said {feedback.answered_item_id})[/dim]"
            )
        self.console.print(line)
        self.console.print(f"  {mastery_bar(feedback.card.mastery)}")
        if feedback.show_reference:
            self.console.print(f"  [dim]Reference: {describe_pitch(feedback.item.pitch)}[/dim]")

    def session_summary(self, summary: SessionSummary) -> None:
        lines = [
            "[bold]Session Complete![/bold]",
            "",
            f"Score: {summary.correct}/{summary.total} ({summary.accuracy * 100:.0f}%)",
        ]
        for change in summary.mastery_changes:
            arrow = "[green]▲[/green]" if change.delta > 0 else "[red]▼[/red]"
            lines.append(f"  {arrow} {change.key}  {change.before * 100:.0f}% -> {change.after * 100:.0f}%")
        if summary.pending_unlocks:
            lines.append("")
            lines.append(f"[bold yellow]Ready to unlock:[/bold yellow] {', '.join(map(str, summary.pending_unlocks))}")
        self.console.print(Panel("\n".join(lines), title="Summary", border_style="green"))

    def unlocks_applied(self, domain: str, keys: list[CardKey]) -> None:
        self.console.print(f"[green]Unlocked in {domain}:[/green] {', '.join(map(str, keys))}")


def _build_trainer(interactive: bool = False) -> Trainer:
    settings = get_settings()
    store = build_store(settings)
    if interactive:
        return Trainer(
            store,
            audio=ConsolePlayer(console),
            sink=RichSink(console),
            default_session_size=settings.default_session_size,
        )
    return Trainer(store, sink=RichSink(console), default_session_size=settings.default_session_size)


def _domain_or_exit(trainer: Trainer, name: str) -> DomainState:
    try:
        return trainer.domain(name)
    except UnknownDomainError as exc:
        console.print(f"[red]{exc.args[0]}[/red]")
        raise typer.Exit(1) from exc


# =============================================================================
# Commands
# =============================================================================


@app.command()
def study(
    domain: str = typer.Option(
        "intervals",
        "--domain", "-d",
        help="Domain to practice: intervals, chords or progressions",
    ),
    size: Optional[int] = typer.Option(
        None,
        "--size", "-n",
        min=1,
        max=200,
        help="Number of questions (defaults to preferences)",
    ),
) -> None:
    """
    Start an interactive practice session.

    Each question is played first; type the item id to answer,
    'r' to replay, or 'q' to stop.
    """
    trainer = _build_trainer(interactive=True)
    state = _domain_or_exit(trainer, domain)

    console.print(f"\n[bold cyan]earwise[/bold cyan] - {state.config.title}", style="bold")
    console.print("=" * 40)

    runner = trainer.start_session(domain, size)
    if runner.total == 0:
        console.print("\n[yellow]Nothing to practice yet.[/yellow]")
        console.print("Unlock a card with 'earwise unlock' or check your variant filter.")
        raise typer.Exit(0)

    try:
        _run_interactive(trainer, runner, state)
    except KeyboardInterrupt:
        trainer.end_session()
        console.print("\n\n[yellow]Session interrupted.[/yellow]")

    summary = runner.summary
    if summary is None or not summary.pending_unlocks:
        return
    if Confirm.ask(f"Unlock {len(summary.pending_unlocks)} new card(s)?", default=True):
        trainer.confirm_unlocks(domain)
    else:
        trainer.defer_unlocks(domain)
        console.print("[dim]Deferred. You'll be asked again after your next session.[/dim]")


def _run_interactive(trainer: Trainer, runner: SessionRunner, state: DomainState) -> None:
    while runner.phase is not SessionPhase.ENDED:
        if runner.phase is SessionPhase.AWAITING_PLAYBACK:
            Prompt.ask("[dim]Press Enter to play[/dim]", default="", show_default=False)
            trainer.play_current()

        elif runner.phase is SessionPhase.AWAITING_ANSWER:
            choices = sorted({card.item_id for card in state.deck.active_cards()}, key=_catalog_order(state))
            console.print(f"[dim]Choices: {'  '.join(choices)}[/dim]")
            answer = Prompt.ask("Your answer").strip()
            if answer.lower() == "r":
                trainer.play_current()
            elif answer.lower() == "q":
                trainer.end_session()
            elif not state.config.has_item(answer):
                console.print(f"[yellow]Unknown answer '{answer}'.[/yellow]")
            else:
                trainer.submit_answer(answer)

        elif runner.phase is SessionPhase.SHOWING_FEEDBACK:
            choice = Prompt.ask("[dim]Enter for next, 'r' to replay, 'q' to stop[/dim]", default="", show_default=False)
            if choice.lower() == "r":
                trainer.play_current()
            elif choice.lower() == "q":
                trainer.end_session()
            else:
                trainer.advance()


def _catalog_order(state: DomainState):
    order = {item.id: position for position, item in enumerate(state.config.items)}
    return lambda item_id: order.get(item_id, len(order))


@app.command()
def progress(
    domain: str = typer.Option("intervals", "--domain", "-d", help="Domain to show"),
) -> None:
    """Show unlock tiers and per-card mastery."""
    trainer = _build_trainer()
    state = _domain_or_exit(trainer, domain)

    console.print(f"\n[bold cyan]{state.config.title}[/bold cyan]")
    console.print("=" * 40)

    table = Table()
    table.add_column("Tier")
    table.add_column("Card")
    table.add_column("Status")
    table.add_column("Mastery")
    table.add_column("Answers", justify="right")
    table.add_column("Next review")

    for tier in state.progression.tier_summary():
        tier_label = f"{tier.index} ({tier.tier.mastery_threshold * 100:.0f}%)"
        for card in tier.cards:
            status = "[dim]locked[/dim]" if card.is_locked else "[green]active[/green]"
            due = "" if card.is_locked else card.due_date.strftime("%Y-%m-%d %H:%M")
            table.add_row(
                tier_label,
                f"{card.item_id} {style_variant(card.variant)}",
                status,
                mastery_bar(card.mastery),
                str(card.total_answers),
                due,
            )
            tier_label = ""

    console.print(table)

    pending = trainer.pending_unlocks(domain)
    if pending:
        console.print(f"\n[bold yellow]Ready to unlock:[/bold yellow] {', '.join(map(str, pending))}")


@app.command()
def stats() -> None:
    """Show lifetime statistics and recent sessions."""
    trainer = _build_trainer()
    lifetime = trainer.stats

    console.print("\n[bold cyan]Practice Statistics[/bold cyan]")
    console.print("=" * 40)

    table = Table(show_header=False, box=None)
    table.add_column("Metric", style="dim")
    table.add_column("Value", style="bold")

    table.add_row("Sessions completed", str(lifetime.total_sessions))
    table.add_row("Questions answered", str(lifetime.total_questions))
    table.add_row("Accuracy", f"{lifetime.accuracy * 100:.1f}%")
    table.add_row("Current streak", f"{lifetime.current_streak} day(s)")
    table.add_row("Longest streak", f"{lifetime.longest_streak} day(s)")

    console.print(table)

    recent = list(lifetime.session_history)[-5:]
    if recent:
        console.print("\n[bold]Recent Sessions[/bold]")
        session_table = Table()
        session_table.add_column("Date")
        session_table.add_column("Domain")
        session_table.add_column("Score")
        session_table.add_column("Unlocks")

        for entry in reversed(recent):
            session_table.add_row(
                entry.finished_at.strftime("%Y-%m-%d %H:%M"),
                entry.domain,
                f"{entry.correct}/{entry.total} ({entry.accuracy * 100:.0f}%)",
                str(entry.pending_unlocks),
            )

        console.print(session_table)


@app.command()
def unlock(
    domain: str = typer.Argument(..., help="Domain name"),
    key: str = typer.Argument(..., help="Card as item or item:variant, e.g. P4 or P4:harmonic"),
) -> None:
    """Unlock a card regardless of tier progress."""
    trainer = _build_trainer()
    _domain_or_exit(trainer, domain)
    try:
        changed = trainer.manual_unlock(domain, key)
    except UnknownCardError as exc:
        console.print(f"[red]{exc.args[0]}[/red]")
        raise typer.Exit(1) from exc
    console.print("[green]Unlocked.[/green]" if changed else "[dim]Already unlocked.[/dim]")


@app.command()
def relock(
    domain: str = typer.Argument(..., help="Domain name"),
    key: str = typer.Argument(..., help="Card as item or item:variant"),
) -> None:
    """Remove a card from practice. Its history is kept."""
    trainer = _build_trainer()
    _domain_or_exit(trainer, domain)
    try:
        changed = trainer.manual_relock(domain, key)
    except UnknownCardError as exc:
        console.print(f"[red]{exc.args[0]}[/red]")
        raise typer.Exit(1) from exc
    console.print("[green]Locked.[/green]" if changed else "[dim]Already locked.[/dim]")


@app.command()
def prefs(
    size: Optional[int] = typer.Option(None, "--size", "-n", help="Questions per session (1-200)"),
    auto_play: Optional[bool] = typer.Option(None, "--auto-play/--no-auto-play", help="Play each question immediately"),
    auto_advance: Optional[bool] = typer.Option(
        None, "--auto-advance/--no-auto-advance", help="Skip feedback after correct answers"
    ),
    reference: Optional[str] = typer.Option(None, "--reference", help="Show reference on: always, wrong, never"),
    variant: Optional[str] = typer.Option(None, "--variant", help="Practice only this variant, or 'all'"),
) -> None:
    """Show or change preferences."""
    trainer = _build_trainer()

    changes = {
        "session_size": size,
        "auto_play": auto_play,
        "auto_advance": auto_advance,
        "show_reference_on": reference,
        "variant_filter": variant,
    }
    changes = {name: value for name, value in changes.items() if value is not None}
    if changes:
        try:
            trainer.update_preferences(**changes)
        except ValueError as exc:
            console.print(f"[red]{exc}[/red]")
            raise typer.Exit(1) from exc

    table = Table(show_header=False, box=None)
    table.add_column("Preference", style="dim")
    table.add_column("Value", style="bold")
    for name, value in trainer.preferences.to_dict().items():
        table.add_row(name, str(value))
    console.print(table)


@app.command("export")
def export_(path: Path = typer.Argument(..., help="File to write")) -> None:
    """Write all progress to a JSON file."""
    trainer = _build_trainer()
    try:
        path.write_text(trainer.export_bundle(), encoding="utf-8")
    except OSError as exc:
        console.print(f"[red]Could not write {path}: {exc}[/red]")
        raise typer.Exit(1) from exc
    console.print(f"[green]Exported to {path}[/green]")


@app.command("import")
def import_(
    path: Path = typer.Argument(..., help="Export file to read"),
    confirm: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
) -> None:
    """Replace all progress with the contents of an export file."""
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        console.print(f"[red]Could not read {path}: {exc}[/red]")
        raise typer.Exit(1) from exc

    if not confirm and not Confirm.ask("Replace ALL current progress?", default=False):
        raise typer.Exit(0)

    trainer = _build_trainer()
    try:
        imported = trainer.import_bundle(text)
    except InvalidBundleError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(1) from exc
    console.print(f"[green]Imported {', '.join(sorted(imported.domains))}.[/green]")


@app.command()
def reset(
    confirm: bool = typer.Option(
        False,
        "--yes", "-y",
        help="Skip confirmation",
    ),
) -> None:
    """Forget all progress, preferences and statistics."""
    if not confirm and not Confirm.ask("Reset ALL progress? This cannot be undone!", default=False):
        raise typer.Exit(0)

    trainer = _build_trainer()
    trainer.reset()
    console.print("[green]All progress has been reset.[/green]")


# =============================================================================
# Entry Point
# =============================================================================


def main() -> None:
    """CLI entry point."""
    settings = get_settings()

    # Configure logging
    logger.remove()
    logger.add(
        sys.stderr,
        level=settings.log_level,
        format="<level>{message}</level>",
    )
    if settings.log_file:
        logger.add(settings.log_file, level="DEBUG", rotation="1 MB", retention=3)

    try:
        app()
    except EarwiseError as exc:
        logger.debug(f"Command failed: {exc!r}")
        console.print(f"[red]{exc}[/red]")
        sys.exit(1)


if __name__ == "__main__":
    main()
