"""
CLI entry point for flashdeck.
"""

# Standard library imports
import logging
import shutil
from pathlib import Path
from typing import Optional, Tuple

# Third-party imports
import typer
from rich.console import Console
from rich.table import Table

# Local application imports
from flashdeck.clock import SystemClock
from flashdeck.config import get_settings
from flashdeck.db.database import FlashdeckDatabase
from flashdeck.db.db_utils import backup_database, find_latest_backup
from flashdeck.deck_controller import DeckStateController
from flashdeck.exceptions import DatabaseError
from flashdeck.models import DeckFilter, Difficulty, build_deck
from flashdeck.parser import find_deck, load_deck_directory
from flashdeck.scheduler import get_due_cards
from flashdeck.session_manager import StudyStats, compute_study_stats
from flashdeck.yaml_models import (
    DeckDefinition,
    DeckFileError,
    DeckLoaderConfig,
)
from flashdeck.cli._study_logic import study_logic


console = Console()

app = typer.Typer(
    name="flashdeck",
    help="Flashdeck: flashcard decks with spaced-repetition scheduling.",
    add_completion=False,
    rich_markup_mode="markdown",
)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


# ---------------------------------------------------------------------------
# Option resolution (CLI flag > FLASHDECK_* settings)
# ---------------------------------------------------------------------------


def _resolve_db_path(db: Optional[Path]) -> Path:
    return db if db is not None else get_settings().db_path


def _resolve_decks_dir(decks_dir: Optional[Path]) -> Path:
    return decks_dir if decks_dir is not None else get_settings().decks_dir


# Common typer options reused across commands
_db_option = typer.Option(  # noqa: B008
    None,
    "--db",
    help="Path to the DuckDB database file. "
    "Falls back to FLASHDECK_DB_PATH.",
)

_decks_dir_option = typer.Option(  # noqa: B008
    None,
    "--decks-dir",
    help="Directory containing YAML deck files. "
    "Falls back to FLASHDECK_DECKS_DIR.",
)


@app.callback()
def configure(
    log_level: Optional[str] = typer.Option(  # noqa: B008
        None,
        "--log-level",
        help="Logging level (DEBUG, INFO, WARNING, ERROR). "
        "Falls back to FLASHDECK_LOG_LEVEL.",
    ),
):
    """Configure logging before any command runs."""
    level_name = (log_level or get_settings().log_level).upper()
    level = logging.getLevelName(level_name)
    if not isinstance(level, int):
        console.print(
            f"[bold red]Error: unknown log level '{level_name}'.[/bold red]"
        )
        raise typer.Exit(code=1)
    logging.basicConfig(level=level, format=LOG_FORMAT)
    logging.getLogger().setLevel(level)


# ---------------------------------------------------------------------------
# Deck listing
# ---------------------------------------------------------------------------


def _deck_counts(
    db: FlashdeckDatabase, deck: DeckDefinition
) -> Tuple[int, int, int]:
    """Return (card_count, due_count, hard_count) for a deck."""
    cards = db.load_cards(deck.category_id, build_deck(deck.cards))
    due = get_due_cards(cards, SystemClock().now())
    hard = sum(1 for card in cards if card.difficulty is Difficulty.HARD)
    return len(cards), len(due), hard


def _load_decks_or_exit(decks_dir: Path):
    decks, errors = load_deck_directory(
        DeckLoaderConfig(source_directory=decks_dir)
    )
    if errors:
        console.print(
            "[bold red]Errors encountered while loading decks:[/bold red]"
        )
        for error in errors:
            console.print(f"- {error}")
    if not decks:
        if errors:
            raise typer.Exit(code=1)
        console.print(f"[yellow]No decks found in {decks_dir}.[/yellow]")
        raise typer.Exit(code=0)
    return decks


@app.command()
def decks(
    db: Optional[Path] = _db_option,
    decks_dir: Optional[Path] = _decks_dir_option,
):
    """List the available decks with their card, due and hard counts."""
    db_path = _resolve_db_path(db)
    all_decks = _load_decks_or_exit(_resolve_decks_dir(decks_dir))

    try:
        with FlashdeckDatabase(db_path=db_path) as db_inst:
            table = Table(title="Decks")
            table.add_column("Id", style="cyan")
            table.add_column("Name")
            table.add_column("Cards", style="magenta")
            table.add_column("Due", style="yellow")
            table.add_column("Hard", style="red")
            for deck in all_decks:
                total, due, hard = _deck_counts(db_inst, deck)
                table.add_row(
                    deck.category_id,
                    deck.name,
                    str(total),
                    str(due),
                    str(hard),
                )
            console.print(table)
    except DatabaseError as e:
        console.print(f"[bold red]Store error:[/bold red] {e}")
        raise typer.Exit(code=1) from e


# ---------------------------------------------------------------------------
# Study command
# ---------------------------------------------------------------------------


@app.command()
def study(
    category: str = typer.Argument(  # noqa: B008
        ..., help="Id of the deck to study."
    ),
    db: Optional[Path] = _db_option,
    decks_dir: Optional[Path] = _decks_dir_option,
    srs: Optional[bool] = typer.Option(  # noqa: B008
        None,
        "--srs/--no-srs",
        help="Schedule cards with spaced repetition. "
        "Falls back to FLASHDECK_USE_SRS.",
    ),
    deck_filter: DeckFilter = typer.Option(  # noqa: B008
        DeckFilter.ALL,
        "--filter",
        case_sensitive=False,
        help="Only show this subset of the deck.",
    ),
    search: Optional[str] = typer.Option(  # noqa: B008
        None,
        "--search",
        help="Only show cards whose front or back contains this text.",
    ),
):
    """Starts an interactive study session for the specified deck."""
    db_path = _resolve_db_path(db)
    use_srs = srs if srs is not None else get_settings().use_srs
    try:
        study_logic(
            category_id=category,
            db_path=db_path,
            decks_dir=_resolve_decks_dir(decks_dir),
            use_srs=use_srs,
            deck_filter=deck_filter,
            query=search,
        )
    except DeckFileError as e:
        console.print(f"[bold red]Error: {e}[/bold red]")
        raise typer.Exit(code=1) from e
    except DatabaseError as e:
        console.print(f"[bold red]Store error:[/bold red] {e}")
        raise typer.Exit(code=1) from e
    except Exception as e:
        console.print(f"[bold red]Study aborted:[/bold red] {e}")
        raise typer.Exit(code=1) from e


# ---------------------------------------------------------------------------
# Stats
# ---------------------------------------------------------------------------


def _display_study_stats(cons: Console, stats: StudyStats):
    table = Table(title="Study Statistics", show_header=False)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="magenta")
    table.add_row("Sessions Completed", str(stats.sessions_completed))
    table.add_row("Cards Reviewed", str(stats.cards_reviewed))
    for rating in Difficulty:
        count = getattr(stats, rating.value)
        table.add_row(
            rating.value.capitalize(),
            f"{count} ({stats.percentage(rating)}%)",
        )
    table.add_row("Decks Studied", ", ".join(sorted(stats.categories)))
    cons.print(table)


@app.command()
def stats(
    db: Optional[Path] = _db_option,
    category: Optional[str] = typer.Option(  # noqa: B008
        None, "--category", "-c", help="Only count sessions of this deck."
    ),
):
    """Display aggregate statistics over the logged study sessions."""
    db_path = _resolve_db_path(db)
    try:
        with FlashdeckDatabase(db_path=db_path) as db_inst:
            sessions = db_inst.load_sessions(category=category)
    except DatabaseError as e:
        console.print(f"[bold red]Store error:[/bold red] {e}")
        raise typer.Exit(code=1) from e

    if not sessions:
        console.print("[yellow]No study sessions recorded yet.[/yellow]")
        return
    _display_study_stats(console, compute_study_stats(sessions))


# ---------------------------------------------------------------------------
# Reset commands
# ---------------------------------------------------------------------------


@app.command()
def reset(
    category: str = typer.Argument(  # noqa: B008
        ..., help="Id of the deck to reset."
    ),
    db: Optional[Path] = _db_option,
    decks_dir: Optional[Path] = _decks_dir_option,
    yes: bool = typer.Option(
        False, "--yes", "-y", help="Skip the confirmation prompt."
    ),
):
    """Return every card of a deck to the new state. Favorites are kept."""
    db_path = _resolve_db_path(db)
    try:
        deck, _ = find_deck(
            DeckLoaderConfig(source_directory=_resolve_decks_dir(decks_dir)),
            category,
        )
    except DeckFileError as e:
        console.print(f"[bold red]Error: {e}[/bold red]")
        raise typer.Exit(code=1) from e

    if not yes:
        confirmed = typer.confirm(
            f"Reset all scheduling for '{deck.name}'?"
        )
        if not confirmed:
            console.print("Reset cancelled.")
            raise typer.Exit()

    try:
        with FlashdeckDatabase(db_path=db_path) as db_inst:
            controller = DeckStateController(
                category_id=deck.category_id,
                baseline=deck.cards,
                store=db_inst,
            )
            controller.reset_deck()
    except DatabaseError as e:
        console.print(f"[bold red]Store error:[/bold red] {e}")
        raise typer.Exit(code=1) from e

    console.print(
        f"[bold green]Deck '{deck.category_id}' reset "
        f"({len(deck.cards)} cards).[/bold green]"
    )


@app.command("reset-all")
def reset_all(
    db: Optional[Path] = _db_option,
    yes: bool = typer.Option(
        False, "--yes", "-y", help="Skip the confirmation prompt."
    ),
):
    """Back up the database, then delete all deck state and study sessions."""
    db_path = _resolve_db_path(db)
    if not yes:
        confirmed = typer.confirm(
            "Delete ALL stored deck state and study sessions?"
        )
        if not confirmed:
            console.print("Reset cancelled.")
            raise typer.Exit()

    try:
        backup_path = backup_database(db_path)
        if backup_path is not None:
            console.print(f"Database backed up to: [dim]{backup_path}[/dim]")
        with FlashdeckDatabase(db_path=db_path) as db_inst:
            db_inst.clear_all()
    except DatabaseError as e:
        console.print(f"[bold red]Store error:[/bold red] {e}")
        raise typer.Exit(code=1) from e
    except OSError as e:
        console.print(
            f"[bold red]Could not back up the database: {e}[/bold red]"
        )
        raise typer.Exit(code=1) from e

    console.print("[bold green]All stored data cleared.[/bold green]")


# ---------------------------------------------------------------------------
# Restore command
# ---------------------------------------------------------------------------


@app.command()
def restore(
    db: Optional[Path] = _db_option,
    yes: bool = typer.Option(
        False, "--yes", "-y", help="Skip the confirmation prompt."
    ),
):
    """Replace the database with the newest file in the backups directory."""
    db_path = _resolve_db_path(db)
    latest_backup = find_latest_backup(db_path)
    if not latest_backup:
        console.print("[bold red]Error: No backup files found.[/bold red]")
        raise typer.Exit(code=1)

    console.print(f"Latest backup: [cyan]{latest_backup.name}[/cyan]")
    if not yes:
        confirmed = typer.confirm(
            "Overwrite the current database with this backup?"
        )
        if not confirmed:
            console.print("Restore cancelled.")
            raise typer.Exit()

    try:
        shutil.copy2(latest_backup, db_path)
    except OSError as e:
        console.print(f"[bold red]Restore failed: {e}[/bold red]")
        raise typer.Exit(code=1) from e
    console.print(
        f"[bold green]Database restored from {latest_backup.name}[/bold green]"
    )


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main():
    """Run the CLI application, exiting with status 1 on unexpected errors."""
    try:
        app()
    except Exception as e:
        console.print(f"[bold red]flashdeck crashed: {e}[/bold red]")
        raise SystemExit(1)


if __name__ == "__main__":
    main()
