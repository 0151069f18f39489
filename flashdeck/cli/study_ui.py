"""
Terminal front end for studying a deck.

Reads the DeckStateController's view and cursor, renders with rich, and
turns keystrokes into controller actions.
"""

import logging
from datetime import datetime
from typing import Iterable, Optional

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from flashdeck.deck_controller import DeckStateController
from flashdeck.models import Card, Difficulty, ReviewSession, StudyMode

logger = logging.getLogger(__name__)
console = Console()

RATING_KEYS = {
    "e": Difficulty.EASY,
    "m": Difficulty.MEDIUM,
    "h": Difficulty.HARD,
}


def _read_choice(prompt: str, valid: Iterable[str]) -> str:
    """
    Prompt until the user types one of `valid` (case-insensitive).
    An empty answer is returned as "" when "" is in `valid`.
    """
    valid = set(valid)
    while True:
        answer = console.input(prompt).strip().lower()
        if answer in valid:
            return answer
        console.print("[bold red]Invalid choice. Please try again.[/bold red]")


def _due_text(card: Card, now: datetime) -> str:
    if card.due_date is None:
        return "new"
    days = (card.due_date.date() - now.date()).days
    if days <= 0:
        return "due now"
    return f"due in {days} days"


def _display_front(
    controller: DeckStateController, card: Card, position: int, total: int
) -> None:
    star = " ★" if card.favorite else ""
    subtitle = card.difficulty.value if card.difficulty else "unrated"
    if controller.use_srs:
        subtitle += f" · {_due_text(card, controller.clock.now())}"
    title = f"Card {position} of {total}{star}"
    if controller.mode is StudyMode.HARD_REVIEW:
        title = f"Hard review · {title}"
    console.print(
        Panel(
            Text(card.front),
            title=title,
            subtitle=subtitle,
            border_style="green",
        )
    )


def _display_back(card: Card) -> None:
    console.print(Panel(Text(card.back), title="Back", border_style="blue"))


def display_session_table(session: Optional[ReviewSession]) -> None:
    table = Table(title="Review Results")
    table.add_column("Rating", style="cyan")
    table.add_column("Cards", style="magenta")
    if session is None:
        table.add_row("Reviewed", "0")
    else:
        table.add_row("Easy", str(session.easy))
        table.add_row("Medium", str(session.medium))
        table.add_row("Hard", str(session.hard))
        table.add_row("Total", str(session.cards_reviewed))
    console.print(table)


def _handle_review_prompt(controller: DeckStateController) -> None:
    count = len(controller.hard_cards)
    console.print(
        f"[bold yellow]Pass complete. {count} card(s) are rated hard.[/bold yellow]"
    )
    choice = _read_choice("Review hard cards now? \\[y/n]: ", {"y", "n"})
    if choice == "y":
        controller.start_hard_review()
    else:
        controller.skip_hard_review()


def _handle_scoreboard(controller: DeckStateController) -> bool:
    """Returns False when the user wants to quit."""
    display_session_table(controller.last_session)
    choice = _read_choice(
        "\\[r] review hard cards again, \\[x] back to deck, \\[q] quit: ",
        {"r", "x", "q"},
    )
    if choice == "r":
        if not controller.start_hard_review():
            console.print("[green]Great job! No more hard cards to review.[/green]")
        return True
    controller.exit_scoreboard()
    return choice != "q"


def _study_card(controller: DeckStateController, card: Card) -> bool:
    """Show one card and apply the user's action. Returns False to quit."""
    view = controller.current_view()
    position = view.index(card) + 1 if card in view else 1
    _display_front(controller, card, position, len(view))

    action = _read_choice(
        "[italic]\\[Enter] reveal, \\[n]ext, \\[p]rev, "
        "\\[f]avorite, \\[q]uit: [/italic]",
        {"", "n", "p", "f", "q"},
    )
    if action == "q":
        return False
    if action == "n":
        controller.advance(1)
        return True
    if action == "p":
        controller.advance(-1)
        return True
    if action == "f":
        updated = controller.toggle_favorite(card.id)
        if updated is not None:
            state = "added to" if updated.favorite else "removed from"
            console.print(f"[yellow]Card {state} favorites.[/yellow]")
        return True

    _display_back(card)
    key = _read_choice(
        "[bold]Rating (\\[e]asy, \\[m]edium, \\[h]ard, \\[q]uit): [/bold]",
        set(RATING_KEYS) | {"q"},
    )
    if key == "q":
        return False

    updated = controller.rate_current(RATING_KEYS[key])
    if updated is not None and updated.due_date is not None:
        console.print(
            f"[green]Rated {updated.difficulty.value}.[/green] Next due on "
            f"{updated.due_date:%Y-%m-%d} ({updated.interval} days)."
        )
    elif updated is not None:
        console.print(f"[green]Rated {updated.difficulty.value}.[/green]")
    console.print("")
    return True


def start_study_flow(controller: DeckStateController, deck_name: str) -> None:
    """
    Runs the interactive study loop until the user quits or the view is
    empty. Any in-progress session is flushed on the way out.
    """
    progress = controller.progress
    console.print(
        f"[bold cyan]Studying {deck_name}[/bold cyan] · {progress['total']} cards, "
        f"{progress['due']} due, {progress['hard']} hard"
    )
    try:
        while True:
            if controller.mode is StudyMode.REVIEW_PROMPT:
                _handle_review_prompt(controller)
                continue
            if controller.mode is StudyMode.SCOREBOARD:
                if not _handle_scoreboard(controller):
                    break
                continue

            card = controller.current_card()
            if card is None:
                console.print("[bold yellow]No cards match this view.[/bold yellow]")
                break
            if not _study_card(controller, card):
                break
    finally:
        flushed = controller.finish_session()
        if flushed is not None:
            display_session_table(flushed)
    console.print("[bold cyan]Study session finished. Well done![/bold cyan]")
