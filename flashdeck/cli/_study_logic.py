from pathlib import Path
from typing import Optional

from flashdeck.cli.study_ui import console, start_study_flow
from flashdeck.db.database import FlashdeckDatabase
from flashdeck.deck_controller import DeckStateController
from flashdeck.models import DeckFilter
from flashdeck.parser import find_deck
from flashdeck.yaml_models import DeckLoaderConfig


def study_logic(
    category_id: str,
    db_path: Path,
    decks_dir: Path,
    use_srs: bool = True,
    deck_filter: DeckFilter = DeckFilter.ALL,
    query: Optional[str] = None,
):
    """
    Load a deck, open the store and run the interactive study loop.

    Parameters:
        category_id (str): Id of the deck to study.
        db_path (Path): Path to the DuckDB database file.
        decks_dir (Path): Directory containing the YAML deck files.
        use_srs (bool): Whether ratings update the card schedule.
        deck_filter (DeckFilter): Initial subset of the deck to browse.
        query (Optional[str]): Initial search text.

    Raises:
        DeckFileError: If the deck cannot be found.
        DatabaseError: If the database cannot be opened.
    """
    deck, errors = find_deck(
        DeckLoaderConfig(source_directory=decks_dir), category_id
    )
    for error in errors:
        console.print(f"[yellow]Skipped deck file:[/yellow] {error}")

    with FlashdeckDatabase(db_path=db_path) as db:
        controller = DeckStateController(
            category_id=deck.category_id,
            baseline=deck.cards,
            store=db,
            use_srs=use_srs,
        )
        if deck_filter is not DeckFilter.ALL:
            controller.set_filter(deck_filter)
        if query:
            controller.set_query(query)
        start_study_flow(controller, deck.name)
