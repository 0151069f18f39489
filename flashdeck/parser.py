import logging
from pathlib import Path
from typing import Dict, List, Tuple

import yaml
from pydantic import ValidationError

from .models import CardContent
from .yaml_models import (
    DeckDefinition,
    DeckFileError,
    DeckLoaderConfig,
    _RawYAMLDeckFile,
    sanitize_text,
)

logger = logging.getLogger(__name__)


def _read_yaml(file_path: Path) -> dict:
    try:
        content = file_path.read_text(encoding="utf-8")
        raw = yaml.safe_load(content)
    except FileNotFoundError:
        raise DeckFileError(file_path, "File not found.") from None
    except OSError as e:
        raise DeckFileError(file_path, f"Could not read file: {e}") from e
    except yaml.YAMLError as e:
        raise DeckFileError(file_path, f"Invalid YAML syntax: {e}") from e

    if not isinstance(raw, dict):
        raise DeckFileError(
            file_path, "Top level of YAML must be a dictionary (deck object)."
        )
    return raw


def load_deck_file(file_path: Path) -> DeckDefinition:
    """
    Parse and validate one deck file.

    Card text is stripped of HTML markup. Cards keep their authored order,
    which later determines their ids.

    Raises:
        DeckFileError: If the file is missing, unreadable, not valid YAML,
            or fails schema validation (the message names the field, and the
            card index when the problem is inside a card).
    """
    raw = _read_yaml(file_path)
    try:
        deck = _RawYAMLDeckFile.model_validate(raw)
    except ValidationError as e:
        details = e.errors()[0]
        loc = details["loc"]
        field = ".".join(map(str, loc))
        card_index = None
        snippet = None
        if len(loc) >= 2 and loc[0] == "cards" and isinstance(loc[1], int):
            card_index = loc[1]
            cards = raw.get("cards") or []
            if card_index < len(cards) and isinstance(cards[card_index], dict):
                snippet = str(cards[card_index].get("q", ""))[:50]
        raise DeckFileError(
            file_path,
            f"Validation error in field '{field}': {details['msg']}",
            card_index=card_index,
            card_question_snippet=snippet,
        ) from e

    contents: List[CardContent] = []
    for idx, entry in enumerate(deck.cards):
        front = sanitize_text(entry.q)
        back = sanitize_text(entry.a)
        if not front or not back:
            raise DeckFileError(
                file_path,
                "Card text is empty after removing markup.",
                card_index=idx,
                card_question_snippet=entry.q[:50],
            )
        contents.append(
            CardContent(front=front, back=back, favorite=entry.favorite)
        )

    logger.debug(
        f"Loaded deck '{deck.id}' with {len(contents)} cards from {file_path}"
    )
    return DeckDefinition(
        category_id=deck.id,
        name=deck.name,
        cards=contents,
        source_file=file_path,
    )


def load_deck_directory(
    config: DeckLoaderConfig,
) -> Tuple[List[DeckDefinition], List[DeckFileError]]:
    """
    Load every deck file under the configured directory.

    Returns:
        (decks, errors): decks sorted by category id, and one DeckFileError
        per file that could not be loaded or whose category id repeats an
        earlier file's.

    Raises:
        DeckFileError: The first error, when `config.fail_fast` is set.
    """
    source = config.source_directory
    if not source.exists():
        error = DeckFileError(source, f"Deck directory does not exist: {source}")
        if config.fail_fast:
            raise error
        return [], [error]

    files = sorted({p for pattern in config.patterns for p in source.rglob(pattern)})
    logger.info(f"Found {len(files)} deck files in {source}")

    decks: Dict[str, DeckDefinition] = {}
    errors: List[DeckFileError] = []
    for file_path in files:
        try:
            deck = load_deck_file(file_path)
            if deck.category_id in decks:
                raise DeckFileError(
                    file_path,
                    f"Duplicate deck id '{deck.category_id}' "
                    f"(already defined in {decks[deck.category_id].source_file}).",
                )
            decks[deck.category_id] = deck
        except DeckFileError as e:
            if config.fail_fast:
                raise
            errors.append(e)

    logger.info(
        f"Loaded {len(decks)} decks from {len(files)} files with {len(errors)} errors."
    )
    return [decks[key] for key in sorted(decks)], errors


def find_deck(
    config: DeckLoaderConfig, category_id: str
) -> Tuple[DeckDefinition, List[DeckFileError]]:
    """
    Locate a single deck by category id.

    Raises:
        DeckFileError: If no loaded deck has that id.
    """
    decks, errors = load_deck_directory(config)
    for deck in decks:
        if deck.category_id == category_id:
            return deck, errors
    raise DeckFileError(
        config.source_directory, f"No deck with id '{category_id}' found."
    )
