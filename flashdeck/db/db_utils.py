"""
Utility functions for data marshalling between Pydantic models and the
stored JSON/row formats.
This module keeps the core database logic free of conversion details.
"""

import json
import shutil
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

from pydantic import ValidationError

from ..clock import ensure_utc
from ..exceptions import MarshallingError
from ..models import Card, ReviewSession, SessionKind


def cards_to_payload(cards: Sequence[Card]) -> str:
    """
    Serialize a deck to the JSON text stored in `deck_states.payload`.

    Timestamps are written as ISO-8601 strings.
    """
    try:
        return json.dumps([card.model_dump(mode="json") for card in cards])
    except (TypeError, ValueError) as e:
        raise MarshallingError(
            f"Failed to serialize cards: {e}", original_exception=e
        ) from e


def payload_to_cards(payload: str) -> List[Card]:
    """
    Parse a stored deck payload back into Card models.

    Raises:
        MarshallingError: If the payload is not valid JSON, is not a list,
            or any entry violates the Card schema (including partial
            schedules).
    """
    try:
        raw = json.loads(payload)
    except (TypeError, json.JSONDecodeError) as e:
        raise MarshallingError(
            f"Stored deck payload is not valid JSON: {e}", original_exception=e
        ) from e

    if not isinstance(raw, list):
        raise MarshallingError(
            f"Stored deck payload must be a list, got {type(raw).__name__}."
        )

    try:
        return [Card.model_validate(entry) for entry in raw]
    except ValidationError as e:
        raise MarshallingError(
            f"Stored card failed validation: {e}", original_exception=e
        ) from e


def merge_with_baseline(
    baseline: Sequence[Card], persisted: Sequence[Card]
) -> List[Card]:
    """
    Overlay persisted card state onto the baseline deck.

    Cards are matched by id. Baseline front/back text always wins, since the
    baseline may have been edited; favorite, difficulty and schedule come from
    the persisted card. Baseline cards without a persisted match stay new, and
    persisted cards with no baseline counterpart are dropped.
    """
    stored_by_id: Dict[int, Card] = {card.id: card for card in persisted}
    merged: List[Card] = []
    for card in baseline:
        stored = stored_by_id.get(card.id)
        if stored is None:
            merged.append(card)
        else:
            merged.append(
                stored.model_copy(update={"front": card.front, "back": card.back})
            )
    return merged


def to_db_timestamp(ts: Optional[datetime]) -> Optional[datetime]:
    """Timestamps are stored as naive UTC in TIMESTAMP columns."""
    if ts is None:
        return None
    return ensure_utc(ts).replace(tzinfo=None)


def session_to_db_params_tuple(session: ReviewSession) -> Tuple:
    """
    Convert a ReviewSession into the parameter tuple for an insert, in column
    order (session_uuid, category, kind, started_at, ended_at, easy, medium,
    hard).
    """
    try:
        return (
            session.session_uuid,
            session.category,
            SessionKind(session.kind).value,
            to_db_timestamp(session.started_at),
            to_db_timestamp(session.ended_at),
            session.easy,
            session.medium,
            session.hard,
        )
    except (AttributeError, ValueError) as e:
        raise MarshallingError(
            f"Failed to marshal session {getattr(session, 'session_uuid', '?')}: {e}",
            original_exception=e,
        ) from e


def db_row_to_session(row_dict: Dict[str, Any]) -> ReviewSession:
    """
    Build a ReviewSession from a `review_sessions` row.

    Raises:
        MarshallingError: If the row does not satisfy the model.
    """
    try:
        return ReviewSession(**row_dict)
    except ValidationError as e:
        raise MarshallingError(
            f"Failed to parse session row: {e}", original_exception=e
        ) from e


def find_latest_backup(db_path: Path) -> Optional[Path]:
    """
    Locate the most recent backup in the "backups" directory next to
    `db_path`, or None if there is none.
    """
    backup_dir = db_path.parent / "backups"
    if not backup_dir.exists():
        return None

    backup_files = list(backup_dir.glob(f"{db_path.stem}-backup-*{db_path.suffix}"))
    if not backup_files:
        return None

    # Names embed the timestamp, so the lexical max is the newest.
    return max(backup_files, key=lambda p: p.name)


def backup_database(db_path: Path) -> Optional[Path]:
    """
    Copy the database file to a timestamped file under "backups".

    Returns:
        The backup path, or None when there is no database file to copy.
    """
    if not db_path.exists():
        return None

    backup_dir = db_path.parent / "backups"
    backup_dir.mkdir(exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d-%H%M%S-%f")
    backup_path = backup_dir / f"{db_path.stem}-backup-{timestamp}{db_path.suffix}"

    shutil.copy2(db_path, backup_path)
    return backup_path
