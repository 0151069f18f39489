"""
DuckDB persistence for flashdeck.

Implements FlashdeckDatabase, which serves as both the durable card-state
store (one JSON payload per deck category) and the append-only session log.
"""

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

import duckdb

from ..exceptions import (
    DatabaseConnectionError,
    DeckStateOperationError,
    MarshallingError,
    SessionLogOperationError,
)
from ..models import Card, ReviewSession
from . import db_utils
from .connection import ConnectionHandler
from .schema_manager import SchemaManager

logger = logging.getLogger(__name__)


def _rows_to_dicts(cursor: duckdb.DuckDBPyConnection) -> List[Dict[str, Any]]:
    """Convert cursor results to list of dictionaries using column names."""
    rows = cursor.fetchall()
    if not rows or cursor.description is None:
        return []
    columns = [desc[0] for desc in cursor.description]
    return [dict(zip(columns, row)) for row in rows]


class FlashdeckDatabase:
    """
    Facade over the DuckDB database holding deck state and the session log.

    Coordinates the ConnectionHandler, the SchemaManager and the marshalling
    helpers. Intended for use as a context manager.
    """

    def __init__(self, db_path: Union[str, Path], read_only: bool = False):
        """
        Args:
            db_path: Path to the database file, or ':memory:'.
            read_only: If True, open the database in read-only mode.
        """
        self._handler = ConnectionHandler(db_path=db_path, read_only=read_only)
        self._schema_manager = SchemaManager(self._handler)

    @property
    def db_path_resolved(self) -> Path:
        return self._handler.db_path_resolved

    @property
    def read_only(self) -> bool:
        return self._handler.read_only

    def get_connection(self) -> duckdb.DuckDBPyConnection:
        return self._handler.get_connection()

    def close_connection(self) -> None:
        self._handler.close_connection()

    def __enter__(self) -> "FlashdeckDatabase":
        """
        Open the connection, creating the schema when the database is new
        and writable.
        """
        self.get_connection()
        if self._handler.is_new_db and not self._handler.read_only:
            self.initialize_schema()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close_connection()

    def initialize_schema(self, force_recreate_tables: bool = False) -> None:
        self._schema_manager.initialize_schema(
            force_recreate_tables=force_recreate_tables
        )

    def _require_writable(self, action: str) -> None:
        if self.read_only:
            raise DatabaseConnectionError(
                f"Cannot {action} in read-only mode."
            )

    # --- Deck State Operations ---

    def load_cards(
        self, category_id: str, baseline: Sequence[Card]
    ) -> List[Card]:
        """
        Load a deck by merging its persisted state onto the baseline cards.

        Baseline front/back text always wins; favorite, difficulty and the
        schedule come from storage when present. If nothing is stored, or the
        stored payload is malformed, the baseline is returned unscheduled.

        Raises:
            DeckStateOperationError: If the database query itself fails.
        """
        baseline = list(baseline)
        conn = self.get_connection()
        try:
            row = conn.execute(
                "SELECT payload FROM deck_states WHERE category_id = $1",
                [category_id],
            ).fetchone()
        except duckdb.Error as e:
            logger.error(f"Error loading deck state for '{category_id}': {e}")
            raise DeckStateOperationError(
                f"Failed to load deck state: {e}", original_exception=e
            ) from e

        if row is None:
            logger.debug(f"No stored state for '{category_id}'; using baseline.")
            return baseline

        try:
            persisted = db_utils.payload_to_cards(row[0])
        except MarshallingError as e:
            logger.warning(
                f"Stored state for '{category_id}' is malformed; "
                f"falling back to baseline cards. ({e})"
            )
            return baseline

        merged = db_utils.merge_with_baseline(baseline, persisted)
        logger.info(
            f"Loaded deck '{category_id}': {len(merged)} cards, "
            f"{sum(1 for c in merged if not c.is_new)} scheduled."
        )
        return merged

    def save_cards(self, category_id: str, cards: Sequence[Card]) -> None:
        """
        Persist the full deck under `category_id`, replacing earlier state.

        Raises:
            DatabaseConnectionError: In read-only mode.
            DeckStateOperationError: If serialization or the write fails.
        """
        self._require_writable("save deck state")
        try:
            payload = db_utils.cards_to_payload(cards)
        except MarshallingError as e:
            raise DeckStateOperationError(
                f"Failed to serialize deck '{category_id}'.",
                original_exception=e,
            ) from e

        sql = """
        INSERT INTO deck_states (category_id, payload, updated_at)
        VALUES ($1, $2, $3)
        ON CONFLICT (category_id) DO UPDATE
        SET payload = excluded.payload, updated_at = excluded.updated_at;
        """
        updated_at = db_utils.to_db_timestamp(datetime.now(timezone.utc))
        try:
            with self._handler.transaction() as cursor:
                cursor.execute(sql, [category_id, payload, updated_at])
            logger.debug(f"Saved {len(cards)} cards for '{category_id}'.")
        except duckdb.Error as e:
            logger.error(f"Error saving deck state for '{category_id}': {e}")
            raise DeckStateOperationError(
                f"Failed to save deck state: {e}", original_exception=e
            ) from e

    def delete_deck_state(self, category_id: str) -> None:
        """Remove any stored state for a category."""
        self._require_writable("delete deck state")
        try:
            with self._handler.transaction() as cursor:
                cursor.execute(
                    "DELETE FROM deck_states WHERE category_id = $1",
                    [category_id],
                )
            logger.info(f"Deleted stored state for '{category_id}'.")
        except duckdb.Error as e:
            raise DeckStateOperationError(
                f"Failed to delete deck state: {e}", original_exception=e
            ) from e

    def get_category_ids(self) -> List[str]:
        """Categories that currently have stored state, sorted."""
        conn = self.get_connection()
        try:
            rows = conn.execute(
                "SELECT category_id FROM deck_states ORDER BY category_id"
            ).fetchall()
            return [row[0] for row in rows]
        except duckdb.Error as e:
            raise DeckStateOperationError(
                f"Failed to list stored decks: {e}", original_exception=e
            ) from e

    # --- Session Log Operations ---

    def append_session(self, session: ReviewSession) -> ReviewSession:
        """
        Append a ReviewSession to the log and assign its session_id.

        Raises:
            DatabaseConnectionError: In read-only mode.
            SessionLogOperationError: If marshalling or the insert fails.
        """
        self._require_writable("append session")
        try:
            params = db_utils.session_to_db_params_tuple(session)
        except MarshallingError as e:
            raise SessionLogOperationError(
                "Failed to prepare session data for database operation.",
                original_exception=e,
            ) from e

        sql = """
        INSERT INTO review_sessions (session_uuid, category, kind, started_at,
                                     ended_at, easy, medium, hard)
        VALUES ($1, $2, $3, $4, $5, $6, $7, $8)
        RETURNING session_id;
        """
        try:
            with self._handler.transaction() as cursor:
                cursor.execute(sql, list(params))
                result = cursor.fetchone()
                if not result:
                    raise SessionLogOperationError(
                        "Failed to retrieve session_id after insertion."
                    )
            session.session_id = result[0]
            logger.info(
                f"Logged {session.kind.value} session {session.session_uuid} "
                f"for '{session.category}' ({session.cards_reviewed} cards)."
            )
            return session
        except duckdb.Error as e:
            logger.error(f"Error appending session: {e}")
            raise SessionLogOperationError(
                f"Failed to append session: {e}", original_exception=e
            ) from e

    def load_sessions(
        self, category: Optional[str] = None
    ) -> List[ReviewSession]:
        """
        Return logged sessions in the order they were appended, optionally
        restricted to one category.
        """
        conn = self.get_connection()
        sql = "SELECT * FROM review_sessions"
        params: List[Any] = []
        if category is not None:
            sql += " WHERE category = $1"
            params.append(category)
        sql += " ORDER BY session_id ASC"

        try:
            cursor = conn.execute(sql, params)
            rows = _rows_to_dicts(cursor)
        except duckdb.Error as e:
            logger.error(f"Error loading sessions: {e}")
            raise SessionLogOperationError(
                f"Failed to load sessions: {e}", original_exception=e
            ) from e

        try:
            return [db_utils.db_row_to_session(row) for row in rows]
        except MarshallingError as e:
            raise SessionLogOperationError(
                "Failed to parse sessions from database.", original_exception=e
            ) from e

    def clear_sessions(self) -> None:
        self._require_writable("clear sessions")
        try:
            with self._handler.transaction() as cursor:
                cursor.execute("DELETE FROM review_sessions")
            logger.info("Cleared the session log.")
        except duckdb.Error as e:
            raise SessionLogOperationError(
                f"Failed to clear sessions: {e}", original_exception=e
            ) from e

    def clear_all(self) -> None:
        """Delete every stored deck and the whole session log."""
        self._require_writable("clear all data")
        try:
            with self._handler.transaction() as cursor:
                cursor.execute("DELETE FROM deck_states")
                cursor.execute("DELETE FROM review_sessions")
            logger.warning("Cleared all stored deck state and sessions.")
        except duckdb.Error as e:
            raise DeckStateOperationError(
                f"Failed to clear stored data: {e}", original_exception=e
            ) from e
