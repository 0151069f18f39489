import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional, Union

import duckdb

from ..exceptions import DatabaseConnectionError

logger = logging.getLogger(__name__)

MEMORY_PATH = ":memory:"


class ConnectionHandler:
    """Owns the single DuckDB connection used by a FlashdeckDatabase."""

    def __init__(self, db_path: Union[str, Path], read_only: bool = False):
        """
        Parameters:
            db_path: A file path, or ":memory:" (any case) for a transient
                in-memory database. File paths are resolved to absolute.
            read_only: Open the database in read-only mode.
        """
        if isinstance(db_path, str) and db_path.lower() == MEMORY_PATH:
            self.db_path_resolved = Path(MEMORY_PATH)
        else:
            self.db_path_resolved = Path(db_path).expanduser().resolve()
        logger.info(f"Store configured at: {self.db_path_resolved}")

        self.read_only: bool = read_only
        self._connection: Optional[duckdb.DuckDBPyConnection] = None
        self.is_new_db: bool = False

    @property
    def is_memory(self) -> bool:
        return str(self.db_path_resolved) == MEMORY_PATH

    def get_connection(self) -> duckdb.DuckDBPyConnection:
        """
        Return the open connection, opening it on first use.

        `is_new_db` is set when the database is in-memory or the file did not
        exist before this call, so callers know to create the schema.

        Raises:
            DatabaseConnectionError: If DuckDB cannot open the database.
        """
        if self._connection is not None:
            return self._connection

        try:
            if self.is_memory:
                self.is_new_db = True
            else:
                self.is_new_db = not self.db_path_resolved.exists()
                if not self.read_only:
                    self.db_path_resolved.parent.mkdir(
                        parents=True, exist_ok=True
                    )
            self._connection = duckdb.connect(
                database=str(self.db_path_resolved),
                read_only=self.read_only,
            )
            logger.debug(f"Opened DuckDB connection to {self.db_path_resolved}")
        except (duckdb.Error, OSError) as e:
            raise DatabaseConnectionError(
                f"Failed to connect to database: {e}", original_exception=e
            ) from e
        return self._connection

    @contextmanager
    def transaction(self) -> Iterator[duckdb.DuckDBPyConnection]:
        """
        Run a block inside BEGIN/COMMIT, rolling back if it raises.

        DuckDB errors propagate unchanged so callers can wrap them in the
        operation-specific exception.
        """
        conn = self.get_connection()
        with conn.cursor() as cursor:
            cursor.begin()
            try:
                yield cursor
            except Exception:
                try:
                    cursor.rollback()
                    logger.info("Transaction rolled back.")
                except duckdb.Error as rb_err:
                    logger.error(f"Failed to rollback transaction: {rb_err}")
                raise
            cursor.commit()

    def close_connection(self) -> None:
        """Close the connection if open; a later call reopens it."""
        if self._connection is None:
            return
        try:
            self._connection.close()
            logger.debug(f"Closed connection to {self.db_path_resolved}")
        except duckdb.Error as e:
            logger.error(f"Error closing the database connection: {e}")
        finally:
            self._connection = None

    def __enter__(self) -> duckdb.DuckDBPyConnection:
        return self.get_connection()

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close_connection()
