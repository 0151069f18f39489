import logging

import duckdb

from ..exceptions import DatabaseConnectionError, SchemaInitializationError
from . import schema
from .connection import ConnectionHandler

logger = logging.getLogger(__name__)


class SchemaManager:
    """Creates, and on request recreates, the flashdeck tables."""

    def __init__(self, handler: ConnectionHandler):
        self._handler = handler

    def initialize_schema(self, force_recreate_tables: bool = False) -> None:
        """
        Create the schema inside a single transaction. Skipped for read-only
        file databases. `force_recreate_tables` drops all tables first, which
        deletes every stored deck and session.
        """
        if self._handler.read_only:
            if force_recreate_tables:
                raise DatabaseConnectionError(
                    "Cannot force_recreate_tables in read-only mode."
                )
            if not self._handler.is_memory:
                logger.warning(
                    "Attempting to initialize schema in read-only mode. Skipping."
                )
                return

        try:
            with self._handler.transaction() as cursor:
                if force_recreate_tables:
                    logger.warning(
                        f"Recreating tables in {self._handler.db_path_resolved}. "
                        "ALL EXISTING DATA WILL BE LOST."
                    )
                    cursor.execute(schema.DROP_TABLES_SQL)
                cursor.execute(schema.DB_SCHEMA_SQL)
            logger.info(
                f"Schema at {self._handler.db_path_resolved} initialized "
                "(or already exists)."
            )
        except duckdb.Error as e:
            logger.error(
                f"Error initializing schema at {self._handler.db_path_resolved}: {e}"
            )
            raise SchemaInitializationError(
                f"Failed to initialize schema: {e}", original_exception=e
            ) from e
