from typing import Optional


class DatabaseError(Exception):
    """Root of every failure raised by the deck-state and session-log stores.

    The driver exception that triggered it, if any, is kept on
    ``original_exception`` so callers can log it without re-raising.
    """

    def __init__(self, message: str, original_exception: Optional[Exception] = None):
        super().__init__(message)
        self.original_exception = original_exception


class DatabaseConnectionError(DatabaseError):
    """The DuckDB file could not be opened."""


class SchemaInitializationError(DatabaseError):
    """Creating or upgrading the tables failed."""


class DeckStateOperationError(DatabaseError):
    """Reading or writing the stored card state of a deck failed."""


class SessionLogOperationError(DatabaseError):
    """Appending to or reading the session log failed."""


class MarshallingError(DatabaseError):
    """A stored row could not be turned into a model, or the reverse."""
