"""Database package for flashdeck.

Only FlashdeckDatabase is exported as the public API.
"""

from .database import FlashdeckDatabase

__all__ = ["FlashdeckDatabase"]
