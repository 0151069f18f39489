"""
Pydantic models and enums shared by the scheduler, the deck controller and
the durable stores.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional, Sequence
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .clock import ensure_utc

SCHEDULE_FIELDS = (
    "due_date",
    "interval",
    "ease_factor",
    "repetitions",
    "last_reviewed",
)


class Difficulty(str, Enum):
    """
    The three-level rating a user gives a card after seeing its answer.
    """

    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


class DeckFilter(str, Enum):
    """Subsets of a deck the presentation layer can browse."""

    ALL = "all"
    FAVORITES = "favorites"
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"
    DUE = "due"


class StudyMode(str, Enum):
    """States of the per-deck review flow."""

    BROWSING = "browsing"
    REVIEW_PROMPT = "review_prompt"
    HARD_REVIEW = "hard_review"
    SCOREBOARD = "scoreboard"


class SessionKind(str, Enum):
    DECK_PASS = "deck_pass"
    HARD_REVIEW = "hard_review"


class CardContent(BaseModel):
    """
    A card as authored in a deck file, before ids or scheduling are attached.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    front: str = Field(..., min_length=1, description="Question text.")
    back: str = Field(..., min_length=1, description="Answer text.")
    favorite: bool = Field(
        default=False, description="Initial favorite flag for the card."
    )


class Card(BaseModel):
    """
    A flashcard inside a loaded deck.

    A card is either fully new (no schedule fields) or fully scheduled
    (all of due_date, interval, ease_factor, repetitions, last_reviewed).
    Instances are immutable; updates produce a new Card.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: int = Field(
        ...,
        ge=1,
        description="1-based position of the card in its baseline deck.",
    )
    front: str = Field(..., description="Question text.")
    back: str = Field(..., description="Answer text.")
    favorite: bool = Field(
        default=False, description="User-toggled favorite flag."
    )
    difficulty: Optional[Difficulty] = Field(
        default=None,
        description="Most recent rating; None if never reviewed.",
    )
    due_date: Optional[datetime] = Field(
        default=None,
        description="UTC timestamp the card is next due; None for new cards.",
    )
    interval: Optional[int] = Field(
        default=None, ge=0, description="Current spacing interval in days."
    )
    ease_factor: Optional[float] = Field(
        default=None, gt=0, description="Interval growth multiplier."
    )
    repetitions: Optional[int] = Field(
        default=None,
        ge=0,
        description="Consecutive non-hard reviews since the last reset.",
    )
    last_reviewed: Optional[datetime] = Field(
        default=None, description="UTC timestamp of the last review."
    )

    @field_validator("due_date", "last_reviewed")
    @classmethod
    def normalize_timestamps(cls, v: Optional[datetime]) -> Optional[datetime]:
        """Store every timestamp as timezone-aware UTC."""
        return ensure_utc(v) if v is not None else None

    @model_validator(mode="after")
    def check_schedule_is_complete(self) -> "Card":
        present = [
            name for name in SCHEDULE_FIELDS if getattr(self, name) is not None
        ]
        if present and len(present) != len(SCHEDULE_FIELDS):
            missing = sorted(set(SCHEDULE_FIELDS) - set(present))
            raise ValueError(
                f"Card {self.id} has a partial schedule; missing {missing}."
            )
        return self

    @property
    def is_new(self) -> bool:
        return self.due_date is None


def build_deck(contents: Sequence[CardContent]) -> List[Card]:
    """Assign 1-based positional ids to baseline cards."""
    return [
        Card(
            id=index,
            front=content.front,
            back=content.back,
            favorite=content.favorite,
        )
        for index, content in enumerate(contents, start=1)
    ]


class ReviewSession(BaseModel):
    """
    Aggregate rating counts for one pass through a deck or one hard-card
    review loop. Flushed to the session log when the pass ends.
    """

    model_config = ConfigDict(validate_assignment=True, extra="forbid")

    session_id: Optional[int] = Field(
        default=None,
        description="Auto-incrementing PK from the session log (None if new).",
    )
    session_uuid: UUID = Field(default_factory=uuid.uuid4)
    category: str = Field(..., min_length=1)
    kind: SessionKind = Field(default=SessionKind.DECK_PASS)
    started_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    ended_at: Optional[datetime] = Field(default=None)
    easy: int = Field(default=0, ge=0)
    medium: int = Field(default=0, ge=0)
    hard: int = Field(default=0, ge=0)

    @field_validator("started_at", "ended_at")
    @classmethod
    def normalize_timestamps(cls, v: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(v) if v is not None else None

    @property
    def cards_reviewed(self) -> int:
        return self.easy + self.medium + self.hard

    @property
    def is_active(self) -> bool:
        return self.ended_at is None

    def record(self, rating: Difficulty) -> None:
        """Count one rating into the session."""
        rating = Difficulty(rating)
        setattr(self, rating.value, getattr(self, rating.value) + 1)

    def end_session(self, ts: Optional[datetime] = None) -> None:
        """Mark the session as ended."""
        if self.ended_at is None:
            self.ended_at = ensure_utc(ts) if ts else datetime.now(timezone.utc)
