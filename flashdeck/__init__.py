"""Flashdeck - a personal flashcard study tool with spaced-repetition scheduling."""

from .models import (
    Card,
    CardContent,
    DeckFilter,
    Difficulty,
    ReviewSession,
    SessionKind,
    StudyMode,
    build_deck,
)
from .scheduler import (
    SRSScheduler,
    SchedulerConfig,
    calculate_next_review,
    get_due_cards,
    sort_cards_by_due_date,
)
from .deck_controller import DeckStateController
from .clock import FixedClock, SystemClock
from .db import FlashdeckDatabase
from .parser import load_deck_directory, load_deck_file

__all__ = [
    "Card",
    "CardContent",
    "DeckFilter",
    "Difficulty",
    "ReviewSession",
    "SessionKind",
    "StudyMode",
    "build_deck",
    "SRSScheduler",
    "SchedulerConfig",
    "calculate_next_review",
    "get_due_cards",
    "sort_cards_by_due_date",
    "DeckStateController",
    "FixedClock",
    "SystemClock",
    "FlashdeckDatabase",
    "load_deck_directory",
    "load_deck_file",
]
