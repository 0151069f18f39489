# flashdeck/scheduler.py

"""
Defines the BaseScheduler abstract class and the SRSScheduler for flashdeck,
plus the pure helpers that select and order due cards.
"""

import datetime
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple, Union

from pydantic import BaseModel, Field, model_validator

from .clock import ensure_utc
from .constants import (
    DEFAULT_EASE_FACTOR,
    EASE_ADJUSTMENTS,
    HARD_INTERVAL_DAYS,
    MAXIMUM_INTERVAL_DAYS,
    MEDIUM_INTERVAL_MULTIPLIER,
    MINIMUM_EASE_FACTOR,
    SEED_INTERVALS_DAYS,
)
from .models import Card, Difficulty

logger = logging.getLogger(__name__)

_EARLIEST = datetime.datetime.min.replace(tzinfo=datetime.timezone.utc)


@dataclass
class SchedulerOutput:
    interval: int
    ease_factor: float
    repetitions: int
    due_date: datetime.datetime
    reviewed_at: datetime.datetime
    difficulty: Difficulty


class BaseScheduler(ABC):
    """
    Abstract base class for all schedulers in flashdeck.
    """

    @abstractmethod
    def compute_next_state(
        self,
        card: Card,
        rating: Union[Difficulty, str],
        review_ts: datetime.datetime,
    ) -> SchedulerOutput:
        """
        Computes the next schedule of a card from its current state and a new rating.

        Args:
            card: The Card being reviewed (new or previously scheduled).
            rating: The rating given for this review (easy, medium or hard).
            review_ts: The UTC timestamp of the review.

        Returns:
            A SchedulerOutput object containing the new schedule.

        Raises:
            ValueError: If the rating is not one of easy, medium, hard.
        """
        pass

    def calculate_next_review(
        self,
        card: Card,
        rating: Union[Difficulty, str],
        now: datetime.datetime,
    ) -> Card:
        """
        Return a new Card carrying the schedule computed for `rating` at `now`.

        The input card is never modified.
        """
        output = self.compute_next_state(card, rating, now)
        return card.model_copy(
            update={
                "difficulty": output.difficulty,
                "due_date": output.due_date,
                "interval": output.interval,
                "ease_factor": output.ease_factor,
                "repetitions": output.repetitions,
                "last_reviewed": output.reviewed_at,
            }
        )


class SchedulerConfig(BaseModel):
    """Configuration for the SRS Scheduler."""

    initial_ease_factor: float = Field(default=DEFAULT_EASE_FACTOR, gt=0)
    minimum_ease_factor: float = Field(default=MINIMUM_EASE_FACTOR, gt=0)
    hard_interval_days: int = Field(default=HARD_INTERVAL_DAYS, ge=1)
    seed_intervals_days: Tuple[int, ...] = Field(
        default_factory=lambda: tuple(SEED_INTERVALS_DAYS)
    )
    ease_adjustments: Dict[str, float] = Field(
        default_factory=lambda: dict(EASE_ADJUSTMENTS)
    )
    medium_interval_multiplier: float = Field(
        default=MEDIUM_INTERVAL_MULTIPLIER, ge=1.0
    )
    max_interval: int = Field(default=MAXIMUM_INTERVAL_DAYS, ge=1)

    @model_validator(mode="after")
    def check_ratings_and_seeds(self) -> "SchedulerConfig":
        ratings = [d.value for d in Difficulty]
        missing = [r for r in ratings if r not in self.ease_adjustments]
        if missing:
            raise ValueError(
                f"ease_adjustments is missing ratings: {', '.join(missing)}"
            )
        unknown = sorted(set(self.ease_adjustments) - set(ratings))
        if unknown:
            raise ValueError(
                f"ease_adjustments has unknown ratings: {', '.join(unknown)}"
            )
        if any(days < 1 for days in self.seed_intervals_days):
            raise ValueError("seed_intervals_days must all be at least 1 day")
        return self


class SRSScheduler(BaseScheduler):
    """
    Graduated-interval spaced repetition scheduler.

    "hard" resets the card to a short fixed interval, "medium" grows the
    interval moderately, and "easy" walks the seed intervals before growing
    by the card's ease factor.
    """

    def __init__(self, config: Optional[SchedulerConfig] = None):
        if config is None:
            config = SchedulerConfig()
        self.config = config

    def _validate_rating(self, rating: Union[Difficulty, str]) -> Difficulty:
        try:
            return Difficulty(rating)
        except ValueError:
            raise ValueError(
                f"Invalid rating: {rating!r}. Must be one of easy, medium, hard."
            ) from None

    def _next_ease(self, ease: float, rating: Difficulty) -> float:
        adjusted = ease + self.config.ease_adjustments[rating.value]
        return round(max(self.config.minimum_ease_factor, adjusted), 2)

    def _next_interval(
        self, previous: int, ease: float, repetitions: int, rating: Difficulty
    ) -> int:
        if rating is Difficulty.HARD:
            return self.config.hard_interval_days

        if rating is Difficulty.MEDIUM:
            grown = round(previous * self.config.medium_interval_multiplier)
            return max(previous + 1, grown)

        seeds = self.config.seed_intervals_days
        if repetitions <= len(seeds):
            return seeds[repetitions - 1]
        return max(previous + 1, round(previous * ease))

    def compute_next_state(
        self,
        card: Card,
        rating: Union[Difficulty, str],
        review_ts: datetime.datetime,
    ) -> SchedulerOutput:
        rating = self._validate_rating(rating)
        now = ensure_utc(review_ts)

        previous_interval = card.interval or 0
        ease = (
            card.ease_factor
            if card.ease_factor is not None
            else self.config.initial_ease_factor
        )
        repetitions = card.repetitions or 0

        if rating is Difficulty.HARD:
            repetitions = 0
        else:
            repetitions += 1

        interval = self._next_interval(
            previous_interval, ease, repetitions, rating
        )
        interval = min(interval, self.config.max_interval)

        output = SchedulerOutput(
            interval=interval,
            ease_factor=self._next_ease(ease, rating),
            repetitions=repetitions,
            due_date=now + datetime.timedelta(days=interval),
            reviewed_at=now,
            difficulty=rating,
        )
        logger.debug(
            f"Card {card.id} rated {rating.value}: interval "
            f"{previous_interval}->{output.interval}d, ease "
            f"{ease}->{output.ease_factor}, reps {output.repetitions}"
        )
        return output


_default_scheduler = SRSScheduler()


def calculate_next_review(
    card: Card,
    rating: Union[Difficulty, str],
    now: datetime.datetime,
) -> Card:
    """Schedule `card` with the default SRSScheduler configuration."""
    return _default_scheduler.calculate_next_review(card, rating, now)


def is_due(card: Card, now: datetime.datetime) -> bool:
    """New cards are always due; scheduled cards once due_date <= now."""
    if card.due_date is None:
        return True
    return card.due_date <= ensure_utc(now)


def get_due_cards(
    cards: Iterable[Card], now: datetime.datetime
) -> List[Card]:
    """
    Return the cards that are due at `now`, in their input order.
    """
    return [card for card in cards if is_due(card, now)]


def sort_cards_by_due_date(cards: Iterable[Card]) -> List[Card]:
    """
    Stable ascending sort by due_date with new cards first.

    Cards sharing a due date (or both lacking one) keep their relative order.
    """
    return sorted(
        cards,
        key=lambda card: (
            card.due_date is not None,
            card.due_date or _EARLIEST,
        ),
    )
