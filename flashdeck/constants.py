"""
Spaced-repetition scheduling constants.

This module contains the fixed parameters of the flashdeck scheduler.
No runtime configuration or path defaults - pure constants only.
"""
from typing import Dict, Tuple

# Ease factor assigned to a card on its first review.
DEFAULT_EASE_FACTOR: float = 2.5

# Floor for the ease factor. Keeps repeated "hard" ratings from collapsing
# intervals toward zero growth.
MINIMUM_EASE_FACTOR: float = 1.3

# Interval (days) applied after every "hard" rating.
HARD_INTERVAL_DAYS: int = 1

# Fixed intervals (days) for the first and second consecutive "easy" reviews.
# Multiplicative growth by the ease factor starts on the third.
SEED_INTERVALS_DAYS: Tuple[int, ...] = (1, 6)

# Ease factor change per rating, keyed by Difficulty value.
EASE_ADJUSTMENTS: Dict[str, float] = {
    "easy": 0.15,
    "medium": -0.05,
    "hard": -0.20,
}

# Growth multiplier for "medium" ratings (always at least +1 day).
MEDIUM_INTERVAL_MULTIPLIER: float = 1.2

# Upper bound on any scheduled interval.
MAXIMUM_INTERVAL_DAYS: int = 36500
