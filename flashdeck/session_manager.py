"""
Review-session bookkeeping for flashdeck.

The SessionManager owns the ReviewSession that is currently accumulating
ratings (one deck pass or one hard-card review loop) and flushes it to the
session log when the pass ends. Logging failures never interrupt studying:
they are caught and logged, and the session is simply not recorded.

compute_study_stats() reduces a session log to the simple aggregate counts
shown by the stats view.
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional, Set

from .clock import SystemClock
from .models import Difficulty, ReviewSession, SessionKind

logger = logging.getLogger(__name__)


@dataclass
class StudyStats:
    """Aggregate counts over a set of logged review sessions."""

    sessions_completed: int = 0
    cards_reviewed: int = 0
    easy: int = 0
    medium: int = 0
    hard: int = 0
    categories: Set[str] = field(default_factory=set)

    def percentage(self, rating: Difficulty) -> float:
        """Share of reviewed cards given `rating`, 0-100."""
        if self.cards_reviewed == 0:
            return 0.0
        count = getattr(self, Difficulty(rating).value)
        return round(count / self.cards_reviewed * 100, 1)


def compute_study_stats(sessions: Iterable[ReviewSession]) -> StudyStats:
    stats = StudyStats()
    for session in sessions:
        stats.sessions_completed += 1
        stats.cards_reviewed += session.cards_reviewed
        stats.easy += session.easy
        stats.medium += session.medium
        stats.hard += session.hard
        stats.categories.add(session.category)
    return stats


class SessionManager:
    """
    Manages the lifecycle of ReviewSession records for one deck category.

    The SessionManager can be used standalone or driven by the
    DeckStateController, which starts a deck-pass session on load and a
    hard-review session on entry to the hard-card loop.
    """

    def __init__(self, session_log, category: str, clock=None):
        """
        Parameters:
            session_log: Object providing `append_session(session)` and
                `load_sessions()`, normally a FlashdeckDatabase.
            category: Category recorded on every session.
            clock: Object with `now()`; defaults to SystemClock.
        """
        self.session_log = session_log
        self.category = category
        self.clock = clock or SystemClock()
        self.current_session: Optional[ReviewSession] = None

    @property
    def is_active(self) -> bool:
        return self.current_session is not None

    def start_session(self, kind: SessionKind) -> ReviewSession:
        """
        Begin accumulating a new session, discarding any unflushed one.
        """
        if self.current_session is not None:
            logger.debug(
                f"Discarding unflushed {self.current_session.kind.value} session "
                f"with {self.current_session.cards_reviewed} ratings."
            )
        self.current_session = ReviewSession(
            category=self.category,
            kind=kind,
            started_at=self.clock.now(),
        )
        return self.current_session

    def record_rating(self, rating: Difficulty) -> None:
        """
        Count a rating into the active session.

        Raises:
            ValueError: If no session is active or the rating is invalid.
        """
        if self.current_session is None:
            raise ValueError("No active session. Start a session first.")
        self.current_session.record(rating)

    def end_session(self) -> Optional[ReviewSession]:
        """
        Close the active session and append it to the session log.

        Sessions with no ratings are discarded, not logged. A failed append is
        logged and swallowed so studying can continue.

        Returns:
            The ended session if it had at least one rating, else None.
        """
        session = self.current_session
        self.current_session = None
        if session is None:
            return None
        if session.cards_reviewed == 0:
            logger.debug(f"Discarding empty {session.kind.value} session.")
            return None

        session.end_session(self.clock.now())
        try:
            self.session_log.append_session(session)
        except Exception as e:
            logger.error(
                f"Failed to record session {session.session_uuid} for "
                f"'{session.category}': {e}"
            )
        return session

    def discard_session(self) -> None:
        self.current_session = None

    def get_study_stats(self, all_categories: bool = True) -> StudyStats:
        """
        Aggregate the session log. If reading the log fails, empty stats are
        returned and the error is logged.
        """
        try:
            sessions = (
                self.session_log.load_sessions()
                if all_categories
                else self.session_log.load_sessions(category=self.category)
            )
        except Exception as e:
            logger.error(f"Failed to load study sessions: {e}")
            return StudyStats()
        return compute_study_stats(sessions)
