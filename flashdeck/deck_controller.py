"""
This module defines the DeckStateController, which owns the authoritative
in-memory card list for one deck category. It applies ratings through the
scheduler, derives the filtered, due and hard-card views, sequences the
review flow (Browsing -> ReviewPrompt -> HardReview -> Scoreboard), and
persists the deck after every mutation.
"""

import logging
from typing import Dict, List, Optional, Sequence, Union

from .clock import SystemClock
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
    BaseScheduler,
    SRSScheduler,
    get_due_cards,
    sort_cards_by_due_date,
)
from .session_manager import SessionManager

logger = logging.getLogger(__name__)

BaselineCards = Sequence[Union[CardContent, Card]]


def _to_contents(baseline: BaselineCards) -> List[CardContent]:
    return [
        item
        if isinstance(item, CardContent)
        else CardContent(front=item.front, back=item.back, favorite=item.favorite)
        for item in baseline
    ]


class DeckStateController:
    """
    Manages the study state of a single deck.

    This class is responsible for:
    - Loading the deck from the durable store, merged onto the baseline cards.
    - Applying ratings (scheduled when SRS is on, difficulty-only when off).
    - Deriving the filtered/searched view the presentation layer shows.
    - Driving the review-flow state machine and its session bookkeeping.
    - Persisting the deck after every change; store failures are logged and
      the in-memory deck stays authoritative.
    """

    def __init__(
        self,
        category_id: str,
        baseline: BaselineCards,
        store,
        clock=None,
        use_srs: bool = True,
        scheduler: Optional[BaseScheduler] = None,
    ):
        """
        Create a controller for `category_id` and load its deck.

        Parameters:
            category_id (str): Key the deck is persisted under.
            baseline: The authored cards (CardContent or Card values), in
                deck order. Ids are assigned 1..n by position.
            store: Durable store providing load_cards/save_cards,
                delete_deck_state, append_session/load_sessions and
                clear_sessions (normally a FlashdeckDatabase).
            clock: Object with `now()`; defaults to SystemClock.
            use_srs (bool): Whether ratings update the schedule.
            scheduler (BaseScheduler): Defaults to SRSScheduler().
        """
        self.category_id = category_id
        self.store = store
        self.clock = clock or SystemClock()
        self.scheduler = scheduler or SRSScheduler()
        self.use_srs = use_srs

        self._baseline: List[CardContent] = _to_contents(baseline)
        self._cards: List[Card] = self._load_cards()

        self.mode: StudyMode = StudyMode.BROWSING
        self.cursor: int = 0
        self.filter: DeckFilter = DeckFilter.ALL
        self.query: str = ""
        self._hard_queue: List[int] = []
        self.last_session: Optional[ReviewSession] = None

        self.sessions = SessionManager(store, category_id, clock=self.clock)
        self._begin_deck_pass()

    # --- Loading & persistence ---

    def _load_cards(self) -> List[Card]:
        baseline_cards = build_deck(self._baseline)
        try:
            return list(self.store.load_cards(self.category_id, baseline_cards))
        except Exception as e:
            logger.error(
                f"Failed to load stored state for '{self.category_id}'; "
                f"using baseline cards: {e}"
            )
            return baseline_cards

    def _persist(self) -> None:
        try:
            self.store.save_cards(self.category_id, self._cards)
        except Exception as e:
            logger.error(
                f"Failed to save deck '{self.category_id}'; continuing with "
                f"in-memory state: {e}"
            )

    # --- Derived state ---

    @property
    def cards(self) -> tuple:
        return tuple(self._cards)

    @property
    def hard_cards(self) -> List[Card]:
        return [c for c in self._cards if c.difficulty is Difficulty.HARD]

    @property
    def due_cards(self) -> List[Card]:
        return sort_cards_by_due_date(get_due_cards(self._cards, self.clock.now()))

    @property
    def hard_review_queue(self) -> List[Card]:
        """Cards still waiting in the current hard-review pass."""
        by_id = {c.id: c for c in self._cards}
        return [by_id[card_id] for card_id in self._hard_queue if card_id in by_id]

    @property
    def progress(self) -> Dict[str, int]:
        """Aggregate counts for the whole deck."""
        return {
            "total": len(self._cards),
            "reviewed": sum(1 for c in self._cards if c.difficulty is not None),
            "easy": sum(1 for c in self._cards if c.difficulty is Difficulty.EASY),
            "medium": sum(
                1 for c in self._cards if c.difficulty is Difficulty.MEDIUM
            ),
            "hard": len(self.hard_cards),
            "favorites": sum(1 for c in self._cards if c.favorite),
            "due": len(get_due_cards(self._cards, self.clock.now())),
        }

    def filtered_view(
        self,
        filter: Optional[Union[DeckFilter, str]] = None,
        query: Optional[str] = None,
        use_srs: Optional[bool] = None,
    ) -> List[Card]:
        """
        Derive the list of cards matching a filter and a search query.

        Arguments left as None fall back to the controller's current filter,
        query and SRS setting. The `due` filter yields nothing when SRS is
        off; otherwise it returns due cards sorted by due date. The query is a
        case-insensitive substring match against front or back.
        """
        deck_filter = DeckFilter(filter) if filter is not None else self.filter
        text = self.query if query is None else query
        srs = self.use_srs if use_srs is None else use_srs

        if deck_filter is DeckFilter.ALL:
            view = list(self._cards)
        elif deck_filter is DeckFilter.FAVORITES:
            view = [c for c in self._cards if c.favorite]
        elif deck_filter is DeckFilter.DUE:
            view = get_due_cards(self._cards, self.clock.now()) if srs else []
        else:
            wanted = Difficulty(deck_filter.value)
            view = [c for c in self._cards if c.difficulty is wanted]

        needle = text.strip().lower()
        if needle:
            view = [
                c
                for c in view
                if needle in c.front.lower() or needle in c.back.lower()
            ]

        if deck_filter is DeckFilter.DUE and srs:
            return sort_cards_by_due_date(view)
        return view

    def current_view(self) -> List[Card]:
        if self.mode is StudyMode.HARD_REVIEW:
            return self.hard_review_queue
        return self.filtered_view()

    def current_card(self) -> Optional[Card]:
        view = self.current_view()
        if not view:
            return None
        return view[self.cursor] if self.cursor < len(view) else view[0]

    def _is_full_pass_view(self) -> bool:
        return self.filter is DeckFilter.ALL and not self.query.strip()

    # --- Card mutations ---

    def _index_of(self, card_id: int) -> Optional[int]:
        for index, card in enumerate(self._cards):
            if card.id == card_id:
                return index
        return None

    def apply_rating(
        self, card_id: int, rating: Union[Difficulty, str]
    ) -> Optional[Card]:
        """
        Rate a card by id and store the result.

        With SRS on the scheduler computes the new schedule; with SRS off only
        `difficulty` changes. Unknown ids are ignored.

        Returns:
            The updated Card, or None if `card_id` is not in the deck.

        Raises:
            ValueError: If `rating` is not easy, medium or hard.
        """
        rating = Difficulty(rating)
        index = self._index_of(card_id)
        if index is None:
            logger.debug(f"Ignoring rating for unknown card id {card_id}.")
            return None

        card = self._cards[index]
        if self.use_srs:
            updated = self.scheduler.calculate_next_review(
                card, rating, self.clock.now()
            )
        else:
            updated = card.model_copy(update={"difficulty": rating})

        self._cards[index] = updated
        logger.debug(
            f"Card {card_id} in '{self.category_id}' rated {rating.value}"
            + (f", next due {updated.due_date:%Y-%m-%d}" if updated.due_date else "")
        )
        self._persist()
        return updated

    def toggle_favorite(self, card_id: int) -> Optional[Card]:
        index = self._index_of(card_id)
        if index is None:
            logger.debug(f"Ignoring favorite toggle for unknown card id {card_id}.")
            return None
        card = self._cards[index]
        updated = card.model_copy(update={"favorite": not card.favorite})
        self._cards[index] = updated
        self._persist()
        return updated

    def rate_current(self, rating: Union[Difficulty, str]) -> Optional[Card]:
        """
        Rate the card under the cursor and move the flow along.

        Browsing: the rating is counted into the deck-pass session and the
        cursor advances (if the card dropped out of the view, the cursor stays
        on the card that took its place). HardReview: the card leaves the
        queue whatever its new rating; an empty queue ends on the Scoreboard.
        Any other mode, or an empty view, is a no-op.
        """
        rating = Difficulty(rating)
        if self.mode is StudyMode.BROWSING:
            return self._rate_while_browsing(rating)
        if self.mode is StudyMode.HARD_REVIEW:
            return self._rate_hard_review_card(rating)
        return None

    def _rate_while_browsing(self, rating: Difficulty) -> Optional[Card]:
        card = self.current_card()
        if card is None:
            return None
        self.cursor = self.current_view().index(card)

        updated = self.apply_rating(card.id, rating)
        if not self.sessions.is_active:
            self._begin_deck_pass()
        self.sessions.record_rating(rating)

        view = self.current_view()
        if any(c.id == card.id for c in view):
            self.advance(1)
        elif self.cursor >= len(view):
            self.cursor = 0
        return updated

    def _rate_hard_review_card(self, rating: Difficulty) -> Optional[Card]:
        if not self._hard_queue:
            return None
        position = min(self.cursor, len(self._hard_queue) - 1)
        card_id = self._hard_queue[position]

        updated = self.apply_rating(card_id, rating)
        self.sessions.record_rating(rating)
        self._hard_queue.pop(position)

        if not self._hard_queue:
            self._show_scoreboard()
        elif position >= len(self._hard_queue):
            self.cursor = len(self._hard_queue) - 1
        else:
            self.cursor = position
        return updated

    # --- Navigation ---

    def advance(self, direction: int = 1) -> None:
        """
        Move the cursor forward (direction > 0) or back (direction < 0),
        wrapping around the current view.

        Wrapping forward past the end of an unfiltered, unsearched Browsing
        pass completes the pass; if any card is rated hard the flow moves to
        ReviewPrompt instead of wrapping.
        """
        if direction == 0:
            return
        if self.mode not in (StudyMode.BROWSING, StudyMode.HARD_REVIEW):
            return
        size = len(self.current_view())
        if size == 0:
            return

        if direction < 0 or self.mode is StudyMode.HARD_REVIEW:
            step = 1 if direction > 0 else -1
            self.cursor = (self.cursor + step) % size
            return

        next_index = (self.cursor + 1) % size
        if next_index == 0 and self._is_full_pass_view():
            self._complete_deck_pass()
            if self.hard_cards:
                self.mode = StudyMode.REVIEW_PROMPT
                logger.info(
                    f"Pass through '{self.category_id}' complete; "
                    f"{len(self.hard_cards)} hard cards to review."
                )
                return
        self.cursor = next_index

    def set_filter(self, deck_filter: Union[DeckFilter, str]) -> None:
        self.filter = DeckFilter(deck_filter)
        self.cursor = 0

    def set_query(self, query: Optional[str]) -> None:
        self.query = query or ""
        self.cursor = 0

    def set_use_srs(self, enabled: bool) -> None:
        """Switch scheduling on or off. Recorded difficulties are kept."""
        self.use_srs = bool(enabled)
        if self.cursor >= len(self.current_view()):
            self.cursor = 0

    # --- Review flow ---

    def _begin_deck_pass(self) -> None:
        self.sessions.start_session(SessionKind.DECK_PASS)

    def _complete_deck_pass(self) -> None:
        self.sessions.end_session()
        self._begin_deck_pass()

    def _return_to_browsing(self) -> None:
        self.mode = StudyMode.BROWSING
        self.cursor = 0
        self._hard_queue = []
        self._begin_deck_pass()

    def _show_scoreboard(self) -> None:
        self.last_session = self.sessions.end_session()
        self.mode = StudyMode.SCOREBOARD
        self.cursor = 0
        logger.info(
            f"Hard review of '{self.category_id}' finished: "
            f"{self.last_session.cards_reviewed if self.last_session else 0} cards."
        )

    def start_hard_review(self) -> bool:
        """
        Enter HardReview over a snapshot of the cards currently rated hard.

        Allowed from Browsing, ReviewPrompt and Scoreboard (where it means
        "review hard cards again" with a freshly computed set).

        Returns:
            False, and returns to Browsing, when no card is rated hard.
        """
        if self.mode is StudyMode.HARD_REVIEW:
            return True

        hard_ids = [c.id for c in self.hard_cards]
        if not hard_ids:
            logger.info(f"No hard cards to review in '{self.category_id}'.")
            if self.mode is not StudyMode.BROWSING:
                self._return_to_browsing()
            return False

        if self.mode is StudyMode.BROWSING:
            self.sessions.end_session()

        self._hard_queue = hard_ids
        self.cursor = 0
        self.last_session = None
        self.mode = StudyMode.HARD_REVIEW
        self.sessions.start_session(SessionKind.HARD_REVIEW)
        return True

    def skip_hard_review(self) -> None:
        """Decline the ReviewPrompt and start a fresh unfiltered pass."""
        if self.mode is not StudyMode.REVIEW_PROMPT:
            return
        self.mode = StudyMode.BROWSING
        self.cursor = 0
        self.filter = DeckFilter.ALL
        self.query = ""

    def exit_hard_review(self) -> Optional[ReviewSession]:
        """
        Abandon the hard-review pass. The partial session is logged only if
        at least one card was rated.
        """
        if self.mode is not StudyMode.HARD_REVIEW:
            return None
        self.last_session = self.sessions.end_session()
        self._return_to_browsing()
        return self.last_session

    def exit_scoreboard(self) -> None:
        if self.mode is StudyMode.SCOREBOARD:
            self._return_to_browsing()

    def finish_session(self) -> Optional[ReviewSession]:
        """Flush whatever session is in progress (if it has ratings)."""
        if self.mode is StudyMode.HARD_REVIEW:
            return self.exit_hard_review()
        flushed = self.sessions.end_session()
        self._begin_deck_pass()
        return flushed

    # --- Resets ---

    def reset_deck(self, baseline: Optional[BaselineCards] = None) -> None:
        """
        Return every card to the new state.

        Ids are reassigned by baseline order and each card keeps the favorite
        flag of the card that previously held the same id.
        """
        self.sessions.end_session()
        if baseline is not None:
            self._baseline = _to_contents(baseline)

        previous = {c.id: c for c in self._cards}
        reset_cards: List[Card] = []
        for card in build_deck(self._baseline):
            existing = previous.get(card.id)
            favorite = existing.favorite if existing else card.favorite
            reset_cards.append(card.model_copy(update={"favorite": favorite}))

        self._cards = reset_cards
        self.filter = DeckFilter.ALL
        self.query = ""
        self.last_session = None
        self._return_to_browsing()
        self._persist()
        logger.info(f"Reset deck '{self.category_id}' ({len(reset_cards)} cards).")

    def reset_all_data(self, baseline: Optional[BaselineCards] = None) -> None:
        """
        Clear this deck's stored state and the session log, then reload the
        baseline cards unscheduled.
        """
        self.sessions.discard_session()
        try:
            self.store.delete_deck_state(self.category_id)
            self.store.clear_sessions()
        except Exception as e:
            logger.error(f"Failed to clear stored data for '{self.category_id}': {e}")

        if baseline is not None:
            self._baseline = _to_contents(baseline)
        self._cards = build_deck(self._baseline)
        self.filter = DeckFilter.ALL
        self.query = ""
        self.last_session = None
        self._return_to_browsing()
