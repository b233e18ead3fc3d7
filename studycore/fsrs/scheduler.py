"""
Scheduler - FSRS Algorithm Logic

Pure scheduling and state transitions (no database calls).

Main workflow:
1. Caller loads the card state (or uses new_card_state())
2. Compute elapsed days and retrievability
3. Apply the transition for the card's current phase
4. Clamp difficulty/stability and derive next_review from stability
5. Return the new state; the input state is left untouched

This module handles ONLY the algorithm logic.
Persistence is handled by the reviews and database modules.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Callable, Dict, NamedTuple, Optional

from studycore.fsrs import formulas
from studycore.fsrs.constants import CardPhase, Rating
from studycore.fsrs.memory_state import (
    CardMemoryState,
    calculate_retrievability,
    ensure_utc,
    get_elapsed_days,
    utcnow,
)
from studycore.fsrs.parameters import SchedulerParameters

logger = logging.getLogger(__name__)


class Transition(NamedTuple):
    state: CardPhase
    difficulty: float
    stability: float
    lapses: int


class Scheduler:
    """
    Computes the next memory state of a card from a rating.

    The weight vector and interval settings are injected once; advance()
    is deterministic given (state, rating, now).
    """

    def __init__(self, parameters: Optional[SchedulerParameters] = None):
        self.parameters = parameters or SchedulerParameters()
        self._transitions: Dict[CardPhase, Callable[..., Transition]] = {
            CardPhase.NEW: self._from_new,
            CardPhase.LEARNING: self._from_learning,
            CardPhase.RELEARNING: self._from_learning,
            CardPhase.REVIEW: self._from_review,
        }
        missing = set(CardPhase) - set(self._transitions)
        if missing:
            raise TypeError(f"No transition for phases: {sorted(p.value for p in missing)}")

    @property
    def weights(self):
        return self.parameters.weights

    def advance(
        self,
        card: CardMemoryState,
        rating: Rating,
        now: Optional[datetime] = None
    ) -> CardMemoryState:
        """
        Apply one rating to a card.

        Args:
            card: Current state (may be the virtual new-card state)
            rating: Learner rating (AGAIN, HARD, GOOD, EASY)
            now: Review time (defaults to now; pass it explicitly in tests)

        Returns:
            New CardMemoryState with last_review == now
        """
        rating = Rating.coerce(rating)
        now = utcnow() if now is None else ensure_utc(now)

        elapsed_days = get_elapsed_days(card.last_review, now)
        if card.last_review is None:
            retrievability = 1.0
        else:
            retrievability = calculate_retrievability(
                formulas.clamp_stability(card.stability),
                elapsed_days
            )

        transition = self._transitions[card.state](card, rating, retrievability)

        difficulty = formulas.clamp_difficulty(transition.difficulty)
        stability = formulas.clamp_stability(transition.stability)
        interval = formulas.next_interval(self.parameters, stability)

        logger.debug(
            "card %s user %s: %s -> %s (rating=%s, R=%.4f, S=%.4f, interval=%sd)",
            card.card_id, card.user_id, card.state.value, transition.state.value,
            rating.name, retrievability, stability, interval,
        )

        return card.copy(
            difficulty=difficulty,
            stability=stability,
            retrievability=retrievability,
            grade=int(rating),
            lapses=transition.lapses,
            reps=card.reps + 1,
            state=transition.state,
            last_review=now,
            next_review=now + timedelta(days=interval),
        )

    # ---- Phase transitions ----

    def _from_new(self, card: CardMemoryState, rating: Rating, retrievability: float) -> Transition:
        w = self.weights
        state = CardPhase.REVIEW if rating == Rating.EASY else CardPhase.LEARNING
        return Transition(
            state=state,
            difficulty=formulas.init_difficulty(w, rating),
            stability=formulas.init_stability(w, rating),
            lapses=card.lapses,
        )

    def _from_learning(self, card: CardMemoryState, rating: Rating, retrievability: float) -> Transition:
        w = self.weights
        # Rows written by older versions may hold zeros; the formulas need D >= 1, S > 0
        difficulty = formulas.clamp_difficulty(card.difficulty)
        stability = formulas.clamp_stability(card.stability)
        new_stability = formulas.short_term_stability(w, stability, rating)

        if rating == Rating.AGAIN:
            new_difficulty = difficulty
        else:
            new_difficulty = formulas.next_difficulty(w, difficulty, rating)

        if rating >= Rating.GOOD:
            state = CardPhase.REVIEW
        else:
            state = card.state

        # Staying in relearning counts as another lapse
        lapses = card.lapses + 1 if state is CardPhase.RELEARNING else card.lapses

        return Transition(state, new_difficulty, new_stability, lapses)

    def _from_review(self, card: CardMemoryState, rating: Rating, retrievability: float) -> Transition:
        w = self.weights
        difficulty = formulas.clamp_difficulty(card.difficulty)
        stability = formulas.clamp_stability(card.stability)

        if rating == Rating.AGAIN:
            return Transition(
                state=CardPhase.RELEARNING,
                difficulty=difficulty,
                stability=formulas.forgetting_stability(w, difficulty, stability, retrievability),
                lapses=card.lapses + 1,
            )

        new_difficulty = formulas.next_difficulty(w, difficulty, rating)
        return Transition(
            state=CardPhase.REVIEW,
            difficulty=new_difficulty,
            stability=formulas.next_recall_stability(
                w, new_difficulty, stability, retrievability, rating
            ),
            lapses=card.lapses,
        )


_default_scheduler: Optional[Scheduler] = None


def get_default_scheduler() -> Scheduler:
    global _default_scheduler
    if _default_scheduler is None:
        _default_scheduler = Scheduler()
    return _default_scheduler


def process_review(
    card: CardMemoryState,
    rating: Rating,
    timestamp: Optional[datetime] = None
) -> CardMemoryState:
    """Advance a card with the default parameters."""
    return get_default_scheduler().advance(card, rating, timestamp)
