"""
Memory State - Card Scheduling Record and Retrievability

Defines the per-learner card state and the derived quantities used by
the scheduler.

Key concepts:
- Stability (S): Days until recall probability decays to ~90%
- Difficulty (D): How hard the card is to retain (1-10 scale)
- Retrievability (R): Probability of successful recall at time t
"""

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Optional

from studycore.fsrs.constants import BASE_RETENTION, CardPhase


SECONDS_PER_DAY = 86400.0


def ensure_utc(value: datetime) -> datetime:
    """
    Return a timezone-aware UTC datetime.

    Naive values are taken to already be UTC (drivers such as SQLite drop
    the offset on the way back).
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class CardMemoryState:
    """
    Scheduling state of one card for one learner.

    A record only exists after the first review; before that the card is
    represented by new_card_state().
    """
    card_id: str
    user_id: str

    difficulty: float       # D, 1-10 once reviewed
    stability: float        # S, in days
    retrievability: float   # R observed at the last review (display only)

    grade: int              # Last rating applied (0 before the first review)
    lapses: int
    reps: int               # Total ratings ever applied
    state: CardPhase

    last_review: Optional[datetime]
    next_review: datetime

    id: Optional[int] = None  # Storage id, None until persisted

    def __post_init__(self):
        self.state = CardPhase(self.state)
        self.next_review = ensure_utc(self.next_review)
        if self.last_review is not None:
            self.last_review = ensure_utc(self.last_review)

    @property
    def is_new(self) -> bool:
        return self.state is CardPhase.NEW

    def is_due(self, now: Optional[datetime] = None) -> bool:
        now = utcnow() if now is None else ensure_utc(now)
        return self.next_review <= now

    def copy(self, **changes) -> "CardMemoryState":
        return replace(self, **changes)


def new_card_state(
    user_id: str,
    card_id: str,
    now: Optional[datetime] = None
) -> CardMemoryState:
    """
    Canonical state of a card the learner has never reviewed.

    Args:
        user_id: Learner identifier
        card_id: Card identifier
        now: Reference time, the card is due immediately (default: now)

    Returns:
        CardMemoryState in the NEW phase with zeroed memory parameters
    """
    now = utcnow() if now is None else ensure_utc(now)
    return CardMemoryState(
        card_id=card_id,
        user_id=user_id,
        difficulty=0.0,
        stability=0.0,
        retrievability=0.0,
        grade=0,
        lapses=0,
        reps=0,
        state=CardPhase.NEW,
        last_review=None,
        next_review=now,
    )


def get_elapsed_days(last_review: Optional[datetime], now: datetime) -> float:
    """
    Days between the last review and now, floored at 0.

    Returns:
        Elapsed days (0 if never reviewed or if now precedes last_review)
    """
    if last_review is None:
        return 0.0

    delta = ensure_utc(now) - ensure_utc(last_review)
    return max(0.0, delta.total_seconds() / SECONDS_PER_DAY)


def calculate_retrievability(
    stability: float,
    elapsed_days: float
) -> float:
    """
    Exponential forgetting curve.

    Formula: R = exp(ln(0.9) * t / S)

    Calibrated so that R = 0.9 when t == S.

    Args:
        stability: Current stability in days
        elapsed_days: Days since the last review

    Returns:
        Retrievability between 0 and 1
    """
    if elapsed_days <= 0:
        return 1.0
    if stability <= 0:
        return 0.0

    return math.exp(math.log(BASE_RETENTION) * elapsed_days / stability)
