"""
Types returned by the study selectors and session functions.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from studycore.fsrs.memory_state import CardMemoryState


@dataclass(frozen=True)
class StudyCard:
    """
    A catalog card paired with the learner's memory state for it.

    `state` is the new-card state when the learner never reviewed the card.
    """
    card_id: str
    deck_id: str
    card_order: int
    content: Optional[str]
    state: CardMemoryState
    is_new: bool
    deck_title: Optional[str] = None


@dataclass(frozen=True)
class DeckSummary:
    """Per-learner workload of one public deck."""
    id: str
    title: str
    description: Optional[str]
    is_featured: bool
    card_count: int
    new_cards: int
    review_cards: int
    next_review_at: Optional[datetime]  # Earliest not-yet-due review


@dataclass(frozen=True)
class SessionRecord:
    id: str
    user_id: str
    deck_id: str
    cards_studied: int
    correct_answers: int
    average_rating: float
    started_at: datetime
    ended_at: Optional[datetime] = None
    deck_title: Optional[str] = None

    @property
    def is_ended(self) -> bool:
        return self.ended_at is not None


@dataclass(frozen=True)
class StudyStats:
    total_cards: int     # Cards with a memory state
    new_cards: int       # Catalog cards never reviewed
    learning_cards: int  # learning + relearning
    review_cards: int
    studied: int         # Distinct cards reviewed in sessions
    correct: int         # Session reviews rated Good or Easy
