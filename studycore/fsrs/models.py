"""
SQLAlchemy ORM Models

Catalog tables (decks, cards) are read-only from the engine's point of
view. fsrs_cards holds one mutable scheduling row per (card, user);
card_reviews is the append-only review log; study_sessions records one
study run.
"""

from __future__ import annotations

import uuid

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    event,
)
from sqlalchemy.orm import declarative_base, relationship

from studycore.fsrs.constants import CardPhase
from studycore.fsrs.memory_state import utcnow

Base = declarative_base()


def new_uuid() -> str:
    return str(uuid.uuid4())


class Deck(Base):
    __tablename__ = 'decks'

    id = Column(String(36), primary_key=True, default=new_uuid)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    is_public = Column(Boolean, nullable=False, default=True)
    is_featured = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    cards = relationship("Card", back_populates="deck", order_by="Card.card_order")

    def __repr__(self):
        return f"<Deck({self.id}, {self.title!r})>"


class Card(Base):
    __tablename__ = 'cards'

    id = Column(String(36), primary_key=True, default=new_uuid)
    deck_id = Column(String(36), ForeignKey('decks.id', ondelete='CASCADE'), nullable=False)
    card_order = Column(Integer, nullable=False, default=0)
    content = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    deck = relationship("Deck", back_populates="cards")

    __table_args__ = (
        Index('idx_cards_deck_order', 'deck_id', 'card_order'),
    )

    def __repr__(self):
        return f"<Card({self.id}, deck={self.deck_id}, order={self.card_order})>"


class FSRSCard(Base):
    """
    Persistent memory state for a single (card, user) pair.

    Created on the first review and updated in place afterwards.
    """
    __tablename__ = 'fsrs_cards'

    id = Column(Integer, primary_key=True, autoincrement=True)
    card_id = Column(String(36), ForeignKey('cards.id', ondelete='CASCADE'), nullable=False)
    user_id = Column(String(255), nullable=False)

    # Memory parameters
    difficulty = Column(Float, nullable=False)
    stability = Column(Float, nullable=False)
    retrievability = Column(Float, nullable=False)  # Observed at last review, display only

    # Review tracking
    grade = Column(Integer, nullable=False)  # Last rating, 1=AGAIN ... 4=EASY
    lapses = Column(Integer, nullable=False, default=0)
    reps = Column(Integer, nullable=False, default=0)
    state = Column(String(20), nullable=False, default=CardPhase.NEW.value)
    last_review = Column(DateTime(timezone=True), nullable=True)
    next_review = Column(DateTime(timezone=True), nullable=False)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        UniqueConstraint('card_id', 'user_id', name='uq_fsrs_cards_card_user'),
        Index('idx_fsrs_cards_user_next_review', 'user_id', 'next_review'),
    )

    def __repr__(self):
        return f"<FSRSCard({self.user_id}, {self.card_id}, state={self.state})>"


class StudySession(Base):
    """
    One study run over a deck.

    Counters start at zero and are overwritten once, with client totals,
    when the session ends.
    """
    __tablename__ = 'study_sessions'

    id = Column(String(36), primary_key=True, default=new_uuid)
    user_id = Column(String(255), nullable=False)
    deck_id = Column(String(36), ForeignKey('decks.id', ondelete='CASCADE'), nullable=False)

    cards_studied = Column(Integer, nullable=False, default=0)
    correct_answers = Column(Integer, nullable=False, default=0)
    average_rating = Column(Float, nullable=False, default=0.0)

    started_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    ended_at = Column(DateTime(timezone=True), nullable=True)

    deck = relationship("Deck")

    def __repr__(self):
        return f"<StudySession({self.id}, user={self.user_id}, deck={self.deck_id})>"


class ReviewEvent(Base):
    """
    Log entry for a single submitted rating. Never updated or deleted.
    """
    __tablename__ = 'card_reviews'

    id = Column(Integer, primary_key=True, autoincrement=True)
    session_id = Column(String(36), ForeignKey('study_sessions.id', ondelete='CASCADE'), nullable=True)
    card_id = Column(String(36), ForeignKey('cards.id', ondelete='CASCADE'), nullable=False)
    fsrs_card_id = Column(Integer, ForeignKey('fsrs_cards.id', ondelete='CASCADE'), nullable=False)
    rating = Column(Integer, nullable=False)  # 1=AGAIN, 2=HARD, 3=GOOD, 4=EASY
    occurred_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (
        Index('idx_card_reviews_card_occurred', 'card_id', 'occurred_at'),
        Index('idx_card_reviews_session', 'session_id'),
    )

    def __repr__(self):
        return f"<ReviewEvent(id={self.id}, card={self.card_id}, rating={self.rating})>"


class ImmutableRowError(RuntimeError):
    """Raised when code tries to change an append-only row."""


@event.listens_for(ReviewEvent, "before_update")
def _reject_review_event_update(mapper, connection, target):
    raise ImmutableRowError(f"card_reviews rows are append-only: {target!r}")


@event.listens_for(ReviewEvent, "before_delete")
def _reject_review_event_delete(mapper, connection, target):
    raise ImmutableRowError(f"card_reviews rows are append-only: {target!r}")
