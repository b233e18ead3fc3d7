"""
Due-set selection.

Read-only queries that decide what a learner studies next: cards whose
review is due, cards never reviewed, and a per-deck workload summary.
Only public decks are considered.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import and_, case, func, or_, select
from sqlalchemy.orm import sessionmaker

from studycore.errors import NotFoundError
from studycore.fsrs.constants import CardPhase
from studycore.fsrs.database import row_to_state, session_scope
from studycore.fsrs.memory_state import ensure_utc, new_card_state, utcnow
from studycore.fsrs.models import Card, Deck, FSRSCard
from studycore.study.types import DeckSummary, StudyCard

SCHEDULED_PHASES = (
    CardPhase.LEARNING.value,
    CardPhase.REVIEW.value,
    CardPhase.RELEARNING.value,
)


def _study_card(
    card: Card,
    fsrs_card: Optional[FSRSCard],
    user_id: str,
    now: datetime,
    deck_title: Optional[str] = None
) -> StudyCard:
    if fsrs_card is None:
        state = new_card_state(user_id, card.id, now)
    else:
        state = row_to_state(fsrs_card)
    return StudyCard(
        card_id=card.id,
        deck_id=card.deck_id,
        card_order=card.card_order,
        content=card.content,
        state=state,
        is_new=fsrs_card is None,
        deck_title=deck_title,
    )


def get_cards_for_review(
    user_id: str,
    now: Optional[datetime] = None,
    limit: int = 50,
    session_factory: Optional[sessionmaker] = None
) -> list[StudyCard]:
    """
    Cards whose next review is at or before `now`.

    Args:
        user_id: Learner identifier
        now: Reference time (default: now)
        limit: Maximum number of cards

    Returns:
        Cards ordered by next_review, then by their order in the deck
    """
    now = utcnow() if now is None else ensure_utc(now)

    stmt = (
        select(FSRSCard, Card, Deck.title)
        .join(Card, FSRSCard.card_id == Card.id)
        .join(Deck, Card.deck_id == Deck.id)
        .where(
            FSRSCard.user_id == user_id,
            FSRSCard.next_review <= now,
            Deck.is_public.is_(True),
        )
        .order_by(FSRSCard.next_review.asc(), Card.card_order.asc())
        .limit(limit)
    )

    with session_scope(session_factory) as session:
        return [
            _study_card(card, fsrs_card, user_id, now, deck_title)
            for fsrs_card, card, deck_title in session.execute(stmt)
        ]


def get_new_cards(
    user_id: str,
    deck_id: Optional[str] = None,
    limit: Optional[int] = None,
    now: Optional[datetime] = None,
    session_factory: Optional[sessionmaker] = None
) -> list[StudyCard]:
    """
    Cards the learner has not started yet, in catalog order.

    Args:
        user_id: Learner identifier
        deck_id: Restrict to one deck (default: all public decks)
        limit: Maximum number of cards (default: no cap)
        now: Reference time for the new-card state (default: now)
    """
    now = utcnow() if now is None else ensure_utc(now)

    stmt = (
        select(Card, FSRSCard, Deck.title)
        .join(Deck, Card.deck_id == Deck.id)
        .outerjoin(FSRSCard, and_(FSRSCard.card_id == Card.id, FSRSCard.user_id == user_id))
        .where(
            Deck.is_public.is_(True),
            or_(FSRSCard.id.is_(None), FSRSCard.state == CardPhase.NEW.value),
        )
        .order_by(Deck.created_at.asc(), Deck.id, Card.card_order.asc(), Card.created_at.asc())
    )
    if deck_id is not None:
        stmt = stmt.where(Card.deck_id == deck_id)
    if limit is not None:
        stmt = stmt.limit(limit)

    with session_scope(session_factory) as session:
        return [
            _study_card(card, fsrs_card, user_id, now, deck_title)
            for card, fsrs_card, deck_title in session.execute(stmt)
        ]


def get_available_decks(
    user_id: str,
    now: Optional[datetime] = None,
    session_factory: Optional[sessionmaker] = None
) -> list[DeckSummary]:
    """
    Public decks with the learner's new/due counts.

    Featured decks come first, then the most recently created.
    """
    now = utcnow() if now is None else ensure_utc(now)

    new_count = func.count(case(
        (or_(FSRSCard.id.is_(None), FSRSCard.state == CardPhase.NEW.value), 1),
    ))
    due_count = func.count(case(
        (and_(FSRSCard.state.in_(SCHEDULED_PHASES), FSRSCard.next_review <= now), 1),
    ))
    next_review_at = func.min(case(
        (FSRSCard.next_review > now, FSRSCard.next_review),
    ))

    stmt = (
        select(
            Deck.id,
            Deck.title,
            Deck.description,
            Deck.is_featured,
            func.count(Card.id).label("card_count"),
            new_count.label("new_cards"),
            due_count.label("review_cards"),
            next_review_at.label("next_review_at"),
        )
        .outerjoin(Card, Card.deck_id == Deck.id)
        .outerjoin(FSRSCard, and_(FSRSCard.card_id == Card.id, FSRSCard.user_id == user_id))
        .where(Deck.is_public.is_(True))
        .group_by(Deck.id, Deck.title, Deck.description, Deck.is_featured, Deck.created_at)
        .order_by(Deck.is_featured.desc(), Deck.created_at.desc())
    )

    with session_scope(session_factory) as session:
        rows = session.execute(stmt).all()

    return [
        DeckSummary(
            id=row.id,
            title=row.title,
            description=row.description,
            is_featured=bool(row.is_featured),
            card_count=row.card_count or 0,
            # A deck without cards still yields one outer-joined row
            new_cards=row.new_cards if row.card_count else 0,
            review_cards=row.review_cards or 0,
            next_review_at=ensure_utc(row.next_review_at) if row.next_review_at else None,
        )
        for row in rows
    ]


def is_deck_available(deck_id: str, session_factory: Optional[sessionmaker] = None) -> bool:
    """Check if deck exists and is public."""
    with session_scope(session_factory) as session:
        deck = session.get(Deck, deck_id)
        return deck is not None and bool(deck.is_public)


def get_deck_for_study(
    deck_id: str,
    user_id: str,
    now: Optional[datetime] = None,
    session_factory: Optional[sessionmaker] = None
) -> list[StudyCard]:
    """
    Every card of a deck with the learner's state, in deck order.

    Raises:
        NotFoundError: If the deck does not exist or is not public
    """
    now = utcnow() if now is None else ensure_utc(now)

    stmt = (
        select(Card, FSRSCard)
        .outerjoin(FSRSCard, and_(FSRSCard.card_id == Card.id, FSRSCard.user_id == user_id))
        .where(Card.deck_id == deck_id)
        .order_by(Card.card_order.asc(), Card.created_at.asc())
    )

    with session_scope(session_factory) as session:
        deck = session.get(Deck, deck_id)
        if deck is None or not deck.is_public:
            raise NotFoundError("deck", deck_id)
        return [
            _study_card(card, fsrs_card, user_id, now, deck.title)
            for card, fsrs_card in session.execute(stmt)
        ]
