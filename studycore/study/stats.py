"""
Study statistics and review-history loading for analytics.
"""

from __future__ import annotations

from typing import Optional

import pandas as pd
from sqlalchemy import and_, case, distinct, func, select
from sqlalchemy.orm import sessionmaker

from studycore.fsrs.constants import CardPhase, Rating
from studycore.fsrs.database import session_scope
from studycore.fsrs.models import Card, Deck, FSRSCard, ReviewEvent, StudySession
from studycore.study.types import StudyStats

REVIEW_EVENT_COLUMNS = ["card_id", "session_id", "rating", "occurred_at", "day_utc"]


def get_study_stats(
    user_id: str,
    session_factory: Optional[sessionmaker] = None
) -> StudyStats:
    """
    Card counts by phase and session review totals for a learner.

    Only cards in public decks are counted.
    """
    public_states = (
        select(FSRSCard.state, func.count(distinct(FSRSCard.card_id)))
        .join(Card, FSRSCard.card_id == Card.id)
        .join(Deck, Card.deck_id == Deck.id)
        .where(FSRSCard.user_id == user_id, Deck.is_public.is_(True))
        .group_by(FSRSCard.state)
    )
    new_cards = (
        select(func.count(Card.id))
        .join(Deck, Card.deck_id == Deck.id)
        .outerjoin(FSRSCard, and_(FSRSCard.card_id == Card.id, FSRSCard.user_id == user_id))
        .where(Deck.is_public.is_(True), FSRSCard.id.is_(None))
    )
    session_reviews = (
        select(
            func.count(distinct(ReviewEvent.card_id)),
            func.count(case((ReviewEvent.rating >= int(Rating.GOOD), 1))),
        )
        .join(StudySession, ReviewEvent.session_id == StudySession.id)
        .where(StudySession.user_id == user_id)
    )

    with session_scope(session_factory) as session:
        states = {state: count for state, count in session.execute(public_states)}
        new_count = session.execute(new_cards).scalar_one()
        studied, correct = session.execute(session_reviews).one()

    return StudyStats(
        total_cards=sum(states.values()),
        new_cards=new_count or 0,
        learning_cards=(
            states.get(CardPhase.LEARNING.value, 0)
            + states.get(CardPhase.RELEARNING.value, 0)
        ),
        review_cards=states.get(CardPhase.REVIEW.value, 0),
        studied=studied or 0,
        correct=correct or 0,
    )


def load_review_events_df(
    user_id: str,
    session_factory: Optional[sessionmaker] = None
) -> pd.DataFrame:
    """
    Load a learner's session reviews into a dataframe, oldest first.
    """
    stmt = (
        select(
            ReviewEvent.card_id,
            ReviewEvent.session_id,
            ReviewEvent.rating,
            ReviewEvent.occurred_at,
        )
        .join(StudySession, ReviewEvent.session_id == StudySession.id)
        .where(StudySession.user_id == user_id)
        .order_by(ReviewEvent.id)
    )
    with session_scope(session_factory) as session:
        rows = [row._asdict() for row in session.execute(stmt)]

    if not rows:
        return pd.DataFrame(columns=REVIEW_EVENT_COLUMNS)

    df = pd.DataFrame(rows)
    df["occurred_at"] = pd.to_datetime(df["occurred_at"], utc=True, errors="coerce")
    df = df.dropna(subset=["card_id", "occurred_at"])
    df["day_utc"] = df["occurred_at"].dt.floor("D")
    df = df.sort_values("occurred_at", kind="stable").reset_index(drop=True)
    return df[REVIEW_EVENT_COLUMNS]
