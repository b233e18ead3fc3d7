"""
Study sessions.

A session row is created when a study run starts and overwritten once,
with the client's final totals, when it ends. Counters are never derived
from the review log here.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional, Union

from sqlalchemy import select
from sqlalchemy.orm import sessionmaker

from studycore.errors import NotFoundError, SessionAlreadyEndedError
from studycore.fsrs.constants import Rating
from studycore.fsrs.database import session_scope
from studycore.fsrs.memory_state import ensure_utc, utcnow
from studycore.fsrs.models import Deck, StudySession
from studycore.schemas import SessionTotals
from studycore.study.types import SessionRecord

logger = logging.getLogger(__name__)


def _to_record(row: StudySession, deck_title: Optional[str] = None) -> SessionRecord:
    return SessionRecord(
        id=row.id,
        user_id=row.user_id,
        deck_id=row.deck_id,
        cards_studied=row.cards_studied,
        correct_answers=row.correct_answers,
        average_rating=row.average_rating,
        started_at=ensure_utc(row.started_at),
        ended_at=ensure_utc(row.ended_at) if row.ended_at else None,
        deck_title=deck_title,
    )


class SessionTally:
    """
    Client-side running counters for one study run.

    The average rating is approximated from the success rate, the same
    mapping the study screen uses: >=90% correct -> 4, >=70% -> 3,
    >=50% -> 2, otherwise 1.
    """

    def __init__(self):
        self.cards_studied = 0
        self.correct_answers = 0

    def record(self, rating: Rating):
        rating = Rating.coerce(rating)
        self.cards_studied += 1
        if rating.is_correct:
            self.correct_answers += 1

    @property
    def average_rating(self) -> float:
        if self.cards_studied == 0:
            return 0.0
        success_rate = self.correct_answers / self.cards_studied
        if success_rate >= 0.9:
            return float(Rating.EASY)
        if success_rate >= 0.7:
            return float(Rating.GOOD)
        if success_rate >= 0.5:
            return float(Rating.HARD)
        return float(Rating.AGAIN)

    def totals(self) -> SessionTotals:
        return SessionTotals(
            cards_studied=self.cards_studied,
            correct_answers=self.correct_answers,
            average_rating=self.average_rating,
        )


def create_study_session(
    user_id: str,
    deck_id: str,
    started_at: Optional[datetime] = None,
    session_factory: Optional[sessionmaker] = None
) -> SessionRecord:
    """
    Start a study session with zeroed counters.

    Raises:
        NotFoundError: If the deck does not exist
    """
    with session_scope(session_factory) as session:
        deck = session.get(Deck, deck_id)
        if deck is None:
            raise NotFoundError("deck", deck_id)

        row = StudySession(
            user_id=user_id,
            deck_id=deck_id,
            cards_studied=0,
            correct_answers=0,
            average_rating=0.0,
            started_at=utcnow() if started_at is None else ensure_utc(started_at),
        )
        session.add(row)
        session.flush()
        record = _to_record(row, deck.title)

    logger.info("Started study session %s (user=%s, deck=%s)", record.id, user_id, deck_id)
    return record


def end_study_session(
    session_id: str,
    totals: Union[SessionTotals, dict],
    ended_at: Optional[datetime] = None,
    session_factory: Optional[sessionmaker] = None
) -> SessionRecord:
    """
    Overwrite a session's counters with the final totals.

    Args:
        session_id: Session to end
        totals: SessionTotals (or a dict with the same keys)
        ended_at: End time (default: now)

    Raises:
        NotFoundError: If the session does not exist; nothing is written
        SessionAlreadyEndedError: If the session was already ended
    """
    if not isinstance(totals, SessionTotals):
        totals = SessionTotals.model_validate(totals)

    with session_scope(session_factory) as session:
        row = session.get(StudySession, session_id)
        if row is None:
            logger.warning("Cannot end study session %s: not found", session_id)
            raise NotFoundError("study session", session_id)
        if row.ended_at is not None:
            raise SessionAlreadyEndedError(session_id)

        row.cards_studied = totals.cards_studied
        row.correct_answers = totals.correct_answers
        row.average_rating = totals.average_rating
        row.ended_at = utcnow() if ended_at is None else ensure_utc(ended_at)
        session.flush()
        record = _to_record(row)

    logger.info(
        "Ended study session %s: %d studied, %d correct",
        session_id, totals.cards_studied, totals.correct_answers,
    )
    return record


def get_study_session(
    session_id: str,
    session_factory: Optional[sessionmaker] = None
) -> Optional[SessionRecord]:
    with session_scope(session_factory) as session:
        row = session.get(StudySession, session_id)
        return _to_record(row) if row is not None else None


def get_recent_sessions(
    user_id: str,
    limit: int = 10,
    session_factory: Optional[sessionmaker] = None
) -> list[SessionRecord]:
    """
    Sessions in which the learner studied at least one card, newest first.
    """
    stmt = (
        select(StudySession, Deck.title)
        .join(Deck, StudySession.deck_id == Deck.id)
        .where(StudySession.user_id == user_id, StudySession.cards_studied > 0)
        .order_by(StudySession.started_at.desc(), StudySession.id.desc())
        .limit(limit)
    )
    with session_scope(session_factory) as session:
        return [_to_record(row, title) for row, title in session.execute(stmt)]
