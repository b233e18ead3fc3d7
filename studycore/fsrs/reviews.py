"""
Reviews - Review Transaction API

Ties the scheduler to storage: one call applies one rating to one card and
persists the outcome atomically.

Main workflow:
1. Begin a transaction
2. Load the card state (or use the new-card state)
3. Advance it with the scheduler (pure, no I/O)
4. Upsert the state row
5. Append a review log entry when the review belongs to a session
6. Commit, or roll back everything on failure
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from studycore.errors import NotFoundError, ReviewTransactionError
from studycore.fsrs import database
from studycore.fsrs.constants import Rating
from studycore.fsrs.memory_state import CardMemoryState, ensure_utc, new_card_state, utcnow
from studycore.fsrs.scheduler import Scheduler, get_default_scheduler
from studycore.schemas import ReviewInput

logger = logging.getLogger(__name__)


def submit_review(
    user_id: str,
    card_id: str,
    rating: Rating,
    session_id: Optional[str] = None,
    now: Optional[datetime] = None,
    scheduler: Optional[Scheduler] = None,
    session_factory: Optional[sessionmaker] = None
) -> CardMemoryState:
    """
    Apply a rating to a card and persist the result.

    Submitting the same rating twice advances the card twice; duplicate
    submissions are not detected here.

    Args:
        user_id: Learner identifier
        card_id: Card identifier (must exist in the catalog)
        rating: Learner rating (AGAIN, HARD, GOOD, EASY)
        session_id: Study session the review belongs to (optional)
        now: Review time (defaults to now)
        scheduler: Scheduler to use (default parameters if omitted)
        session_factory: Session factory (default engine if omitted)

    Returns:
        The persisted CardMemoryState, including next_review and its row id

    Raises:
        ValueError: If rating is not 1-4
        NotFoundError: If the card or the study session does not exist
        ReviewTransactionError: If storage failed; nothing was written
    """
    rating = Rating.coerce(rating)
    now = utcnow() if now is None else ensure_utc(now)
    scheduler = scheduler or get_default_scheduler()

    session = (session_factory or database.get_session_factory())()
    try:
        if not database.card_exists(session, card_id):
            raise NotFoundError("card", card_id)
        if session_id is not None and not database.study_session_exists(session, session_id):
            raise NotFoundError("study session", session_id)

        row = database.get_state_row(session, user_id, card_id, for_update=True)
        if row is None:
            current = new_card_state(user_id, card_id, now)
        else:
            current = database.row_to_state(row)

        updated = scheduler.advance(current, rating, now)
        row = database.upsert_card_state(session, updated, row)

        if session_id is not None:
            database.append_review_event(session, session_id, card_id, row.id, rating, now)

        row_id = row.id
        session.commit()
    except NotFoundError:
        session.rollback()
        raise
    except SQLAlchemyError as exc:
        session.rollback()
        logger.warning(
            "Review transaction rolled back (user=%s, card=%s, rating=%s)",
            user_id, card_id, rating.name, exc_info=True,
        )
        raise ReviewTransactionError(user_id, card_id) from exc
    except BaseException:
        # Includes cancellation (KeyboardInterrupt, task cancellation)
        session.rollback()
        raise
    finally:
        session.close()

    return updated.copy(id=row_id)


def submit(
    review: ReviewInput,
    scheduler: Optional[Scheduler] = None,
    session_factory: Optional[sessionmaker] = None
) -> CardMemoryState:
    """Apply a validated ReviewInput (see submit_review)."""
    return submit_review(
        user_id=review.user_id,
        card_id=review.card_id,
        rating=Rating(review.rating),
        session_id=review.session_id,
        now=review.now,
        scheduler=scheduler,
        session_factory=session_factory,
    )
