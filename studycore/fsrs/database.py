"""
Database - FSRS Database I/O Operations

Handles engine/session setup and the row-level operations the review
transaction and the selectors are built from.
Uses SQLAlchemy ORM with a Postgres backend (SQLite for development and
tests).

This module handles ONLY database I/O.
Algorithm logic is handled by the scheduler module.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Iterator, Optional

from sqlalchemy import create_engine, event, inspect, select
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from studycore.fsrs.constants import CardPhase, Rating
from studycore.fsrs.memory_state import CardMemoryState, ensure_utc
from studycore.fsrs.models import Base, Card, FSRSCard, ReviewEvent, StudySession

logger = logging.getLogger(__name__)

REQUIRED_TABLES = ("decks", "cards", "fsrs_cards", "card_reviews", "study_sessions")

_engine: Optional[Engine] = None
_session_factory: Optional[sessionmaker] = None


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_db_engine(
    database_url: str,
    pool_size: int = 5,
    max_overflow: int = 10,
    echo: bool = False
) -> Engine:
    """
    Create a SQLAlchemy engine for the given URL.

    Postgres gets a connection pool; SQLite gets a single shared connection
    so an in-memory database survives across sessions.

    Returns:
        SQLAlchemy Engine instance
    """
    if database_url.startswith("sqlite"):
        engine = create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
            echo=echo,
        )
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)
        return engine

    return create_engine(
        database_url,
        pool_size=pool_size,        # Connections kept open
        max_overflow=max_overflow,  # Extra connections under load
        pool_pre_ping=True,         # Verify connections before use
        echo=echo,
    )


def configure(engine: Engine) -> sessionmaker:
    """
    Make `engine` the default for every call that is not given a session
    factory explicitly.
    """
    global _engine, _session_factory
    _engine = engine
    _session_factory = sessionmaker(bind=engine, expire_on_commit=False)
    return _session_factory


def get_engine(settings=None) -> Engine:
    """
    Get the default engine, creating it from the startup settings on first use.

    Args:
        settings: studycore.config.Settings (default: load_settings())
    """
    if _engine is None:
        from studycore.config import load_settings

        settings = settings or load_settings()
        configure(create_db_engine(
            settings.database_url,
            pool_size=settings.pool_size,
            max_overflow=settings.max_overflow,
        ))
    return _engine


def get_session_factory(engine: Optional[Engine] = None) -> sessionmaker:
    if engine is not None:
        return sessionmaker(bind=engine, expire_on_commit=False)
    if _session_factory is None:
        get_engine()
    return _session_factory


@contextmanager
def session_scope(session_factory: Optional[sessionmaker] = None) -> Iterator[Session]:
    """
    Provide a transactional scope around a series of operations.

    Commits on success, rolls back on any exception, and always closes the
    session so its connection goes back to the pool.
    """
    session = (session_factory or get_session_factory())()
    try:
        yield session
        session.commit()
    except BaseException:
        session.rollback()
        raise
    finally:
        session.close()


def init_db(engine: Optional[Engine] = None):
    """
    Initialize database schema if tables don't exist.

    Safe to call multiple times - only creates missing tables.
    """
    engine = engine or get_engine()
    existing_tables = set(inspect(engine).get_table_names())
    missing = [name for name in REQUIRED_TABLES if name not in existing_tables]
    if not missing:
        return

    Base.metadata.create_all(engine)
    logger.info("Created tables: %s", ", ".join(missing))


def reset_db(engine: Optional[Engine] = None):
    """
    DANGEROUS: Delete all data and recreate tables.

    Only use this for testing or when you want to start fresh.
    All review history will be lost!
    """
    engine = engine or get_engine()
    Base.metadata.drop_all(engine)
    logger.info("All tables dropped")

    init_db(engine)


# ---- Row mapping ----

def row_to_state(row: FSRSCard) -> CardMemoryState:
    """Convert a fsrs_cards row into a CardMemoryState."""
    return CardMemoryState(
        id=row.id,
        card_id=row.card_id,
        user_id=row.user_id,
        difficulty=row.difficulty,
        stability=row.stability,
        retrievability=row.retrievability,
        grade=row.grade,
        lapses=row.lapses,
        reps=row.reps,
        state=CardPhase(row.state),
        last_review=ensure_utc(row.last_review) if row.last_review else None,
        next_review=ensure_utc(row.next_review),
    )


def _apply_state(row: FSRSCard, state: CardMemoryState):
    row.difficulty = state.difficulty
    row.stability = state.stability
    row.retrievability = state.retrievability
    row.grade = state.grade
    row.lapses = state.lapses
    row.reps = state.reps
    row.state = state.state.value
    row.last_review = ensure_utc(state.last_review) if state.last_review else None
    row.next_review = ensure_utc(state.next_review)


# ---- Reads ----

def card_exists(session: Session, card_id: str) -> bool:
    return session.get(Card, card_id) is not None


def study_session_exists(session: Session, session_id: str) -> bool:
    return session.get(StudySession, session_id) is not None


def get_state_row(
    session: Session,
    user_id: str,
    card_id: str,
    for_update: bool = False
) -> Optional[FSRSCard]:
    """
    Fetch the fsrs_cards row for (user, card).

    Args:
        session: Open session
        user_id: Learner identifier
        card_id: Card identifier
        for_update: Lock the row until the transaction ends (Postgres)

    Returns:
        FSRSCard row, or None if the card was never reviewed
    """
    stmt = select(FSRSCard).where(
        FSRSCard.user_id == user_id,
        FSRSCard.card_id == card_id,
    )
    if for_update:
        stmt = stmt.with_for_update()
    return session.execute(stmt).scalar_one_or_none()


def load_card_state(
    user_id: str,
    card_id: str,
    session_factory: Optional[sessionmaker] = None
) -> Optional[CardMemoryState]:
    """
    Load card state from database.

    Returns:
        CardMemoryState if found, None if the card was never reviewed
    """
    with session_scope(session_factory) as session:
        row = get_state_row(session, user_id, card_id)
        return row_to_state(row) if row is not None else None


def get_review_events(
    card_id: str,
    session_factory: Optional[sessionmaker] = None
) -> list[ReviewEvent]:
    """Review log of a card in insertion order."""
    with session_scope(session_factory) as session:
        stmt = (
            select(ReviewEvent)
            .where(ReviewEvent.card_id == card_id)
            .order_by(ReviewEvent.id)
        )
        events = list(session.execute(stmt).scalars())
        # Detach with attributes loaded so they stay readable after the scope closes
        session.expunge_all()
        return events


# ---- Writes ----

def upsert_card_state(
    session: Session,
    state: CardMemoryState,
    row: Optional[FSRSCard] = None
) -> FSRSCard:
    """
    Insert or update the fsrs_cards row for state's (card, user).

    The row is flushed so its id is available to the review log.

    Args:
        session: Open session (caller commits)
        state: State to persist
        row: Row already loaded in this transaction, if any

    Returns:
        The persisted FSRSCard row
    """
    if row is None:
        row = get_state_row(session, state.user_id, state.card_id)

    if row is None:
        row = FSRSCard(card_id=state.card_id, user_id=state.user_id)
        session.add(row)

    _apply_state(row, state)
    session.flush()
    return row


def append_review_event(
    session: Session,
    session_id: str,
    card_id: str,
    fsrs_card_id: int,
    rating: Rating,
    occurred_at: Optional[datetime] = None
) -> ReviewEvent:
    """
    Append one entry to the review log (caller commits).
    """
    review_event = ReviewEvent(
        session_id=session_id,
        card_id=card_id,
        fsrs_card_id=fsrs_card_id,
        rating=int(rating),
    )
    if occurred_at is not None:
        review_event.occurred_at = ensure_utc(occurred_at)
    session.add(review_event)
    session.flush()
    return review_event
