"""Shared fixtures: an in-memory database with a small seeded catalog."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from studycore.fsrs.database import create_db_engine, get_session_factory, init_db, session_scope
from studycore.fsrs.models import Card, Deck

NOW = datetime(2026, 1, 15, 12, 0, 0, tzinfo=timezone.utc)
USER = "learner-1"
OTHER_USER = "learner-2"


@pytest.fixture
def engine():
    engine = create_db_engine("sqlite:///:memory:")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return get_session_factory(engine)


@pytest.fixture
def catalog(session_factory):
    """
    deck-basics (public, featured): card-1..card-4, inserted out of order
    deck-empty (public): no cards
    deck-private (not public): card-private
    """
    with session_scope(session_factory) as session:
        session.add_all([
            Deck(id="deck-basics", title="Basics", is_public=True, is_featured=True,
                 created_at=NOW - timedelta(days=30)),
            Deck(id="deck-empty", title="Empty", is_public=True, is_featured=False,
                 created_at=NOW - timedelta(days=10)),
            Deck(id="deck-private", title="Drafts", is_public=False,
                 created_at=NOW - timedelta(days=5)),
        ])
        session.flush()
        session.add_all([
            Card(id="card-3", deck_id="deck-basics", card_order=3, content="three",
                 created_at=NOW - timedelta(days=30)),
            Card(id="card-1", deck_id="deck-basics", card_order=1, content="one",
                 created_at=NOW - timedelta(days=30)),
            Card(id="card-4", deck_id="deck-basics", card_order=4, content="four",
                 created_at=NOW - timedelta(days=30)),
            Card(id="card-2", deck_id="deck-basics", card_order=2, content="two",
                 created_at=NOW - timedelta(days=30)),
            Card(id="card-private", deck_id="deck-private", card_order=1, content="draft",
                 created_at=NOW - timedelta(days=5)),
        ])

    return SimpleNamespace(
        deck_id="deck-basics",
        empty_deck_id="deck-empty",
        private_deck_id="deck-private",
        card_ids=["card-1", "card-2", "card-3", "card-4"],
        private_card_id="card-private",
    )
