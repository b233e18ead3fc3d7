from datetime import timedelta

import pandas as pd

from studycore.fsrs.constants import Rating
from studycore.fsrs.reviews import submit_review
from studycore.study.sessions import create_study_session
from studycore.study.stats import REVIEW_EVENT_COLUMNS, get_study_stats, load_review_events_df

from tests.conftest import NOW, OTHER_USER, USER


def seed_reviews(catalog, session_factory):
    session = create_study_session(USER, catalog.deck_id, started_at=NOW, session_factory=session_factory)
    submit_review(USER, "card-1", Rating.GOOD, session_id=session.id, now=NOW,
                  session_factory=session_factory)
    submit_review(USER, "card-2", Rating.AGAIN, session_id=session.id, now=NOW + timedelta(minutes=1),
                  session_factory=session_factory)
    submit_review(USER, "card-2", Rating.GOOD, session_id=session.id, now=NOW + timedelta(minutes=2),
                  session_factory=session_factory)
    # Outside any session
    submit_review(USER, "card-3", Rating.EASY, now=NOW, session_factory=session_factory)
    # Private deck, never counted
    submit_review(USER, catalog.private_card_id, Rating.GOOD, now=NOW, session_factory=session_factory)
    return session


def test_study_stats(catalog, session_factory):
    seed_reviews(catalog, session_factory)

    stats = get_study_stats(USER, session_factory)

    assert stats.total_cards == 3
    assert stats.new_cards == 1
    assert stats.learning_cards == 1
    assert stats.review_cards == 2
    assert stats.studied == 2
    assert stats.correct == 2


def test_study_stats_for_new_learner(catalog, session_factory):
    stats = get_study_stats(OTHER_USER, session_factory)
    assert (stats.total_cards, stats.new_cards, stats.studied, stats.correct) == (0, 4, 0, 0)


def test_review_events_dataframe(catalog, session_factory):
    session = seed_reviews(catalog, session_factory)

    df = load_review_events_df(USER, session_factory)

    assert list(df.columns) == REVIEW_EVENT_COLUMNS
    assert df["card_id"].tolist() == ["card-1", "card-2", "card-2"]
    assert df["rating"].tolist() == [3, 1, 3]
    assert (df["session_id"] == session.id).all()
    assert df["occurred_at"].is_monotonic_increasing
    assert df["day_utc"].iloc[0] == pd.Timestamp("2026-01-15", tz="UTC")


def test_review_events_dataframe_empty(catalog, session_factory):
    df = load_review_events_df(OTHER_USER, session_factory)
    assert df.empty
    assert list(df.columns) == REVIEW_EVENT_COLUMNS
