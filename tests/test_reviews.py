from datetime import timedelta
from unittest import mock

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker

from studycore.errors import NotFoundError, ReviewTransactionError
from studycore.fsrs import database
from studycore.fsrs.constants import CardPhase, Rating
from studycore.fsrs.database import get_review_events, load_card_state, session_scope
from studycore.fsrs.models import FSRSCard, ImmutableRowError, ReviewEvent
from studycore.fsrs.reviews import submit, submit_review
from studycore.schemas import ReviewInput
from studycore.study.sessions import create_study_session

from tests.conftest import NOW, OTHER_USER, USER


def count_rows(session_factory, model):
    with session_scope(session_factory) as session:
        return session.execute(select(func.count()).select_from(model)).scalar_one()


@pytest.fixture
def study_session(catalog, session_factory):
    return create_study_session(USER, catalog.deck_id, started_at=NOW, session_factory=session_factory)


def test_first_review_creates_state(catalog, session_factory):
    card = submit_review(USER, "card-1", Rating.GOOD, now=NOW, session_factory=session_factory)

    assert card.id is not None
    assert card.state is CardPhase.LEARNING
    assert card.reps == 1
    assert card.last_review == NOW
    assert card.next_review == NOW + timedelta(days=2)

    stored = load_card_state(USER, "card-1", session_factory)
    assert stored == card


def test_reload_reproduces_state(catalog, session_factory):
    submit_review(USER, "card-1", Rating.EASY, now=NOW, session_factory=session_factory)
    card = submit_review(USER, "card-1", Rating.HARD, now=NOW + timedelta(days=4),
                         session_factory=session_factory)

    stored = load_card_state(USER, "card-1", session_factory)
    assert stored.difficulty == pytest.approx(card.difficulty, abs=1e-9)
    assert stored.stability == pytest.approx(card.stability, abs=1e-9)
    assert stored.retrievability == pytest.approx(card.retrievability, abs=1e-9)
    assert stored.state is card.state
    assert stored.next_review == card.next_review
    assert stored.last_review == card.last_review


def test_later_reviews_update_in_place(catalog, session_factory):
    first = submit_review(USER, "card-1", Rating.AGAIN, now=NOW, session_factory=session_factory)
    second = submit_review(USER, "card-1", Rating.GOOD, now=NOW + timedelta(days=1),
                           session_factory=session_factory)

    assert second.id == first.id
    assert second.reps == 2
    assert second.state is CardPhase.REVIEW
    assert count_rows(session_factory, FSRSCard) == 1


def test_learners_are_independent(catalog, session_factory):
    submit_review(USER, "card-1", Rating.EASY, now=NOW, session_factory=session_factory)
    submit_review(OTHER_USER, "card-1", Rating.AGAIN, now=NOW, session_factory=session_factory)

    assert load_card_state(USER, "card-1", session_factory).state is CardPhase.REVIEW
    assert load_card_state(OTHER_USER, "card-1", session_factory).state is CardPhase.LEARNING
    assert count_rows(session_factory, FSRSCard) == 2


def test_session_review_appends_event(catalog, session_factory, study_session):
    card = submit_review(USER, "card-2", Rating.HARD, session_id=study_session.id, now=NOW,
                         session_factory=session_factory)

    events = get_review_events("card-2", session_factory)
    assert len(events) == 1
    assert events[0].session_id == study_session.id
    assert events[0].fsrs_card_id == card.id
    assert events[0].rating == 2


def test_review_outside_session_writes_no_event(catalog, session_factory):
    submit_review(USER, "card-2", Rating.HARD, now=NOW, session_factory=session_factory)
    assert count_rows(session_factory, ReviewEvent) == 0


def test_events_keep_submission_order(catalog, session_factory, study_session):
    for offset, rating in enumerate([Rating.AGAIN, Rating.GOOD, Rating.EASY]):
        submit_review(USER, "card-3", rating, session_id=study_session.id,
                      now=NOW + timedelta(days=offset), session_factory=session_factory)

    assert [e.rating for e in get_review_events("card-3", session_factory)] == [1, 3, 4]


def test_double_submission_advances_twice(catalog, session_factory):
    submit_review(USER, "card-1", Rating.GOOD, now=NOW, session_factory=session_factory)
    card = submit_review(USER, "card-1", Rating.GOOD, now=NOW, session_factory=session_factory)
    assert card.reps == 2


def test_unknown_card_is_not_found(catalog, session_factory):
    with pytest.raises(NotFoundError) as excinfo:
        submit_review(USER, "no-such-card", Rating.GOOD, now=NOW, session_factory=session_factory)

    assert excinfo.value.kind == "card"
    assert count_rows(session_factory, FSRSCard) == 0


def test_unknown_session_is_not_found(catalog, session_factory):
    with pytest.raises(NotFoundError):
        submit_review(USER, "card-1", Rating.GOOD, session_id="missing", now=NOW,
                      session_factory=session_factory)

    assert load_card_state(USER, "card-1", session_factory) is None


def test_invalid_rating_writes_nothing(catalog, session_factory):
    with pytest.raises(ValueError):
        submit_review(USER, "card-1", 0, now=NOW, session_factory=session_factory)
    assert count_rows(session_factory, FSRSCard) == 0


def test_failed_log_append_rolls_back_state(catalog, session_factory, study_session):
    submit_review(USER, "card-1", Rating.GOOD, session_id=study_session.id, now=NOW,
                  session_factory=session_factory)
    before = load_card_state(USER, "card-1", session_factory)

    fault = OperationalError("INSERT INTO card_reviews", {}, Exception("disk I/O error"))
    with mock.patch.object(database, "append_review_event", side_effect=fault):
        with pytest.raises(ReviewTransactionError) as excinfo:
            submit_review(USER, "card-1", Rating.EASY, session_id=study_session.id,
                          now=NOW + timedelta(days=3), session_factory=session_factory)

    assert excinfo.value.retryable
    assert excinfo.value.__cause__ is fault
    assert load_card_state(USER, "card-1", session_factory) == before
    assert count_rows(session_factory, ReviewEvent) == 1


def test_failed_first_review_leaves_no_row(catalog, session_factory, study_session):
    fault = OperationalError("INSERT INTO card_reviews", {}, Exception("disk I/O error"))
    with mock.patch.object(database, "append_review_event", side_effect=fault):
        with pytest.raises(ReviewTransactionError):
            submit_review(USER, "card-1", Rating.GOOD, session_id=study_session.id, now=NOW,
                          session_factory=session_factory)

    assert count_rows(session_factory, FSRSCard) == 0


def test_cancellation_rolls_back(catalog, session_factory, study_session):
    with mock.patch.object(database, "append_review_event", side_effect=KeyboardInterrupt):
        with pytest.raises(KeyboardInterrupt):
            submit_review(USER, "card-1", Rating.GOOD, session_id=study_session.id, now=NOW,
                          session_factory=session_factory)

    assert load_card_state(USER, "card-1", session_factory) is None


def test_replay_after_rollback_matches(catalog, session_factory, study_session):
    fault = OperationalError("INSERT INTO card_reviews", {}, Exception("disk I/O error"))
    with mock.patch.object(database, "append_review_event", side_effect=fault):
        with pytest.raises(ReviewTransactionError):
            submit_review(USER, "card-1", Rating.GOOD, session_id=study_session.id, now=NOW,
                          session_factory=session_factory)

    replayed = submit_review(USER, "card-1", Rating.GOOD, session_id=study_session.id, now=NOW,
                             session_factory=session_factory)
    reference = submit_review(OTHER_USER, "card-1", Rating.GOOD, now=NOW,
                              session_factory=session_factory)
    assert replayed.stability == reference.stability
    assert replayed.next_review == reference.next_review
    assert replayed.reps == 1


def test_submit_accepts_review_input(catalog, session_factory, study_session):
    review = ReviewInput(user_id=USER, card_id="card-4", rating=4, session_id=study_session.id, now=NOW)
    card = submit(review, session_factory=session_factory)
    assert card.state is CardPhase.REVIEW
    assert len(get_review_events("card-4", session_factory)) == 1


def test_review_input_rejects_out_of_range_rating():
    with pytest.raises(ValueError):
        ReviewInput(user_id=USER, card_id="card-1", rating=5)


def test_review_events_are_append_only(catalog, session_factory, study_session):
    submit_review(USER, "card-1", Rating.GOOD, session_id=study_session.id, now=NOW,
                  session_factory=session_factory)

    with pytest.raises(ImmutableRowError):
        with session_scope(session_factory) as session:
            event = session.execute(select(ReviewEvent)).scalar_one()
            event.rating = 1

    with pytest.raises(ImmutableRowError):
        with session_scope(session_factory) as session:
            session.delete(session.execute(select(ReviewEvent)).scalar_one())

    assert [e.rating for e in get_review_events("card-1", session_factory)] == [3]


def test_plain_sessionmaker_returns_committed_state(catalog, engine, study_session):
    # Default sessionmaker expires attributes on commit
    plain_factory = sessionmaker(bind=engine)

    card = submit_review(USER, "card-1", Rating.GOOD, session_id=study_session.id, now=NOW,
                         session_factory=plain_factory)

    assert card.id is not None
    assert card.reps == 1
    assert load_card_state(USER, "card-1", plain_factory) == card

    events = get_review_events("card-1", plain_factory)
    assert [(e.rating, e.fsrs_card_id, e.session_id) for e in events] == [(3, card.id, study_session.id)]
