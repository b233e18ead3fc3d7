"""Study queue selection, sessions and statistics."""

from studycore.study.due_cards import (
    get_available_decks,
    get_cards_for_review,
    get_deck_for_study,
    get_new_cards,
    is_deck_available,
)
from studycore.study.sessions import (
    SessionTally,
    create_study_session,
    end_study_session,
    get_recent_sessions,
    get_study_session,
)
from studycore.study.stats import get_study_stats, load_review_events_df
from studycore.study.types import DeckSummary, SessionRecord, StudyCard, StudyStats

__all__ = [
    "get_available_decks",
    "get_cards_for_review",
    "get_deck_for_study",
    "get_new_cards",
    "is_deck_available",
    "SessionTally",
    "create_study_session",
    "end_study_session",
    "get_recent_sessions",
    "get_study_session",
    "get_study_stats",
    "load_review_events_df",
    "DeckSummary",
    "SessionRecord",
    "StudyCard",
    "StudyStats",
]
