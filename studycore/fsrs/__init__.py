"""
FSRS - Free Spaced Repetition Scheduler

Scheduling engine for the study application.

This package implements:
- A per-card memory state (Difficulty, Stability, Retrievability)
- A rating-driven phase machine: new -> learning -> review <-> relearning
- Exponential forgetting curve: R = exp(ln(0.9) * t / S)
- An atomic review transaction (state upsert + review log entry)

Quick start:
    from studycore import fsrs

    # Initialize database
    fsrs.init_db()

    # Advance a card (algorithm only, no DB calls)
    card = fsrs.process_review(fsrs.new_card_state("u1", "c1"), fsrs.Rating.GOOD)

    # Apply a rating and persist it
    card = fsrs.submit_review("u1", "c1", fsrs.Rating.GOOD, session_id=sid)
"""

# Core scheduler API (algorithm logic)
from studycore.fsrs.scheduler import Scheduler, get_default_scheduler, process_review

# Review transaction
from studycore.fsrs.reviews import submit, submit_review

# Database API
from studycore.fsrs.database import (
    configure,
    create_db_engine,
    get_engine,
    get_review_events,
    get_session_factory,
    init_db,
    load_card_state,
    reset_db,
    session_scope,
)

# Constants and parameters
from studycore.fsrs.constants import (
    CardPhase,
    D_MAX,
    D_MIN,
    DEFAULT_MAX_INTERVAL_DAYS,
    DEFAULT_TARGET_RETENTION,
    DEFAULT_WEIGHTS,
    Rating,
    S_MIN,
)
from studycore.fsrs.parameters import SchedulerParameters

# Memory state
from studycore.fsrs.memory_state import (
    CardMemoryState,
    calculate_retrievability,
    get_elapsed_days,
    new_card_state,
)


__all__ = [
    # Core algorithm
    "Scheduler",
    "get_default_scheduler",
    "process_review",

    # Review transaction
    "submit",
    "submit_review",

    # Database operations
    "configure",
    "create_db_engine",
    "get_engine",
    "get_review_events",
    "get_session_factory",
    "init_db",
    "load_card_state",
    "reset_db",
    "session_scope",

    # Enums
    "CardPhase",
    "Rating",

    # Memory state
    "CardMemoryState",
    "calculate_retrievability",
    "get_elapsed_days",
    "new_card_state",

    # Parameters
    "SchedulerParameters",
    "D_MAX",
    "D_MIN",
    "S_MIN",
    "DEFAULT_MAX_INTERVAL_DAYS",
    "DEFAULT_TARGET_RETENTION",
    "DEFAULT_WEIGHTS",
]
