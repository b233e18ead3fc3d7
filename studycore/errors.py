"""
Errors raised by the study engine.

Validation of transport input (ratings, identifiers) happens before the
engine is called; what is left here is configuration, lookups and
storage failures.
"""

from __future__ import annotations


class StudyCoreError(Exception):
    """Base class for all engine errors."""


class ConfigurationError(StudyCoreError, ValueError):
    """Startup configuration is missing or invalid."""


class NotFoundError(StudyCoreError, LookupError):
    """A referenced session or card does not exist. Nothing was written."""

    def __init__(self, kind: str, identifier):
        self.kind = kind
        self.identifier = identifier
        super().__init__(f"{kind} not found: {identifier}")


class ReviewTransactionError(StudyCoreError):
    """
    A review transaction failed and was rolled back.

    The underlying storage error is chained as __cause__. Nothing from the
    failed call is visible, so re-submitting the same rating is safe.
    """

    retryable = True

    def __init__(self, user_id: str, card_id: str, message: str = "Review transaction failed"):
        self.user_id = user_id
        self.card_id = card_id
        super().__init__(f"{message} (user={user_id}, card={card_id})")


class SessionAlreadyEndedError(StudyCoreError):
    """A study session's totals were already written; sessions end once."""

    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"study session already ended: {session_id}")
