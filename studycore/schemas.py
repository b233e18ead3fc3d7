"""
Pydantic models for the engine's inputs.

These are the shapes a transport layer hands to the engine. Validating
them here means the scheduler only ever sees ratings in 1-4.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, model_validator


class ReviewInput(BaseModel):
    """One submitted rating."""
    user_id: str = Field(..., min_length=1, description="Learner identifier")
    card_id: str = Field(..., min_length=1, description="Reviewed card")
    rating: int = Field(..., ge=1, le=4, description="1=Again, 2=Hard, 3=Good, 4=Easy")
    session_id: Optional[str] = Field(default=None, description="Study session, if any")
    now: Optional[datetime] = Field(default=None, description="Review time (default: server time)")


class SessionTotals(BaseModel):
    """Final counters of a study session, computed by the client."""
    cards_studied: int = Field(..., ge=0)
    correct_answers: int = Field(..., ge=0, description="Ratings of Good or Easy")
    average_rating: float = Field(..., ge=0.0, le=4.0)

    @model_validator(mode="after")
    def check_correct_not_above_studied(self) -> "SessionTotals":
        if self.correct_answers > self.cards_studied:
            raise ValueError("correct_answers cannot exceed cards_studied")
        return self
