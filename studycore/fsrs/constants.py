"""
FSRS Constants and Parameters

All fixed bounds and default parameters for the scheduler in one place.
The weight vector itself is configuration: these are only the defaults
used when nothing else is supplied at startup.
"""

from __future__ import annotations

from enum import Enum, IntEnum


# ---- Ratings ----

class Rating(IntEnum):
    """Learner's self-rated recall quality."""
    AGAIN = 1  # Forgot
    HARD = 2   # Recalled with serious effort
    GOOD = 3   # Recalled normally
    EASY = 4   # Recalled effortlessly

    @classmethod
    def coerce(cls, value) -> "Rating":
        """
        Convert a raw rating (int or Rating) into a Rating.

        Raises:
            ValueError: If the value is not one of 1-4
        """
        if isinstance(value, bool) or int(value) != value:
            raise ValueError(f"Invalid rating: {value!r}")
        return cls(int(value))

    @property
    def is_correct(self) -> bool:
        """Good and Easy count as a correct answer."""
        return self >= Rating.GOOD


# ---- Scheduling phases ----

class CardPhase(str, Enum):
    """Scheduling phase of a card (stored as its string value)."""
    NEW = "new"
    LEARNING = "learning"
    REVIEW = "review"
    RELEARNING = "relearning"


# ---- Bounds ----

D_MIN = 1.0    # Minimum difficulty
D_MAX = 10.0   # Maximum difficulty
S_MIN = 0.1    # Minimum stability (days)

# Retrievability after `stability` days is calibrated to this value
BASE_RETENTION = 0.9


# ---- Defaults ----

DEFAULT_TARGET_RETENTION = 0.9
DEFAULT_MAX_INTERVAL_DAYS = 36500  # 100 years

# w[0..16]: reference weights
# w[17..18]: short-term stability weights (FSRS-5 defaults)
DEFAULT_WEIGHTS = (
    0.4, 0.6, 2.4, 5.8,           # initial stability per rating
    4.93, 0.94,                   # initial difficulty
    0.86, 0.01,                   # difficulty step, (unused)
    1.49, 0.14, 0.94,             # recall stability
    2.18, 0.05, 0.34, 1.26,       # forgetting stability
    0.29, 2.61,                   # hard penalty, easy bonus
    0.51655, 0.6621,              # short-term stability
)

WEIGHT_COUNT = len(DEFAULT_WEIGHTS)

# Accepted range per weight (inclusive). Within these ranges every
# exponent the formulas take stays far from float overflow.
WEIGHT_BOUNDS = (
    (0.01, 100.0), (0.01, 100.0), (0.01, 100.0), (0.01, 100.0),
    (1.0, 10.0), (0.001, 4.0),
    (0.001, 4.0), (0.001, 0.75),
    (0.0, 4.5), (0.0, 0.8), (0.001, 3.5),
    (0.001, 5.0), (0.001, 0.25), (0.001, 0.9), (0.0, 4.0),
    (0.0, 1.0), (1.0, 6.0),
    (0.0, 2.0), (0.0, 2.0),
)
