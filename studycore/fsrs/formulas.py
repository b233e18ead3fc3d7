"""
Memory-state update formulas.

Every function is pure and takes the weight vector `w` explicitly.
Difficulty results are clamped to [D_MIN, D_MAX]; stability results are
left raw and floored once by the scheduler.
"""

from __future__ import annotations

import math
from typing import Sequence

from studycore.fsrs.constants import D_MAX, D_MIN, S_MIN, Rating
from studycore.fsrs.parameters import SchedulerParameters


def clamp(value: float, lower: float, upper: float) -> float:
    return max(lower, min(upper, value))


def clamp_difficulty(difficulty: float) -> float:
    return clamp(difficulty, D_MIN, D_MAX)


def clamp_stability(stability: float) -> float:
    return max(S_MIN, stability)


def round_half_away_from_zero(value: float) -> int:
    """
    Round to the nearest integer, ties away from zero.

    The built-in round() rounds ties to even (2.5 -> 2); intervals must
    round 2.5 up to 3.
    """
    if value >= 0:
        return int(math.floor(value + 0.5))
    return -int(math.floor(-value + 0.5))


# ---- First review ----

def init_difficulty(w: Sequence[float], rating: Rating) -> float:
    """D_0(r) = w4 - exp(w5 * (r - 1)) + 1"""
    return clamp_difficulty(w[4] - math.exp(w[5] * (rating - 1)) + 1)


def init_stability(w: Sequence[float], rating: Rating) -> float:
    """S_0(r) = w[r - 1]"""
    return clamp_stability(w[rating - 1])


# ---- Subsequent reviews ----

def next_difficulty(w: Sequence[float], difficulty: float, rating: Rating) -> float:
    """D' = D - w6 * (r - 3)"""
    return clamp_difficulty(difficulty - w[6] * (rating - 3))


def short_term_stability(w: Sequence[float], stability: float, rating: Rating) -> float:
    """S' = S * exp(w17 * (r - 3 + w18))"""
    return stability * math.exp(w[17] * (rating - 3 + w[18]))


def forgetting_stability(
    w: Sequence[float],
    difficulty: float,
    stability: float,
    retrievability: float
) -> float:
    """
    Stability after a lapse.

    S_f = w11 * D^-w12 * ((S + 1)^w13 - 1) * exp(w14 * (1 - R))
    """
    return (
        w[11]
        * math.pow(difficulty, -w[12])
        * (math.pow(stability + 1, w[13]) - 1)
        * math.exp(w[14] * (1 - retrievability))
    )


def next_recall_stability(
    w: Sequence[float],
    difficulty: float,
    stability: float,
    retrievability: float,
    rating: Rating
) -> float:
    """
    Stability after a successful recall in the review phase.

    S_r = S * (e^w8 * (11 - D) * S^-w9 * (e^(w10 * (1 - R)) - 1)
               * hard_penalty * easy_bonus + 1)
    """
    hard_penalty = w[15] if rating == Rating.HARD else 1.0
    easy_bonus = w[16] if rating == Rating.EASY else 1.0

    growth = (
        math.exp(w[8])
        * (11 - difficulty)
        * math.pow(stability, -w[9])
        * (math.exp(w[10] * (1 - retrievability)) - 1)
        * hard_penalty
        * easy_bonus
    )
    return stability * (growth + 1)


# ---- Interval ----

def next_interval(params: SchedulerParameters, stability: float) -> int:
    """
    Days until the next review.

    interval = clamp(round(S * ln(target) / ln(0.9)), 1, max_interval)
    """
    # Cap first: stability may have grown past what an int can hold
    raw = min(stability * params.interval_factor, float(params.maximum_interval))
    interval = round_half_away_from_zero(raw)
    return int(clamp(interval, 1, params.maximum_interval))
