"""Immutable scheduler configuration (weights, retention, max interval)."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable, Sequence, Tuple

from studycore.errors import ConfigurationError
from studycore.fsrs.constants import (
    BASE_RETENTION,
    DEFAULT_MAX_INTERVAL_DAYS,
    DEFAULT_TARGET_RETENTION,
    DEFAULT_WEIGHTS,
    WEIGHT_BOUNDS,
    WEIGHT_COUNT,
)


@dataclass(frozen=True)
class SchedulerParameters:
    weights: Tuple[float, ...] = DEFAULT_WEIGHTS
    target_retention: float = DEFAULT_TARGET_RETENTION
    maximum_interval: int = DEFAULT_MAX_INTERVAL_DAYS

    def __post_init__(self):
        weights = tuple(float(w) for w in self.weights)
        if len(weights) != WEIGHT_COUNT:
            raise ConfigurationError(
                f"Expected {WEIGHT_COUNT} weights, got {len(weights)}"
            )
        if not all(math.isfinite(w) for w in weights):
            raise ConfigurationError("Weights must be finite numbers")
        for index, (w, (lower, upper)) in enumerate(zip(weights, WEIGHT_BOUNDS)):
            if not lower <= w <= upper:
                raise ConfigurationError(
                    f"Weight w[{index}]={w} outside [{lower}, {upper}]"
                )
        if not 0.0 < self.target_retention < 1.0:
            raise ConfigurationError(
                f"Target retention must be in (0, 1), got {self.target_retention}"
            )
        if int(self.maximum_interval) < 1:
            raise ConfigurationError(
                f"Maximum interval must be at least 1 day, got {self.maximum_interval}"
            )
        object.__setattr__(self, "weights", weights)
        object.__setattr__(self, "maximum_interval", int(self.maximum_interval))

    @property
    def interval_factor(self) -> float:
        """Days of interval per day of stability at the target retention."""
        return math.log(self.target_retention) / math.log(BASE_RETENTION)

    def with_weights(self, weights: Sequence[float]) -> "SchedulerParameters":
        return SchedulerParameters(
            weights=tuple(weights),
            target_retention=self.target_retention,
            maximum_interval=self.maximum_interval,
        )


def parse_weights(raw: str) -> Tuple[float, ...]:
    """
    Parse a comma-separated weight list (as found in FSRS_WEIGHTS).

    Raises:
        ConfigurationError: If any entry is not a number
    """
    parts: Iterable[str] = (p.strip() for p in raw.split(","))
    try:
        return tuple(float(p) for p in parts if p)
    except ValueError as exc:
        raise ConfigurationError(f"Invalid FSRS weight list: {raw!r}") from exc
