"""Elo-style rating model for one-on-one league matches.

Pure functions only: the same computation backs rating previews (nothing
persisted) and committed rating changes.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

K_FACTOR = 46
SCALE_FACTOR = 400.0
POINTS_WEIGHT = 0.7

# Keyed by sets needed to win (the winner's set count).
FORMAT_MULTIPLIERS: dict[int, float] = {
    1: 0.512,  # best of 1
    2: 0.64,   # best of 3
    3: 0.8,    # best of 5
    4: 1.0,    # best of 7
}
# TODO: decide whether an unknown sets-to-win value should raise instead of
# using the best-of-1 multiplier; kept as-is until the league rules say so.
FALLBACK_FORMAT_MULTIPLIER = FORMAT_MULTIPLIERS[1]


@dataclass(frozen=True)
class RatingDelta:
    new_rating_a: int
    new_rating_b: int
    delta: int
    expected_score_a: float
    points_factor: float
    format_multiplier: float

    @property
    def change_a(self) -> int:
        return self.delta

    @property
    def change_b(self) -> int:
        return -self.delta


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves towards positive infinity."""
    return math.floor(value + 0.5)


def expected_score(rating: float, opponent_rating: float) -> float:
    """Compute the Elo expected score for one side."""
    return 1.0 / (1.0 + 10.0 ** ((opponent_rating - rating) / SCALE_FACTOR))


def format_multiplier(sets_won_a: int, sets_won_b: int) -> float:
    return FORMAT_MULTIPLIERS.get(max(sets_won_a, sets_won_b), FALLBACK_FORMAT_MULTIPLIER)


def points_factor(points_a: int, points_b: int) -> float:
    """Scale the change by A's share of points, bounded to roughly [0.65, 1.35]."""

    total = points_a + points_b
    ratio = points_a / total if total > 0 else 0.5
    return 1 + (ratio - 0.5) * POINTS_WEIGHT


def compute_delta(
    rating_a: int,
    rating_b: int,
    points_a: int,
    points_b: int,
    a_won: bool,
    sets_won_a: int,
    sets_won_b: int,
) -> RatingDelta:
    """Return new ratings for both sides after one match.

    A single rounded delta is added to A and subtracted from B, so the change
    is zero-sum.
    """

    expected_a = expected_score(rating_a, rating_b)
    multiplier = format_multiplier(sets_won_a, sets_won_b)
    factor = points_factor(points_a, points_b)
    actual_a = 1.0 if a_won else 0.0
    delta = round_half_up(K_FACTOR * multiplier * factor * (actual_a - expected_a))
    return RatingDelta(
        new_rating_a=rating_a + delta,
        new_rating_b=rating_b - delta,
        delta=delta,
        expected_score_a=expected_a,
        points_factor=factor,
        format_multiplier=multiplier,
    )


def compute_match_delta(
    rating_1: int,
    rating_2: int,
    sets_won_1: int,
    sets_won_2: int,
    points_1: int,
    points_2: int,
) -> RatingDelta:
    """``compute_delta`` with the winner derived from the set count."""

    return compute_delta(
        rating_1,
        rating_2,
        points_1 or 0,
        points_2 or 0,
        sets_won_1 > sets_won_2,
        sets_won_1,
        sets_won_2,
    )
