"""Internal application services.

Only the pure helpers (no I/O) are re-exported here; the store-backed
services are imported from their own modules.
"""

from .match_state import MatchStatus, RatingUpdateMode, ensure_transition
from .rating import RatingDelta, compute_delta, compute_match_delta, expected_score
from .validation import (
    MatchFormat,
    ValidationResult,
    require_valid_result,
    validate_match_result,
    validate_set_scores,
)

__all__ = [
    "MatchStatus",
    "RatingUpdateMode",
    "ensure_transition",
    "RatingDelta",
    "compute_delta",
    "compute_match_delta",
    "expected_score",
    "MatchFormat",
    "ValidationResult",
    "require_valid_result",
    "validate_match_result",
    "validate_set_scores",
]
