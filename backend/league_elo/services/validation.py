from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from ..exceptions import ValidationError


class MatchFormat(str, Enum):
    BEST_OF_1 = "best_of_1"
    BEST_OF_3 = "best_of_3"
    BEST_OF_5 = "best_of_5"
    BEST_OF_7 = "best_of_7"

    @property
    def max_sets(self) -> int:
        return int(self.value.rsplit("_", 1)[1])

    @property
    def sets_to_win(self) -> int:
        return self.max_sets // 2 + 1


@dataclass(frozen=True)
class ValidationResult:
    ok: bool
    reason: Optional[str] = None


def validate_match_result(sets_won_a: int, sets_won_b: int, match_format: Any) -> ValidationResult:
    """Check that a claimed set score is legal for the declared format.

    Rules:
    - no draws: the set counts must differ
    - the winner must have exactly the sets needed for the format
    - the total number of sets may not exceed the format's maximum
    - any format outside best of 1/3/5/7 is invalid
    """

    try:
        fmt = MatchFormat(match_format)
    except ValueError:
        return ValidationResult(False, "Invalid game type")

    if sets_won_a == sets_won_b:
        return ValidationResult(False, "Match must have a winner")

    winner_sets = max(sets_won_a, sets_won_b)
    total_sets = sets_won_a + sets_won_b
    if winner_sets != fmt.sets_to_win or total_sets > fmt.max_sets:
        if fmt is MatchFormat.BEST_OF_1:
            return ValidationResult(False, "Best of 1: Winner must have 1 set")
        return ValidationResult(
            False,
            f"Best of {fmt.max_sets}: Winner must have {fmt.sets_to_win} sets, "
            f"max {fmt.max_sets} sets total",
        )

    return ValidationResult(True)


def require_valid_result(sets_won_a: int, sets_won_b: int, match_format: Any) -> MatchFormat:
    """Raise ``ValidationError`` for an illegal result, else return the parsed format."""

    result = validate_match_result(sets_won_a, sets_won_b, match_format)
    if not result.ok:
        raise ValidationError(result.reason or "Invalid match result", code="invalid_match_result")
    return MatchFormat(match_format)


def validate_set_scores(
    sets: List[Dict[str, Any]],
    *,
    max_sets: Optional[int] = 7,
    max_points_per_side: Optional[int] = 1000,
) -> List[tuple[int, int]]:
    """Validate optional per-set score rows and return them as ``(p1, p2)`` pairs.

    Rules:
    - Number of sets must be <= ``max_sets`` (if provided)
    - Each set must be an object ``{player1_score, player2_score}``
    - Scores must be integers >= 0 (booleans are rejected)
    - A set cannot be tied
    """

    if not isinstance(sets, list):
        raise ValidationError("Sets must be an array.")
    if max_sets is not None and len(sets) > max_sets:
        raise ValidationError(f"Too many sets. Max allowed is {max_sets}.")

    normalized: List[tuple[int, int]] = []
    for i, s in enumerate(sets, start=1):
        if not isinstance(s, dict):
            raise ValidationError(
                f"Set #{i} must be an object with fields player1_score and player2_score."
            )
        if "player1_score" not in s or "player2_score" not in s:
            raise ValidationError(f"Set #{i} must include both player1_score and player2_score.")

        v1, v2 = s["player1_score"], s["player2_score"]

        # Reject booleans explicitly (bool is a subclass of int in Python)
        if isinstance(v1, bool) or isinstance(v2, bool):
            raise ValidationError(f"Set #{i} scores must be integers (not booleans).")

        try:
            a = int(v1)
            b = int(v2)
        except (TypeError, ValueError):
            raise ValidationError(f"Set #{i} scores must be integers.")

        if a < 0 or b < 0:
            raise ValidationError(f"Set #{i} scores must be >= 0.")
        if a == b:
            raise ValidationError(f"Set #{i} cannot be a tie.")
        if max_points_per_side is not None and (
            a > max_points_per_side or b > max_points_per_side
        ):
            raise ValidationError(f"Set #{i} scores must be <= {max_points_per_side}.")
        normalized.append((a, b))

    return normalized


def validate_totals(values: Sequence[Any], *, label: str) -> List[int]:
    """Require non-negative integer totals (sets won, points)."""

    normalized: List[int] = []
    for index, raw in enumerate(values, start=1):
        if isinstance(raw, bool):
            raise ValidationError(f"{label} #{index} must be an integer (not a boolean).")
        if isinstance(raw, float) and not raw.is_integer():
            raise ValidationError(f"{label} #{index} must be a whole number.")
        if not isinstance(raw, (int, float, str)):
            raise ValidationError(f"{label} #{index} must be an integer.")
        try:
            value = int(raw)
        except (TypeError, ValueError):
            raise ValidationError(f"{label} #{index} must be an integer.")
        if value < 0:
            raise ValidationError(f"{label} #{index} must be greater than or equal to 0.")
        normalized.append(value)
    return normalized
