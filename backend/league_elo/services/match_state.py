"""Match lifecycle states and the transitions allowed between them."""

from __future__ import annotations

from enum import Enum

from ..exceptions import ConflictError


class MatchStatus(str, Enum):
    SUBMITTED = "submitted"
    REJECTED = "rejected"
    ACCEPTED_APPLIED = "accepted_applied"
    ACCEPTED_PENDING = "accepted_pending"
    CONSOLIDATED = "consolidated"

    @property
    def is_accepted(self) -> bool:
        return self in _ACCEPTED

    @property
    def rating_applied(self) -> bool:
        return self in _RATING_APPLIED

    @property
    def is_terminal(self) -> bool:
        return not TRANSITIONS[self]

    def can_transition_to(self, target: "MatchStatus") -> bool:
        return target in TRANSITIONS[self]


_ACCEPTED = frozenset(
    {MatchStatus.ACCEPTED_APPLIED, MatchStatus.ACCEPTED_PENDING, MatchStatus.CONSOLIDATED}
)
_RATING_APPLIED = frozenset({MatchStatus.ACCEPTED_APPLIED, MatchStatus.CONSOLIDATED})

TRANSITIONS: dict[MatchStatus, frozenset[MatchStatus]] = {
    MatchStatus.SUBMITTED: frozenset(
        {MatchStatus.ACCEPTED_APPLIED, MatchStatus.ACCEPTED_PENDING, MatchStatus.REJECTED}
    ),
    MatchStatus.ACCEPTED_PENDING: frozenset({MatchStatus.CONSOLIDATED}),
    MatchStatus.ACCEPTED_APPLIED: frozenset(),
    MatchStatus.CONSOLIDATED: frozenset(),
    MatchStatus.REJECTED: frozenset(),
}


def ensure_transition(match_id: int, current: MatchStatus, target: MatchStatus) -> None:
    """Raise ``ConflictError`` unless ``current -> target`` is allowed."""

    if current.can_transition_to(target):
        return
    if current.is_accepted and target in TRANSITIONS[MatchStatus.SUBMITTED]:
        raise ConflictError(f"match {match_id} is already accepted", code="match_already_accepted")
    raise ConflictError(
        f"match {match_id} cannot move from {current.value} to {target.value}",
        code="invalid_match_transition",
    )


class RatingUpdateMode(str, Enum):
    IMMEDIATE = "immediate"
    WEEKLY = "weekly"
    MONTHLY = "monthly"

    @property
    def is_deferred(self) -> bool:
        return self is not RatingUpdateMode.IMMEDIATE
