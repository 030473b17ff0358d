"""Writing a match's rating change into the league.

Used both when a match is accepted in an immediate league and when a deferred
match is consolidated, so the two paths cannot drift apart.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from ..exceptions import NotFoundError
from ..schemas import MatchRecord, RosterRecord
from ..store import Transaction
from .leagues import get_roster_entry
from .rating import RatingDelta, compute_match_delta

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AppliedRating:
    match_id: int
    player1: RosterRecord
    player2: RosterRecord
    delta: RatingDelta

    @property
    def player1_after(self) -> int:
        return self.delta.new_rating_a

    @property
    def player2_after(self) -> int:
        return self.delta.new_rating_b


async def _lock_rosters(tx: Transaction, match: MatchRecord) -> tuple[RosterRecord, RosterRecord]:
    # Lock in id order so two transactions touching the same pair cannot deadlock.
    locked: dict[int, RosterRecord] = {}
    for roster_id in sorted({match.player1_roster_id, match.player2_roster_id}):
        roster = await get_roster_entry(tx, match.league_id, roster_id, for_update=True)
        if roster is None:
            raise NotFoundError("roster_entry", roster_id)
        locked[roster_id] = roster
    return locked[match.player1_roster_id], locked[match.player2_roster_id]


async def apply_rating_change(tx: Transaction, match: MatchRecord, *, now: datetime) -> AppliedRating:
    """Move both players' ratings by the match delta and record history rows.

    The delta is computed from the ratings as they stand inside ``tx``; the
    match's before/after columns are rewritten to what was actually applied.
    """

    player1, player2 = await _lock_rosters(tx, match)
    delta = compute_match_delta(
        player1.current_rating,
        player2.current_rating,
        match.player1_sets_won,
        match.player2_sets_won,
        match.player1_points_total,
        match.player2_points_total,
    )
    if (player1.current_rating, player2.current_rating) != (
        match.player1_rating_before,
        match.player2_rating_before,
    ):
        logger.info(
            "Match %s ratings moved since submission (%s/%s -> %s/%s); recomputed",
            match.id,
            match.player1_rating_before,
            match.player2_rating_before,
            player1.current_rating,
            player2.current_rating,
        )

    await tx.run(
        "UPDATE matches SET player1_rating_before = ?, player2_rating_before = ?, "
        "player1_rating_after = ?, player2_rating_after = ?, rating_applied_at = ? "
        "WHERE id = ?",
        (
            player1.current_rating,
            player2.current_rating,
            delta.new_rating_a,
            delta.new_rating_b,
            now,
            match.id,
        ),
    )
    for roster, new_rating, change in (
        (player1, delta.new_rating_a, delta.change_a),
        (player2, delta.new_rating_b, delta.change_b),
    ):
        await tx.run(
            "UPDATE league_roster SET current_rating = ? WHERE league_id = ? AND id = ?",
            (new_rating, match.league_id, roster.id),
        )
        await tx.run(
            "INSERT INTO rating_history (roster_id, user_id, league_id, match_id, "
            "rating_before, rating_after, rating_change, recorded_at) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
            (
                roster.id,
                roster.user_id,
                match.league_id,
                match.id,
                roster.current_rating,
                new_rating,
                change,
                now,
            ),
        )

    return AppliedRating(match_id=match.id, player1=player1, player2=player2, delta=delta)
