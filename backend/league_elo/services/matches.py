"""Match lifecycle: submit, confirm, reject, amend and read match results.

A match starts ``submitted`` with a rating preview snapshot. A league admin
either rejects it (the row is deleted) or accepts it; acceptance applies the
rating change at once in ``immediate`` leagues and queues it for
consolidation otherwise. Every state change is a conditional update on the
expected status, so concurrent callers cannot both win.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Mapping, Optional, Sequence

from ..exceptions import AuthorizationError, ConflictError, NotAMemberError, ValidationError
from ..schemas import LeagueRecord, MatchRecord, MatchSetRecord, RosterRecord, UserRecord
from ..store import Queryable, Transaction, TransactionalStore
from ..time_utils import utcnow
from . import notifications
from .leagues import (
    get_membership,
    get_roster_entry,
    is_league_admin,
    require_league,
    require_league_admin,
)
from .match_rows import (
    MATCH_FROM,
    MATCH_SELECT,
    get_sets,
    get_sets_for,
    replace_sets,
    require_match,
)
from .match_state import MatchStatus, ensure_transition
from .rating import RatingDelta, compute_match_delta
from .rating_ledger import AppliedRating, apply_rating_change
from .validation import MatchFormat, require_valid_result, validate_set_scores, validate_totals

logger = logging.getLogger(__name__)

STATUS_FILTERS: dict[str, tuple[MatchStatus, ...]] = {
    "pending": (MatchStatus.SUBMITTED,),
    "accepted": (
        MatchStatus.ACCEPTED_APPLIED,
        MatchStatus.ACCEPTED_PENDING,
        MatchStatus.CONSOLIDATED,
    ),
    "all": (),
}


@dataclass(frozen=True)
class MatchResult:
    """A claimed result as reported by a player."""

    player1_sets_won: int
    player2_sets_won: int
    match_format: Any
    player1_points_total: int = 0
    player2_points_total: int = 0
    sets: Optional[Sequence[Mapping[str, Any]]] = None
    played_at: Optional[datetime] = None


@dataclass(frozen=True)
class ValidatedResult:
    player1_sets_won: int
    player2_sets_won: int
    player1_points_total: int
    player2_points_total: int
    match_format: MatchFormat
    sets: Optional[list[tuple[int, int]]]
    played_at: Optional[datetime]


@dataclass(frozen=True)
class RatingPreview:
    player1: RosterRecord
    player2: RosterRecord
    delta: RatingDelta


@dataclass(frozen=True)
class SubmittedMatch:
    match: MatchRecord
    sets: list[MatchSetRecord]
    preview: RatingDelta


@dataclass(frozen=True)
class AcceptOutcome:
    match_id: int
    status: MatchStatus
    applied: Optional[AppliedRating] = None

    @property
    def deferred(self) -> bool:
        return self.status is MatchStatus.ACCEPTED_PENDING


@dataclass(frozen=True)
class MatchPage:
    matches: list[MatchRecord]
    total: int
    limit: int
    offset: int
    sets: dict[int, list[MatchSetRecord]] = field(default_factory=dict)


def validate_result(result: MatchResult) -> ValidatedResult:
    """Check a reported result before anything is written."""

    sets_won = validate_totals(
        [result.player1_sets_won, result.player2_sets_won], label="Sets won"
    )
    points = validate_totals(
        [result.player1_points_total or 0, result.player2_points_total or 0], label="Points total"
    )
    fmt = require_valid_result(sets_won[0], sets_won[1], result.match_format)
    sets = None
    if result.sets is not None:
        sets = validate_set_scores([dict(s) for s in result.sets], max_sets=fmt.max_sets)
    return ValidatedResult(
        player1_sets_won=sets_won[0],
        player2_sets_won=sets_won[1],
        player1_points_total=points[0],
        player2_points_total=points[1],
        match_format=fmt,
        sets=sets,
        played_at=result.played_at,
    )


def _winner(player1: RosterRecord, player2: RosterRecord, result: ValidatedResult) -> int:
    return player1.id if result.player1_sets_won > result.player2_sets_won else player2.id


class MatchLifecycle:
    def __init__(self, store: TransactionalStore, *, clock: Callable[[], datetime] = utcnow) -> None:
        self.store = store
        self._clock = clock

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------
    async def _require_opponent(
        self, db: Queryable, league_id: int, roster_id: int, *, for_update: bool = False
    ) -> RosterRecord:
        roster = await get_roster_entry(db, league_id, roster_id, for_update=for_update)
        if roster is None:
            raise NotAMemberError(f"Roster entry {roster_id} is not part of league {league_id}")
        return roster

    async def _require_member(self, db: Queryable, league_id: int, user: UserRecord) -> RosterRecord:
        membership = await get_membership(db, league_id, user.id)
        if membership is None:
            raise NotAMemberError("You are not a member of this league")
        return membership

    async def _can_view(self, match: MatchRecord, user: UserRecord) -> bool:
        if user.id in (match.player1_user_id, match.player2_user_id):
            return True
        return await is_league_admin(self.store, match.league_id, user)

    # ------------------------------------------------------------------
    # previews and submission
    # ------------------------------------------------------------------
    async def preview(
        self,
        league_id: int,
        acting_user: UserRecord,
        player2_roster_id: int,
        player1_sets_won: int,
        player2_sets_won: int,
        player1_points_total: int = 0,
        player2_points_total: int = 0,
        *,
        player1_roster_id: Optional[int] = None,
    ) -> RatingPreview:
        """Compute the rating change a result would cause; nothing is written."""

        await require_league(self.store, league_id)
        if player1_roster_id is None:
            player1 = await self._require_member(self.store, league_id, acting_user)
        else:
            if not acting_user.is_admin:
                await self._require_member(self.store, league_id, acting_user)
            player1 = await self._require_opponent(self.store, league_id, player1_roster_id)
        player2 = await self._require_opponent(self.store, league_id, player2_roster_id)
        sets_won = validate_totals([player1_sets_won, player2_sets_won], label="Sets won")
        points = validate_totals([player1_points_total, player2_points_total], label="Points total")
        delta = compute_match_delta(
            player1.current_rating,
            player2.current_rating,
            sets_won[0],
            sets_won[1],
            points[0],
            points[1],
        )
        return RatingPreview(player1=player1, player2=player2, delta=delta)

    async def submit(
        self,
        league_id: int,
        reporter: UserRecord,
        opponent_roster_id: int,
        result: MatchResult,
    ) -> SubmittedMatch:
        """Record a result reported by a league member against an opponent.

        The reporter is always player 1. Ratings are only previewed here: the
        snapshot is stored on the match but no roster rating changes.
        """

        league = await require_league(self.store, league_id)
        reporter_roster = await self._require_member(self.store, league_id, reporter)
        await self._require_opponent(self.store, league_id, opponent_roster_id)
        if reporter_roster.id == opponent_roster_id:
            raise ValidationError("You cannot record a match against yourself", code="self_match")
        checked = validate_result(result)

        async with self.store.transaction() as tx:
            player1 = await self._require_opponent(tx, league_id, reporter_roster.id)
            player2 = await self._require_opponent(tx, league_id, opponent_roster_id)
            delta = compute_match_delta(
                player1.current_rating,
                player2.current_rating,
                checked.player1_sets_won,
                checked.player2_sets_won,
                checked.player1_points_total,
                checked.player2_points_total,
            )
            now = self._clock()
            inserted = await tx.run(
                "INSERT INTO matches (league_id, player1_roster_id, player2_roster_id, "
                "winner_roster_id, player1_sets_won, player2_sets_won, player1_points_total, "
                "player2_points_total, match_format, status, player1_rating_before, "
                "player2_rating_before, player1_rating_after, player2_rating_after, "
                "reported_by, played_at, created_at) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    league_id,
                    player1.id,
                    player2.id,
                    _winner(player1, player2, checked),
                    checked.player1_sets_won,
                    checked.player2_sets_won,
                    checked.player1_points_total,
                    checked.player2_points_total,
                    checked.match_format,
                    MatchStatus.SUBMITTED,
                    player1.current_rating,
                    player2.current_rating,
                    delta.new_rating_a,
                    delta.new_rating_b,
                    reporter.id,
                    checked.played_at or now,
                    now,
                ),
            )
            match_id = inserted.last_id
            if match_id is None:
                raise ConflictError("match insert did not return an id", code="insert_failed")
            if checked.sets:
                await replace_sets(tx, match_id, checked.sets)
            if player2.user_id is not None:
                await notifications.notify(
                    tx,
                    player2.user_id,
                    notifications.MATCH_REQUEST,
                    "New Match Result",
                    f'{reporter.username} has submitted a match result in "{league.name}"',
                    match_id,
                )
            match = await require_match(tx, match_id)
            sets = await get_sets(tx, match_id)

        logger.info(
            "Match %s submitted in league %s by user %s (%s-%s, preview %+d)",
            match_id,
            league_id,
            reporter.id,
            checked.player1_sets_won,
            checked.player2_sets_won,
            delta.delta,
        )
        return SubmittedMatch(match=match, sets=sets, preview=delta)

    # ------------------------------------------------------------------
    # admin decisions
    # ------------------------------------------------------------------
    async def accept(self, match_id: int, acting_user: UserRecord) -> AcceptOutcome:
        match = await require_match(self.store, match_id)
        await require_league_admin(self.store, match.league_id, acting_user)
        league = await require_league(self.store, match.league_id)
        target = (
            MatchStatus.ACCEPTED_PENDING
            if league.rating_update_mode.is_deferred
            else MatchStatus.ACCEPTED_APPLIED
        )
        ensure_transition(match.id, match.status, target)

        async with self.store.transaction() as tx:
            now = self._clock()
            claimed = await tx.run(
                "UPDATE matches SET status = ?, accepted_by = ?, accepted_at = ? "
                "WHERE id = ? AND status = ?",
                (target, acting_user.id, now, match.id, MatchStatus.SUBMITTED),
            )
            if claimed.changes == 0:
                raise ConflictError(
                    f"match {match.id} is already accepted", code="match_already_accepted"
                )
            applied = None
            match = await require_match(tx, match.id)
            if target is MatchStatus.ACCEPTED_APPLIED:
                applied = await apply_rating_change(tx, match, now=now)
                await self._notify_accepted(tx, league, applied)
            else:
                await self._notify_deferred(tx, league, match)

        if applied is not None:
            logger.info(
                "Match %s accepted in league %s; ratings %s->%s / %s->%s",
                match.id,
                league.id,
                applied.player1.current_rating,
                applied.player1_after,
                applied.player2.current_rating,
                applied.player2_after,
            )
        else:
            logger.info(
                "Match %s accepted in league %s; rating deferred to %s consolidation",
                match.id,
                league.id,
                league.rating_update_mode.value,
            )
        return AcceptOutcome(match_id=match.id, status=target, applied=applied)

    async def _notify_accepted(
        self, tx: Transaction, league: LeagueRecord, applied: AppliedRating
    ) -> None:
        changes = {
            applied.player1.id: applied.delta.change_a,
            applied.player2.id: applied.delta.change_b,
        }
        for roster, user_id in notifications.bound_users([applied.player1, applied.player2]):
            await notifications.notify(
                tx,
                user_id,
                notifications.MATCH_ACCEPTED,
                "Match Accepted",
                f'Your match result in "{league.name}" has been accepted. '
                f"Rating change: {notifications.signed(changes[roster.id])}",
                applied.match_id,
            )

    async def _notify_deferred(self, tx: Transaction, league: LeagueRecord, match: MatchRecord) -> None:
        for user_id in {match.player1_user_id, match.player2_user_id} - {None}:
            await notifications.notify(
                tx,
                user_id,
                notifications.MATCH_ACCEPTED_DEFERRED,
                "Match Accepted (Deferred Rating)",
                f'Your match result in "{league.name}" was accepted. Rating will be applied '
                f"during {league.rating_update_mode.value} consolidation.",
                match.id,
            )

    async def reject(self, match_id: int, acting_user: UserRecord, reason: Optional[str] = None) -> None:
        """Discard a submitted match. The row and its sets are deleted."""

        match = await require_match(self.store, match_id)
        await require_league_admin(self.store, match.league_id, acting_user)
        ensure_transition(match.id, match.status, MatchStatus.REJECTED)
        league_name = match.league_name or ""
        suffix = f": {reason}" if reason else ""

        async with self.store.transaction() as tx:
            await tx.run("DELETE FROM match_sets WHERE match_id = ?", (match.id,))
            deleted = await tx.run(
                "DELETE FROM matches WHERE id = ? AND status = ?",
                (match.id, MatchStatus.SUBMITTED),
            )
            if deleted.changes == 0:
                raise ConflictError(
                    f"match {match.id} is already accepted", code="match_already_accepted"
                )
            for user_id in {match.player1_user_id, match.player2_user_id} - {None}:
                await notifications.notify(
                    tx,
                    user_id,
                    notifications.MATCH_REJECTED,
                    "Match Rejected",
                    f'Your match result in "{league_name}" has been rejected{suffix}',
                    None,
                )
        logger.info("Match %s rejected by user %s", match.id, acting_user.id)

    # ------------------------------------------------------------------
    # amendments
    # ------------------------------------------------------------------
    async def update(self, match_id: int, acting_user: UserRecord, result: MatchResult) -> MatchRecord:
        """Re-validate and rewrite a submitted match, refreshing its rating snapshot."""

        match = await require_match(self.store, match_id)
        if acting_user.id not in (match.player1_user_id, match.player2_user_id):
            raise AuthorizationError("Only match participants can update the match")
        if match.status is not MatchStatus.SUBMITTED:
            raise ConflictError(
                f"match {match.id} is already accepted", code="match_already_accepted"
            )
        checked = validate_result(result)

        async with self.store.transaction() as tx:
            player1 = await self._require_opponent(tx, match.league_id, match.player1_roster_id)
            player2 = await self._require_opponent(tx, match.league_id, match.player2_roster_id)
            delta = compute_match_delta(
                player1.current_rating,
                player2.current_rating,
                checked.player1_sets_won,
                checked.player2_sets_won,
                checked.player1_points_total,
                checked.player2_points_total,
            )
            updated = await tx.run(
                "UPDATE matches SET player1_sets_won = ?, player2_sets_won = ?, "
                "player1_points_total = ?, player2_points_total = ?, match_format = ?, "
                "winner_roster_id = ?, player1_rating_before = ?, player2_rating_before = ?, "
                "player1_rating_after = ?, player2_rating_after = ?, played_at = ? "
                "WHERE id = ? AND status = ?",
                (
                    checked.player1_sets_won,
                    checked.player2_sets_won,
                    checked.player1_points_total,
                    checked.player2_points_total,
                    checked.match_format,
                    _winner(player1, player2, checked),
                    player1.current_rating,
                    player2.current_rating,
                    delta.new_rating_a,
                    delta.new_rating_b,
                    checked.played_at or match.played_at,
                    match.id,
                    MatchStatus.SUBMITTED,
                ),
            )
            if updated.changes == 0:
                raise ConflictError(
                    f"match {match.id} is already accepted", code="match_already_accepted"
                )
            if checked.sets is not None:
                await replace_sets(tx, match.id, checked.sets)
            refreshed = await require_match(tx, match.id)

        logger.info("Match %s updated by user %s", match.id, acting_user.id)
        return refreshed

    async def remove(self, match_id: int, acting_user: UserRecord) -> None:
        """Hard-delete a match that has not been accepted. Global admins only."""

        if not acting_user.is_admin:
            raise AuthorizationError("Admin access required", code="admin_required")
        match = await require_match(self.store, match_id)
        if match.status is not MatchStatus.SUBMITTED:
            raise ConflictError(
                f"match {match.id} is already accepted", code="match_already_accepted"
            )
        async with self.store.transaction() as tx:
            await tx.run("DELETE FROM match_sets WHERE match_id = ?", (match.id,))
            deleted = await tx.run(
                "DELETE FROM matches WHERE id = ? AND status = ?",
                (match.id, MatchStatus.SUBMITTED),
            )
            if deleted.changes == 0:
                raise ConflictError(
                    f"match {match.id} is already accepted", code="match_already_accepted"
                )
        logger.info("Match %s deleted by admin %s", match.id, acting_user.id)

    # ------------------------------------------------------------------
    # reads
    # ------------------------------------------------------------------
    async def get(self, match_id: int, acting_user: UserRecord) -> tuple[MatchRecord, list[MatchSetRecord]]:
        match = await require_match(self.store, match_id)
        if not await self._can_view(match, acting_user):
            raise AuthorizationError("Access denied")
        return match, await get_sets(self.store, match.id)

    async def list_matches(
        self,
        acting_user: UserRecord,
        *,
        league_id: Optional[int] = None,
        status: str = "all",
        limit: int = 20,
        offset: int = 0,
    ) -> MatchPage:
        """Page through matches the caller may see, newest first."""

        if status not in STATUS_FILTERS:
            raise ValidationError(f"Unknown status filter: {status}")
        clauses: list[str] = []
        params: list[Any] = []
        if league_id is not None:
            clauses.append("m.league_id = ?")
            params.append(league_id)
        statuses = STATUS_FILTERS[status]
        if statuses:
            clauses.append(f"m.status IN ({', '.join('?' for _ in statuses)})")
            params.extend(statuses)
        if not acting_user.is_admin:
            clauses.append(
                "(r1.user_id = ? OR r2.user_id = ? OR EXISTS ("
                "SELECT 1 FROM league_roster lr WHERE lr.league_id = m.league_id "
                "AND lr.user_id = ? AND lr.is_admin = ?))"
            )
            params.extend([acting_user.id, acting_user.id, acting_user.id, True])
        where = f" WHERE {' AND '.join(clauses)}" if clauses else ""

        rows = await self.store.all(
            f"{MATCH_SELECT}{where} ORDER BY m.created_at DESC, m.id DESC LIMIT ? OFFSET ?",
            (*params, limit, offset),
        )
        count = await self.store.get(f"SELECT COUNT(*) AS total {MATCH_FROM}{where}", tuple(params))
        matches = [MatchRecord.model_validate(row) for row in rows]
        sets = await get_sets_for(self.store, [m.id for m in matches])
        return MatchPage(
            matches=matches,
            total=int(count["total"]) if count else 0,
            limit=limit,
            offset=offset,
            sets=sets,
        )

    async def list_pending(
        self, acting_user: UserRecord, *, limit: int = 20, offset: int = 0
    ) -> MatchPage:
        """Submitted matches awaiting a decision from the caller, oldest first."""

        clauses = ["m.status = ?"]
        params: list[Any] = [MatchStatus.SUBMITTED]
        if not acting_user.is_admin:
            clauses.append(
                "EXISTS (SELECT 1 FROM league_roster lr WHERE lr.league_id = m.league_id "
                "AND lr.user_id = ? AND lr.is_admin = ?)"
            )
            params.extend([acting_user.id, True])
        where = f" WHERE {' AND '.join(clauses)}"
        rows = await self.store.all(
            f"{MATCH_SELECT}{where} ORDER BY m.created_at ASC, m.id ASC LIMIT ? OFFSET ?",
            (*params, limit, offset),
        )
        count = await self.store.get(f"SELECT COUNT(*) AS total {MATCH_FROM}{where}", tuple(params))
        return MatchPage(
            matches=[MatchRecord.model_validate(row) for row in rows],
            total=int(count["total"]) if count else 0,
            limit=limit,
            offset=offset,
        )
