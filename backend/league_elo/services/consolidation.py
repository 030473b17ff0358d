"""Batch application of deferred rating changes.

Leagues in ``weekly`` or ``monthly`` mode accept matches without touching
ratings. ``ConsolidationEngine.consolidate`` later walks the accepted queue
oldest first and applies each match in its own transaction, reading the
ratings as they stand at that moment so every match sees the effect of the
ones before it.

The run is fail-fast: the first failing match stops it. Matches committed
before the failure stay applied and are reported through
``ConsolidationInterrupted.applied_count`` so the run can be resumed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from ..config import CONSOLIDATION_BATCH_SIZE
from ..exceptions import ConflictError, ConsolidationInterrupted, NotAMemberError, ValidationError
from ..schemas import LeagueRecord, RatingHistoryRecord, RosterRecord, UserRecord
from ..store import Transaction, TransactionalStore
from ..time_utils import coerce_utc, utcnow
from . import notifications
from .leagues import get_membership, list_roster, require_league, require_league_admin
from .match_rows import require_match
from .match_state import MatchStatus, ensure_transition
from .rating_ledger import AppliedRating, apply_rating_change

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ConsolidationResult:
    league_id: int
    applied_count: int
    remaining: int


@dataclass(frozen=True)
class PendingMatch:
    id: int
    player1_roster_id: int
    player2_roster_id: int
    accepted_at: Optional[datetime]


@dataclass(frozen=True)
class ConsolidationStatus:
    league: LeagueRecord
    pending: list[PendingMatch]
    members: list[RosterRecord]


class ConsolidationEngine:
    def __init__(
        self,
        store: TransactionalStore,
        *,
        batch_size: int = CONSOLIDATION_BATCH_SIZE,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.store = store
        self.batch_size = batch_size
        self._clock = clock

    async def _pending(self, league_id: int, limit: Optional[int] = None) -> list[PendingMatch]:
        sql = (
            "SELECT id, player1_roster_id, player2_roster_id, accepted_at FROM matches "
            "WHERE league_id = ? AND status = ? ORDER BY accepted_at ASC, id ASC"
        )
        params: tuple = (league_id, MatchStatus.ACCEPTED_PENDING)
        if limit is not None:
            sql += " LIMIT ?"
            params += (limit,)
        rows = await self.store.all(sql, params)
        return [
            PendingMatch(
                id=row["id"],
                player1_roster_id=row["player1_roster_id"],
                player2_roster_id=row["player2_roster_id"],
                accepted_at=coerce_utc(row["accepted_at"]),
            )
            for row in rows
        ]

    async def _count_pending(self, league_id: int) -> int:
        row = await self.store.get(
            "SELECT COUNT(*) AS total FROM matches WHERE league_id = ? AND status = ?",
            (league_id, MatchStatus.ACCEPTED_PENDING),
        )
        return int(row["total"]) if row else 0

    async def _require_deferred_league(self, league_id: int, acting_user: UserRecord) -> LeagueRecord:
        await require_league_admin(self.store, league_id, acting_user)
        league = await require_league(self.store, league_id)
        if not league.rating_update_mode.is_deferred:
            raise ConflictError(
                "League is set to immediate rating updates; there is nothing to consolidate",
                code="league_not_deferred",
            )
        return league

    async def consolidate(
        self, league_id: int, acting_user: UserRecord, *, limit: Optional[int] = None
    ) -> ConsolidationResult:
        """Apply up to ``limit`` pending matches in acceptance order."""

        if limit is not None and limit <= 0:
            raise ValidationError("limit must be a positive integer")
        league = await self._require_deferred_league(league_id, acting_user)
        batch = await self._pending(league.id, limit or self.batch_size)
        logger.info(
            "Consolidating league %s (%s): %d match(es) in this batch",
            league.id,
            league.rating_update_mode.value,
            len(batch),
        )

        applied_count = 0
        for pending in batch:
            try:
                async with self.store.transaction() as tx:
                    await self._apply_one(tx, league, pending.id)
            except Exception as exc:
                logger.error(
                    "Consolidation of league %s stopped at match %s after %d applied",
                    league.id,
                    pending.id,
                    applied_count,
                    exc_info=exc,
                )
                raise ConsolidationInterrupted(league.id, applied_count, pending.id, exc) from exc
            applied_count += 1

        remaining = await self._count_pending(league.id)
        logger.info(
            "Consolidated %d match(es) in league %s; %d still pending",
            applied_count,
            league.id,
            remaining,
        )
        return ConsolidationResult(league_id=league.id, applied_count=applied_count, remaining=remaining)

    async def _apply_one(self, tx: Transaction, league: LeagueRecord, match_id: int) -> AppliedRating:
        # the conditional claim is the only guard against a concurrent run
        now = self._clock()
        claimed = await tx.run(
            "UPDATE matches SET status = ? WHERE id = ? AND status = ?",
            (MatchStatus.CONSOLIDATED, match_id, MatchStatus.ACCEPTED_PENDING),
        )
        if claimed.changes == 0:
            current = await require_match(tx, match_id)
            if current.status is not MatchStatus.CONSOLIDATED:
                ensure_transition(current.id, current.status, MatchStatus.CONSOLIDATED)
            raise ConflictError(
                f"match {match_id} was consolidated concurrently", code="match_already_consolidated"
            )
        match = await require_match(tx, match_id)
        applied = await apply_rating_change(tx, match, now=now)

        changes = {
            applied.player1.id: applied.delta.change_a,
            applied.player2.id: applied.delta.change_b,
        }
        for roster, user_id in notifications.bound_users([applied.player1, applied.player2]):
            await notifications.notify_best_effort(
                tx,
                user_id,
                notifications.RATING_CONSOLIDATED,
                "Rating Updated",
                f'Your rating in "{league.name}" was updated by consolidation. '
                f"Rating change: {notifications.signed(changes[roster.id])}",
                match.id,
            )
        logger.debug(
            "Consolidated match %s: %s->%s / %s->%s",
            match.id,
            applied.player1.current_rating,
            applied.player1_after,
            applied.player2.current_rating,
            applied.player2_after,
        )
        return applied

    async def status(self, league_id: int, acting_user: UserRecord) -> ConsolidationStatus:
        """Read model for admins: the pending queue and the current ratings."""

        await require_league_admin(self.store, league_id, acting_user)
        league = await require_league(self.store, league_id)
        return ConsolidationStatus(
            league=league,
            pending=await self._pending(league.id),
            members=await list_roster(self.store, league.id),
        )

    async def rating_history(
        self, league_id: int, acting_user: UserRecord, *, roster_id: Optional[int] = None
    ) -> list[RatingHistoryRecord]:
        league = await require_league(self.store, league_id)
        if not acting_user.is_admin and await get_membership(self.store, league.id, acting_user.id) is None:
            raise NotAMemberError("You are not a member of this league")
        sql = (
            "SELECT id, roster_id, user_id, league_id, match_id, rating_before, rating_after, "
            "rating_change, recorded_at FROM rating_history WHERE league_id = ?"
        )
        params: tuple = (league.id,)
        if roster_id is not None:
            sql += " AND roster_id = ?"
            params += (roster_id,)
        rows = await self.store.all(f"{sql} ORDER BY recorded_at ASC, id ASC", params)
        return [RatingHistoryRecord.model_validate(row) for row in rows]
