from fastapi import APIRouter, Depends, Query

from ..db import get_store
from ..schemas import (
    ConsolidationOut,
    ConsolidationStatusOut,
    PendingMatchOut,
    RatingHistoryOut,
    RosterRatingOut,
    UserRecord,
)
from ..services.consolidation import ConsolidationEngine
from ..store import TransactionalStore
from .auth import get_current_user

router = APIRouter(prefix="/leagues", tags=["leagues"])


def get_engine(store: TransactionalStore = Depends(get_store)) -> ConsolidationEngine:
    return ConsolidationEngine(store)


@router.post("/{lid}/consolidate", response_model=ConsolidationOut)
async def consolidate_league(
    lid: int,
    limit: int | None = Query(None, ge=1),
    engine: ConsolidationEngine = Depends(get_engine),
    user: UserRecord = Depends(get_current_user),
) -> ConsolidationOut:
    result = await engine.consolidate(lid, user, limit=limit)
    return ConsolidationOut(
        leagueId=result.league_id,
        appliedCount=result.applied_count,
        remaining=result.remaining,
    )


@router.get("/{lid}/consolidation", response_model=ConsolidationStatusOut)
async def consolidation_status(
    lid: int,
    engine: ConsolidationEngine = Depends(get_engine),
    user: UserRecord = Depends(get_current_user),
) -> ConsolidationStatusOut:
    status = await engine.status(lid, user)
    return ConsolidationStatusOut(
        leagueId=status.league.id,
        leagueName=status.league.name,
        ratingUpdateMode=status.league.rating_update_mode,
        matchesToConsolidate=len(status.pending),
        matches=[
            PendingMatchOut(
                id=p.id,
                player1RosterId=p.player1_roster_id,
                player2RosterId=p.player2_roster_id,
                acceptedAt=p.accepted_at,
            )
            for p in status.pending
        ],
        members=[
            RosterRatingOut(
                rosterId=m.id,
                userId=m.user_id,
                displayName=m.display_name,
                currentRating=m.current_rating,
            )
            for m in status.members
        ],
    )


@router.get("/{lid}/rating-history", response_model=list[RatingHistoryOut])
async def rating_history(
    lid: int,
    roster_id: int | None = Query(None, alias="rosterId", ge=1),
    engine: ConsolidationEngine = Depends(get_engine),
    user: UserRecord = Depends(get_current_user),
) -> list[RatingHistoryOut]:
    rows = await engine.rating_history(lid, user, roster_id=roster_id)
    return [
        RatingHistoryOut(
            id=r.id,
            rosterId=r.roster_id,
            userId=r.user_id,
            matchId=r.match_id,
            ratingBefore=r.rating_before,
            ratingAfter=r.rating_after,
            ratingChange=r.rating_change,
            recordedAt=r.recorded_at,
        )
        for r in rows
    ]
