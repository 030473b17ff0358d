from fastapi import APIRouter, Depends, Query, Request, Response

from ..db import get_store
from ..schemas import (
    CalculationDetailsOut,
    MatchAcceptOut,
    MatchCreatedOut,
    MatchListOut,
    MatchOut,
    MatchRecord,
    MatchRejectIn,
    MatchResultIn,
    MatchSetOut,
    MatchSetRecord,
    MatchStatusFilter,
    MatchSubmit,
    MatchUpdate,
    RatingPairOut,
    RatingPreviewIn,
    RatingPreviewOut,
    UserRecord,
)
from ..services.matches import MatchLifecycle, MatchPage, MatchResult
from ..store import TransactionalStore
from .auth import _get_client_ip, get_current_user, limiter, rate_limits_disabled

router = APIRouter(prefix="/matches", tags=["matches"])


def submit_rate_limit() -> str:
    if rate_limits_disabled():
        return "1000/second"
    return "30/minute"


def get_lifecycle(store: TransactionalStore = Depends(get_store)) -> MatchLifecycle:
    return MatchLifecycle(store)


def _result_from(body: MatchResultIn) -> MatchResult:
    return MatchResult(
        player1_sets_won=body.player1SetsWon,
        player2_sets_won=body.player2SetsWon,
        player1_points_total=body.player1PointsTotal,
        player2_points_total=body.player2PointsTotal,
        match_format=body.format,
        sets=[s.model_dump() for s in body.sets] if body.sets is not None else None,
        played_at=body.playedAt,
    )


def match_out(match: MatchRecord, sets: list[MatchSetRecord] | None = None) -> MatchOut:
    return MatchOut(
        id=match.id,
        leagueId=match.league_id,
        leagueName=match.league_name,
        player1RosterId=match.player1_roster_id,
        player2RosterId=match.player2_roster_id,
        player1DisplayName=match.player1_display_name,
        player2DisplayName=match.player2_display_name,
        winnerRosterId=match.winner_roster_id,
        player1SetsWon=match.player1_sets_won,
        player2SetsWon=match.player2_sets_won,
        player1PointsTotal=match.player1_points_total,
        player2PointsTotal=match.player2_points_total,
        format=match.match_format,
        status=match.status,
        isAccepted=match.status.is_accepted,
        ratingApplied=match.status.rating_applied,
        player1RatingBefore=match.player1_rating_before,
        player2RatingBefore=match.player2_rating_before,
        player1RatingAfter=match.player1_rating_after,
        player2RatingAfter=match.player2_rating_after,
        acceptedAt=match.accepted_at,
        ratingAppliedAt=match.rating_applied_at,
        playedAt=match.played_at,
        createdAt=match.created_at,
        sets=[
            MatchSetOut(
                setNumber=s.set_number,
                player1Score=s.player1_score,
                player2Score=s.player2_score,
            )
            for s in sets or []
        ],
    )


def _page_out(page: MatchPage) -> MatchListOut:
    return MatchListOut(
        matches=[match_out(m, page.sets.get(m.id)) for m in page.matches],
        total=page.total,
        limit=page.limit,
        offset=page.offset,
    )


# POST /api/v0/matches/preview
@router.post("/preview", response_model=RatingPreviewOut)
async def preview_rating(
    body: RatingPreviewIn,
    lifecycle: MatchLifecycle = Depends(get_lifecycle),
    user: UserRecord = Depends(get_current_user),
) -> RatingPreviewOut:
    preview = await lifecycle.preview(
        body.leagueId,
        user,
        body.player2RosterId,
        body.player1SetsWon,
        body.player2SetsWon,
        body.player1PointsTotal,
        body.player2PointsTotal,
        player1_roster_id=body.player1RosterId,
    )
    delta = preview.delta
    return RatingPreviewOut(
        currentRatings=RatingPairOut(
            player1=preview.player1.current_rating, player2=preview.player2.current_rating
        ),
        newRatings=RatingPairOut(player1=delta.new_rating_a, player2=delta.new_rating_b),
        changes=RatingPairOut(player1=delta.change_a, player2=delta.change_b),
        calculationDetails=CalculationDetailsOut(
            expectedScorePlayer1=round(delta.expected_score_a, 4),
            pointsFactor=round(delta.points_factor, 4),
            formatMultiplier=delta.format_multiplier,
        ),
    )


@router.post("", response_model=MatchCreatedOut, status_code=201)
@limiter.limit(submit_rate_limit, key_func=_get_client_ip)
async def submit_match(
    request: Request,
    body: MatchSubmit,
    lifecycle: MatchLifecycle = Depends(get_lifecycle),
    user: UserRecord = Depends(get_current_user),
) -> MatchCreatedOut:
    created = await lifecycle.submit(body.leagueId, user, body.opponentRosterId, _result_from(body))
    return MatchCreatedOut(
        match=match_out(created.match, created.sets),
        ratingPreview=RatingPairOut(
            player1=created.preview.change_a, player2=created.preview.change_b
        ),
    )


@router.get("", response_model=MatchListOut)
async def list_matches(
    league_id: int | None = Query(None, alias="leagueId", ge=1),
    status: MatchStatusFilter = Query("all"),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    lifecycle: MatchLifecycle = Depends(get_lifecycle),
    user: UserRecord = Depends(get_current_user),
) -> MatchListOut:
    page = await lifecycle.list_matches(
        user, league_id=league_id, status=status, limit=limit, offset=offset
    )
    return _page_out(page)


# GET /api/v0/matches/pending -- declared before /{mid} so it is not captured as an id
@router.get("/pending", response_model=MatchListOut)
async def list_pending_matches(
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    lifecycle: MatchLifecycle = Depends(get_lifecycle),
    user: UserRecord = Depends(get_current_user),
) -> MatchListOut:
    return _page_out(await lifecycle.list_pending(user, limit=limit, offset=offset))


@router.get("/{mid}", response_model=MatchOut)
async def get_match(
    mid: int,
    lifecycle: MatchLifecycle = Depends(get_lifecycle),
    user: UserRecord = Depends(get_current_user),
) -> MatchOut:
    match, sets = await lifecycle.get(mid, user)
    return match_out(match, sets)


@router.put("/{mid}", response_model=MatchOut)
async def update_match(
    mid: int,
    body: MatchUpdate,
    lifecycle: MatchLifecycle = Depends(get_lifecycle),
    user: UserRecord = Depends(get_current_user),
) -> MatchOut:
    await lifecycle.update(mid, user, _result_from(body))
    match, sets = await lifecycle.get(mid, user)
    return match_out(match, sets)


@router.post("/{mid}/accept", response_model=MatchAcceptOut)
async def accept_match(
    mid: int,
    lifecycle: MatchLifecycle = Depends(get_lifecycle),
    user: UserRecord = Depends(get_current_user),
) -> MatchAcceptOut:
    outcome = await lifecycle.accept(mid, user)
    changes = None
    if outcome.applied is not None:
        changes = RatingPairOut(
            player1=outcome.applied.delta.change_a, player2=outcome.applied.delta.change_b
        )
    return MatchAcceptOut(status=outcome.status, deferred=outcome.deferred, ratingChanges=changes)


@router.post("/{mid}/reject", status_code=204)
async def reject_match(
    mid: int,
    body: MatchRejectIn | None = None,
    lifecycle: MatchLifecycle = Depends(get_lifecycle),
    user: UserRecord = Depends(get_current_user),
) -> Response:
    await lifecycle.reject(mid, user, body.reason if body else None)
    return Response(status_code=204)


@router.delete("/{mid}", status_code=204)
async def delete_match(
    mid: int,
    lifecycle: MatchLifecycle = Depends(get_lifecycle),
    user: UserRecord = Depends(get_current_user),
) -> Response:
    await lifecycle.remove(mid, user)
    return Response(status_code=204)
