from datetime import datetime
from typing import Annotated, List, Literal, Optional

from pydantic import AfterValidator, BaseModel, Field

from .services.match_state import MatchStatus, RatingUpdateMode
from .services.validation import MatchFormat
from .time_utils import coerce_utc


# SQLite hands timestamps back as text; normalise everything to aware UTC.
UtcDatetime = Annotated[datetime, AfterValidator(coerce_utc)]


class UserRecord(BaseModel):
    id: int
    username: str
    is_admin: bool = False


class LeagueRecord(BaseModel):
    id: int
    name: str
    rating_update_mode: RatingUpdateMode = RatingUpdateMode.IMMEDIATE


class RosterRecord(BaseModel):
    id: int
    league_id: int
    user_id: Optional[int] = None
    display_name: str
    current_rating: int
    is_admin: bool = False


class MatchRecord(BaseModel):
    id: int
    league_id: int
    player1_roster_id: int
    player2_roster_id: int
    winner_roster_id: int
    player1_sets_won: int
    player2_sets_won: int
    player1_points_total: int
    player2_points_total: int
    match_format: MatchFormat
    status: MatchStatus
    player1_rating_before: int
    player2_rating_before: int
    player1_rating_after: int
    player2_rating_after: int
    reported_by: Optional[int] = None
    accepted_by: Optional[int] = None
    accepted_at: Optional[UtcDatetime] = None
    rating_applied_at: Optional[UtcDatetime] = None
    played_at: Optional[UtcDatetime] = None
    created_at: Optional[UtcDatetime] = None
    player1_display_name: Optional[str] = None
    player2_display_name: Optional[str] = None
    player1_user_id: Optional[int] = None
    player2_user_id: Optional[int] = None
    league_name: Optional[str] = None


class MatchSetRecord(BaseModel):
    set_number: int
    player1_score: int
    player2_score: int


class RatingHistoryRecord(BaseModel):
    id: int
    roster_id: int
    user_id: Optional[int] = None
    league_id: int
    match_id: int
    rating_before: int
    rating_after: int
    rating_change: int
    recorded_at: Optional[UtcDatetime] = None


# -----------------------------------------------------------------------------
# API payloads
# -----------------------------------------------------------------------------
class SetScoreIn(BaseModel):
    player1_score: int = Field(..., ge=0)
    player2_score: int = Field(..., ge=0)


class MatchResultIn(BaseModel):
    player1SetsWon: int = Field(..., ge=0, le=4)
    player2SetsWon: int = Field(..., ge=0, le=4)
    player1PointsTotal: int = Field(0, ge=0)
    player2PointsTotal: int = Field(0, ge=0)
    format: MatchFormat
    sets: Optional[List[SetScoreIn]] = None
    playedAt: Optional[datetime] = None


class MatchSubmit(MatchResultIn):
    leagueId: int = Field(..., ge=1)
    opponentRosterId: int = Field(..., ge=1)


class MatchUpdate(MatchResultIn):
    pass


class MatchRejectIn(BaseModel):
    reason: Optional[str] = Field(default=None, max_length=500)


class RatingPreviewIn(BaseModel):
    leagueId: int = Field(..., ge=1)
    player1RosterId: Optional[int] = Field(default=None, ge=1)
    player2RosterId: int = Field(..., ge=1)
    player1SetsWon: int = Field(..., ge=0, le=4)
    player2SetsWon: int = Field(..., ge=0, le=4)
    player1PointsTotal: int = Field(0, ge=0)
    player2PointsTotal: int = Field(0, ge=0)


class RatingPairOut(BaseModel):
    player1: int
    player2: int


class CalculationDetailsOut(BaseModel):
    expectedScorePlayer1: float
    pointsFactor: float
    formatMultiplier: float


class RatingPreviewOut(BaseModel):
    currentRatings: RatingPairOut
    newRatings: RatingPairOut
    changes: RatingPairOut
    calculationDetails: CalculationDetailsOut


class MatchSetOut(BaseModel):
    setNumber: int
    player1Score: int
    player2Score: int


class MatchOut(BaseModel):
    id: int
    leagueId: int
    leagueName: Optional[str] = None
    player1RosterId: int
    player2RosterId: int
    player1DisplayName: Optional[str] = None
    player2DisplayName: Optional[str] = None
    winnerRosterId: int
    player1SetsWon: int
    player2SetsWon: int
    player1PointsTotal: int
    player2PointsTotal: int
    format: MatchFormat
    status: MatchStatus
    isAccepted: bool
    ratingApplied: bool
    player1RatingBefore: int
    player2RatingBefore: int
    player1RatingAfter: int
    player2RatingAfter: int
    acceptedAt: Optional[datetime] = None
    ratingAppliedAt: Optional[datetime] = None
    playedAt: Optional[datetime] = None
    createdAt: Optional[datetime] = None
    sets: List[MatchSetOut] = Field(default_factory=list)


class MatchCreatedOut(BaseModel):
    match: MatchOut
    ratingPreview: RatingPairOut


class MatchListOut(BaseModel):
    matches: List[MatchOut]
    total: int
    limit: int
    offset: int


class MatchAcceptOut(BaseModel):
    status: MatchStatus
    deferred: bool
    ratingChanges: Optional[RatingPairOut] = None


class ConsolidationOut(BaseModel):
    leagueId: int
    appliedCount: int
    remaining: int


class PendingMatchOut(BaseModel):
    id: int
    player1RosterId: int
    player2RosterId: int
    acceptedAt: Optional[datetime] = None


class RosterRatingOut(BaseModel):
    rosterId: int
    userId: Optional[int] = None
    displayName: str
    currentRating: int


class ConsolidationStatusOut(BaseModel):
    leagueId: int
    leagueName: str
    ratingUpdateMode: RatingUpdateMode
    matchesToConsolidate: int
    matches: List[PendingMatchOut]
    members: List[RosterRatingOut]


class RatingHistoryOut(BaseModel):
    id: int
    rosterId: int
    userId: Optional[int] = None
    matchId: int
    ratingBefore: int
    ratingAfter: int
    ratingChange: int
    recordedAt: Optional[datetime] = None


MatchStatusFilter = Literal["pending", "accepted", "all"]
