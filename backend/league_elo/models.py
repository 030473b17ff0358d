from sqlalchemy import (
    Column,
    String,
    DateTime,
    ForeignKey,
    Integer,
    Boolean,
    Text,
    Index,
    UniqueConstraint,
    false,
)
from sqlalchemy.sql import func

from .config import DEFAULT_RATING
from .db import Base


class User(Base):
    __tablename__ = "users"
    id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(String(50), unique=True, nullable=False)
    is_admin = Column(Boolean, nullable=False, default=False, server_default=false())
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class League(Base):
    __tablename__ = "leagues"
    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(200), nullable=False)
    # "immediate" | "weekly" | "monthly"
    rating_update_mode = Column(
        String(20), nullable=False, default="immediate", server_default="immediate"
    )
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class RosterEntry(Base):
    """A player's membership in one league; ``user_id`` is empty for placeholders."""

    __tablename__ = "league_roster"
    id = Column(Integer, primary_key=True, autoincrement=True)
    league_id = Column(Integer, ForeignKey("leagues.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    display_name = Column(String(200), nullable=False)
    current_rating = Column(
        Integer, nullable=False, default=DEFAULT_RATING, server_default=str(DEFAULT_RATING)
    )
    is_admin = Column(Boolean, nullable=False, default=False, server_default=false())
    joined_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        UniqueConstraint("league_id", "user_id", name="uq_league_roster_league_id_user_id"),
    )


class Match(Base):
    __tablename__ = "matches"
    id = Column(Integer, primary_key=True, autoincrement=True)
    league_id = Column(Integer, ForeignKey("leagues.id", ondelete="CASCADE"), nullable=False)
    player1_roster_id = Column(Integer, ForeignKey("league_roster.id"), nullable=False)
    player2_roster_id = Column(Integer, ForeignKey("league_roster.id"), nullable=False)
    winner_roster_id = Column(Integer, ForeignKey("league_roster.id"), nullable=False)
    player1_sets_won = Column(Integer, nullable=False, default=0)
    player2_sets_won = Column(Integer, nullable=False, default=0)
    player1_points_total = Column(Integer, nullable=False, default=0)
    player2_points_total = Column(Integer, nullable=False, default=0)
    match_format = Column(String(20), nullable=False)
    # see services.match_state.MatchStatus
    status = Column(String(20), nullable=False, default="submitted", server_default="submitted")
    player1_rating_before = Column(Integer, nullable=False)
    player2_rating_before = Column(Integer, nullable=False)
    player1_rating_after = Column(Integer, nullable=False)
    player2_rating_after = Column(Integer, nullable=False)
    reported_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    accepted_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    accepted_at = Column(DateTime(timezone=True), nullable=True)
    rating_applied_at = Column(DateTime(timezone=True), nullable=True)
    played_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        Index("ix_matches_league_status_accepted_at", "league_id", "status", "accepted_at"),
    )


class MatchSet(Base):
    __tablename__ = "match_sets"
    id = Column(Integer, primary_key=True, autoincrement=True)
    match_id = Column(Integer, ForeignKey("matches.id", ondelete="CASCADE"), nullable=False)
    set_number = Column(Integer, nullable=False)
    player1_score = Column(Integer, nullable=False)
    player2_score = Column(Integer, nullable=False)


class RatingHistory(Base):
    """Append-only audit row: one per (roster entry, match)."""

    __tablename__ = "rating_history"
    id = Column(Integer, primary_key=True, autoincrement=True)
    roster_id = Column(Integer, ForeignKey("league_roster.id"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    league_id = Column(Integer, ForeignKey("leagues.id"), nullable=False)
    match_id = Column(Integer, ForeignKey("matches.id"), nullable=False)
    rating_before = Column(Integer, nullable=False)
    rating_after = Column(Integer, nullable=False)
    rating_change = Column(Integer, nullable=False)
    recorded_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        UniqueConstraint("roster_id", "match_id", name="uq_rating_history_roster_id_match_id"),
    )


class Notification(Base):
    __tablename__ = "notifications"
    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    type = Column(String(50), nullable=False)
    title = Column(String(200), nullable=False)
    message = Column(Text, nullable=False)
    related_id = Column(Integer, nullable=True)
    is_read = Column(Boolean, nullable=False, default=False, server_default=false())
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
