"""Read-only lookups against the league and roster collaborators."""

from __future__ import annotations

from typing import Optional

from ..exceptions import AuthorizationError, NotFoundError
from ..schemas import LeagueRecord, RosterRecord, UserRecord
from ..store import Queryable

ROSTER_COLUMNS = "id, league_id, user_id, display_name, current_rating, is_admin"


async def get_league(db: Queryable, league_id: int) -> Optional[LeagueRecord]:
    row = await db.get(
        "SELECT id, name, rating_update_mode FROM leagues WHERE id = ?", (league_id,)
    )
    return LeagueRecord.model_validate(row) if row else None


async def require_league(db: Queryable, league_id: int) -> LeagueRecord:
    league = await get_league(db, league_id)
    if league is None:
        raise NotFoundError("league", league_id)
    return league


async def get_membership(db: Queryable, league_id: int, user_id: int) -> Optional[RosterRecord]:
    """Return the roster entry bound to ``user_id`` in the league, if any."""

    row = await db.get(
        f"SELECT {ROSTER_COLUMNS} FROM league_roster WHERE league_id = ? AND user_id = ?",
        (league_id, user_id),
    )
    return RosterRecord.model_validate(row) if row else None


async def get_roster_entry(
    db: Queryable, league_id: int, roster_id: int, *, for_update: bool = False
) -> Optional[RosterRecord]:
    sql = f"SELECT {ROSTER_COLUMNS} FROM league_roster WHERE league_id = ? AND id = ?"
    row = await db.get(sql, (league_id, roster_id), for_update=for_update)
    return RosterRecord.model_validate(row) if row else None


async def list_roster(db: Queryable, league_id: int) -> list[RosterRecord]:
    rows = await db.all(
        f"SELECT {ROSTER_COLUMNS} FROM league_roster WHERE league_id = ? ORDER BY id",
        (league_id,),
    )
    return [RosterRecord.model_validate(row) for row in rows]


async def get_user(db: Queryable, user_id: int) -> Optional[UserRecord]:
    row = await db.get("SELECT id, username, is_admin FROM users WHERE id = ?", (user_id,))
    return UserRecord.model_validate(row) if row else None


async def is_league_admin(db: Queryable, league_id: int, user: UserRecord) -> bool:
    if user.is_admin:
        return True
    membership = await get_membership(db, league_id, user.id)
    return bool(membership and membership.is_admin)


async def require_league_admin(db: Queryable, league_id: int, user: UserRecord) -> None:
    if not await is_league_admin(db, league_id, user):
        raise AuthorizationError("League admin access required", code="league_admin_required")
