"""Shared SELECTs for match rows and their per-set scores."""

from __future__ import annotations

from typing import Optional, Sequence

from ..exceptions import NotFoundError
from ..schemas import MatchRecord, MatchSetRecord
from ..store import Queryable

MATCH_SELECT = """
SELECT m.*,
       l.name AS league_name,
       r1.display_name AS player1_display_name,
       r2.display_name AS player2_display_name,
       r1.user_id AS player1_user_id,
       r2.user_id AS player2_user_id
FROM matches m
JOIN leagues l ON l.id = m.league_id
JOIN league_roster r1 ON r1.id = m.player1_roster_id
JOIN league_roster r2 ON r2.id = m.player2_roster_id
"""

MATCH_FROM = """
FROM matches m
JOIN league_roster r1 ON r1.id = m.player1_roster_id
JOIN league_roster r2 ON r2.id = m.player2_roster_id
"""


async def get_match(db: Queryable, match_id: int) -> Optional[MatchRecord]:
    row = await db.get(f"{MATCH_SELECT} WHERE m.id = ?", (match_id,))
    return MatchRecord.model_validate(row) if row else None


async def require_match(db: Queryable, match_id: int) -> MatchRecord:
    match = await get_match(db, match_id)
    if match is None:
        raise NotFoundError("match", match_id)
    return match


async def get_sets(db: Queryable, match_id: int) -> list[MatchSetRecord]:
    rows = await db.all(
        "SELECT set_number, player1_score, player2_score FROM match_sets "
        "WHERE match_id = ? ORDER BY set_number",
        (match_id,),
    )
    return [MatchSetRecord.model_validate(row) for row in rows]


async def get_sets_for(db: Queryable, match_ids: Sequence[int]) -> dict[int, list[MatchSetRecord]]:
    """Set scores for several matches in one query, keyed by match id."""

    grouped: dict[int, list[MatchSetRecord]] = {match_id: [] for match_id in match_ids}
    if not grouped:
        return grouped
    marks = ", ".join("?" for _ in grouped)
    rows = await db.all(
        "SELECT match_id, set_number, player1_score, player2_score FROM match_sets "
        f"WHERE match_id IN ({marks}) ORDER BY match_id, set_number",
        tuple(grouped),
    )
    for row in rows:
        grouped[row["match_id"]].append(MatchSetRecord.model_validate(row))
    return grouped


async def replace_sets(db: Queryable, match_id: int, sets: Sequence[tuple[int, int]]) -> None:
    await db.run("DELETE FROM match_sets WHERE match_id = ?", (match_id,))
    for number, (p1, p2) in enumerate(sets, start=1):
        await db.run(
            "INSERT INTO match_sets (match_id, set_number, player1_score, player2_score) "
            "VALUES (?, ?, ?, ?)",
            (match_id, number, p1, p2),
        )
