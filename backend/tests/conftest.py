import asyncio
import os
import sys
from contextlib import asynccontextmanager
from itertools import count
from datetime import datetime, timedelta, timezone

import pytest

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

# A sufficiently long JWT secret for tests
TEST_JWT_SECRET = "x" * 32
os.environ.setdefault("JWT_SECRET", TEST_JWT_SECRET)
os.environ.setdefault("ALLOWED_ORIGINS", "http://localhost:3000")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("DISABLE_RATE_LIMITS", "true")

# Register every table with the declarative Base before create_all runs.
from league_elo import models  # noqa: E402,F401
from league_elo.db import Base  # noqa: E402
from league_elo.schemas import LeagueRecord, RosterRecord, UserRecord  # noqa: E402
from league_elo.services.match_state import RatingUpdateMode  # noqa: E402
from league_elo.store import TransactionalStore  # noqa: E402


@pytest.fixture(autouse=True)
def jwt_secret(monkeypatch):
    """Ensure a strong JWT secret is present for all tests."""
    monkeypatch.setenv("JWT_SECRET", TEST_JWT_SECRET)
    yield


async def _open_store(url: str) -> TransactionalStore:
    store = await TransactionalStore(url).init()
    await store.create_schema(Base.metadata)
    return store


@pytest.fixture
def store(tmp_path):
    """A fresh file-backed SQLite store.

    File-backed rather than ``:memory:`` because each ``asyncio.run`` call in a
    test gets its own event loop, and only the NullPool used for files opens
    connections per checkout.
    """

    s = asyncio.run(_open_store(f"sqlite+aiosqlite:///{tmp_path / 'league.db'}"))
    yield s
    asyncio.run(s.close())


class Seeder:
    """Inserts collaborator rows (users, leagues, roster entries) directly."""

    def __init__(self, store: TransactionalStore) -> None:
        self.store = store

    async def user(self, username: str, *, is_admin: bool = False) -> UserRecord:
        result = await self.store.run(
            "INSERT INTO users (username, is_admin) VALUES (?, ?)", (username, is_admin)
        )
        return UserRecord(id=result.last_id, username=username, is_admin=is_admin)

    async def league(
        self, name: str = "Tuesday Ladder", mode: RatingUpdateMode = RatingUpdateMode.IMMEDIATE
    ) -> LeagueRecord:
        result = await self.store.run(
            "INSERT INTO leagues (name, rating_update_mode) VALUES (?, ?)", (name, mode)
        )
        return LeagueRecord(id=result.last_id, name=name, rating_update_mode=mode)

    async def roster(
        self,
        league: LeagueRecord,
        user: UserRecord | None = None,
        *,
        display_name: str | None = None,
        rating: int = 1200,
        is_admin: bool = False,
    ) -> RosterRecord:
        name = display_name or (user.username.title() if user else "Guest")
        result = await self.store.run(
            "INSERT INTO league_roster (league_id, user_id, display_name, current_rating, is_admin) "
            "VALUES (?, ?, ?, ?, ?)",
            (league.id, user.id if user else None, name, rating, is_admin),
        )
        return RosterRecord(
            id=result.last_id,
            league_id=league.id,
            user_id=user.id if user else None,
            display_name=name,
            current_rating=rating,
            is_admin=is_admin,
        )


@pytest.fixture
def seeder(store):
    return Seeder(store)


@pytest.fixture
def ticking_clock():
    """A clock that advances one minute per call, for deterministic ordering."""

    start = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)
    ticks = count()

    def clock() -> datetime:
        return start + timedelta(minutes=next(ticks))

    return clock


@pytest.fixture
def gated_transactions(store, monkeypatch):
    """Hold the next ``parties`` transactions until all of them have been opened.

    Lets concurrent calls get past their read-only checks before any of them
    writes, so the conditional updates decide the race.
    """

    def install(parties: int = 2) -> None:
        original = store.transaction
        state = {"barrier": None, "held": 0}

        @asynccontextmanager
        async def transaction():
            if state["held"] < parties:
                state["held"] += 1
                if state["barrier"] is None:
                    state["barrier"] = asyncio.Barrier(parties)
                await state["barrier"].wait()
            async with original() as tx:
                yield tx

        monkeypatch.setattr(store, "transaction", transaction)

    return install
