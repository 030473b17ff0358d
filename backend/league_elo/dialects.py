"""Backend adapters for the transactional store.

Callers write every statement with ``?`` positional placeholders. Each adapter
turns that into what its driver expects and owns the engine/connection quirks
of its backend, so nothing above the store ever branches on the database.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Sequence

from sqlalchemy import event
from sqlalchemy.engine import CursorResult
from sqlalchemy.ext.asyncio import AsyncEngine
from sqlalchemy.pool import NullPool, StaticPool

from .exceptions import StorageError


def placeholder_positions(sql: str) -> list[int]:
    """Return the offsets of ``?`` placeholders outside literals and comments."""

    positions: list[int] = []
    quote: str | None = None
    i = 0
    length = len(sql)
    while i < length:
        ch = sql[i]
        if quote:
            if ch == quote:
                # doubled quote is an escaped quote inside the literal
                if i + 1 < length and sql[i + 1] == quote:
                    i += 2
                    continue
                quote = None
        elif ch in ("'", '"'):
            quote = ch
        elif ch == "-" and sql.startswith("--", i):
            newline = sql.find("\n", i)
            if newline == -1:
                break
            i = newline
        elif ch == "?":
            positions.append(i)
        i += 1
    return positions


class Dialect:
    """Common behaviour; subclasses override the backend-specific hooks."""

    name = "generic"

    def normalize_url(self, url: str) -> str:
        return url

    def engine_kwargs(self, url: str) -> dict[str, Any]:
        return {"echo": False}

    def install(self, engine: AsyncEngine) -> None:
        """Attach connection/transaction event hooks to a freshly built engine."""

    def render_placeholders(self, sql: str, positions: list[int]) -> str:
        return sql

    def coerce_param(self, value: Any) -> Any:
        if isinstance(value, Enum):
            return value.value
        return value

    def translate(self, sql: str, params: Sequence[Any] = ()) -> tuple[str, tuple[Any, ...]]:
        positions = placeholder_positions(sql)
        if len(positions) != len(params):
            raise StorageError(
                f"statement has {len(positions)} placeholder(s) but "
                f"{len(params)} parameter(s) were supplied"
            )
        text = self.render_placeholders(sql, positions)
        return text, tuple(self.coerce_param(value) for value in params)

    def lock_for_update(self, sql: str) -> str:
        return sql

    def prepare_insert(self, sql: str) -> tuple[str, bool]:
        """Return the statement to run and whether it yields the new id as a row."""

        return sql, False

    def last_insert_id(self, result: CursorResult, sql: str) -> int | None:
        return None


def _is_insert(sql: str) -> bool:
    return sql.lstrip().lower().startswith("insert")


class SQLiteDialect(Dialect):
    name = "sqlite"

    def normalize_url(self, url: str) -> str:
        if url.startswith("sqlite://"):
            return url.replace("sqlite://", "sqlite+aiosqlite://", 1)
        return url

    def engine_kwargs(self, url: str) -> dict[str, Any]:
        kwargs: dict[str, Any] = {"echo": False}
        if ":memory:" in url:
            # In-memory SQLite must reuse the same connection to persist schema/data.
            kwargs["poolclass"] = StaticPool
            kwargs["connect_args"] = {"check_same_thread": False}
        else:
            kwargs["poolclass"] = NullPool
        return kwargs

    def install(self, engine: AsyncEngine) -> None:
        # The sqlite3 module's implicit transaction handling breaks SAVEPOINT;
        # take over BEGIN ourselves.
        @event.listens_for(engine.sync_engine, "connect")
        def _on_connect(dbapi_connection, connection_record):
            dbapi_connection.isolation_level = None
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys = ON")
            cursor.close()

        # IMMEDIATE takes the write lock at BEGIN; competing writers wait on the
        # busy timeout rather than fail a read-to-write lock upgrade.
        @event.listens_for(engine.sync_engine, "begin")
        def _on_begin(conn):
            conn.exec_driver_sql("BEGIN IMMEDIATE")

    def coerce_param(self, value: Any) -> Any:
        value = super().coerce_param(value)
        if isinstance(value, bool):
            return int(value)
        if isinstance(value, datetime):
            return value.isoformat()
        return value

    def last_insert_id(self, result: CursorResult, sql: str) -> int | None:
        if not _is_insert(sql):
            return None
        return result.lastrowid


class PostgresDialect(Dialect):
    name = "postgresql"

    def normalize_url(self, url: str) -> str:
        for prefix in ("postgresql://", "postgres://"):
            if url.startswith(prefix):
                return url.replace(prefix, "postgresql+asyncpg://", 1)
        return url

    def engine_kwargs(self, url: str) -> dict[str, Any]:
        return {"echo": False, "pool_pre_ping": True}

    def render_placeholders(self, sql: str, positions: list[int]) -> str:
        parts: list[str] = []
        last = 0
        for index, pos in enumerate(positions, start=1):
            parts.append(sql[last:pos])
            parts.append(f"${index}")
            last = pos + 1
        parts.append(sql[last:])
        return "".join(parts)

    def lock_for_update(self, sql: str) -> str:
        return f"{sql.rstrip().rstrip(';')} FOR UPDATE"

    def prepare_insert(self, sql: str) -> tuple[str, bool]:
        if _is_insert(sql) and "returning" not in sql.lower():
            return f"{sql.rstrip().rstrip(';')} RETURNING id", True
        return sql, False


def dialect_for_url(url: str) -> Dialect:
    """Pick the adapter for a database URL."""

    if url.startswith("sqlite"):
        return SQLiteDialect()
    if url.startswith(("postgresql", "postgres://")):
        return PostgresDialect()
    raise ValueError(f"unsupported database URL scheme: {url.split(':', 1)[0]!r}")
