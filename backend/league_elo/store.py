"""Atomic, dialect-transparent statement execution.

Every statement is written with ``?`` placeholders and executed through
``get`` / ``all`` / ``run``. ``with_transaction`` (or the ``transaction``
context manager) hands out a handle with the same three operations bound to
one unit of work: it commits when the callback returns and rolls back when
anything raises, so other callers never observe partial writes.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncIterator, Awaitable, Callable, Optional, Protocol, Sequence, TypeVar

from sqlalchemy import MetaData
from sqlalchemy.engine import CursorResult
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, create_async_engine

from .config import get_database_url, sql_debug_enabled
from .dialects import Dialect, dialect_for_url
from .exceptions import StorageError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RunResult:
    last_id: Optional[int]
    changes: int


def _describe(exc: SQLAlchemyError) -> str:
    orig = getattr(exc, "orig", None)
    return str(orig if orig is not None else exc)


class StatementRunner:
    """``get`` / ``all`` / ``run`` over one connection."""

    def __init__(self, conn: AsyncConnection, dialect: Dialect, *, label: str) -> None:
        self._conn = conn
        self._dialect = dialect
        self._label = label

    async def _execute(self, sql: str, params: Sequence[Any]) -> CursorResult:
        text, values = self._dialect.translate(sql, params)
        try:
            return await self._conn.exec_driver_sql(text, values)
        except SQLAlchemyError as exc:
            if sql_debug_enabled():
                logger.error(
                    "DB query failed (%s): %s (paramCount=%d)",
                    self._label,
                    text,
                    len(values),
                )
            raise StorageError(f"statement failed: {_describe(exc)}") from exc

    async def get(
        self, sql: str, params: Sequence[Any] = (), *, for_update: bool = False
    ) -> Optional[dict[str, Any]]:
        """Return the first row as a dict, or ``None``.

        ``for_update`` asks the backend to lock the selected rows until the
        enclosing transaction ends.
        """

        if for_update:
            sql = self._dialect.lock_for_update(sql)
        result = await self._execute(sql, params)
        row = result.mappings().first()
        return dict(row) if row is not None else None

    async def all(self, sql: str, params: Sequence[Any] = ()) -> list[dict[str, Any]]:
        result = await self._execute(sql, params)
        return [dict(row) for row in result.mappings().all()]

    async def run(self, sql: str, params: Sequence[Any] = ()) -> RunResult:
        statement, returns_id = self._dialect.prepare_insert(sql)
        result = await self._execute(statement, params)
        if returns_id:
            row = result.first()
            return RunResult(last_id=row[0] if row else None, changes=1 if row else 0)
        return RunResult(
            last_id=self._dialect.last_insert_id(result, statement),
            changes=max(result.rowcount, 0),
        )


class Transaction(StatementRunner):
    """Handle scoped to one unit of work."""

    @asynccontextmanager
    async def savepoint(self) -> AsyncIterator["Transaction"]:
        """Run a nested block whose failure rolls back only its own writes."""

        try:
            async with self._conn.begin_nested():
                yield self
        except SQLAlchemyError as exc:
            raise StorageError(f"savepoint failed: {_describe(exc)}") from exc


class TransactionalStore:
    def __init__(self, url: str) -> None:
        self.dialect = dialect_for_url(url)
        self.url = self.dialect.normalize_url(url)
        self._engine: Optional[AsyncEngine] = None

    @classmethod
    def from_env(cls) -> "TransactionalStore":
        return cls(get_database_url())

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            raise RuntimeError("store is not initialised; call init() first")
        return self._engine

    async def init(self) -> "TransactionalStore":
        if self._engine is None:
            engine = create_async_engine(self.url, **self.dialect.engine_kwargs(self.url))
            self.dialect.install(engine)
            self._engine = engine
            logger.info("Store initialised (backend=%s)", self.dialect.name)
        return self

    async def close(self) -> None:
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None
            logger.info("Store closed")

    async def create_schema(self, metadata: MetaData) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(metadata.create_all)

    async def drop_schema(self, metadata: MetaData) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(metadata.drop_all)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[Transaction]:
        try:
            async with self.engine.begin() as conn:
                yield Transaction(conn, self.dialect, label="tx")
        except SQLAlchemyError as exc:
            # statement errors are already StorageError; this is BEGIN/COMMIT failing
            raise StorageError(f"transaction failed: {_describe(exc)}") from exc

    async def with_transaction(self, fn: Callable[[Transaction], Awaitable[T]]) -> T:
        async with self.transaction() as tx:
            return await fn(tx)

    @asynccontextmanager
    async def _autocommit(self, label: str) -> AsyncIterator[StatementRunner]:
        try:
            async with self.engine.begin() as conn:
                yield StatementRunner(conn, self.dialect, label=label)
        except SQLAlchemyError as exc:
            raise StorageError(f"statement failed: {_describe(exc)}") from exc

    async def get(
        self, sql: str, params: Sequence[Any] = (), *, for_update: bool = False
    ) -> Optional[dict[str, Any]]:
        async with self._autocommit("get") as runner:
            return await runner.get(sql, params, for_update=for_update)

    async def all(self, sql: str, params: Sequence[Any] = ()) -> list[dict[str, Any]]:
        async with self._autocommit("all") as runner:
            return await runner.all(sql, params)

    async def run(self, sql: str, params: Sequence[Any] = ()) -> RunResult:
        async with self._autocommit("run") as runner:
            return await runner.run(sql, params)


class Queryable(Protocol):
    """Anything that runs ``?`` statements: the store itself or a transaction."""

    async def get(
        self, sql: str, params: Sequence[Any] = (), *, for_update: bool = False
    ) -> Optional[dict[str, Any]]: ...

    async def all(self, sql: str, params: Sequence[Any] = ()) -> list[dict[str, Any]]: ...

    async def run(self, sql: str, params: Sequence[Any] = ()) -> RunResult: ...
