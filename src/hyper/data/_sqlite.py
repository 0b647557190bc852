"""Async facade over stdlib ``sqlite3``.

Every blocking call runs on an anyio worker thread. The connection is
opened with ``check_same_thread=False`` because consecutive calls may
land on different worker threads; ``Database`` serializes access with
an ``anyio.Lock``.
"""

import sqlite3
from collections.abc import Callable, Sequence
from typing import Any

import anyio.to_thread


async def _run_sync(func: Callable[[], Any]) -> Any:
    return await anyio.to_thread.run_sync(func)


class AsyncCursor:
    """Result of one statement: rows, column names, counters."""

    __slots__ = ("_cursor",)

    def __init__(self, cursor: sqlite3.Cursor) -> None:
        self._cursor = cursor

    @property
    def columns(self) -> list[str]:
        return [desc[0] for desc in self._cursor.description or ()]

    @property
    def rowcount(self) -> int:
        return self._cursor.rowcount

    @property
    def lastrowid(self) -> int | None:
        return self._cursor.lastrowid

    async def fetchall(self) -> list[tuple[Any, ...]]:
        return await _run_sync(self._cursor.fetchall)

    async def fetchone(self) -> tuple[Any, ...] | None:
        return await _run_sync(self._cursor.fetchone)


class AsyncConnection:
    """One ``sqlite3.Connection`` driven from async code."""

    __slots__ = ("_conn",)

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    @property
    def in_transaction(self) -> bool:
        return self._conn.in_transaction

    async def execute(self, sql: str, params: Sequence[Any] = ()) -> AsyncCursor:
        return AsyncCursor(await _run_sync(lambda: self._conn.execute(sql, params)))

    async def executemany(self, sql: str, params_seq: Sequence[Sequence[Any]]) -> AsyncCursor:
        return AsyncCursor(await _run_sync(lambda: self._conn.executemany(sql, params_seq)))

    async def executescript(self, sql: str) -> None:
        await _run_sync(lambda: self._conn.executescript(sql))

    async def begin(self) -> None:
        await _run_sync(lambda: self._conn.execute("BEGIN"))

    async def commit(self) -> None:
        await _run_sync(lambda: self._conn.execute("COMMIT"))

    async def rollback(self) -> None:
        await _run_sync(lambda: self._conn.execute("ROLLBACK"))

    async def close(self) -> None:
        await _run_sync(self._conn.close)


async def connect(path: str) -> AsyncConnection:
    """Open *path* in autocommit mode with foreign keys enforced.

    Transactions are explicit ``BEGIN``/``COMMIT`` issued by ``Database``.
    """

    def _open() -> sqlite3.Connection:
        conn = sqlite3.connect(path, isolation_level=None, check_same_thread=False)
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    return AsyncConnection(await _run_sync(_open))
