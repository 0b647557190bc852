"""Async database access.

SQLite runs through stdlib ``sqlite3`` on anyio worker threads, one
connection serialized by an ``anyio.Lock``. PostgreSQL runs through an
``asyncpg`` pool. Rows come back as plain dicts; ``hyper.data.model``
turns them into entities.

Configuration::

    Database(DatabaseConfig(driver="sqlite", file="app.db"))
    Database(DatabaseConfig(driver="pgsql", host="db", name="app", user="app"))
    Database("sqlite:///app.db")              # URL shorthand
    Database("postgresql://app@db/app")

Per-request access goes through ``get_db()``; the app sets it for every
request when a database is configured.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from contextvars import ContextVar
from dataclasses import dataclass, replace
from typing import Any, Literal, TypeAlias
from urllib.parse import quote

import anyio

from hyper.data._sqlite import AsyncConnection
from hyper.data._sqlite import connect as sqlite_connect
from hyper.data.errors import DataError, DriverNotInstalledError, QueryError
from hyper.errors import ConfigurationError

logger = logging.getLogger("hyper.data")

Driver: TypeAlias = Literal["sqlite", "postgresql"]
Dialect: TypeAlias = Literal["qmark", "numeric"]

_DRIVER_ALIASES: dict[str, Driver] = {
    "sqlite": "sqlite",
    "sqlite3": "sqlite",
    "pgsql": "postgresql",
    "postgres": "postgresql",
    "postgresql": "postgresql",
}

# The connection owned by the enclosing transaction(), if any
_current_conn: ContextVar[Any] = ContextVar("hyper_db_conn")

# App-level accessor, set per request by the ASGI handler
_db_var: ContextVar[Database] = ContextVar("hyper_db")


def get_db() -> Database:
    """Return the app's database.

    Raises ``LookupError`` if no database is configured or the app has
    not started.
    """
    return _db_var.get()


@dataclass(frozen=True, slots=True)
class DatabaseConfig:
    """Connection settings.

    ``dsn`` overrides everything else. Otherwise SQLite uses ``file``, and
    server drivers assemble a URL from ``user``, ``password``, ``host``,
    ``port`` and ``name``, with ``charset`` applied as client encoding.
    """

    driver: str = "sqlite"
    file: str = ":memory:"
    host: str | None = None
    port: int | None = None
    name: str | None = None
    user: str | None = None
    password: str | None = None
    charset: str | None = None
    dsn: str | None = None
    pool_size: int = 5
    echo: bool = False

    @property
    def normalized_driver(self) -> Driver:
        """``sqlite`` or ``postgresql``. Raises ``ConfigurationError`` otherwise."""
        driver = _DRIVER_ALIASES.get(self.driver.lower())
        if driver is None:
            msg = f"Unsupported database driver {self.driver!r}. Supported: sqlite, pgsql."
            raise ConfigurationError(msg)
        return driver

    def dsn_url(self) -> str:
        """Assemble the connection string for this driver."""
        if self.dsn:
            return self.dsn
        if self.normalized_driver == "sqlite":
            return self.file

        auth = ""
        if self.user:
            auth = quote(self.user, safe="")
            if self.password:
                auth += ":" + quote(self.password, safe="")
            auth += "@"
        host = self.host or "localhost"
        port = f":{self.port}" if self.port else ""
        name = f"/{quote(self.name, safe='')}" if self.name else ""
        query = f"?client_encoding={quote(self.charset, safe='')}" if self.charset else ""
        return f"postgresql://{auth}{host}{port}{name}{query}"

    @classmethod
    def from_url(cls, url: str, *, pool_size: int = 5, echo: bool = False) -> DatabaseConfig:
        """Build a config from ``sqlite:///path`` or ``postgresql://...``."""
        if url.startswith("sqlite://"):
            path = url.removeprefix("sqlite:///") if url.startswith("sqlite:///") else url.removeprefix("sqlite://")
            return cls(driver="sqlite", file=path, pool_size=pool_size, echo=echo)
        if url.startswith(("postgresql://", "postgres://")):
            return cls(driver="postgresql", dsn=url, pool_size=pool_size, echo=echo)
        msg = f"Unsupported database URL {url!r}. Supported: sqlite:///path, postgresql://user@host/db"
        raise ConfigurationError(msg)


class Database:
    """Async SQL execution over SQLite or PostgreSQL.

    Statements use ``?`` placeholders on SQLite and ``$1..$n`` on
    PostgreSQL; ``Query`` renders whichever ``dialect`` reports.

    Usage::

        rows = await db.fetch_rows("SELECT * FROM users WHERE active = ?", 1)
        user = await db.fetch_row("SELECT * FROM users WHERE id = ?", 42)
        total = await db.fetch_val("SELECT COUNT(*) FROM users")
        new_id = await db.insert("INSERT INTO users (name) VALUES (?)", "Ada")

        async with db.transaction():
            await db.execute("UPDATE users SET credits = credits - 1 WHERE id = ?", 1)
            await db.execute("UPDATE users SET credits = credits + 1 WHERE id = ?", 2)
    """

    __slots__ = ("_async_lock", "_config", "_driver", "_init_lock", "_initialized", "_lock", "_pool")

    def __init__(self, config: DatabaseConfig | str, /, *, echo: bool | None = None) -> None:
        if isinstance(config, str):
            config = DatabaseConfig.from_url(config)
        if echo is not None:
            config = replace(config, echo=echo)
        self._config = config
        self._driver: Driver = config.normalized_driver
        self._lock = threading.Lock()
        self._async_lock: anyio.Lock | None = None
        self._init_lock: anyio.Lock | None = None
        self._pool: Any = None
        self._initialized = False

    @property
    def config(self) -> DatabaseConfig:
        return self._config

    @property
    def driver(self) -> Driver:
        return self._driver

    @property
    def dialect(self) -> Dialect:
        """Placeholder style: ``qmark`` (``?``) or ``numeric`` (``$1``)."""
        return "qmark" if self._driver == "sqlite" else "numeric"

    # -- Connection management --

    def _sqlite_lock(self) -> anyio.Lock:
        # Created lazily: there is no event loop in __init__
        if self._async_lock is None:
            self._async_lock = anyio.Lock()
        return self._async_lock

    def _lifecycle_lock(self) -> anyio.Lock:
        # Guards connect/disconnect across awaits; the thread lock only
        # covers the lazy creation
        with self._lock:
            if self._init_lock is None:
                self._init_lock = anyio.Lock()
            return self._init_lock

    @asynccontextmanager
    async def _connection(self) -> AsyncIterator[Any]:
        """Yield a connection: the transaction's, or a fresh one from the pool."""
        if not self._initialized:
            await self.connect()

        conn = _current_conn.get(None)
        if conn is not None:
            yield conn
            return

        if self._driver == "sqlite":
            async with self._sqlite_lock():
                yield self._pool
        else:
            conn = await self._pool.acquire()
            try:
                yield conn
            finally:
                await self._pool.release(conn)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        """Run the enclosed statements atomically.

        Commits on clean exit and rolls back on any exception. A nested
        ``transaction()`` joins the outer one.
        """
        if not self._initialized:
            await self.connect()

        if _current_conn.get(None) is not None:
            yield
            return

        if self._driver == "sqlite":
            async with self._sqlite_lock():
                conn: AsyncConnection = self._pool
                token = _current_conn.set(conn)
                try:
                    await conn.begin()
                    yield
                    await conn.commit()
                except BaseException:
                    if conn.in_transaction:
                        await conn.rollback()
                    raise
                finally:
                    _current_conn.reset(token)
        else:
            conn = await self._pool.acquire()
            token = _current_conn.set(conn)
            tr = conn.transaction()
            try:
                await tr.start()
                yield
                await tr.commit()
            except BaseException:
                await tr.rollback()
                raise
            finally:
                _current_conn.reset(token)
                await self._pool.release(conn)

    # -- Echo --

    def _log_query(self, sql: str, params: Sequence[Any], elapsed: float) -> None:
        if self._config.echo:
            logger.info("%6.1fms  %s  params=%r", elapsed * 1000, sql, tuple(params))

    # -- Public query API --

    async def fetch_rows(self, sql: str, /, *params: Any) -> list[dict[str, Any]]:
        """Run a query and return every row as a dict."""
        t0 = time.perf_counter()
        async with self._connection() as conn:
            try:
                return await _execute_fetch_all(self._driver, conn, sql, params)
            except Exception as exc:
                raise QueryError(f"{exc} [{sql}]") from exc
            finally:
                self._log_query(sql, params, time.perf_counter() - t0)

    async def fetch_row(self, sql: str, /, *params: Any) -> dict[str, Any] | None:
        """Run a query and return the first row, or ``None``."""
        t0 = time.perf_counter()
        async with self._connection() as conn:
            try:
                return await _execute_fetch_one(self._driver, conn, sql, params)
            except Exception as exc:
                raise QueryError(f"{exc} [{sql}]") from exc
            finally:
                self._log_query(sql, params, time.perf_counter() - t0)

    async def fetch_val(self, sql: str, /, *params: Any) -> Any:
        """Run a query and return the first column of the first row.

        ::

            count = await db.fetch_val("SELECT COUNT(*) FROM users")
        """
        row = await self.fetch_row(sql, *params)
        if row is None:
            return None
        return next(iter(row.values()))

    async def execute(self, sql: str, /, *params: Any) -> int:
        """Run an INSERT/UPDATE/DELETE and return the number of affected rows."""
        t0 = time.perf_counter()
        async with self._connection() as conn:
            try:
                return await _execute_statement(self._driver, conn, sql, params)
            except Exception as exc:
                raise QueryError(f"{exc} [{sql}]") from exc
            finally:
                self._log_query(sql, params, time.perf_counter() - t0)

    async def execute_many(self, sql: str, params_seq: Sequence[Sequence[Any]], /) -> int:
        """Run a statement once per parameter set. Returns the affected row count."""
        t0 = time.perf_counter()
        async with self._connection() as conn:
            try:
                return await _execute_many(self._driver, conn, sql, params_seq)
            except Exception as exc:
                raise QueryError(f"{exc} [{sql}]") from exc
            finally:
                self._log_query(sql, (), time.perf_counter() - t0)

    async def insert(self, sql: str, /, *params: Any) -> int | None:
        """Run an INSERT and return the id of the last inserted row.

        On PostgreSQL ``RETURNING id`` is appended unless the statement
        already has a RETURNING clause.
        """
        t0 = time.perf_counter()
        async with self._connection() as conn:
            try:
                return await _execute_insert(self._driver, conn, sql, params)
            except Exception as exc:
                raise QueryError(f"{exc} [{sql}]") from exc
            finally:
                self._log_query(sql, params, time.perf_counter() - t0)

    async def execute_script(self, sql: str, /) -> None:
        """Run several ``;``-separated statements (schema setup, fixtures)."""
        t0 = time.perf_counter()
        async with self._connection() as conn:
            try:
                if self._driver == "sqlite":
                    await conn.executescript(sql)
                else:
                    await conn.execute(sql)
            except Exception as exc:
                raise QueryError(str(exc)) from exc
            finally:
                self._log_query(sql, (), time.perf_counter() - t0)

    # -- Lifecycle --

    async def connect(self) -> None:
        """Open the connection (SQLite) or pool (PostgreSQL).

        Called automatically on first use. Call it at startup to fail fast.
        """
        if self._initialized:
            return
        async with self._lifecycle_lock():
            if self._initialized:
                return
            self._pool = await _create_pool(self._driver, self._config)
            self._initialized = True

    async def disconnect(self) -> None:
        """Close the connection or pool."""
        if not self._initialized:
            return
        async with self._lifecycle_lock():
            if not self._initialized:
                return
            await self._pool.close()
            self._pool = None
            self._initialized = False

    async def __aenter__(self) -> Database:
        await self.connect()
        return self

    async def __aexit__(self, *_: Any) -> None:
        await self.disconnect()


# =============================================================================
# Driver dispatch
# =============================================================================
# Plain functions switched on the driver string rather than a driver class.


async def _create_pool(driver: Driver, config: DatabaseConfig) -> Any:
    if driver == "sqlite":
        return await sqlite_connect(config.dsn_url())

    try:
        import asyncpg
    except ImportError:
        msg = (
            "hyper.data requires 'asyncpg' for PostgreSQL databases. "
            "Install it with: pip install hyper-framework[pg]"
        )
        raise DriverNotInstalledError(msg) from None

    try:
        return await asyncpg.create_pool(config.dsn_url(), min_size=1, max_size=config.pool_size)
    except OSError as exc:
        raise DataError(f"Cannot connect to {config.host or 'database'}: {exc}") from exc


async def _execute_fetch_all(
    driver: Driver, conn: Any, sql: str, params: tuple[Any, ...]
) -> list[dict[str, Any]]:
    if driver == "sqlite":
        cursor = await conn.execute(sql, params)
        rows = await cursor.fetchall()
        columns = cursor.columns
        return [dict(zip(columns, row, strict=True)) for row in rows]

    rows = await conn.fetch(sql, *params)
    return [dict(row) for row in rows]


async def _execute_fetch_one(
    driver: Driver, conn: Any, sql: str, params: tuple[Any, ...]
) -> dict[str, Any] | None:
    if driver == "sqlite":
        cursor = await conn.execute(sql, params)
        row = await cursor.fetchone()
        if row is None:
            return None
        return dict(zip(cursor.columns, row, strict=True))

    row = await conn.fetchrow(sql, *params)
    return None if row is None else dict(row)


async def _execute_statement(driver: Driver, conn: Any, sql: str, params: tuple[Any, ...]) -> int:
    if driver == "sqlite":
        cursor = await conn.execute(sql, params)
        return cursor.rowcount

    # asyncpg returns a status string such as "UPDATE 3" or "INSERT 0 1"
    status = await conn.execute(sql, *params)
    parts = status.split()
    return int(parts[-1]) if parts and parts[-1].isdigit() else 0


async def _execute_many(
    driver: Driver, conn: Any, sql: str, params_seq: Sequence[Sequence[Any]]
) -> int:
    if driver == "sqlite":
        cursor = await conn.executemany(sql, params_seq)
        return cursor.rowcount

    # asyncpg's executemany returns None
    await conn.executemany(sql, params_seq)
    return len(params_seq)


async def _execute_insert(
    driver: Driver, conn: Any, sql: str, params: tuple[Any, ...]
) -> int | None:
    if driver == "sqlite":
        cursor = await conn.execute(sql, params)
        return cursor.lastrowid

    if " RETURNING " not in sql.upper():
        sql = f"{sql.rstrip().rstrip(';')} RETURNING id"
    rows = await conn.fetch(sql, *params)
    return rows[-1]["id"] if rows else None
