"""Immutable query builder for hyper.data.

Accumulates SQL clauses through chaining methods, compiles to a SQL string
plus a parameters tuple, and executes through ``Database``. The main table
is always aliased ``p``; joined tables get ``t1``, ``t2``, ... unless the
table text carries its own ``AS`` alias.

Each method returns a new frozen ``Query``; the original is never mutated.

Usage::

    from hyper.data import Query

    posts = await (
        Query("posts")
        .select("p.*, t1.name AS author")
        .left_join("users", "t1.id = p.users_id")
        .where({"p.status": "published", "p.category": [1, 2]})
        .or_where("p.pinned = ?", 1)
        .order_desc("p.created_at")
        .take(20)
        .fetch(db)
    )

Clauses are written with ``?`` placeholders. On PostgreSQL they are
renumbered to ``$1..$n`` when the statement is compiled, so ``.sql``
always shows exactly what will run.
"""

from __future__ import annotations

import itertools
import logging
import re
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Any, TypeAlias

from hyper._internal.invoke import invoke
from hyper.errors import ConfigurationError

if TYPE_CHECKING:
    from hyper.data.database import Database, Dialect
    from hyper.data.model import Model
    from hyper.data.paginator import Paginator

logger = logging.getLogger("hyper.data")

Where: TypeAlias = tuple[str, str, tuple[Any, ...]]  # (connector, clause, params)
Mapper: TypeAlias = Callable[[list[Any]], Any]

# Quoted literals are skipped so a '?' inside a string is left alone
_QMARK = re.compile(r"'(?:[^']|'')*'|\?")
_ALIASED = re.compile(r"\sAS\s", re.IGNORECASE)


def render_placeholders(sql: str, dialect: Dialect) -> str:
    """Rewrite ``?`` placeholders for *dialect* (``$1..$n`` when numeric)."""
    if dialect == "qmark":
        return sql
    counter = itertools.count(1)

    def number(found: re.Match[str]) -> str:
        token = found.group(0)
        return f"${next(counter)}" if token == "?" else token

    return _QMARK.sub(number, sql)


@dataclass(frozen=True, slots=True)
class Query:
    """Immutable SELECT/INSERT/UPDATE/DELETE builder for one table.

    With a ``model`` attached, fetched rows are loaded into model
    instances and any eager relations are attached before mappers run.
    """

    table: str
    model: type[Model] | None = None
    dialect: Dialect = "qmark"
    _columns: str = "*"
    _joins: tuple[str, ...] = ()
    _wheres: tuple[Where, ...] = ()
    _group: str | None = None
    _having: str | None = None
    _having_params: tuple[Any, ...] = ()
    _order: str | None = None
    _limit: int | None = None
    _offset: int | None = None
    _eager: tuple[str, ...] = ()
    _mappers: tuple[Mapper, ...] = ()

    # ── Building ─────────────────────────────────────────────────────────

    def select(self, columns: str | Sequence[str]) -> Query:
        """Set which columns to SELECT. Default is ``*``."""
        if not isinstance(columns, str):
            columns = ", ".join(columns)
        return replace(self, _columns=columns)

    def where(self, condition: Mapping[str, Any] | str | None, /, *params: Any) -> Query:
        """Add a condition joined with ``AND``.

        A mapping turns each item into ``col = ?`` (``col IN (...)`` for a
        list, ``col IS NULL`` for ``None``) and joins them with ``AND``::

            Query("users").where({"status": 1, "role": ["admin", "editor"]})
            # WHERE status = ? AND role IN (?, ?)
        """
        return self._add_where("AND", condition, params)

    def or_where(self, condition: Mapping[str, Any] | str | None, /, *params: Any) -> Query:
        """Add a condition joined with ``OR``. Mapping items are ORed too."""
        return self._add_where("OR", condition, params)

    def where_if(self, flag: object, condition: Mapping[str, Any] | str, /, *params: Any) -> Query:
        """Add a condition only if *flag* is truthy."""
        if not flag:
            return self
        return self.where(condition, *params)

    def _add_where(self, connector: str, condition: Any, params: tuple[Any, ...]) -> Query:
        if condition is None or condition == {}:
            return self
        if isinstance(condition, Mapping):
            clause, params = _compile_mapping(condition, f" {connector} ")
            if len(condition) > 1:
                clause = f"({clause})"
        else:
            clause = str(condition)
        return replace(self, _wheres=(*self._wheres, (connector, clause, tuple(params))))

    def join(self, table: str, on: str) -> Query:
        """Add an inner JOIN. The table is aliased ``t{n}`` in join order."""
        return self._add_join("JOIN", table, on)

    def left_join(self, table: str, on: str) -> Query:
        return self._add_join("LEFT JOIN", table, on)

    def right_join(self, table: str, on: str) -> Query:
        return self._add_join("RIGHT JOIN", table, on)

    def cross_join(self, table: str) -> Query:
        return self._add_join("CROSS JOIN", table, None)

    def _add_join(self, kind: str, table: str, on: str | None) -> Query:
        if not _ALIASED.search(table):
            table = f"{table} AS t{len(self._joins) + 1}"
        clause = f"{kind} {table}" if on is None else f"{kind} {table} ON {on}"
        return replace(self, _joins=(*self._joins, clause))

    def order_by(self, clause: str) -> Query:
        """Set ORDER BY. Replaces any previous ordering."""
        return replace(self, _order=clause)

    def order_asc(self, field: str = "p.id") -> Query:
        return self.order_by(f"{field} ASC")

    def order_desc(self, field: str = "p.id") -> Query:
        return self.order_by(f"{field} DESC")

    def group_by(self, clause: str | Sequence[str]) -> Query:
        if not isinstance(clause, str):
            clause = ", ".join(clause)
        return replace(self, _group=clause)

    def having(self, clause: str, /, *params: Any) -> Query:
        return replace(self, _having=clause, _having_params=params)

    def take(self, n: int) -> Query:
        """Set LIMIT (max rows to return)."""
        return replace(self, _limit=n)

    def skip(self, n: int) -> Query:
        """Set OFFSET (rows to skip)."""
        return replace(self, _offset=n)

    def with_relations(self, *names: str) -> Query:
        """Eager-load the named model relations after fetching.

        ``"*"`` means every relation the model declares.
        """
        if self.model is None:
            msg = f"Query on {self.table!r} has no model to load relations for."
            raise ConfigurationError(msg)
        if "*" in names:
            names = tuple(self.model.relations)
        for name in names:
            self.model.relation(name)  # unknown names fail here, not at fetch time
        return replace(self, _eager=(*self._eager, *names))

    def map(self, mapper: Mapper) -> Query:
        """Run *mapper* over the fetched list; its return value replaces it."""
        return replace(self, _mappers=(*self._mappers, mapper))

    def for_dialect(self, dialect: Dialect) -> Query:
        """This query, compiled for *dialect*."""
        if dialect == self.dialect:
            return self
        return replace(self, dialect=dialect)

    # ── Compilation ──────────────────────────────────────────────────────

    @property
    def sql(self) -> str:
        """The exact SELECT that will run."""
        parts = [f"SELECT {self._columns} FROM {self.table} AS p", *self._joins]
        parts.extend(self._filter_clauses())
        if self._order:
            parts.append(f"ORDER BY {self._order}")
        if self._limit is not None:
            parts.append(f"LIMIT {int(self._limit)}")
        if self._offset is not None:
            parts.append(f"OFFSET {int(self._offset)}")
        return render_placeholders(" ".join(parts), self.dialect)

    @property
    def params(self) -> tuple[Any, ...]:
        """The bound parameters of ``sql``, in order."""
        return (*self._where_params(), *self._having_params)

    def count_sql(self) -> str:
        """``COUNT(1)`` over the same joins, filters, grouping and having.

        A grouped query is counted as a subquery so the result is the
        number of groups.
        """
        parts = [f"FROM {self.table} AS p", *self._joins, *self._filter_clauses()]
        body = " ".join(parts)
        if self._group:
            sql = f"SELECT COUNT(1) FROM (SELECT 1 {body}) AS c"
        else:
            sql = f"SELECT COUNT(1) {body}"
        return render_placeholders(sql, self.dialect)

    def insert_sql(
        self,
        rows: Mapping[str, Any] | Sequence[Mapping[str, Any]],
        *,
        ignore: bool = False,
        replace: bool = False,
        update: Mapping[str, str] | Sequence[str] | None = None,
        conflict: Sequence[str] = ("id",),
    ) -> tuple[str, tuple[Any, ...]]:
        """Compile an INSERT for one row or many.

        Many rows become one multi-row ``VALUES`` list; every row must have
        the first row's columns. ``ignore`` skips conflicting rows,
        ``replace`` overwrites them, and ``update`` upserts::

            q.insert_sql(rows, update=["title", "body"], conflict=["slug"])
            # ... ON CONFLICT (slug) DO UPDATE SET title = excluded.title, body = excluded.body

        A mapping for ``update`` names the source column per target column.
        """
        if isinstance(rows, Mapping):
            rows = [rows]
        if not rows:
            msg = "Cannot build an INSERT without rows."
            raise ValueError(msg)

        columns = list(rows[0])
        params: list[Any] = []
        groups: list[str] = []
        for row in rows:
            if list(row) != columns:
                msg = f"Every inserted row must have the columns {columns}, got {list(row)}."
                raise ValueError(msg)
            params.extend(row.values())
            groups.append(f"({', '.join('?' for _ in columns)})")

        head = "INSERT"
        if self.dialect == "qmark":
            if replace:
                head = "REPLACE"
            elif ignore:
                head = "INSERT OR IGNORE"
        sql = f"{head} INTO {self.table} ({', '.join(columns)}) VALUES {', '.join(groups)}"

        if self.dialect == "numeric" and replace and update is None:
            update = [c for c in columns if c not in conflict]
        if update:
            pairs = update.items() if isinstance(update, Mapping) else ((c, c) for c in update)
            assignments = ", ".join(f"{target} = excluded.{source}" for target, source in pairs)
            sql += f" ON CONFLICT ({', '.join(conflict)}) DO UPDATE SET {assignments}"
        elif self.dialect == "numeric" and ignore:
            sql += " ON CONFLICT DO NOTHING"
        return render_placeholders(sql, self.dialect), tuple(params)

    def update_sql(self, data: Mapping[str, Any]) -> tuple[str, tuple[Any, ...]]:
        """Compile an UPDATE of *data* under this query's WHERE clauses."""
        if not data:
            msg = "Cannot build an UPDATE without data."
            raise ValueError(msg)
        assignments = ", ".join(f"{column} = ?" for column in data)
        sql = f"UPDATE {self.table} SET {assignments}{self._plain_where()}"
        return render_placeholders(sql, self.dialect), (*data.values(), *self._where_params())

    def delete_sql(self) -> tuple[str, tuple[Any, ...]]:
        """Compile a DELETE under this query's WHERE clauses."""
        sql = f"DELETE FROM {self.table}{self._plain_where()}"
        return render_placeholders(sql, self.dialect), self._where_params()

    def _where_clause(self) -> str:
        parts: list[str] = []
        for connector, clause, _ in self._wheres:
            if parts:
                parts.append(connector)
            parts.append(clause)
        return " ".join(parts)

    def _plain_where(self) -> str:
        clause = self._where_clause()
        return f" WHERE {clause}" if clause else ""

    def _where_params(self) -> tuple[Any, ...]:
        return tuple(p for _, _, params in self._wheres for p in params)

    def _filter_clauses(self) -> list[str]:
        parts: list[str] = []
        if self._wheres:
            parts.append(f"WHERE {self._where_clause()}")
        if self._group:
            parts.append(f"GROUP BY {self._group}")
        if self._having:
            parts.append(f"HAVING {self._having}")
        return parts

    # ── Execution ────────────────────────────────────────────────────────

    async def rows(self, db: Database) -> list[dict[str, Any]]:
        """Execute and return raw row dicts, ignoring model and mappers."""
        query = self.for_dialect(db.dialect)
        return await db.fetch_rows(query.sql, *query.params)

    async def fetch(self, db: Database) -> list[Any]:
        """Execute and return every row.

        Rows are model instances when a model is attached, dicts otherwise.
        """
        result: list[Any] = await self.rows(db)
        if self.model is not None:
            result = [self.model.load(row) for row in result]
            if self._eager and result:
                from hyper.data.loader import RelationLoader

                loader = RelationLoader(db)
                for name in self._eager:
                    await loader.load(result, name)
        for mapper in self._mappers:
            result = await invoke(mapper, result)
        return result

    async def first(self, db: Database) -> Any | None:
        """Execute with ``LIMIT 1`` and return the row, or ``None``."""
        found = await self.take(1).fetch(db)
        return found[0] if found else None

    async def last(self, db: Database, field: str = "p.id") -> Any | None:
        """The row with the highest *field*, or ``None``."""
        return await self.order_desc(field).first(db)

    async def latest(self, db: Database, field: str = "p.id") -> list[Any]:
        """Every row, newest (highest *field*) first."""
        return await self.order_desc(field).fetch(db)

    async def count(self, db: Database) -> int:
        """Count matching rows. Ignores ``select``, order, limit and offset."""
        query = self.for_dialect(db.dialect)
        return int(await db.fetch_val(query.count_sql(), *query.params) or 0)

    async def exists(self, db: Database) -> bool:
        """True if at least one row matches."""
        query = replace(self.for_dialect(db.dialect), _columns="1", _order=None, _offset=None, _limit=1)
        return await db.fetch_row(query.sql, *query.params) is not None

    async def paginate(self, db: Database, page: int = 1, limit: int = 10) -> Paginator:
        """Fetch one page of results along with the page arithmetic."""
        from hyper.data.paginator import Paginator

        paginator = Paginator(total=await self.count(db), limit=limit, page=page)
        if paginator.total:
            items = await self.skip(paginator.offset).take(paginator.limit).fetch(db)
            paginator = paginator.with_items(items)
        return paginator

    async def insert(
        self,
        db: Database,
        rows: Mapping[str, Any] | Sequence[Mapping[str, Any]],
        *,
        ignore: bool = False,
        replace: bool = False,
        update: Mapping[str, str] | Sequence[str] | None = None,
        conflict: Sequence[str] = ("id",),
    ) -> int | None:
        """Insert one row or many. Returns the last inserted id."""
        query = self.for_dialect(db.dialect)
        sql, params = query.insert_sql(rows, ignore=ignore, replace=replace, update=update, conflict=conflict)
        if db.dialect == "numeric" and (ignore or update or replace):
            # Conflicting rows return nothing from RETURNING
            await db.execute(sql, *params)
            return None
        return await db.insert(sql, *params)

    async def update(self, db: Database, data: Mapping[str, Any]) -> int:
        """Update matching rows. Without a WHERE clause nothing runs and 0 is returned."""
        if not self._wheres:
            logger.warning("Refusing UPDATE on %s without a WHERE clause", self.table)
            return 0
        sql, params = self.for_dialect(db.dialect).update_sql(data)
        return await db.execute(sql, *params)

    async def delete(self, db: Database) -> int:
        """Delete matching rows. Without a WHERE clause nothing runs and 0 is returned."""
        if not self._wheres:
            logger.warning("Refusing DELETE on %s without a WHERE clause", self.table)
            return 0
        sql, params = self.for_dialect(db.dialect).delete_sql()
        return await db.execute(sql, *params)


def _compile_mapping(condition: Mapping[str, Any], joiner: str) -> tuple[str, list[Any]]:
    clauses: list[str] = []
    params: list[Any] = []
    for column, value in condition.items():
        if value is None:
            clauses.append(f"{column} IS NULL")
        elif isinstance(value, (list, tuple, set, frozenset)):
            values = list(value)
            if not values:
                clauses.append("1 = 0")
                continue
            clauses.append(f"{column} IN ({', '.join('?' for _ in values)})")
            params.extend(values)
        else:
            clauses.append(f"{column} = ?")
            params.append(value)
    return joiner.join(clauses), params

