"""Batched relation loading and many-to-many write-back.

Each ``load`` call issues at most one query for the whole batch of
entities, whatever the relation kind::

    posts = await Post.query().fetch(db)
    await RelationLoader(db).load(posts, "comments")   # one query, not len(posts)

``sync`` applies the difference between two id lists to a join table in
one transaction.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from typing import TYPE_CHECKING, Any

from hyper._internal.invoke import invoke
from hyper.data.query import Query

if TYPE_CHECKING:
    from hyper.data.database import Database
    from hyper.data.model import Relatable
    from hyper.data.relations import Relation

logger = logging.getLogger("hyper.data")


def _key(value: Any) -> str:
    # Ids compare loosely: 3, "3" and 3.0 name the same row
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value)


def _coerce_id(value: Any) -> Any:
    if isinstance(value, str) and value.strip().isdigit():
        return int(value)
    return value


def _distinct(values: Iterable[Any]) -> list[Any]:
    seen: set[str] = set()
    result: list[Any] = []
    for value in values:
        if value is None or value == "":
            continue
        key = _key(value)
        if key not in seen:
            seen.add(key)
            result.append(_coerce_id(value))
    return result


def diff_ids(old: Iterable[Any], new: Iterable[Any]) -> tuple[list[Any], list[Any]]:
    """Return ``(to_insert, to_delete)`` turning *old* ids into *new* ones.

    Order follows the inputs; blanks and duplicates are dropped, and
    numeric strings become ints::

        diff_ids([1, 2, 3], [2, 3, 4])  # ([4], [1])
    """
    old_ids = _distinct(old)
    new_ids = _distinct(new)
    old_keys = {_key(v) for v in old_ids}
    new_keys = {_key(v) for v in new_ids}
    to_insert = [v for v in new_ids if _key(v) not in old_keys]
    to_delete = [v for v in old_ids if _key(v) not in new_keys]
    return to_insert, to_delete


class RelationLoader:
    """Loads and syncs relations declared on ``Relatable`` entities."""

    __slots__ = ("_db",)

    def __init__(self, db: Database) -> None:
        self._db = db

    async def load(self, entities: Sequence[Relatable], name: str) -> Sequence[Relatable]:
        """Attach relation *name* to every entity in *entities*.

        All entities must be of the same model. An empty batch, or one
        with no keys to look up, issues no query.
        """
        if not entities:
            return entities
        owner = type(entities[0])
        relation = owner.relation(name)

        match relation.kind:
            case "one":
                await self._load_one(entities, name, relation)
            case "many":
                await self._load_many(entities, name, relation)
            case "many-to-many":
                await self._load_many_to_many(entities, name, relation)
        return entities

    async def _fetch(self, relation: Relation, query: Query) -> list[dict[str, Any]]:
        if relation.callback is not None:
            query = await invoke(relation.callback, query)
        return await query.rows(self._db)

    async def _load_one(self, entities: Sequence[Relatable], name: str, relation: Relation) -> None:
        related = relation.related
        column = f"{related.table}_id"
        ids = _distinct(getattr(entity, column, None) for entity in entities)
        found: dict[str, Any] = {}
        if ids:
            query = Query(related.table, related).where({"p.id": ids})
            for row in await self._fetch(relation, query):
                if row.get("id") is not None:
                    found[_key(row["id"])] = related.load(row)
        logger.debug("Loaded %s.%s for %d entities", _owner_name(entities), name, len(entities))
        for entity in entities:
            value = getattr(entity, column, None)
            entity.set_relation(name, None if value is None else found.get(_key(value)))

    async def _load_many(self, entities: Sequence[Relatable], name: str, relation: Relation) -> None:
        related = relation.related
        column = f"{type(entities[0]).table}_id"
        ids = _distinct(entity.id for entity in entities)
        grouped: dict[str, list[Any]] = {}
        if ids:
            query = Query(related.table, related).where({f"p.{column}": ids})
            for row in await self._fetch(relation, query):
                # Rows missing the key column (narrowed by a callback) match no owner
                if row.get(column) is not None:
                    grouped.setdefault(_key(row[column]), []).append(related.load(row))
        logger.debug("Loaded %s.%s for %d entities", _owner_name(entities), name, len(entities))
        for entity in entities:
            entity.set_relation(name, grouped.get(_key(entity.id), []))

    async def _load_many_to_many(
        self, entities: Sequence[Relatable], name: str, relation: Relation
    ) -> None:
        related = relation.related
        owner_column = f"{type(entities[0]).table}_id"
        related_column = f"{related.table}_id"
        ids = _distinct(entity.id for entity in entities)
        grouped: dict[str, list[Any]] = {}
        if ids:
            query = (
                Query(related.table, related)
                .select(f"p.*, t1.{owner_column}, t1.{related_column}")
                .join(str(relation.table), f"t1.{related_column} = p.id")
                .where({f"t1.{owner_column}": ids})
            )
            for row in await self._fetch(relation, query):
                if row.get(owner_column) is not None:
                    grouped.setdefault(_key(row[owner_column]), []).append(related.load(row))
        logger.debug("Loaded %s.%s for %d entities", _owner_name(entities), name, len(entities))
        for entity in entities:
            entity.set_relation(name, grouped.get(_key(entity.id), []))

    # -- Write-back --

    async def sync(
        self, entity: Relatable, name: str, old_ids: Iterable[Any], new_ids: Iterable[Any]
    ) -> bool:
        """Make *entity*'s join rows for *name* go from *old_ids* to *new_ids*.

        Inserts and deletes run in one transaction. Returns ``True`` if
        anything changed.
        """
        relation = type(entity).relation(name)
        if relation.kind != "many-to-many":
            msg = f"Relation {name!r} is {relation.kind}, only many-to-many relations can be synced."
            raise ValueError(msg)

        table = str(relation.table)
        owner_column = f"{type(entity).table}_id"
        related_column = f"{relation.related.table}_id"
        to_insert, to_delete = diff_ids(old_ids, new_ids)
        if not to_insert and not to_delete:
            return False

        join_rows = Query(table)
        async with self._db.transaction():
            if to_insert:
                await join_rows.insert(
                    self._db,
                    [{related_column: related_id, owner_column: entity.id} for related_id in to_insert],
                )
            if to_delete:
                await join_rows.where({owner_column: entity.id, related_column: to_delete}).delete(self._db)
        logger.info(
            "Synced %s for %s #%s: +%d -%d", table, type(entity).table, entity.id, len(to_insert), len(to_delete)
        )
        return True

    async def sync_from_form(self, entity: Relatable, form: Mapping[str, Any]) -> bool:
        """Sync every many-to-many relation submitted in *form*.

        The new ids come from the ``{join_table}`` list field and the
        previous ids from the comma-joined ``_{join_table}`` field. A
        relation whose field is absent is left alone, and each join table is
        synced once.
        """
        changed = False
        synced: set[str] = set()
        for name, relation in type(entity).relations.items():
            if relation.kind != "many-to-many" or relation.table not in form:
                continue
            table = str(relation.table)
            # Several relations may share one join table
            if table in synced:
                continue
            synced.add(table)
            new_ids = _form_list(form, table)
            old_ids = str(form.get(f"_{table}") or "").split(",")
            changed = await self.sync(entity, name, old_ids, new_ids) or changed
        return changed


def _form_list(form: Mapping[str, Any], key: str) -> list[Any]:
    get_list = getattr(form, "get_list", None)
    if get_list is not None:
        return list(get_list(key))
    value = form.get(key)
    if isinstance(value, (list, tuple)):
        return list(value)
    return [] if value is None else [value]


def _owner_name(entities: Sequence[Any]) -> str:
    return type(entities[0]).__name__
