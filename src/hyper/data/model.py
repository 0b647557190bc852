"""Active-record style models.

A model declares its table, its fields (class annotations), and its
relations. The database is always passed in explicitly::

    class Post(Model):
        table = "posts"
        relations = {"tags": Relation("many-to-many", Tag, table="post_tags")}

        title: str = ""
        meta: dict = {}          # stored as a JSON string
        users_id: int | None = None

    post = await Post.find(db, 1)
    posts = await Post.with_relations("tags").where({"p.users_id": 3}).fetch(db)
    post.title = "Edited"
    await post.save(db)

Relations are never loaded implicitly: use ``get_relation`` to inspect
and ``fetch_relation`` to load.
"""

from __future__ import annotations

import copy
import inspect
import json
import logging
import typing
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any, ClassVar, Protocol, Self, runtime_checkable

from hyper.data.errors import RelationError
from hyper.data.loader import RelationLoader
from hyper.data.query import Query
from hyper.data.relations import DISABLED, NOT_LOADED, Loaded, Relation, RelationState
from hyper.errors import ConfigurationError
from hyper.http.mappings import FormData
from hyper.uploads import UploadField, remove_files, store_uploads

if typing.TYPE_CHECKING:
    from hyper.data.database import Database

logger = logging.getLogger("hyper.data")


@runtime_checkable
class Relatable(Protocol):
    """An entity whose declared relations can be loaded and synced."""

    table: ClassVar[str]
    relations: ClassVar[Mapping[str, Relation]]
    id: Any

    @classmethod
    def relation(cls, name: str) -> Relation: ...

    def set_relation(self, name: str, value: Any) -> None: ...


@runtime_checkable
class Uploadable(Protocol):
    """An entity with file fields; their files are removed with the entity."""

    uploads: ClassVar[Sequence[UploadField]]
    upload_root: ClassVar[str | Path]


def _is_classvar(annotation: Any) -> bool:
    if isinstance(annotation, str):
        return annotation.startswith(("ClassVar", "typing.ClassVar"))
    return annotation is ClassVar or typing.get_origin(annotation) is ClassVar


def _collect_fields(cls: type) -> tuple[str, ...]:
    fields: dict[str, None] = {}
    for klass in reversed(cls.__mro__):
        for name, annotation in inspect.get_annotations(klass).items():
            if not name.startswith("_") and not _is_classvar(annotation):
                fields[name] = None
    return tuple(fields)


def _decode(value: Any) -> Any:
    if isinstance(value, str) and value[:1] in ("[", "{"):
        try:
            return json.loads(value)
        except ValueError:
            return value
    return value


def _encode(value: Any) -> Any:
    if isinstance(value, (list, dict)):
        return json.dumps(value, ensure_ascii=False)
    return value


class Model:
    """Base class for entities with an integer ``id`` primary key."""

    table: ClassVar[str] = ""
    relations: ClassVar[Mapping[str, Relation]] = {}
    upload_root: ClassVar[str | Path] = "uploads"
    __fields__: ClassVar[tuple[str, ...]] = ("id",)

    id: int | None = None

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        cls.__fields__ = _collect_fields(cls)

    def __init__(self, **values: Any) -> None:
        self._relations: dict[str, Any] = {}
        for name in self.__fields__:
            if name in values:
                setattr(self, name, values.pop(name))
            else:
                # Class-level defaults may be lists or dicts; never share them
                setattr(self, name, copy.copy(getattr(type(self), name, None)))
        if values:
            msg = f"{type(self).__name__} has no fields {sorted(values)}"
            raise TypeError(msg)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.table}#{self.id}>"

    def __eq__(self, other: object) -> bool:
        if type(other) is not type(self):
            return NotImplemented
        return self.to_dict() == other.to_dict()  # type: ignore[attr-defined]

    __hash__ = None  # type: ignore[assignment]

    # -- Rows --

    @classmethod
    def load(cls, row: Mapping[str, Any]) -> Self:
        """Build an entity from a database row. Unknown columns are ignored."""
        entity = cls()
        for name in cls.__fields__:
            if name in row:
                setattr(entity, name, _decode(row[name]))
        return entity

    def to_dict(self) -> dict[str, Any]:
        return {name: getattr(self, name) for name in self.__fields__}

    def to_row(self) -> dict[str, Any]:
        """Field values ready to store: no ``id``, lists and dicts as JSON."""
        return {name: _encode(value) for name, value in self.to_dict().items() if name != "id"}

    # -- Querying --

    @classmethod
    def query(cls) -> Query:
        if not cls.table:
            msg = f"{cls.__name__} does not declare a table."
            raise ConfigurationError(msg)
        return Query(cls.table, cls)

    @classmethod
    def with_relations(cls, *names: str) -> Query:
        """A query that eager-loads *names* (``"*"`` for all) after fetching."""
        return cls.query().with_relations(*names)

    @classmethod
    async def find(cls, db: Database, id: Any) -> Self | None:
        return await cls.query().where({"p.id": id}).first(db)

    @classmethod
    async def all(cls, db: Database) -> list[Self]:
        return await cls.query().fetch(db)

    # -- Persistence --

    async def save(self, db: Database, form: FormData | None = None) -> bool:
        """Insert the entity, or update it when ``id`` is set.

        With a submitted *form*, uploaded files are stored first (for
        ``Uploadable`` models) and many-to-many fields are synced after.
        """
        data = self.to_row()
        if form is not None and isinstance(self, Uploadable):
            await store_uploads(self.uploads, form, data, self.upload_root)
            for upload in self.uploads:
                setattr(self, upload.name, data.get(upload.name))
            data = {name: _encode(value) for name, value in data.items()}

        if self.id is not None:
            saved = await Query(self.table).where({"id": self.id}).update(db, data) > 0
        else:
            self.id = await Query(self.table).insert(db, data)
            saved = self.id is not None
        logger.debug("Saved %r", self)

        if saved and form is not None:
            await RelationLoader(db).sync_from_form(self, form)
        return saved

    async def remove(self, db: Database) -> bool:
        """Delete the entity. ``Uploadable`` models also lose their stored files."""
        if self.id is None:
            return False
        removed = await Query(self.table).where({"id": self.id}).delete(db) > 0
        if removed and isinstance(self, Uploadable):
            for upload in self.uploads:
                remove_files(self.upload_root, getattr(self, upload.name, None))
        return removed

    # -- Relations --

    @classmethod
    def relation(cls, name: str) -> Relation:
        try:
            return cls.relations[name]
        except KeyError:
            msg = f"{cls.__name__} has no relation {name!r}."
            raise ConfigurationError(msg) from None

    def set_relation(self, name: str, value: Any) -> None:
        self._relations[name] = value

    def get_relation(self, name: str) -> RelationState:
        """The relation's state, without any I/O."""
        relation = self.relation(name)
        if name in self._relations:
            return Loaded(self._relations[name])
        return NOT_LOADED if relation.lazy else DISABLED

    async def fetch_relation(self, db: Database, name: str) -> Any:
        """Return relation *name*, loading it on first access.

        Raises:
            RelationError: If the relation is declared with ``lazy=False``
                and was not eager-loaded.
        """
        match self.get_relation(name):
            case Loaded(value):
                return value
            case state if state is DISABLED:
                msg = f"Lazy loading is disabled for {type(self).__name__}.{name}; eager-load it instead."
                raise RelationError(msg)
        await RelationLoader(db).load([self], name)
        return self._relations[name]
