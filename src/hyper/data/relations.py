"""Declarative model relations.

A model lists its relations by name::

    class Post(Model):
        table = "posts"
        relations = {
            "author": Relation("one", User),
            "comments": Relation("many", Comment, callback=lambda q: q.order_desc()),
            "tags": Relation("many-to-many", Tag, table="post_tags"),
        }

Key columns follow the table names: a ``one`` relation reads
``posts.users_id``, a ``many`` relation reads ``comments.posts_id``, and a
``many-to-many`` join table holds ``posts_id`` and ``tags_id``.

Reading a relation without I/O gives a ``RelationState``::

    match post.get_relation("author"):
        case Loaded(user): ...
        case RelationStatus.NOT_LOADED: user = await post.fetch_relation(db, "author")
        case RelationStatus.DISABLED: ...
"""

from __future__ import annotations

import enum
import pkgutil
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Literal, TypeAlias

from hyper.errors import ConfigurationError

if TYPE_CHECKING:
    from hyper.data.model import Model
    from hyper.data.query import Query

RelationKind: TypeAlias = Literal["one", "many", "many-to-many"]

_KINDS: dict[str, RelationKind] = {
    "one": "one",
    "many": "many",
    "many-to-many": "many-to-many",
    "many-x": "many-to-many",
}


@dataclass(frozen=True, slots=True)
class Relation:
    """One relation entry.

    ``model`` may be a ``"package.module:Class"`` string for models that
    refer to each other; it is imported on first use. ``callback``
    receives the relation's ``Query`` and returns a modified one.
    """

    kind: str
    model: type[Model] | str
    table: str | None = None
    lazy: bool = True
    callback: Callable[[Query], Query] | None = None

    def __post_init__(self) -> None:
        kind = _KINDS.get(self.kind)
        if kind is None:
            msg = f"Unknown relation kind {self.kind!r}. Expected one of: one, many, many-to-many."
            raise ConfigurationError(msg)
        object.__setattr__(self, "kind", kind)
        if kind == "many-to-many" and not self.table:
            msg = "A many-to-many relation needs its join table."
            raise ConfigurationError(msg)

    @property
    def related(self) -> type[Model]:
        """The related model class."""
        if not isinstance(self.model, str):
            return self.model
        try:
            return pkgutil.resolve_name(self.model)
        except (ImportError, AttributeError, ValueError) as exc:
            msg = f"Cannot import related model {self.model!r}: {exc}"
            raise ConfigurationError(msg) from exc


class RelationStatus(enum.Enum):
    NOT_LOADED = "not_loaded"
    DISABLED = "disabled"


NOT_LOADED = RelationStatus.NOT_LOADED
DISABLED = RelationStatus.DISABLED


@dataclass(frozen=True, slots=True)
class Loaded:
    """A relation whose value has been loaded (possibly ``None`` or ``[]``)."""

    value: Any


RelationState: TypeAlias = Loaded | Literal[RelationStatus.NOT_LOADED, RelationStatus.DISABLED]
