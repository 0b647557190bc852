"""Async database access, query building, and models for hyper.

Basic usage::

    from hyper.data import Database, Model, Query, Relation

    db = Database("sqlite:///app.db")

    class User(Model):
        table = "users"
        name: str = ""
        email: str = ""

    users = await User.query().where({"p.active": 1}).order_asc("p.name").fetch(db)
    total = await Query("users").count(db)

SQLite works out of the box. PostgreSQL needs ``asyncpg``::

    pip install hyper-framework[pg]
"""

from hyper.data.database import Database, DatabaseConfig, get_db
from hyper.data.errors import DataError, DriverNotInstalledError, QueryError, RelationError
from hyper.data.loader import RelationLoader, diff_ids
from hyper.data.model import Model, Relatable, Uploadable
from hyper.data.paginator import Paginator
from hyper.data.query import Query
from hyper.data.relations import DISABLED, NOT_LOADED, Loaded, Relation, RelationState, RelationStatus

__all__ = [
    "DISABLED",
    "NOT_LOADED",
    "DataError",
    "Database",
    "DatabaseConfig",
    "DriverNotInstalledError",
    "Loaded",
    "Model",
    "Paginator",
    "Query",
    "QueryError",
    "Relatable",
    "Relation",
    "RelationError",
    "RelationLoader",
    "RelationState",
    "RelationStatus",
    "Uploadable",
    "diff_ids",
    "get_db",
]
