"""Shared fixtures: a temporary SQLite database with a small blog schema."""

import pytest

from hyper.data import Database

SCHEMA = """
CREATE TABLE users (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL DEFAULT '',
    email TEXT NOT NULL DEFAULT ''
);
CREATE TABLE posts (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    title TEXT NOT NULL DEFAULT '',
    body TEXT NOT NULL DEFAULT '',
    meta TEXT,
    users_id INTEGER
);
CREATE TABLE comments (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    body TEXT NOT NULL DEFAULT '',
    posts_id INTEGER
);
CREATE TABLE tags (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL UNIQUE
);
CREATE TABLE post_tags (
    posts_id INTEGER NOT NULL,
    tags_id INTEGER NOT NULL,
    PRIMARY KEY (posts_id, tags_id)
);
CREATE TABLE products (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL DEFAULT '',
    image TEXT
);
"""


@pytest.fixture
async def db(tmp_path):
    """A fresh SQLite database with the blog tables."""
    database = Database(f"sqlite:///{tmp_path / 'test.db'}")
    await database.connect()
    await database.execute_script(SCHEMA)
    yield database
    await database.disconnect()


@pytest.fixture
async def seeded_db(db):
    """Two users, three posts, comments, and tags."""
    await db.execute_script(
        """
        INSERT INTO users (name, email) VALUES ('Ada', 'ada@example.com'), ('Linus', 'linus@example.com');
        INSERT INTO posts (title, users_id) VALUES ('First', 1), ('Second', 1), ('Third', 2);
        INSERT INTO comments (body, posts_id) VALUES ('c1', 1), ('c2', 1), ('c3', 2);
        INSERT INTO tags (name) VALUES ('python'), ('sql'), ('web'), ('orm');
        INSERT INTO post_tags (posts_id, tags_id) VALUES (1, 1), (1, 2), (2, 3);
        """
    )
    return db
