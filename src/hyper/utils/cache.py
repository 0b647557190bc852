"""File-backed key/value cache.

Each cache namespace is one JSON file, ``{tmp_dir}/{md5(name)}.cache``,
mapping keys to ``{"time", "expire", "data"}`` entries. ``data`` holds the
JSON-encoded value, ``time`` the store timestamp, and ``expire`` a
lifetime in seconds (``0`` never expires)::

    with Cache("github", tmp_dir="tmp") as cache:
        repos = cache.load("repos", fetch_repos, expire="+10 minutes")

The file is read on first access and written back by ``save()``, which
the context manager calls on exit when something changed.
"""

import hashlib
import json
import logging
import os
import re
import tempfile
import time
from collections.abc import Callable, Iterable
from datetime import timedelta
from pathlib import Path
from types import TracebackType
from typing import Any, Self, TypeAlias

logger = logging.getLogger("hyper.cache")

Expire: TypeAlias = str | int | float | timedelta | None

_EXPIRE_RE = re.compile(r"^\s*([+-]?)\s*(\d+)\s*([a-z]+?)s?\s*$", re.IGNORECASE)
_UNITS = {
    "sec": 1,
    "second": 1,
    "min": 60,
    "minute": 60,
    "hour": 3600,
    "day": 86400,
    "week": 7 * 86400,
    "month": 30 * 86400,
    "year": 365 * 86400,
}


def parse_expire(expire: Expire) -> int:
    """Lifetime in seconds for *expire*.

    Accepts ``"+10 minutes"``, ``"-1 day"``, ``"2 hours"``, a
    ``timedelta``, or a number of seconds. ``None`` and ``0`` mean never.
    A negative lifetime is already expired.
    """
    if expire is None:
        return 0
    if isinstance(expire, timedelta):
        return int(expire.total_seconds())
    if isinstance(expire, (int, float)):
        return int(expire)
    found = _EXPIRE_RE.match(expire)
    if found is None or found.group(3).lower() not in _UNITS:
        msg = f"Cannot parse cache expiry {expire!r}; expected e.g. '+10 minutes'."
        raise ValueError(msg)
    sign, amount, unit = found.groups()
    seconds = int(amount) * _UNITS[unit.lower()]
    return -seconds if sign == "-" else seconds


def is_expired(entry: dict[str, Any], now: float | None = None) -> bool:
    expire = int(entry.get("expire", 0))
    now = time.time() if now is None else now
    return expire != 0 and (now - float(entry.get("time", 0))) > expire


class Cache:
    """One cache namespace backed by a JSON file."""

    __slots__ = ("_changed", "_data", "_loaded", "name", "path")

    def __init__(self, name: str, tmp_dir: str | Path = "tmp") -> None:
        self.name = name
        self.path = Path(tmp_dir) / f"{hashlib.md5(name.encode()).hexdigest()}.cache"
        self._data: dict[str, dict[str, Any]] = {}
        self._loaded = False
        self._changed = False

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.save()

    # -- Persistence --

    def reload(self, *, force: bool = False) -> Self:
        """Read the cache file, once unless *force* is set."""
        if self._loaded and not force:
            return self
        self._loaded = True
        if self.path.is_file():
            self._data = json.loads(self.path.read_text(encoding="utf-8") or "{}")
        else:
            self._data = {}
        logger.debug("Cache %r loaded from %s", self.name, self.path)
        return self

    def save(self) -> bool:
        """Write the entries back if anything changed. Returns ``True`` if written."""
        if not self._changed:
            return False
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=self.path.parent, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(self._data, fh)
            os.replace(tmp, self.path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise
        self._changed = False
        logger.debug("Cache %r saved to %s", self.name, self.path)
        return True

    # -- Reading --

    def has(self, key: str, *, erase_expired: bool = False) -> bool:
        self.reload()
        if erase_expired:
            self.erase_expired()
        return key in self._data

    def retrieve(self, keys: str | Iterable[str], *, erase_expired: bool = False) -> Any:
        """The value stored under a key, or a dict of values for several keys.

        Missing keys give ``None`` (or are left out of the dict).
        """
        self.reload()
        if erase_expired:
            self.erase_expired()
        if isinstance(keys, str):
            entry = self._data.get(keys)
            return None if entry is None else json.loads(entry["data"])
        return {key: json.loads(self._data[key]["data"]) for key in keys if key in self._data}

    def retrieve_all(self, *, erase_expired: bool = False) -> dict[str, Any]:
        self.reload()
        if erase_expired:
            self.erase_expired()
        return {key: json.loads(entry["data"]) for key, entry in self._data.items()}

    def load(self, key: str, callback: Callable[[Self], Any], expire: Expire = None) -> Any:
        """Return the cached value for *key*, computing and storing it on a miss.

        *callback* receives the cache. With an *expire*, stale entries are
        erased first so they are recomputed.
        """
        if expire is not None:
            self.erase_expired()
        if not self.has(key):
            self.store(key, callback(self), expire)
        return self.retrieve(key)

    # -- Writing --

    def store(self, key: str, value: Any, expire: Expire = None) -> Self:
        """Store *value* (anything JSON-serializable) under *key*."""
        self.reload()
        self._data[key] = {
            "time": int(time.time()),
            "expire": parse_expire(expire),
            "data": json.dumps(value),
        }
        self._changed = True
        return self

    def erase(self, keys: str | Iterable[str]) -> Self:
        self.reload()
        for key in [keys] if isinstance(keys, str) else keys:
            if self._data.pop(key, None) is not None:
                self._changed = True
        return self

    def erase_expired(self) -> Self:
        """Drop every expired entry."""
        self.reload()
        now = time.time()
        expired = [key for key, entry in self._data.items() if is_expired(entry, now)]
        for key in expired:
            del self._data[key]
        if expired:
            self._changed = True
            logger.debug("Cache %r erased %d expired entries", self.name, len(expired))
        return self

    def flush(self) -> Self:
        """Drop every entry."""
        self._loaded = True
        self._data = {}
        self._changed = True
        logger.debug("Cache %r flushed", self.name)
        return self
