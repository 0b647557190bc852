"""Typed, cleaned access to input values.

Usage::

    result = validate(form, {"email": "required|email", "age": "number"})
    if result:
        clean = result.sanitized()
        user = User(email=clean.email("email"), age=clean.number("age"))

    # Or straight from the request, without rules
    clean = await request.sanitized("q", "page")
    page = clean.number("page") or 1

Every accessor returns ``None`` when the key is missing or its value
cannot be cleaned into the requested type.
"""

import ipaddress
import re
from collections.abc import Callable, Mapping
from datetime import datetime
from typing import Any

from markupsafe import Markup, escape

_NOT_EMAIL = re.compile(r"[^A-Za-z0-9!#$%&'*+\-=?^_`{|}~@.\[\]]")
_NOT_URL = re.compile(r"[^A-Za-z0-9$\-_.+!*'(),{}|\\^~\[\]`<>#%\";/?:@&=]")
_NOT_INT = re.compile(r"[^0-9+\-]")
_NOT_FLOAT = re.compile(r"[^0-9+\-.]")

_TRUE = frozenset({"1", "true", "on", "yes"})
_FALSE = frozenset({"0", "false", "off", "no", ""})


class Sanitizer:
    """Wraps a mapping of input values and hands them out cleaned."""

    __slots__ = ("_data",)

    def __init__(self, data: Mapping[str, Any] | None = None) -> None:
        self._data: dict[str, Any] = dict(data or {})

    def get(self, key: str, default: Any = None) -> Any:
        value = self._data.get(key)
        return default if value is None else value

    def set(self, key: str, value: Any) -> None:
        self._data[key] = value

    def all(self) -> dict[str, Any]:
        return dict(self._data)

    def __contains__(self, key: object) -> bool:
        return key in self._data

    def _scalar(self, key: str) -> str | None:
        value = self._data.get(key)
        if value is None or isinstance(value, (list, tuple, Mapping)):
            return None
        return str(value)

    # -- Strings --

    def email(self, key: str) -> str | None:
        """Drop every character that cannot appear in an email address."""
        value = self._scalar(key)
        if value is None:
            return None
        return _NOT_EMAIL.sub("", value) or None

    def url(self, key: str) -> str | None:
        """Drop every character that cannot appear in a URL."""
        value = self._scalar(key)
        if value is None:
            return None
        return _NOT_URL.sub("", value) or None

    def text(self, key: str, strip_tags: bool = True) -> str | None:
        """Return the value as text, with HTML tags removed unless *strip_tags* is false.

        Stripping also collapses runs of whitespace.
        """
        value = self._scalar(key)
        if value is None or not strip_tags:
            return value
        return Markup(value).striptags()

    def html(self, key: str) -> str | None:
        """Return the value HTML-escaped for safe output."""
        value = self._scalar(key)
        return None if value is None else str(escape(value))

    # -- Numbers and flags --

    def number(self, key: str) -> int | None:
        value = self._data.get(key)
        if isinstance(value, bool):
            return int(value)
        if isinstance(value, int):
            return value
        text = self._scalar(key)
        if text is None:
            return None
        try:
            return int(_NOT_INT.sub("", text))
        except ValueError:
            return None

    def float(self, key: str) -> float | None:
        value = self._data.get(key)
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return float(value)
        text = self._scalar(key)
        if text is None:
            return None
        try:
            return float(_NOT_FLOAT.sub("", text))
        except ValueError:
            return None

    def boolean(self, key: str) -> bool | None:
        """``"1"``/``"true"``/``"on"``/``"yes"`` are true; ``"0"``/``"false"``/``"off"``/``"no"``/``""`` are false."""
        value = self._data.get(key)
        if isinstance(value, bool):
            return value
        text = self._scalar(key)
        if text is None:
            return None
        text = text.strip().lower()
        if text in _TRUE:
            return True
        if text in _FALSE:
            return False
        return None

    # -- Structured values --

    def ip(self, key: str) -> str | None:
        """Return the value if it is a valid IPv4 or IPv6 address."""
        value = self._scalar(key)
        if value is None:
            return None
        try:
            return str(ipaddress.ip_address(value.strip()))
        except ValueError:
            return None

    def array(self, key: str, func: Callable[[Any], Any] | None = None) -> list[Any]:
        """Return the list under *key* with *func* applied to each item.

        A missing or non-list value gives an empty list.
        """
        value = self._data.get(key)
        if not isinstance(value, (list, tuple)):
            return []
        if func is None:
            return list(value)
        return [func(item) for item in value]

    def date(self, key: str, format: str = "%Y-%m-%d") -> str | None:
        """Return the value if it is a date written exactly in *format*."""
        value = self._scalar(key)
        if value is None:
            return None
        try:
            parsed = datetime.strptime(value, format)
        except ValueError:
            return None
        return value if parsed.strftime(format) == value else None

    def __repr__(self) -> str:
        return f"Sanitizer({sorted(self._data)!r})"
