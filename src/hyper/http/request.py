"""Immutable HTTP request.

Frozen metadata with async body access. Route params are attached after
matching with ``with_path_params``, which returns a new request.
"""

from __future__ import annotations

import ipaddress
import json
from collections.abc import AsyncGenerator, Mapping
from dataclasses import dataclass, field, replace
from typing import Any

from hyper._internal.asgi import Receive, Scope
from hyper.http.cookies import parse_cookies
from hyper.http.forms import parse_form_data
from hyper.http.mappings import FormData, Headers, QueryParams, UploadFile
from hyper.validation.sanitizer import Sanitizer

_FORM_TYPES = ("application/x-www-form-urlencoded", "multipart/form-data")

# Checked in order; the last entry of a comma-separated list wins.
_CLIENT_IP_HEADERS = (
    "client-ip",
    "x-forwarded-for",
    "x-forwarded",
    "forwarded",
    "forwarded-for",
    "cf-connecting-ip",
)


@dataclass(frozen=True, slots=True)
class Request:
    """An immutable HTTP request.

    Metadata is frozen at creation. The body is read once through
    ``body()``, ``json()``, or ``form()`` and cached.

    ``path_params`` is keyed by placeholder name, or by position when the
    route pattern's names and capture groups disagree.
    """

    method: str
    path: str
    headers: Headers
    query: QueryParams
    path_params: dict[str | int, str]
    scheme: str
    server: tuple[str, int] | None
    client: tuple[str, int] | None
    cookies: Mapping[str, str]

    _receive: Receive

    # The dict is mutable even though the field is frozen
    _cache: dict[str, Any] = field(default_factory=dict, repr=False, compare=False)

    # -- Computed properties --

    @property
    def content_type(self) -> str | None:
        """The Content-Type header value."""
        return self.headers.get("content-type")

    @property
    def content_length(self) -> int | None:
        """The Content-Length header as int."""
        value = self.headers.get("content-length")
        if value is None:
            return None
        try:
            return int(value)
        except ValueError:
            return None

    @property
    def root_url(self) -> str:
        """Scheme and host, e.g. ``https://example.com``."""
        host = self.headers.get("host")
        if host is None and self.server is not None:
            host = f"{self.server[0]}:{self.server[1]}"
        return f"{self.scheme}://{host or ''}"

    @property
    def url(self) -> str:
        """Path plus query string."""
        qs = self.query.raw
        if qs:
            return f"{self.path}?{qs.decode('latin-1')}"
        return self.path

    @property
    def ip(self) -> str | None:
        """Client IP from proxy headers or the socket, or ``None`` if invalid."""
        candidate = ""
        for name in _CLIENT_IP_HEADERS:
            value = self.headers.get(name)
            if value:
                candidate = value
                break
        else:
            if self.client is not None:
                candidate = self.client[0]
        candidate = candidate.split(",")[-1].strip()
        try:
            ipaddress.ip_address(candidate)
        except ValueError:
            return None
        return candidate

    def accepts(self, content_type: str) -> bool:
        """True if the Accept header mentions *content_type*."""
        return content_type.lower() in self.headers.get("accept", "").lower()

    def param(self, key: str | int, default: str | None = None) -> str | None:
        """Return a route parameter by name or position."""
        return self.path_params.get(key, default)

    def with_path_params(self, params: dict[str | int, str]) -> Request:
        """Return a copy with *params* attached. The body cache is shared."""
        return replace(self, path_params=params, _cache=self._cache)

    # -- Async body access --

    async def body(self) -> bytes:
        """Read the full request body. Cached after the first call."""
        if "_body" in self._cache:
            return self._cache["_body"]
        chunks = [chunk async for chunk in self.stream()]
        result = b"".join(chunks)
        self._cache["_body"] = result
        return result

    async def stream(self) -> AsyncGenerator[bytes]:
        """Stream the request body in chunks."""
        while True:
            message = await self._receive()
            body = message.get("body", b"")
            if body:
                yield body
            if not message.get("more_body", False):
                break

    async def json(self) -> Any:
        """Parse the body as JSON."""
        return json.loads(await self.body())

    async def text(self) -> str:
        """Read the body as UTF-8 text."""
        return (await self.body()).decode("utf-8")

    async def form(self) -> FormData:
        """Parse the body as form data (URL-encoded or multipart). Cached.

        A POST without a form content type whose body is a JSON object is
        exposed as form fields too, so handlers can read either.

        Raises:
            ValueError: If the body is neither a form nor a JSON object.
        """
        if "_form" in self._cache:
            return self._cache["_form"]

        ct = self.content_type or "application/x-www-form-urlencoded"
        raw = await self.body()
        if not ct.lower().startswith(_FORM_TYPES) and ct.lower().startswith("application/json"):
            result = _form_from_json(raw)
        else:
            result = await parse_form_data(raw, ct)
        self._cache["_form"] = result
        return result

    async def input(self, key: str, default: Any = None) -> Any:
        """Look up *key* in the form body, then the query string."""
        if self.method in ("POST", "PUT", "PATCH"):
            form = await self.form()
            if key in form:
                return form[key]
        return self.query.get(key, default)

    async def file(self, key: str) -> UploadFile | None:
        """Return the first file uploaded under *key*."""
        return (await self.form()).file(key)

    async def all(self, *keys: str) -> dict[str, Any]:
        """Merge query, form fields, and files into one dict.

        With *keys*, only those keys are returned; missing ones map to ``None``.
        """
        output: dict[str, Any] = dict(self.query.to_dict())
        if self.method in ("POST", "PUT", "PATCH"):
            form = await self.form()
            output.update(form.to_dict())
            for name, files in form.files.items():
                output[name] = files[0] if len(files) == 1 else list(files)
        if keys:
            return {key: output.get(key) for key in keys}
        return output

    async def sanitized(self, *keys: str) -> Sanitizer:
        """Wrap ``all(*keys)`` in a ``Sanitizer`` for typed access."""
        return Sanitizer(await self.all(*keys))

    # -- Factory --

    @classmethod
    def from_asgi(cls, scope: Scope, receive: Receive) -> Request:
        """Create a Request from an ASGI scope and receive callable."""
        headers = Headers(tuple(scope.get("headers", ())))
        server = scope.get("server")
        client = scope.get("client")
        return cls(
            method=scope["method"].upper(),
            path=scope["path"],
            headers=headers,
            query=QueryParams(scope.get("query_string", b"")),
            path_params={},
            scheme=scope.get("scheme", "http"),
            server=tuple(server) if server else None,
            client=tuple(client) if client else None,
            cookies=parse_cookies(headers.get("cookie", "")),
            _receive=receive,
        )


def _form_from_json(raw: bytes) -> FormData:
    if not raw:
        return FormData()
    payload = json.loads(raw)
    if not isinstance(payload, dict):
        msg = "JSON body must be an object to be read as form fields"
        raise ValueError(msg)
    data: dict[str, list[str]] = {}
    for key, value in payload.items():
        values = value if isinstance(value, list) else [value]
        data[key] = ["" if v is None else str(v) for v in values]
    return FormData(data)
