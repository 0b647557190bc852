"""Signed cookie sessions.

Session data is serialized as JSON and signed with ``itsdangerous``.
The session lives in a ContextVar for the duration of the request and is
reachable through ``get_session()`` from handlers and interceptors.
"""

from __future__ import annotations

import secrets
from contextvars import ContextVar
from dataclasses import dataclass
from typing import Any

from itsdangerous import BadData, URLSafeTimedSerializer

from hyper.errors import ConfigurationError
from hyper.http.request import Request
from hyper.http.response import Response
from hyper.middleware.protocol import Next

_ID_KEY = "_sid"

_session_var: ContextVar[Session | None] = ContextVar("hyper_session", default=None)


class Session(dict[str, Any]):
    """The session dict, plus an id that changes on ``regenerate``."""

    @property
    def id(self) -> str:
        """Opaque session id, created on first access."""
        if _ID_KEY not in self:
            self[_ID_KEY] = secrets.token_urlsafe(16)
        return self[_ID_KEY]

    def regenerate(self, *, keep_data: bool = True) -> Session:
        """Issue a new id. With ``keep_data=False`` the old data is dropped too."""
        if not keep_data:
            self.clear()
        self[_ID_KEY] = secrets.token_urlsafe(16)
        return self

    def destroy(self) -> None:
        """Drop everything. The cookie is removed on the response."""
        self.clear()


def get_session() -> Session:
    """Return the current session.

    Raises ``LookupError`` outside a request handled by ``SessionMiddleware``.
    """
    session = _session_var.get()
    if session is None:
        msg = "No active session. Add SessionMiddleware to the app before using sessions."
        raise LookupError(msg)
    return session


def regenerate_session() -> Session:
    """Clear the session and issue a fresh id (prevents session fixation)."""
    return get_session().regenerate(keep_data=False)


@dataclass(frozen=True, slots=True)
class SessionConfig:
    """Session cookie settings. ``secret_key`` is required."""

    secret_key: str
    cookie_name: str = "hyper_session"
    max_age: int = 86400
    path: str = "/"
    domain: str | None = None
    secure: bool = False
    httponly: bool = True
    samesite: str = "lax"


class SessionMiddleware:
    """Load the session from its cookie, run the request, write it back.

    Usage::

        app.add_middleware(SessionMiddleware(SessionConfig(secret_key="...")))

        @app.post("/login")
        async def login(request):
            get_session()["user_id"] = 1
    """

    __slots__ = ("_config", "_serializer")

    def __init__(self, config: SessionConfig) -> None:
        if not config.secret_key:
            msg = "SessionConfig.secret_key must not be empty."
            raise ConfigurationError(msg)
        self._config = config
        self._serializer = URLSafeTimedSerializer(config.secret_key, salt="hyper.session")

    def _load(self, request: Request) -> Session:
        cookie = request.cookies.get(self._config.cookie_name)
        if not cookie:
            return Session()
        try:
            data = self._serializer.loads(cookie, max_age=self._config.max_age)
        except BadData:
            return Session()
        return Session(data) if isinstance(data, dict) else Session()

    async def __call__(self, request: Request, next: Next) -> Response:
        had_cookie = self._config.cookie_name in request.cookies
        session = self._load(request)
        token = _session_var.set(session)
        try:
            response = await next(request)
        finally:
            _session_var.reset(token)

        cfg = self._config
        if not session:
            if had_cookie:
                return response.without_cookie(cfg.cookie_name, path=cfg.path)
            return response
        return response.with_cookie(
            cfg.cookie_name,
            self._serializer.dumps(dict(session)),
            max_age=cfg.max_age,
            path=cfg.path,
            domain=cfg.domain,
            secure=cfg.secure,
            httponly=cfg.httponly,
            samesite=cfg.samesite,
        )
