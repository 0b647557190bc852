"""Middleware.

Two shapes:

- interceptors, run per route by ``MiddlewareChain`` before the handler
- onion middleware, ``async def mw(request, next)``, wrapping every request

Built-in:
    SessionMiddleware -- signed cookie sessions (itsdangerous)
"""

from hyper.middleware.chain import MiddlewareChain
from hyper.middleware.protocol import Middleware, Next
from hyper.middleware.sessions import (
    Session,
    SessionConfig,
    SessionMiddleware,
    get_session,
    regenerate_session,
)

__all__ = [
    "Middleware",
    "MiddlewareChain",
    "Next",
    "Session",
    "SessionConfig",
    "SessionMiddleware",
    "get_session",
    "regenerate_session",
]
