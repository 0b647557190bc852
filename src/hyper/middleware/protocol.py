"""Onion middleware protocol.

An onion middleware wraps the whole dispatch::

    async def timing(request: Request, next: Next) -> Response:
        start = time.monotonic()
        response = await next(request)
        return response.with_header("X-Time", f"{time.monotonic() - start:.3f}")

Interceptors (``hyper.middleware.chain``) run inside it, per route.
"""

from collections.abc import Awaitable, Callable
from typing import Protocol, TypeAlias

from hyper.http.request import Request
from hyper.http.response import Response

Next: TypeAlias = Callable[[Request], Awaitable[Response]]


class Middleware(Protocol):
    """Any callable with the onion middleware shape."""

    async def __call__(self, request: Request, next: Next) -> Response: ...
