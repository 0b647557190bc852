"""Error mapping for the request pipeline.

``HTTPError`` becomes a response with its status. Anything else becomes
a 500. Registered ``@app.error()`` handlers take precedence in both cases.
"""

import html
import logging
import traceback
from collections.abc import Callable
from typing import Any, TypeAlias

from jinja2 import Environment

from hyper._internal.invoke import invoke_with
from hyper.errors import HTTPError
from hyper.http.request import Request
from hyper.http.response import Response
from hyper.server.negotiation import negotiate

logger = logging.getLogger("hyper.server")

ErrorHandlers: TypeAlias = dict[int | type[BaseException], Callable[..., Any]]


def _find_handler(exc: BaseException, handlers: ErrorHandlers, status: int) -> Callable[..., Any] | None:
    # Exact type, then status code, then base classes
    handler = handlers.get(type(exc)) or handlers.get(status)
    if handler is not None:
        return handler
    for cls in type(exc).__mro__[1:]:
        if cls in handlers:
            return handlers[cls]
    return None


async def call_error_handler(
    handler: Callable[..., Any],
    request: Request,
    exc: BaseException,
    env: Environment | None,
) -> Response:
    """Invoke a registered error handler with ``()``, ``(request)``, or ``(request, exc)``."""
    return negotiate(await invoke_with(handler, request, exc), env=env)


async def handle_http_error(
    exc: HTTPError,
    request: Request,
    handlers: ErrorHandlers,
    env: Environment | None,
) -> Response:
    """Map an HTTPError to a Response."""
    logger.debug("%d %s %s: %s", exc.status, request.method, request.path, exc.detail)

    handler = _find_handler(exc, handlers, exc.status)
    if handler is not None:
        response = await call_error_handler(handler, request, exc, env)
        # Keep the error status unless the handler chose its own
        if response.status == 200:
            response = response.with_status(exc.status)
        return response

    return Response(body=exc.detail or f"Error {exc.status}", status=exc.status).with_headers(exc.headers)


async def handle_internal_error(
    exc: Exception,
    request: Request,
    handlers: ErrorHandlers,
    env: Environment | None,
    debug: bool,
) -> Response:
    """Log an unexpected exception and answer 500."""
    logger.exception("500 %s %s", request.method, request.path)

    handler = _find_handler(exc, handlers, 500)
    if handler is not None:
        response = await call_error_handler(handler, request, exc, env)
        if response.status == 200:
            response = response.with_status(500)
        return response

    if debug:
        trace = html.escape("".join(traceback.format_exception(exc)))
        return Response(body=f"<h1>Internal Server Error</h1><pre>{trace}</pre>", status=500)
    return Response(body="Internal Server Error", status=500)
