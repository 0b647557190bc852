"""ASGI handler: translates ASGI scope/messages to hyper types.

The only component that touches raw ASGI directly. Converts scope dicts
to typed Request objects, runs the onion middleware around the
dispatcher, and sends the Response back through ASGI send().
"""

from collections.abc import Callable
from contextvars import Token
from typing import Any

from jinja2 import Environment

from hyper._internal.asgi import Receive, Scope, Send
from hyper.context import g, request_var
from hyper.data.database import Database, _db_var
from hyper.errors import HTTPError
from hyper.http.request import Request
from hyper.http.response import Response
from hyper.middleware.protocol import Next
from hyper.routing.dispatcher import Dispatcher
from hyper.server.errors import ErrorHandlers, handle_http_error, handle_internal_error
from hyper.server.sender import send_response


async def handle_request(
    scope: Scope,
    receive: Receive,
    send: Send,
    *,
    dispatcher: Dispatcher,
    middleware: tuple[Callable[..., Any], ...],
    error_handlers: ErrorHandlers,
    env: Environment | None = None,
    debug: bool = False,
    max_content_length: int | None = None,
    db: Database | None = None,
) -> None:
    """Process a single HTTP request through the full pipeline."""
    if scope["type"] != "http":
        return

    request = Request.from_asgi(scope, receive)

    # Request context var (reset after dispatch)
    token: Token[Request] = request_var.set(request)

    # Database context var per request; lifespan only sets it in its own task
    db_token: Token[Database] | None = _db_var.set(db) if db is not None else None

    try:
        length = request.content_length
        if max_content_length is not None and length is not None and length > max_content_length:
            raise HTTPError(413, "Payload Too Large")

        # Wrap middleware around the dispatch
        handler: Next = dispatcher.dispatch
        for mw in reversed(middleware):
            outer = handler

            async def make_next(req: Request, _mw: Any = mw, _next: Next = outer) -> Response:
                return await _mw(req, _next)

            handler = make_next

        response = await handler(request)

    except HTTPError as exc:
        response = await handle_http_error(exc, request_var.get(request), error_handlers, env)
    except Exception as exc:
        response = await handle_internal_error(exc, request_var.get(request), error_handlers, env, debug)
    finally:
        if db_token is not None:
            _db_var.reset(db_token)
        g._reset()
        request_var.reset(token)

    await send_response(response, send, head=request.method == "HEAD")
