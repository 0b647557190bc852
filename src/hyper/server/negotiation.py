"""Content negotiation: maps handler return values to Response objects.

isinstance-based dispatch, no magic, fully predictable.
"""

from typing import Any

from jinja2 import Environment

from hyper.errors import ConfigurationError
from hyper.http.response import Redirect, Response
from hyper.templating.integration import render_template
from hyper.templating.returns import InlineTemplate, Template


def negotiate(value: Any, *, env: Environment | None = None) -> Response:
    """Convert a handler's return value to a Response.

    1. ``Response``            -> pass through
    2. ``Redirect``            -> 302 (or its status) with Location header
    3. ``Template``            -> rendered with the app's environment
    4. ``InlineTemplate``      -> rendered from its source string
    5. ``str``                 -> 200, text/html
    6. ``bytes``               -> 200, application/octet-stream
    7. ``dict`` / ``list``     -> 200, application/json
    8. ``(value, int)``        -> negotiate value, override status
    9. ``(value, int, dict)``  -> negotiate value, override status + headers
    10. ``None``               -> 204, empty body
    """
    match value:
        case Response():
            return value
        case Redirect():
            return (
                Response(body="")
                .with_status(value.status)
                .with_header("Location", value.url)
                .with_headers(value.headers)
            )
        case Template():
            if env is None:
                msg = "Template return type requires a template_dir in AppConfig."
                raise ConfigurationError(msg)
            return Response(body=render_template(env, value))
        case InlineTemplate():
            return Response(body=render_template(env or Environment(autoescape=True), value))
        case str():
            return Response(body=value)
        case bytes():
            return Response(body=value, content_type="application/octet-stream")
        case dict() | list():
            return Response.json(value)
        case (inner, int() as status):
            return negotiate(inner, env=env).with_status(status)
        case (inner, int() as status, dict() as headers):
            return negotiate(inner, env=env).with_status(status).with_headers(headers)
        case None:
            return Response(body="", status=204)
        case _:
            msg = (
                f"Cannot convert {type(value).__name__} to a response. "
                "Return str, bytes, dict, list, Template, Response, or Redirect."
            )
            raise TypeError(msg)
