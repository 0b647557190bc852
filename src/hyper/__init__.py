"""Hyper: a small async web framework with routing, a container, and an ORM.

Basic usage::

    from hyper import App, Template

    app = App()

    @app.get("/users/{id}", name="users.show")
    async def show(id: int):
        user = await User.find(get_db(), id)
        return Template("users/show.html", user=user)

Serve it with any ASGI server (``uvicorn myapp:app``).

Data access::

    from hyper.data import Database, Model, Query, Relation
    db = Database("sqlite:///app.db")
    posts = await Post.with_relations("tags").order_desc().fetch(db)
"""

__version__ = "0.1.0"
__all__ = [
    "App",
    "AppConfig",
    "ConfigurationError",
    "Container",
    "HTTPError",
    "HyperError",
    "InlineTemplate",
    "Middleware",
    "Next",
    "NotFound",
    "Redirect",
    "Request",
    "Response",
    "Template",
    "g",
    "get_db",
    "get_request",
    "get_session",
]


def __getattr__(name: str) -> object:
    """Lazy imports for public API.

    Keeps ``import hyper`` fast while providing a clean top-level API.
    """
    if name == "App":
        from hyper.app import App

        return App

    if name == "AppConfig":
        from hyper.config import AppConfig

        return AppConfig

    if name == "Container":
        from hyper.container import Container

        return Container

    if name == "Request":
        from hyper.http.request import Request

        return Request

    if name in ("Response", "Redirect"):
        from hyper.http import response as _resp

        return getattr(_resp, name)

    if name in ("Template", "InlineTemplate"):
        from hyper.templating import returns as _tmpl

        return getattr(_tmpl, name)

    if name in ("Middleware", "Next"):
        from hyper.middleware import protocol as _mw

        return getattr(_mw, name)

    if name == "get_session":
        from hyper.middleware.sessions import get_session

        return get_session

    if name == "get_db":
        from hyper.data.database import get_db

        return get_db

    if name in ("g", "get_request"):
        from hyper import context as _ctx

        return getattr(_ctx, name)

    if name in ("HyperError", "ConfigurationError", "HTTPError", "NotFound"):
        from hyper import errors as _errors

        return getattr(_errors, name)

    msg = f"module {__name__!r} has no attribute {name!r}"
    raise AttributeError(msg)
