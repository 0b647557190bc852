"""Ordered route table.

Routes are tried in registration order and the first one whose method
and pattern both match wins. Registration is fluent::

    routes = RouteTable()
    routes.get("/users/{id}", show_user).name("users.show").middleware(auth)
    routes.template("/about", "about.html")

``.middleware()`` and ``.name()`` modify the most recently added route.
"""

import re
from collections.abc import Iterable, Mapping
from dataclasses import replace
from typing import Any, Self

from hyper._internal.types import Handler, Interceptor
from hyper.errors import ConfigurationError
from hyper.routing.binding import build_plan
from hyper.routing.pattern import compile_pattern, match
from hyper.routing.route import Route, RouteMatch

_PLACEHOLDER = re.compile(r"\{([a-zA-Z_][a-zA-Z0-9_]*)\??\}")


class RouteTable:
    """Routes in registration order, with a name index."""

    __slots__ = ("_frozen", "_names", "_routes")

    def __init__(self) -> None:
        self._routes: list[Route] = []
        self._names: dict[str, int] = {}
        self._frozen = False

    def __len__(self) -> int:
        return len(self._routes)

    @property
    def routes(self) -> tuple[Route, ...]:
        """All registered routes, in match order."""
        return tuple(self._routes)

    def freeze(self) -> None:
        """Reject further registrations."""
        self._frozen = True

    # -- Registration --

    def add(self, route: Route) -> Self:
        """Append *route*. A handler route gets its binding plan here."""
        if self._frozen:
            msg = "Cannot add routes after the app has started serving."
            raise RuntimeError(msg)
        if route.handler is not None and route.plan is None:
            route = replace(route, plan=build_plan(route.handler))
        self._routes.append(route)
        if route.name is not None:
            self._names[route.name] = len(self._routes) - 1
        return self

    def route(
        self,
        path: str,
        handler: Handler | None = None,
        *,
        methods: Iterable[str] = ("GET",),
        template: str | None = None,
        name: str | None = None,
        middleware: Iterable[Interceptor] = (),
    ) -> Self:
        """Register *handler* (or *template*) for *path* and *methods*."""
        if (handler is None) == (template is None):
            msg = f"Route {path!r} needs exactly one of a handler or a template."
            raise ConfigurationError(msg)
        return self.add(
            Route(
                path=path,
                methods=frozenset(m.upper() for m in methods),
                pattern=compile_pattern(path),
                handler=handler,
                template=template,
                middleware=tuple(middleware),
                name=name,
            )
        )

    def get(self, path: str, handler: Handler) -> Self:
        return self.route(path, handler, methods=("GET",))

    def post(self, path: str, handler: Handler) -> Self:
        return self.route(path, handler, methods=("POST",))

    def put(self, path: str, handler: Handler) -> Self:
        return self.route(path, handler, methods=("PUT",))

    def patch(self, path: str, handler: Handler) -> Self:
        return self.route(path, handler, methods=("PATCH",))

    def delete(self, path: str, handler: Handler) -> Self:
        return self.route(path, handler, methods=("DELETE",))

    def template(self, path: str, template: str) -> Self:
        """Serve *template* for GET requests on *path*."""
        return self.route(path, methods=("GET",), template=template)

    def middleware(self, *interceptors: Interceptor) -> Self:
        """Attach interceptors to the most recently added route."""
        last = self._last()
        self._routes[-1] = replace(last, middleware=(*last.middleware, *interceptors))
        return self

    def name(self, name: str) -> Self:
        """Name the most recently added route."""
        last = self._last()
        if last.name is not None:
            self._names.pop(last.name, None)
        self._routes[-1] = replace(last, name=name)
        self._names[name] = len(self._routes) - 1
        return self

    def _last(self) -> Route:
        if not self._routes:
            msg = "No route has been added yet."
            raise ConfigurationError(msg)
        return self._routes[-1]

    # -- Lookup --

    def match(self, method: str, path: str) -> RouteMatch | None:
        """Return the first route matching *method* and *path*, or ``None``."""
        method = method.upper()
        for route in self._routes:
            if method not in route.methods:
                continue
            params = match(route.pattern, path)
            if params is not None:
                return RouteMatch(route=route, path_params=params)
        return None

    def url_for(self, name: str, context: Mapping[str, Any] | Any = None) -> str:
        """Build the path of the route called *name*.

        A mapping fills placeholders by name; any other value fills every
        placeholder. Unfilled optional placeholders are dropped, and a
        trailing ``*`` is stripped.
        """
        try:
            path = self._routes[self._names[name]].path
        except KeyError:
            msg = f"Route {name!r} is not registered."
            raise ConfigurationError(msg) from None

        def fill(found: re.Match[str]) -> str:
            key = found.group(1)
            if isinstance(context, Mapping):
                if key in context:
                    return str(context[key])
                return found.group(0)
            if context is not None:
                return str(context)
            return found.group(0)

        path = _PLACEHOLDER.sub(fill, path)
        path = re.sub(r"/?\{[a-zA-Z_][a-zA-Z0-9_]*\?\}", "", path)
        return path.rstrip("*")
