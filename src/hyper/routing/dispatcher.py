"""Request dispatch.

Unmatched -> Matched -> interceptors running -> short-circuited or handler
invoked -> response ready. A request that matches no route gets a plain
404 response; that is a normal outcome, not an exception.
"""

from collections.abc import Iterable

from jinja2 import Environment

from hyper._internal.invoke import invoke
from hyper._internal.types import Interceptor
from hyper.container import Container
from hyper.context import request_var
from hyper.http.request import Request
from hyper.http.response import Response
from hyper.middleware.chain import MiddlewareChain
from hyper.routing.route import RouteMatch
from hyper.routing.router import RouteTable
from hyper.server.negotiation import negotiate
from hyper.templating.returns import Template


class Dispatcher:
    """Match a request, run its interceptors, call its handler.

    Global interceptors run before the route's own, in registration order.
    """

    __slots__ = ("_container", "_env", "_interceptors", "_routes")

    def __init__(
        self,
        routes: RouteTable,
        container: Container,
        *,
        interceptors: Iterable[Interceptor] = (),
        env: Environment | None = None,
    ) -> None:
        self._routes = routes
        self._container = container
        self._interceptors = tuple(interceptors)
        self._env = env

    def match(self, request: Request) -> RouteMatch | None:
        """Find the route for *request*. HEAD falls back to GET routes."""
        found = self._routes.match(request.method, request.path)
        if found is None and request.method == "HEAD":
            found = self._routes.match("GET", request.path)
        return found

    async def dispatch(self, request: Request) -> Response:
        """Produce the response for *request*."""
        found = self.match(request)
        if found is None:
            return Response("Not Found", status=404)

        route = found.route
        request = request.with_path_params(found.path_params)
        request_var.set(request)
        response = Response()

        chain = MiddlewareChain(self._interceptors).queue(route.middleware)
        result = await chain.process(request, response)
        if result is not None:
            return negotiate(result, env=self._env)

        if route.template is not None:
            context = {str(key): value for key, value in found.path_params.items()}
            return negotiate(Template(route.template, **context), env=self._env)

        plan = route.plan
        assert plan is not None  # set by RouteTable.add
        kwargs = plan.bind(found.path_params, request, response, self._container)
        result = await invoke(plan.target(self._container), **kwargs)
        return negotiate(result, env=self._env)
