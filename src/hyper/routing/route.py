"""Route and RouteMatch frozen dataclasses."""

from dataclasses import dataclass

from hyper._internal.types import Handler, Interceptor
from hyper.routing.binding import BindingPlan
from hyper.routing.pattern import CompiledPattern


@dataclass(frozen=True, slots=True)
class Route:
    """A registered route.

    Exactly one of ``handler`` and ``template`` is set. ``plan`` is built
    from the handler's signature when the route is added to a table.
    """

    path: str
    methods: frozenset[str]
    pattern: CompiledPattern
    handler: Handler | None = None
    template: str | None = None
    middleware: tuple[Interceptor, ...] = ()
    name: str | None = None
    plan: BindingPlan | None = None


@dataclass(frozen=True, slots=True)
class RouteMatch:
    """Result of a successful route match."""

    route: Route
    path_params: dict[str | int, str]
