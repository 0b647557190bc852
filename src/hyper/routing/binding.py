"""Handler parameter binding plans.

A plan is built once per route, when the route is registered, by
inspecting the handler signature. At dispatch time it maps the matched
route params, the request, and the response onto keyword arguments.

Resolution order for each parameter:

1. ``request`` / ``response`` by name (or a ``Request``/``Response`` annotation)
2. the route param with the same name
3. the route param at the same position among bindable parameters
4. the declared default
5. a container binding for the parameter's annotation
6. ``None``
"""

from __future__ import annotations

import inspect
import logging
import pkgutil
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Literal

from hyper._internal.types import Handler
from hyper.errors import ConfigurationError
from hyper.http.request import Request
from hyper.http.response import Response

if TYPE_CHECKING:
    from hyper.container import Container

logger = logging.getLogger("hyper.routing")

_EMPTY = inspect.Parameter.empty
_SKIPPED_KINDS = (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD)
_CONVERTIBLE = (int, float)


@dataclass(frozen=True, slots=True)
class ParamBinding:
    """How one handler parameter gets its value."""

    name: str
    source: Literal["request", "response", "route"]
    position: int = -1
    default: Any = _EMPTY
    annotation: Any = _EMPTY


@dataclass(frozen=True, slots=True)
class BindingPlan:
    """A resolved handler plus the binding for each of its parameters.

    ``owner`` is set for ``(cls, "method")`` handlers; the instance is
    built through the container on each dispatch.
    """

    func: Callable[..., Any]
    params: tuple[ParamBinding, ...]
    owner: type | None = None

    def target(self, container: Container) -> Callable[..., Any]:
        """Return the callable to invoke, instantiating the owner if any."""
        if self.owner is None:
            return self.func
        return getattr(container.get(self.owner), self.func.__name__)

    def bind(
        self,
        path_params: dict[str | int, str],
        request: Request,
        response: Response,
        container: Container,
    ) -> dict[str, Any]:
        """Build keyword arguments for one call."""
        kwargs: dict[str, Any] = {}
        for param in self.params:
            if param.source == "request":
                kwargs[param.name] = request
            elif param.source == "response":
                kwargs[param.name] = response
            else:
                kwargs[param.name] = _resolve(param, path_params, container)
        return kwargs


def _resolve(param: ParamBinding, path_params: dict[str | int, str], container: Container) -> Any:
    if param.name in path_params:
        return _convert(path_params[param.name], param.annotation)
    if param.position in path_params:
        logger.debug("Binding %r to route param #%d by position", param.name, param.position)
        return _convert(path_params[param.position], param.annotation)
    if param.default is not _EMPTY:
        return param.default
    if param.annotation is not _EMPTY and container.has(param.annotation):
        return container.get(param.annotation)
    return None


def _convert(value: str, annotation: Any) -> Any:
    if annotation in _CONVERTIBLE and value != "":
        try:
            return annotation(value)
        except ValueError:
            return value
    return value


def resolve_handler(handler: Handler) -> tuple[Callable[..., Any], type | None]:
    """Resolve a handler reference to ``(function, owner_class)``.

    Accepts a callable, a ``(cls, "method")`` pair, or a
    ``"package.module:Class@method"`` / ``"package.module:function"`` string.
    """
    if isinstance(handler, str):
        target, _, method = handler.partition("@")
        try:
            resolved = pkgutil.resolve_name(target)
        except (ImportError, AttributeError, ValueError) as exc:
            msg = f"Cannot import route handler {handler!r}: {exc}"
            raise ConfigurationError(msg) from exc
        if method:
            return resolve_handler((resolved, method))
        return resolve_handler(resolved)

    if isinstance(handler, tuple):
        owner, method = handler
        if not hasattr(owner, method):
            msg = f"{owner.__qualname__} has no handler method {method!r}"
            raise ConfigurationError(msg)
        static = inspect.getattr_static(owner, method)
        if isinstance(static, (staticmethod, classmethod)):
            return getattr(owner, method), None
        return getattr(owner, method), owner

    if not callable(handler):
        msg = f"Route handler must be callable, got {type(handler).__name__}"
        raise ConfigurationError(msg)
    return handler, None


def build_plan(handler: Handler) -> BindingPlan:
    """Inspect *handler* and build its binding plan."""
    func, owner = resolve_handler(handler)
    parameters = list(inspect.signature(func, eval_str=True).parameters.values())
    if owner is not None:
        parameters = parameters[1:]  # self

    params: list[ParamBinding] = []
    position = 0
    for param in parameters:
        if param.kind in _SKIPPED_KINDS:
            continue
        if param.name == "request" or param.annotation is Request:
            params.append(ParamBinding(param.name, "request"))
        elif param.name == "response" or param.annotation is Response:
            params.append(ParamBinding(param.name, "response"))
        else:
            params.append(
                ParamBinding(
                    param.name,
                    "route",
                    position=position,
                    default=param.default,
                    annotation=param.annotation,
                )
            )
            position += 1
    return BindingPlan(func=func, params=tuple(params), owner=owner)
