"""Request interceptor chain.

Interceptors run before the route handler, strictly in insertion order.
Each one may be sync or async and may accept ``()``, ``(request)``, or
``(request, response)``. The first one to return something other than
``None`` stops the chain, and its return value becomes the response.

A chain is single-use: its queue is emptied after every ``process``
call, so per-route interceptors never leak into the next request.
"""

from collections.abc import Iterable
from typing import Any, Self

from hyper._internal.invoke import invoke_with
from hyper._internal.types import Interceptor
from hyper.http.request import Request
from hyper.http.response import Response


class MiddlewareChain:
    """An ordered, single-use queue of interceptors."""

    __slots__ = ("_stack",)

    def __init__(self, interceptors: Iterable[Interceptor] = ()) -> None:
        self._stack: list[Interceptor] = list(interceptors)

    def __len__(self) -> int:
        return len(self._stack)

    def add(self, interceptor: Interceptor) -> Self:
        """Append one interceptor."""
        self._stack.append(interceptor)
        return self

    def queue(self, interceptors: Iterable[Interceptor]) -> Self:
        """Append several interceptors, keeping their order."""
        self._stack.extend(interceptors)
        return self

    async def process(self, request: Request, response: Response) -> Any:
        """Run the queued interceptors.

        Returns the first non-``None`` result, or ``None`` if every
        interceptor let the request through. Exceptions propagate and
        the queue is emptied either way.
        """
        try:
            for interceptor in self._stack:
                result = await invoke_with(interceptor, request, response)
                if result is not None:
                    return result
            return None
        finally:
            self._stack.clear()
