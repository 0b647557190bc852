"""Call sync or async callables uniformly.

Handlers, interceptors, container factories, and relation callbacks can
all be ``def`` or ``async def``. The sync/async check lives here only.
"""

import inspect
from typing import Any


async def invoke(func: Any, *args: Any, **kwargs: Any) -> Any:
    """Call *func* and await the result if it is awaitable.

    ::

        def show(id):
            return f"user {id}"

        async def show_async(id):
            return await load(id)

        await invoke(show, "1")        # "user 1"
        await invoke(show_async, "1")  # awaited automatically
    """
    result = func(*args, **kwargs)
    if inspect.isawaitable(result):
        result = await result
    return result


def positional_arity(func: Any) -> int:
    """Number of positional arguments *func* accepts (``*args`` counts as unlimited)."""
    params = inspect.signature(func).parameters.values()
    count = 0
    for param in params:
        if param.kind is inspect.Parameter.VAR_POSITIONAL:
            return 1 << 16
        if param.kind in (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD):
            count += 1
    return count


async def invoke_with(func: Any, *candidates: Any) -> Any:
    """Call *func* with as many leading *candidates* as it accepts.

    Interceptors and error handlers may take ``()``, ``(request)``, or
    ``(request, extra)``; this picks the right call shape.
    """
    return await invoke(func, *candidates[: positional_arity(func)])
