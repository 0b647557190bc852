"""Shared type aliases used across hyper modules."""

from collections.abc import Callable
from typing import Any, TypeAlias

# Route handler: a callable, a (class, "method") pair, or "module:Class@method"
Handler: TypeAlias = Callable[..., Any] | tuple[type, str] | str

# Request interceptor: returns a response to short-circuit, or None
Interceptor: TypeAlias = Callable[..., Any]

# Error handler: receives (request, error?) and returns a response value
ErrorHandler: TypeAlias = Callable[..., Any]
