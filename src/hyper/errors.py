"""Hyper exception hierarchy.

Shared across the router, dispatcher, container, and handler pipeline so
every module raises and catches the same types.
"""

from dataclasses import dataclass


class HyperError(Exception):
    """Base for all hyper-specific errors."""


class ConfigurationError(HyperError):
    """Raised when application configuration is invalid.

    Programmer mistakes: an unknown relation kind, a missing named route,
    a circular container alias. Surfaced immediately, never recovered.
    """


class ResolutionError(ConfigurationError):
    """Raised when the container cannot resolve a parameter or class."""


@dataclass(slots=True, eq=False)
class HTTPError(HyperError):
    """An error that maps directly to an HTTP status code.

    Raised by interceptors or handlers. The ASGI handler catches these and
    dispatches to the matching ``@app.error()`` handler.
    """

    status: int
    detail: str = ""
    headers: tuple[tuple[str, str], ...] = ()

    def __str__(self) -> str:
        if self.detail:
            return f"{self.status}: {self.detail}"
        return str(self.status)


class NotFound(HTTPError):  # noqa: N818
    """404: nothing exists at the requested path."""

    def __init__(self, detail: str = "Not Found") -> None:
        super().__init__(status=404, detail=detail)
