"""Data layer error hierarchy."""

from hyper.errors import HyperError


class DataError(HyperError):
    """Base for all hyper.data errors."""


class DriverNotInstalledError(DataError):
    """Raised when the database driver package is not installed."""


class QueryError(DataError):
    """Raised when a SQL statement fails."""


class RelationError(DataError):
    """Raised on a lazy load of a relation that has lazy loading disabled."""
