"""Exception taxonomy for the navigation engine."""

from __future__ import annotations


class NavigationError(Exception):
    """Base class for all navigation engine errors."""


class InvalidInput(NavigationError, ValueError):
    """Malformed coordinates or polylines passed into pure computations."""


class RouteUnavailable(NavigationError):
    """The path provider failed or returned no usable path."""


class RecalculationFailed(NavigationError):
    """Deviation was detected but a replacement route could not be computed.

    Sessions never raise this; they keep navigating on the last-known-good
    route and expose the failure as a typed outcome.
    """

    def __init__(self, message: str, cause: BaseException | None = None) -> None:
        super().__init__(message)
        self.cause = cause
