from __future__ import annotations

from dataclasses import dataclass


class NavigationError(Exception):
    """Base class for sidebar resolution errors."""


class DecodeFailure(NavigationError):
    """An authorization source field held malformed or unexpected JSON."""


class UnknownIdentifier(NavigationError):
    """A module id had no registry match after alias and suffix resolution."""

    def __init__(self, module_id: str) -> None:
        super().__init__(f"Unknown module id: {module_id!r}")
        self.module_id = module_id


class PredicateFailure(NavigationError):
    """A visibility rule raised while being evaluated."""

    def __init__(self, rule: str, message: str) -> None:
        super().__init__(f"Visibility rule {rule!r} failed: {message}")
        self.rule = rule


class CatastrophicFailure(NavigationError):
    """Unexpected failure during a resolution call; the caller gets the fallback module."""


class RegistryError(NavigationError):
    """The module registry document is invalid."""


class ConfigError(ValueError):
    pass


@dataclass
class ApiError(Exception):
    code: str
    message: str
    details: object | None
    trace_id: str | None
    status_code: int

    def __str__(self) -> str:
        trace = f" trace_id={self.trace_id}" if self.trace_id else ""
        return f"[{self.status_code}] {self.code}: {self.message}{trace}"


class TransportError(ApiError):
    """Network/transport failure before an HTTP response was returned."""
