"""errors.py - Exception taxonomy for the grid-completion engine.

All errors are contract violations in caller-supplied configuration or data.
None of them is transient, so nothing here is ever retried.
"""

from __future__ import annotations


class GridCompletionError(ValueError):
    """Base class for every error raised by the engine."""


class ConfigurationError(GridCompletionError):
    """Invalid builder input: blank/duplicate names, empty domains, bad projector or reducer setup."""


class DataError(GridCompletionError):
    """An extractor or override projector produced an unusable value for one element."""

    def __init__(self, message: str, element: object = None, attribute: str | None = None) -> None:
        super().__init__(message)
        self.element = element
        self.attribute = attribute


class ConsistencyError(GridCompletionError):
    """Two or more existing elements cover the same key, or a contract check failed."""

    def __init__(self, message: str, conflicts: dict | None = None) -> None:
        super().__init__(message)
        # AbstractKey -> list of contributing elements
        self.conflicts = conflicts or {}
