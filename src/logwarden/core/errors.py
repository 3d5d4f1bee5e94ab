"""Exception taxonomy.

None of these escape the public boundary operations (submit, enqueue,
ingest); they are raised internally and caught where the failure is
logged or turned into a retry.
"""

from typing import Any


class LogwardenError(Exception):
    """Base class for all logwarden errors."""


class ValidationError(LogwardenError):
    """An entry is missing fields its variant requires."""

    def __init__(self, entry: Any, reason: str) -> None:
        super().__init__(f"invalid {type(entry).__name__}: {reason}")
        self.entry = entry
        self.reason = reason


class NetworkError(LogwardenError):
    """A delivery attempt failed: timeout, transport error, or non-2xx reply."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ConfigError(LogwardenError):
    """A rule or delivery configuration is invalid."""
