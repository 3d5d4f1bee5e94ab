"""Helper functions for creating, validating and classifying entries."""

import time
from typing import Any

from logwarden.core.errors import ValidationError
from logwarden.core.models import (
    DatabaseEntry,
    Entry,
    EntryKind,
    NavigationAction,
    NavigationEntry,
    NetworkEntry,
    PlainEntry,
)

# Substrings that mark a plain message as worth shipping immediately
CRITICAL_MESSAGE_MARKERS = ("error", "exception", "crash")


def plain(message: object, source: str | None = None) -> PlainEntry:
    """Create a plain entry with automatic timestamp.

    Args:
        message: The message; non-string objects are converted with str()
        source: Optional origin label (module, screen, ...)

    Returns:
        PlainEntry with current timestamp
    """
    return PlainEntry(message=str(message), source=source, timestamp=time.time())


def network(
    method: str,
    url: str,
    status_code: int | None = None,
    sent_at: float | None = None,
    received_at: float | None = None,
    **fields: Any,
) -> NetworkEntry:
    """Create a network entry with automatic timestamp.

    Args:
        method: HTTP method
        url: Request URL
        status_code: Response status, None when no response arrived
        sent_at: Unix timestamp the request was sent
        received_at: Unix timestamp the response arrived
        **fields: request_headers, request_body, response_headers, response_body

    Returns:
        NetworkEntry with current timestamp
    """
    return NetworkEntry(
        method=method,
        url=url,
        status_code=status_code,
        sent_at=sent_at,
        received_at=received_at,
        timestamp=time.time(),
        **fields,
    )


def navigation(
    action: NavigationAction | str,
    route_name: str | None = None,
    previous_route: str | None = None,
    arguments: Any = None,
    previous_arguments: Any = None,
) -> NavigationEntry:
    """Create a navigation entry with automatic timestamp."""
    return NavigationEntry(
        action=NavigationAction(action),
        route_name=route_name,
        arguments=arguments,
        previous_route=previous_route,
        previous_arguments=previous_arguments,
        timestamp=time.time(),
    )


def database(target: str, value: Any, source: str) -> DatabaseEntry:
    """Create a database entry with automatic timestamp."""
    return DatabaseEntry(
        target=target, value=value, source=source, timestamp=time.time()
    )


def validate_entry(entry: object) -> Entry:
    """Check that an entry carries the fields its variant requires.

    Args:
        entry: Object handed in by a collaborator.

    Returns:
        The same entry, typed as Entry.

    Raises:
        ValidationError: If the object is not an entry or is malformed.
    """
    kind = getattr(entry, "kind", None)
    if not isinstance(kind, EntryKind):
        raise ValidationError(entry, "not an entry")
    if not isinstance(getattr(entry, "timestamp", None), (int, float)):
        raise ValidationError(entry, "missing timestamp")

    if kind is EntryKind.NETWORK:
        assert isinstance(entry, NetworkEntry)
        if not entry.method:
            raise ValidationError(entry, "missing method")
        if not entry.url:
            raise ValidationError(entry, "missing url")
        if entry.status_code is not None and not isinstance(entry.status_code, int):
            raise ValidationError(entry, "status_code must be an int")
        if (
            entry.sent_at is not None
            and entry.received_at is not None
            and entry.received_at < entry.sent_at
        ):
            raise ValidationError(entry, "received_at precedes sent_at")
    elif kind is EntryKind.NAVIGATION:
        assert isinstance(entry, NavigationEntry)
        if not isinstance(entry.action, NavigationAction):
            raise ValidationError(entry, "unknown navigation action")
    elif kind is EntryKind.DATABASE:
        assert isinstance(entry, DatabaseEntry)
        if not entry.target:
            raise ValidationError(entry, "missing target")
    elif kind is EntryKind.PLAIN:
        assert isinstance(entry, PlainEntry)
        if not isinstance(entry.message, str):
            raise ValidationError(entry, "message must be a string")
    return entry  # type: ignore[return-value]


def is_critical(entry: Entry) -> bool:
    """Return True if the entry should bypass batching and ship at once.

    Network entries are critical on status >= 400 or status 0 (no
    connection); plain messages when they mention an error, exception or
    crash. The keyword test is a heuristic and will match benign text such
    as "no errors found".
    """
    if entry.kind is EntryKind.NETWORK:
        status = entry.status_code  # type: ignore[union-attr]
        return status is not None and (status >= 400 or status == 0)
    if entry.kind is EntryKind.PLAIN:
        message = str(entry.message).lower()  # type: ignore[union-attr]
        return any(marker in message for marker in CRITICAL_MESSAGE_MARKERS)
    return False
