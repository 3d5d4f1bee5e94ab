"""JSON encoder for entries shipped to the remote collector."""

import platform
import uuid
from collections.abc import Sequence
from datetime import datetime, timezone
from typing import Any

from logwarden.core.config import CollectorIdentity
from logwarden.core.entries import is_critical
from logwarden.core.models import (
    DatabaseEntry,
    Entry,
    EntryKind,
    NavigationAction,
    NavigationEntry,
    NetworkEntry,
    PlainEntry,
)

TRUNCATION_SUFFIX = "...[TRUNCATED]"
DEFAULT_MAX_FIELD_LENGTH = 10000


def _iso(timestamp: float | None) -> str | None:
    if timestamp is None:
        return None
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).isoformat()


def truncate(value: Any, max_length: int = DEFAULT_MAX_FIELD_LENGTH) -> str | None:
    """Convert a value to text and cut it to max_length characters.

    Args:
        value: Any value; None passes through unchanged.
        max_length: Longest text kept before the truncation marker.

    Returns:
        The text, with "...[TRUNCATED]" appended if it was cut.
    """
    if value is None:
        return None
    text = value if isinstance(value, str) else str(value)
    if len(text) > max_length:
        return text[:max_length] + TRUNCATION_SUFFIX
    return text


def _network_data(entry: NetworkEntry, max_length: int) -> dict[str, Any]:
    duration = entry.duration_ms
    return {
        "request": {
            "method": entry.method,
            "url": entry.url,
            "headers": dict(entry.request_headers),
            "body": truncate(entry.request_body, max_length),
            "sentAt": _iso(entry.sent_at),
        },
        "response": {
            "statusCode": entry.status_code,
            "headers": dict(entry.response_headers),
            "body": truncate(entry.response_body, max_length),
            "receivedAt": _iso(entry.received_at),
            "duration": round(duration) if duration is not None else None,
        },
    }


def _navigation_data(entry: NavigationEntry, max_length: int) -> dict[str, Any]:
    return {
        "action": entry.action.value,
        "routeName": entry.route_name,
        "arguments": truncate(entry.arguments, max_length),
        "previousRoute": entry.previous_route,
        "previousArguments": truncate(entry.previous_arguments, max_length),
    }


def _database_data(entry: DatabaseEntry, max_length: int) -> dict[str, Any]:
    return {
        "target": entry.target,
        "value": truncate(entry.value, max_length),
        "source": entry.source,
    }


def _plain_data(entry: PlainEntry, max_length: int) -> dict[str, Any]:
    return {"source": entry.source}


_DATA_ENCODERS = {
    EntryKind.NETWORK: _network_data,
    EntryKind.NAVIGATION: _navigation_data,
    EntryKind.DATABASE: _database_data,
    EntryKind.PLAIN: _plain_data,
}


def _network_summary(entry: NetworkEntry) -> str:
    status = entry.status_code if entry.status_code is not None else "-"
    return f"[{entry.method}] {entry.url} -> {status}"


def _navigation_summary(entry: NavigationEntry) -> str:
    action = entry.action.value
    if entry.previous_route is not None and entry.action is NavigationAction.POP:
        return f'{action} from "{entry.route_name}" to "{entry.previous_route}"'
    return f'{action} to "{entry.route_name}"'


def _database_summary(entry: DatabaseEntry) -> str:
    return f"{entry.source}: {entry.target} -> {entry.value}"


def _plain_summary(entry: PlainEntry) -> str:
    return entry.message


_SUMMARIES = {
    EntryKind.NETWORK: _network_summary,
    EntryKind.NAVIGATION: _navigation_summary,
    EntryKind.DATABASE: _database_summary,
    EntryKind.PLAIN: _plain_summary,
}


def describe(entry: Entry) -> str:
    """One-line human-readable summary of an entry."""
    return _SUMMARIES[entry.kind](entry)


def encode_entry(
    entry: Entry,
    identity: CollectorIdentity,
    environment: str = "production",
    max_field_length: int = DEFAULT_MAX_FIELD_LENGTH,
) -> dict[str, Any]:
    """Encode one entry into the collector's record shape.

    Args:
        entry: The entry to encode.
        identity: User/team the entry belongs to.
        environment: Label shipped in appInfo.
        max_field_length: Longest text field kept before truncation.

    Returns:
        JSON-serializable dict with a fresh unique id.
    """
    return {
        "id": str(uuid.uuid4()),
        "type": entry.kind.value,
        "timestamp": _iso(entry.timestamp),
        "level": "error" if is_critical(entry) else "info",
        "message": truncate(describe(entry), max_field_length),
        "data": _DATA_ENCODERS[entry.kind](entry, max_field_length),
        "user": identity.to_dict(),
        "appInfo": {
            "platform": platform.system().lower(),
            "environment": environment,
        },
    }


def encode_batch(
    logs: Sequence[dict[str, Any]], sent_at: float
) -> dict[str, Any]:
    """Wrap encoded entries in the batch envelope.

    Args:
        logs: Records produced by encode_entry, in delivery order.
        sent_at: Unix timestamp of the submission.

    Returns:
        {"logs": [...], "timestamp": ISO-8601}
    """
    return {"logs": list(logs), "timestamp": _iso(sent_at)}
