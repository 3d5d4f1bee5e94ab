"""Core domain models for instrumentation entries and alerts."""

import time
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, ClassVar


class EntryKind(str, Enum):
    """Tag shared by every entry variant."""

    NETWORK = "network"
    NAVIGATION = "navigation"
    DATABASE = "database"
    PLAIN = "plain"


class NavigationAction(str, Enum):
    """Route transition observed by a navigation hook."""

    PUSH = "push"
    POP = "pop"
    REPLACE = "replace"
    REMOVE = "remove"


@dataclass(frozen=True)
class NetworkEntry:
    """A completed HTTP exchange.

    Attributes:
        method: HTTP method (e.g., GET, POST).
        url: Full request URL including any query string.
        request_headers: Headers sent with the request.
        request_body: Request payload, if any.
        sent_at: Unix timestamp when the request left the client.
        status_code: Response status, None when no response arrived.
        response_headers: Headers received with the response.
        response_body: Response payload, if any.
        received_at: Unix timestamp when the response arrived.
        timestamp: Unix timestamp when the entry was created.
    """

    kind: ClassVar[EntryKind] = EntryKind.NETWORK

    method: str
    url: str
    request_headers: dict[str, str] = field(default_factory=dict)
    request_body: Any = None
    sent_at: float | None = None
    status_code: int | None = None
    response_headers: dict[str, str] = field(default_factory=dict)
    response_body: Any = None
    received_at: float | None = None
    timestamp: float = field(default_factory=time.time)

    @property
    def duration_ms(self) -> float | None:
        """Round-trip time in milliseconds, None if either end is unknown."""
        if self.sent_at is None or self.received_at is None:
            return None
        return (self.received_at - self.sent_at) * 1000.0


@dataclass(frozen=True)
class NavigationEntry:
    """A route transition inside the host application."""

    kind: ClassVar[EntryKind] = EntryKind.NAVIGATION

    action: NavigationAction
    route_name: str | None = None
    arguments: Any = None
    previous_route: str | None = None
    previous_arguments: Any = None
    timestamp: float = field(default_factory=time.time)


@dataclass(frozen=True)
class DatabaseEntry:
    """A write to a local store (preferences, cache, database)."""

    kind: ClassVar[EntryKind] = EntryKind.DATABASE

    target: str
    value: Any = None
    source: str = ""
    timestamp: float = field(default_factory=time.time)


@dataclass(frozen=True)
class PlainEntry:
    """A free-text message."""

    kind: ClassVar[EntryKind] = EntryKind.PLAIN

    message: str
    source: str | None = None
    timestamp: float = field(default_factory=time.time)


Entry = NetworkEntry | NavigationEntry | DatabaseEntry | PlainEntry


class AlertSeverity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class AlertType(str, Enum):
    API_FAILURE = "apiFailure"
    # Reserved: declared for configuration compatibility, never evaluated.
    HIGH_ERROR_RATE = "highErrorRate"
    SLOW_RESPONSE = "slowResponse"
    CRASH_DETECTED = "crashDetected"
    CUSTOM_THRESHOLD = "customThreshold"


DEFAULT_STATUS_CODES = frozenset({400, 401, 403, 404, 500, 502, 503, 504})


@dataclass(frozen=True)
class AlertRule:
    """A condition the alert engine evaluates against every entry.

    Attributes:
        id: Unique rule identifier, also the cooldown key.
        type: Which check this rule runs.
        severity: Severity stamped on notifications (crash rules force critical).
        name: Human-readable rule name.
        description: What the rule detects.
        enabled: Disabled rules are skipped.
        failure_threshold: Failures within the window needed to fire (apiFailure).
        time_window_seconds: Rolling window length for failure counting.
        status_codes_to_monitor: Status codes that count as failures.
        endpoint_pattern: Optional regex the request URL must match.
        slow_response_threshold_ms: Round-trip time above which to fire.
        custom_condition: Predicate over an entry (customThreshold).
    """

    id: str
    type: AlertType
    severity: AlertSeverity
    name: str
    description: str
    enabled: bool = True
    failure_threshold: int = 10
    time_window_seconds: float = 600.0
    status_codes_to_monitor: frozenset[int] = DEFAULT_STATUS_CODES
    endpoint_pattern: str | None = None
    slow_response_threshold_ms: float | None = None
    custom_condition: Callable[[Entry], bool] | None = None

    def copy_with(self, **changes: Any) -> "AlertRule":
        """Return a copy of the rule with the given fields replaced."""
        return replace(self, **changes)


@dataclass(frozen=True)
class AlertNotification:
    """An alert raised by the engine.

    Attributes:
        id: Notification identifier.
        rule: The rule that fired.
        severity: Effective severity.
        title: Short headline.
        message: Human-readable description.
        timestamp: Unix timestamp when the alert fired.
        metadata: Rule-specific details (endpoint, failureCount, ...).
        triggering_entries: Entries that caused the alert.
    """

    id: str
    rule: AlertRule
    severity: AlertSeverity
    title: str
    message: str
    timestamp: float
    metadata: dict[str, Any] = field(default_factory=dict)
    triggering_entries: tuple[Entry, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the JSON shape posted to webhooks."""
        return {
            "id": self.id,
            "ruleId": self.rule.id,
            "severity": self.severity.value,
            "title": self.title,
            "message": self.message,
            "timestamp": datetime.fromtimestamp(
                self.timestamp, tz=timezone.utc
            ).isoformat(),
            "metadata": self.metadata,
            "triggeringLogsCount": len(self.triggering_entries),
        }
