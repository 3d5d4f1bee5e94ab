"""Alert rule validation, matching heuristics and stock rules."""

import re
from collections.abc import Iterable

from logwarden.core.errors import ConfigError
from logwarden.core.models import AlertRule, AlertSeverity, AlertType

# Substring heuristic: "exception" also matches "no exceptions raised".
DEFAULT_CRASH_KEYWORDS = frozenset({"crash", "fatal", "segfault", "exception"})


def matches_crash(
    message: str, keywords: Iterable[str] = DEFAULT_CRASH_KEYWORDS
) -> bool:
    """Return True if any keyword occurs in the message, ignoring case."""
    lowered = message.lower()
    return any(keyword in lowered for keyword in keywords)


def compile_endpoint_pattern(rule: AlertRule) -> re.Pattern[str] | None:
    """Compile the rule's endpoint regex, None when the rule has none.

    Raises:
        ConfigError: If the pattern is not a valid regular expression.
    """
    if rule.endpoint_pattern is None:
        return None
    try:
        return re.compile(rule.endpoint_pattern)
    except re.error as exc:
        raise ConfigError(
            f"rule {rule.id!r}: invalid endpoint_pattern "
            f"{rule.endpoint_pattern!r}: {exc}"
        ) from exc


def validate_rule(rule: AlertRule) -> None:
    """Check a rule's type-specific parameters.

    Raises:
        ConfigError: Describing the first problem found.
    """
    if not rule.id:
        raise ConfigError("rule id is required")
    if rule.type is AlertType.API_FAILURE:
        if rule.failure_threshold <= 0:
            raise ConfigError(f"rule {rule.id!r}: failure_threshold must be positive")
        if rule.time_window_seconds <= 0:
            raise ConfigError(f"rule {rule.id!r}: time_window_seconds must be positive")
        if not rule.status_codes_to_monitor:
            raise ConfigError(f"rule {rule.id!r}: status_codes_to_monitor is empty")
        compile_endpoint_pattern(rule)
    elif rule.type is AlertType.SLOW_RESPONSE:
        threshold = rule.slow_response_threshold_ms
        if threshold is None or threshold <= 0:
            raise ConfigError(
                f"rule {rule.id!r}: slow_response_threshold_ms must be positive"
            )
    elif rule.type is AlertType.CUSTOM_THRESHOLD:
        if not callable(rule.custom_condition):
            raise ConfigError(f"rule {rule.id!r}: custom_condition is required")


API_FAILURES = AlertRule(
    id="api_failures_10_in_5min",
    type=AlertType.API_FAILURE,
    severity=AlertSeverity.HIGH,
    name="API Failures",
    description="Alert when same endpoint fails 10+ times in 5 minutes",
    failure_threshold=10,
    time_window_seconds=300.0,
)

SERVER_ERRORS = AlertRule(
    id="server_errors_5_in_2min",
    type=AlertType.API_FAILURE,
    severity=AlertSeverity.CRITICAL,
    name="Server Errors",
    description="Alert on 5+ server errors in 2 minutes",
    failure_threshold=5,
    time_window_seconds=120.0,
    status_codes_to_monitor=frozenset({500, 502, 503, 504}),
)

SLOW_RESPONSES = AlertRule(
    id="slow_responses_5sec",
    type=AlertType.SLOW_RESPONSE,
    severity=AlertSeverity.MEDIUM,
    name="Slow API Responses",
    description="Alert on API responses taking longer than 5 seconds",
    slow_response_threshold_ms=5000.0,
)

CRASHES = AlertRule(
    id="app_crashes",
    type=AlertType.CRASH_DETECTED,
    severity=AlertSeverity.CRITICAL,
    name="Application Crashes",
    description="Alert on application crashes and fatal errors",
)

PREDEFINED_RULES = (API_FAILURES, SERVER_ERRORS, SLOW_RESPONSES, CRASHES)
