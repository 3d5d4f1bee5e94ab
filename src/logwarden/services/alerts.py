"""Alert rule engine.

Evaluates every entry against the configured rules, tracks rolling
failure windows per endpoint, suppresses repeats within a per-rule
cooldown and publishes notifications through a NotificationFanout.

The engine never suspends: evaluation is synchronous and publishing only
schedules I/O. Window and cooldown state is guarded by a lock so that
``ingest`` can be called from several threads.
"""

import asyncio
import logging
import threading
import time
from collections import deque
from collections.abc import Callable, Iterable
from re import Pattern
from typing import cast

from logwarden.adapters.notify.fanout import (
    DEFAULT_STREAM_BUFFER,
    AlertStream,
    Listener,
    NotificationFanout,
)
from logwarden.adapters.notify.webhook import WebhookSink
from logwarden.core.config import AlertConfig
from logwarden.core.entries import validate_entry
from logwarden.core.errors import ConfigError, ValidationError
from logwarden.core.models import (
    AlertNotification,
    AlertRule,
    AlertSeverity,
    AlertType,
    Entry,
    EntryKind,
    NetworkEntry,
    PlainEntry,
)
from logwarden.core.rules import (
    DEFAULT_CRASH_KEYWORDS,
    compile_endpoint_pattern,
    matches_crash,
    validate_rule,
)
from logwarden.core.windows import FailureWindowTracker, normalize_endpoint

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_SIZE = 100


def _format_window(seconds: float) -> str:
    if seconds >= 60 and seconds % 60 == 0:
        minutes = int(seconds // 60)
        return f"{minutes} minute{'s' if minutes != 1 else ''}"
    return f"{seconds:g} seconds"


def _millis(timestamp: float) -> int:
    return int(timestamp * 1000)


def build_webhook(config: AlertConfig) -> WebhookSink | None:
    """Create the webhook sink described by ``config``, if any."""
    if not config.webhook_url:
        return None
    return WebhookSink(
        config.webhook_url,
        headers=config.webhook_headers,
        timeout=config.webhook_timeout_seconds,
    )


class AlertEngine:
    """Evaluate alert rules against entries and publish notifications.

    Example:
        ```python
        engine = AlertEngine(AlertConfig(rules=PREDEFINED_RULES))
        engine.subscribe(lambda n: print(n.title))
        engine.ingest(network("GET", "https://api.x.com/a", status_code=500))
        ```
    """

    def __init__(
        self,
        config: AlertConfig | None = None,
        fanout: NotificationFanout | None = None,
        clock: Callable[[], float] = time.time,
        crash_keywords: Iterable[str] = DEFAULT_CRASH_KEYWORDS,
        history_size: int = DEFAULT_HISTORY_SIZE,
    ) -> None:
        """Initialize the engine.

        Args:
            config: Rules, cooldown, callback and webhook settings.
            fanout: Notification fan-out; built from ``config`` when omitted.
            clock: Source of "now" as a Unix timestamp.
            crash_keywords: Substrings that mark a plain message as a crash.
            history_size: Number of recent notifications kept.
        """
        self._config = config or AlertConfig()
        self._clock = clock
        self._crash_keywords = frozenset(k.lower() for k in crash_keywords)
        self._lock = threading.RLock()
        self._windows = FailureWindowTracker()
        self._last_alert: dict[str, float] = {}
        self._recent: deque[AlertNotification] = deque(maxlen=history_size)
        self._loop: asyncio.AbstractEventLoop | None = None
        self._rules: list[AlertRule] = []
        self._rules_by_id: dict[str, AlertRule] = {}
        self._patterns: dict[str, Pattern[str]] = {}
        self._install_rules(self._config.rules)
        self.fanout = fanout or NotificationFanout(
            callback=self._config.on_alert, webhook=build_webhook(self._config)
        )
        self._checks: dict[
            AlertType, Callable[[AlertRule, Entry, float], AlertNotification | None]
        ] = {
            AlertType.API_FAILURE: self._check_api_failure,
            AlertType.SLOW_RESPONSE: self._check_slow_response,
            AlertType.CRASH_DETECTED: self._check_crash,
            AlertType.CUSTOM_THRESHOLD: self._check_custom,
            # HIGH_ERROR_RATE is reserved and has no check
        }

    @property
    def config(self) -> AlertConfig:
        return self._config

    @property
    def rules(self) -> tuple[AlertRule, ...]:
        """Installed rules; invalid ones appear with enabled=False."""
        return tuple(self._rules)

    @property
    def recent_alerts(self) -> tuple[AlertNotification, ...]:
        """Most recent notifications, oldest first."""
        with self._lock:
            return tuple(self._recent)

    def _install_rules(self, rules: Iterable[AlertRule]) -> None:
        installed: list[AlertRule] = []
        by_id: dict[str, AlertRule] = {}
        patterns: dict[str, Pattern[str]] = {}
        for rule in rules:
            try:
                if rule.id in by_id:
                    raise ConfigError(f"duplicate rule id {rule.id!r}")
                validate_rule(rule)
                pattern = compile_endpoint_pattern(rule)
            except ConfigError as exc:
                logger.warning("Alert rule disabled: %s", exc)
                rule = rule.copy_with(enabled=False)
                pattern = None
            installed.append(rule)
            by_id.setdefault(rule.id, rule)
            if pattern is not None:
                patterns[rule.id] = pattern
        self._rules = installed
        self._rules_by_id = by_id
        self._patterns = patterns

    # ------------------------------------------------------------------
    # Evaluation
    # ------------------------------------------------------------------

    def ingest(self, entry: Entry) -> None:
        """Evaluate an entry against every enabled rule.

        Never raises: malformed entries are logged and skipped, and an
        error in one rule is logged without affecting the others.
        """
        if not self._config.enabled or self.fanout.closed:
            return
        try:
            validate_entry(entry)
        except ValidationError as exc:
            logger.warning("Entry excluded from alert evaluation: %s", exc)
            return

        fired: list[AlertNotification] = []
        with self._lock:
            now = self._clock()
            for rule in self._rules:
                if not rule.enabled:
                    continue
                check = self._checks.get(rule.type)
                if check is None:
                    continue
                try:
                    notification = check(rule, entry, now)
                except Exception:
                    logger.exception("Error evaluating alert rule %s", rule.id)
                    continue
                if notification is not None:
                    fired.append(notification)

        for notification in fired:
            self.fanout.publish(notification)

    def _check_api_failure(
        self, rule: AlertRule, entry: Entry, now: float
    ) -> AlertNotification | None:
        if entry.kind is not EntryKind.NETWORK:
            return None
        request = cast(NetworkEntry, entry)
        status = request.status_code
        if status is None or status not in rule.status_codes_to_monitor:
            return None
        pattern = self._patterns.get(rule.id)
        if pattern is not None and not pattern.search(request.url):
            return None

        endpoint = normalize_endpoint(request.url)
        failures = self._windows.record(
            rule.id, endpoint, now, rule.time_window_seconds
        )
        if failures < rule.failure_threshold:
            return None
        return self._attempt_fire(
            rule,
            now,
            alert_id=f"{rule.id}_{endpoint}_{_millis(now)}",
            title="API Endpoint Failure Alert",
            message=(
                f'Endpoint "{endpoint}" failed {failures} times in '
                f"{_format_window(rule.time_window_seconds)}"
            ),
            metadata={
                "endpoint": endpoint,
                "failureCount": failures,
                "timeWindow": rule.time_window_seconds,
                "statusCode": status,
            },
            entry=entry,
        )

    def _check_slow_response(
        self, rule: AlertRule, entry: Entry, now: float
    ) -> AlertNotification | None:
        if entry.kind is not EntryKind.NETWORK:
            return None
        request = cast(NetworkEntry, entry)
        if request.duration_ms is None:
            return None
        # Whole milliseconds: 3000.4 ms does not exceed a 3000 ms threshold
        duration = int(request.duration_ms)
        threshold = rule.slow_response_threshold_ms
        if threshold is None or duration <= threshold:
            return None

        endpoint = normalize_endpoint(request.url)
        return self._attempt_fire(
            rule,
            now,
            alert_id=f"{rule.id}_slow_{endpoint}_{_millis(now)}",
            title="Slow API Response Alert",
            message=(
                f'Endpoint "{endpoint}" responded in {duration}ms '
                f"(threshold: {threshold:g}ms)"
            ),
            metadata={
                "endpoint": endpoint,
                "responseTime": duration,
                "threshold": threshold,
            },
            entry=entry,
        )

    def _check_crash(
        self, rule: AlertRule, entry: Entry, now: float
    ) -> AlertNotification | None:
        if entry.kind is not EntryKind.PLAIN:
            return None
        message = cast(PlainEntry, entry)
        if not matches_crash(message.message, self._crash_keywords):
            return None
        return self._attempt_fire(
            rule,
            now,
            alert_id=f"{rule.id}_crash_{_millis(now)}",
            title="Application Crash Detected",
            message=f"Crash detected: {message.message}",
            metadata={"crashMessage": message.message, "source": message.source},
            entry=entry,
            severity=AlertSeverity.CRITICAL,
        )

    def _check_custom(
        self, rule: AlertRule, entry: Entry, now: float
    ) -> AlertNotification | None:
        if rule.custom_condition is None or not rule.custom_condition(entry):
            return None
        return self._attempt_fire(
            rule,
            now,
            alert_id=f"{rule.id}_custom_{_millis(now)}",
            title=rule.name,
            message=rule.description,
            metadata={"ruleType": "custom"},
            entry=entry,
        )

    def _in_cooldown(self, rule: AlertRule, now: float) -> bool:
        last = self._last_alert.get(rule.id)
        return last is not None and now - last < self._config.cooldown_seconds

    def _attempt_fire(
        self,
        rule: AlertRule,
        now: float,
        alert_id: str,
        title: str,
        message: str,
        metadata: dict[str, object],
        entry: Entry,
        severity: AlertSeverity | None = None,
    ) -> AlertNotification | None:
        """Create a notification unless the rule is cooling down."""
        # Cooldown is per rule: one endpoint firing silences all endpoints
        if self._in_cooldown(rule, now):
            logger.debug("Alert rule %s suppressed by cooldown", rule.id)
            return None
        notification = AlertNotification(
            id=alert_id,
            rule=rule,
            severity=severity or rule.severity,
            title=title,
            message=message,
            timestamp=now,
            metadata=metadata,
            triggering_entries=(entry,),
        )
        self._last_alert[rule.id] = now
        self._recent.append(notification)
        logger.info("ALERT [%s] %s - %s", notification.severity.value, title, message)
        return notification

    # ------------------------------------------------------------------
    # Failure window inspection
    # ------------------------------------------------------------------

    def clear_failures(self, endpoint: str) -> None:
        """Reset the failure window of ``endpoint`` for every rule."""
        with self._lock:
            self._windows.clear_endpoint(normalize_endpoint(endpoint))

    def failure_count(self, endpoint: str, rule_id: str | None = None) -> int:
        """Failures currently inside the window for ``endpoint``.

        Args:
            endpoint: URL or normalized endpoint.
            rule_id: Count for one rule only. When omitted, the largest
                count across rules is returned.
        """
        normalized = normalize_endpoint(endpoint)
        with self._lock:
            now = self._clock()
            if rule_id is not None:
                rule_ids = [rule_id]
            else:
                rule_ids = self._windows.rules_for(normalized)
            counts = [self._count(rid, normalized, now) for rid in rule_ids]
        return max(counts, default=0)

    def _count(self, rule_id: str, endpoint: str, now: float) -> int:
        rule = self._rules_by_id.get(rule_id)
        if rule is None:
            return 0
        return self._windows.count(rule_id, endpoint, now, rule.time_window_seconds)

    def all_failure_counts(self) -> dict[str, int]:
        """Snapshot of every endpoint with failures still inside a window."""
        with self._lock:
            endpoints = self._windows.endpoints()
            counts = {endpoint: self.failure_count(endpoint) for endpoint in endpoints}
        return {endpoint: count for endpoint, count in counts.items() if count > 0}

    # ------------------------------------------------------------------
    # Configuration and lifecycle
    # ------------------------------------------------------------------

    def update_rules(self, rules: Iterable[AlertRule]) -> None:
        """Replace the rule set, discarding all window and cooldown state."""
        new_rules = tuple(rules)
        with self._lock:
            self._windows.clear()
            self._last_alert.clear()
            self._install_rules(new_rules)
            self._config = self._config.copy_with(rules=new_rules)

    async def reconfigure(self, config: AlertConfig) -> None:
        """Apply new alert settings.

        Window and cooldown state is reset as in ``update_rules``. When the
        webhook settings change, the previous sink is closed after its
        in-flight requests finish.
        """
        previous = self._config
        with self._lock:
            self._config = config
        self.update_rules(config.rules)
        self.fanout.set_callback(config.on_alert)

        webhook_settings = (
            config.webhook_url,
            config.webhook_headers,
            config.webhook_timeout_seconds,
        )
        if webhook_settings == (
            previous.webhook_url,
            previous.webhook_headers,
            previous.webhook_timeout_seconds,
        ):
            return
        replaced, self.fanout.webhook = self.fanout.webhook, build_webhook(config)
        if self._loop is not None:
            self.bind(self._loop)
        if replaced is not None:
            await replaced.aclose()

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener for every future notification."""
        return self.fanout.subscribe(listener)

    def stream(self, buffer_size: int = DEFAULT_STREAM_BUFFER) -> AlertStream:
        """Async iterator over future notifications (call inside a loop)."""
        return self.fanout.stream(buffer_size)

    def bind(self, loop: asyncio.AbstractEventLoop) -> None:
        """Run webhook requests on ``loop``."""
        self._loop = loop
        if self.fanout.webhook is not None:
            self.fanout.webhook.bind(loop)

    def dispose(self) -> None:
        """Close the notification channel; later entries are ignored."""
        self.fanout.close()

    async def aclose(self) -> None:
        """Close the channel and wait for in-flight webhook requests."""
        await self.fanout.aclose()
