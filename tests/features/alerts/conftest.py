"""BDD step definitions for alert rule evaluation features."""

from dataclasses import dataclass, field
from typing import Any

import pytest
from pytest_bdd import given, parsers, then, when

from logwarden.core.config import AlertConfig
from logwarden.core.entries import network, plain
from logwarden.core.models import (
    AlertNotification,
    AlertRule,
    AlertSeverity,
    AlertType,
)
from logwarden.services.alerts import AlertEngine

SERVER_ERROR_CODES = frozenset({500, 502, 503, 504})


@dataclass
class AlertScenarioContext:
    """Shared state between steps in an alert scenario."""

    clock: Any = None
    engine: AlertEngine | None = None
    rules: list[AlertRule] = field(default_factory=list)
    alerts: list[AlertNotification] = field(default_factory=list)

    def add_rule(self, rule: AlertRule) -> None:
        assert self.engine is not None
        self.rules.append(rule)
        self.engine.update_rules(self.rules)

    def at(self, seconds: int) -> None:
        self.clock.set(seconds)


@pytest.fixture
def ctx(clock: Any) -> AlertScenarioContext:
    """Fresh scenario context for each test."""
    return AlertScenarioContext(clock=clock)


# === Background Steps ===
@given(parsers.parse("an alert engine with a {cooldown:d} second cooldown"))
def step_engine(ctx: AlertScenarioContext, cooldown: int) -> None:
    ctx.engine = AlertEngine(
        AlertConfig(cooldown_seconds=cooldown, on_alert=ctx.alerts.append),
        clock=ctx.clock,
    )


@given(
    parsers.parse(
        'an API failure rule "{rule_id}" on server errors '
        "with threshold {threshold:d} in {window:d} seconds"
    )
)
def step_api_rule(
    ctx: AlertScenarioContext, rule_id: str, threshold: int, window: int
) -> None:
    ctx.add_rule(
        AlertRule(
            id=rule_id,
            type=AlertType.API_FAILURE,
            severity=AlertSeverity.HIGH,
            name="API failures",
            description="Endpoint keeps failing",
            failure_threshold=threshold,
            time_window_seconds=float(window),
            status_codes_to_monitor=SERVER_ERROR_CODES,
        )
    )


@given(parsers.parse('a slow response rule "{rule_id}" with threshold {ms:d} ms'))
def step_slow_rule(ctx: AlertScenarioContext, rule_id: str, ms: int) -> None:
    ctx.add_rule(
        AlertRule(
            id=rule_id,
            type=AlertType.SLOW_RESPONSE,
            severity=AlertSeverity.MEDIUM,
            name="Slow responses",
            description="Endpoint is slow",
            slow_response_threshold_ms=float(ms),
        )
    )


@given(parsers.parse('a crash rule "{rule_id}" with severity "{severity}"'))
def step_crash_rule(ctx: AlertScenarioContext, rule_id: str, severity: str) -> None:
    ctx.add_rule(
        AlertRule(
            id=rule_id,
            type=AlertType.CRASH_DETECTED,
            severity=AlertSeverity(severity),
            name="Crashes",
            description="Application crashed",
        )
    )


# === Ingestion Steps ===
def _fail(ctx: AlertScenarioContext, request: str, status: int) -> None:
    assert ctx.engine is not None
    method, url = request.split(" ", 1)
    ctx.engine.ingest(network(method, url, status_code=status))


@when(
    parsers.parse(
        '"{request}" fails with status {status:d} at {at:d} seconds'
    )
)
def step_fail_once(
    ctx: AlertScenarioContext, request: str, status: int, at: int
) -> None:
    ctx.at(at)
    _fail(ctx, request, status)


@when(
    parsers.parse(
        '"{request}" fails with status {status:d} {times:d} times at {at:d} seconds'
    )
)
def step_fail_many(
    ctx: AlertScenarioContext, request: str, status: int, times: int, at: int
) -> None:
    ctx.at(at)
    for _ in range(times):
        _fail(ctx, request, status)


@when(
    parsers.parse('"{request}" responds with status {status:d} in {ms:d} ms')
)
def step_slow_response(
    ctx: AlertScenarioContext, request: str, status: int, ms: int
) -> None:
    assert ctx.engine is not None
    method, url = request.split(" ", 1)
    sent_at = ctx.clock()
    ctx.engine.ingest(
        network(
            method,
            url,
            status_code=status,
            sent_at=sent_at,
            received_at=sent_at + ms / 1000,
        )
    )


@when(parsers.parse('the message "{message}" is logged'))
def step_log_message(ctx: AlertScenarioContext, message: str) -> None:
    assert ctx.engine is not None
    ctx.engine.ingest(plain(message, source="renderer"))


# === Assertions ===
@then("no alert is fired")
def step_no_alert(ctx: AlertScenarioContext) -> None:
    assert ctx.alerts == []


@then(parsers.re(r"(?P<count>\d+) alerts? (?:is|are) fired"))
def step_alert_count(ctx: AlertScenarioContext, count: str) -> None:
    assert len(ctx.alerts) == int(count)


@then(parsers.parse('the last alert has title "{title}"'))
def step_alert_title(ctx: AlertScenarioContext, title: str) -> None:
    assert ctx.alerts[-1].title == title


@then(parsers.parse('the last alert has severity "{severity}"'))
def step_alert_severity(ctx: AlertScenarioContext, severity: str) -> None:
    assert ctx.alerts[-1].severity is AlertSeverity(severity)


@then(
    parsers.parse('the last alert reports {count:d} failures for "{endpoint}"')
)
def step_alert_failures(ctx: AlertScenarioContext, count: int, endpoint: str) -> None:
    metadata = ctx.alerts[-1].metadata
    assert metadata["endpoint"] == endpoint
    assert metadata["failureCount"] == count


@then(parsers.parse('"{endpoint}" has {count:d} failures in the window'))
def step_window_count(ctx: AlertScenarioContext, endpoint: str, count: int) -> None:
    assert ctx.engine is not None
    assert ctx.engine.failure_count(endpoint) == count
