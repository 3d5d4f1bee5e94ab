"""BDD step definitions for batched log delivery features."""

import asyncio
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import pytest
from pytest_bdd import given, parsers, then, when

from logwarden.adapters.collector.in_memory import InMemoryCollector
from logwarden.core.config import DeliveryConfig
from logwarden.core.entries import plain
from logwarden.services.delivery import DeliveryPipeline, DeliveryResult


@dataclass
class DeliveryScenarioContext:
    """Shared state between steps in a delivery scenario."""

    collector: InMemoryCollector
    pipeline: DeliveryPipeline | None = None
    result: DeliveryResult | None = None


@pytest.fixture
def ctx(collector: InMemoryCollector) -> DeliveryScenarioContext:
    """Fresh scenario context for each test."""
    return DeliveryScenarioContext(collector=collector)


def _split(messages: str) -> list[str]:
    return [message.strip() for message in messages.split(",")]


def _messages(records: list[dict[str, Any]]) -> list[str]:
    return [record["message"] for record in records]


# === Background Steps ===
@given(
    parsers.parse(
        "a delivery pipeline with batch size {size:d} and queue capacity {capacity:d}"
    )
)
def step_pipeline(
    ctx: DeliveryScenarioContext,
    make_delivery_config: Callable[..., DeliveryConfig],
    size: int,
    capacity: int,
) -> None:
    config = make_delivery_config(batch_size=size, queue_capacity=capacity)
    ctx.pipeline = DeliveryPipeline(config, ctx.collector)


@given(parsers.parse("the collector fails the next {count:d} submission"))
def step_collector_fails(ctx: DeliveryScenarioContext, count: int) -> None:
    ctx.collector.fail_next(count)


@given("the pipeline is offline")
def step_offline(ctx: DeliveryScenarioContext) -> None:
    assert ctx.pipeline is not None
    ctx.pipeline.set_online(False)


# === Action Steps ===
@when(parsers.parse('the messages "{messages}" are queued'))
def step_queue(ctx: DeliveryScenarioContext, messages: str) -> None:
    assert ctx.pipeline is not None
    for message in _split(messages):
        ctx.pipeline.enqueue(plain(message))


@when("the pending entries are flushed")
def step_flush(ctx: DeliveryScenarioContext) -> None:
    assert ctx.pipeline is not None
    ctx.result = asyncio.run(ctx.pipeline.flush_now())


# === Assertions ===
@then(parsers.parse("{count:d} entries are pending"))
def step_pending(ctx: DeliveryScenarioContext, count: int) -> None:
    assert ctx.pipeline is not None
    assert ctx.pipeline.pending_count == count


@then(parsers.parse('the oldest pending entry is "{message}"'))
def step_oldest(ctx: DeliveryScenarioContext, message: str) -> None:
    assert ctx.pipeline is not None
    assert ctx.pipeline.pending()[0]["message"] == message


@then("the collector received nothing")
def step_nothing(ctx: DeliveryScenarioContext) -> None:
    assert ctx.collector.delivered == []


@then(
    parsers.re(
        r'the collector received "(?P<messages>[^"]+)" in (?P<n>\d+) batch(?:es)?'
    )
)
def step_received(ctx: DeliveryScenarioContext, messages: str, n: str) -> None:
    assert _messages(ctx.collector.delivered) == _split(messages)
    assert len(ctx.collector.batches) == int(n)


@then(parsers.parse("the collector saw {count:d} submissions"))
def step_attempts(ctx: DeliveryScenarioContext, count: int) -> None:
    assert len(ctx.collector.attempts) == count


@then("the flush failed")
def step_flush_failed(ctx: DeliveryScenarioContext) -> None:
    assert ctx.result is not None
    assert not ctx.result.ok
