"""Shared test fixtures for all test modules."""

from collections.abc import Callable
from typing import Any

import httpx
import pytest

from logwarden.adapters.collector.in_memory import InMemoryCollector
from logwarden.core.config import CollectorIdentity, DeliveryConfig


class FakeClock:
    """Manually advanced clock returning Unix-style seconds."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.start = start
        self.now = start

    def __call__(self) -> float:
        return self.now

    def set(self, offset: float) -> None:
        """Move to ``start + offset`` seconds."""
        self.now = self.start + offset

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    """Deterministic clock for window and cooldown tests."""
    return FakeClock()


@pytest.fixture
def collector() -> InMemoryCollector:
    """Collector recording every batch in memory."""
    return InMemoryCollector()


@pytest.fixture
def identity() -> CollectorIdentity:
    return CollectorIdentity(
        user_id="u-1", email="dev@example.com", display_name="Dev", team_id="team-1"
    )


@pytest.fixture
def make_delivery_config(
    identity: CollectorIdentity,
) -> Callable[..., DeliveryConfig]:
    """Factory fixture for delivery configs with overridable fields.

    Usage:
        def test_something(make_delivery_config):
            config = make_delivery_config(batch_size=2)
    """

    def _make(**overrides: Any) -> DeliveryConfig:
        fields: dict[str, Any] = {
            "endpoint": "https://collector.test",
            "api_key": "secret-key",
            "identity": identity,
        }
        fields.update(overrides)
        return DeliveryConfig(**fields)

    return _make


# === HTTP Test Fixtures ===


@pytest.fixture
def mock_http_client():
    """Factory fixture that creates an httpx.AsyncClient over a MockTransport.

    Returns a callable that accepts a request handler and returns a
    client routing every request to it, plus the list of captured
    requests.

    Usage:
        async def test_something(mock_http_client):
            client, requests = mock_http_client(lambda r: httpx.Response(200))
    """

    def _get_client(
        handler: Callable[[httpx.Request], httpx.Response],
    ) -> tuple[httpx.AsyncClient, list[httpx.Request]]:
        requests: list[httpx.Request] = []

        def _capture(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return handler(request)

        client = httpx.AsyncClient(transport=httpx.MockTransport(_capture))
        return client, requests

    return _get_client
