"""Integration tests for the HTTP collector adapter."""

import json
from collections.abc import Callable

import httpx
import pytest

from logwarden.adapters.collector.http import HttpCollector, build_headers
from logwarden.core.config import CollectorIdentity, DeliveryConfig
from logwarden.core.encoding.records import encode_entry
from logwarden.core.entries import plain
from logwarden.core.errors import NetworkError
from logwarden.core.ports import CollectorPort
from logwarden.services.delivery import DeliveryPipeline

pytestmark = [
    pytest.mark.integration,
    pytest.mark.tier(2),
    pytest.mark.tra("Adapter.Collector.Http"),
]


def _records(config: DeliveryConfig, *messages: str) -> list[dict[str, object]]:
    return [encode_entry(plain(m), config.identity) for m in messages]


class TestHttpCollector:
    """Tests for HttpCollector against a mock transport."""

    def test_implements_collector_port(
        self, make_delivery_config: Callable[..., DeliveryConfig]
    ) -> None:
        """HttpCollector satisfies CollectorPort."""
        client = httpx.AsyncClient()
        assert isinstance(HttpCollector(make_delivery_config(), client), CollectorPort)

    async def test_posts_batch_with_headers(
        self, make_delivery_config: Callable[..., DeliveryConfig], mock_http_client
    ) -> None:
        """A batch is POSTed to /logs/batch with auth and identity headers."""
        client, requests = mock_http_client(lambda r: httpx.Response(201))
        config = make_delivery_config(endpoint="https://collector.test/v1/")
        collector = HttpCollector(config, client)

        status = await collector.submit_batch(_records(config, "a", "b"))

        assert status == 201
        request = requests[0]
        assert request.method == "POST"
        assert str(request.url) == "https://collector.test/v1/logs/batch"
        assert request.headers["Authorization"] == "Bearer secret-key"
        assert request.headers["X-User-ID"] == "u-1"
        assert request.headers["X-User-Email"] == "dev@example.com"
        assert request.headers["X-Team-ID"] == "team-1"
        assert request.headers["Content-Type"] == "application/json"
        body = json.loads(request.content)
        assert [log["message"] for log in body["logs"]] == ["a", "b"]
        assert "timestamp" in body
        await client.aclose()

    @pytest.mark.parametrize("status", [400, 401, 500, 503])
    async def test_non_2xx_raises_network_error(
        self,
        make_delivery_config: Callable[..., DeliveryConfig],
        mock_http_client,
        status: int,
    ) -> None:
        """Any non-2xx reply raises NetworkError carrying the status."""
        client, _ = mock_http_client(lambda r: httpx.Response(status))
        config = make_delivery_config()
        collector = HttpCollector(config, client)

        with pytest.raises(NetworkError) as exc_info:
            await collector.submit_batch(_records(config, "a"))

        assert exc_info.value.status_code == status
        await client.aclose()

    async def test_timeout_raises_network_error(
        self, make_delivery_config: Callable[..., DeliveryConfig], mock_http_client
    ) -> None:
        """A transport timeout becomes a NetworkError."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        client, _ = mock_http_client(handler)
        config = make_delivery_config()
        collector = HttpCollector(config, client)

        with pytest.raises(NetworkError, match="timed out"):
            await collector.submit_batch(_records(config, "a"))
        await client.aclose()

    async def test_connection_error_raises_network_error(
        self, make_delivery_config: Callable[..., DeliveryConfig], mock_http_client
    ) -> None:
        """A connection failure becomes a NetworkError without a status."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        client, _ = mock_http_client(handler)
        config = make_delivery_config()
        collector = HttpCollector(config, client)

        with pytest.raises(NetworkError) as exc_info:
            await collector.submit_batch(_records(config, "a"))

        assert exc_info.value.status_code is None
        await client.aclose()

    async def test_borrowed_client_not_closed(
        self, make_delivery_config: Callable[..., DeliveryConfig], mock_http_client
    ) -> None:
        """aclose() leaves a caller-provided client open."""
        client, _ = mock_http_client(lambda r: httpx.Response(200))
        collector = HttpCollector(make_delivery_config(), client)

        await collector.aclose()

        assert not client.is_closed
        await client.aclose()

    def test_build_headers_falls_back_to_phone(
        self, make_delivery_config: Callable[..., DeliveryConfig]
    ) -> None:
        """X-User-ID uses the phone number when no user id is set."""
        config = make_delivery_config(identity=CollectorIdentity(phone_number="+4912"))
        headers = build_headers(config)
        assert headers["X-User-ID"] == "+4912"
        assert headers["X-User-Email"] == ""


class TestPipelineOverHttp:
    """DeliveryPipeline driving HttpCollector end to end."""

    async def test_failed_batch_retried_over_http(
        self, make_delivery_config: Callable[..., DeliveryConfig], mock_http_client
    ) -> None:
        """A 503 leaves the batch queued; the next flush delivers it in order."""
        replies = iter([httpx.Response(503), httpx.Response(200)])
        client, requests = mock_http_client(lambda r: next(replies))
        config = make_delivery_config(batch_size=10)
        pipeline = DeliveryPipeline(config, HttpCollector(config, client))
        for message in ("first", "second"):
            pipeline.enqueue(plain(message))

        failed = await pipeline.flush_now()
        retried = await pipeline.flush_now()

        assert not failed.ok
        assert failed.status_code == 503
        assert retried.ok
        assert retried.sent == 2
        first_body = json.loads(requests[0].content)
        second_body = json.loads(requests[1].content)
        assert first_body["logs"] == second_body["logs"]
        assert [log["message"] for log in second_body["logs"]] == ["first", "second"]
        await client.aclose()
