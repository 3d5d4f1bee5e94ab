"""HTTP adapter for the remote log collector."""

import logging
import time
from collections.abc import Sequence
from typing import Any

import httpx

from logwarden.core.config import DeliveryConfig
from logwarden.core.encoding.records import encode_batch
from logwarden.core.errors import NetworkError

logger = logging.getLogger(__name__)


def build_headers(config: DeliveryConfig) -> dict[str, str]:
    """Headers sent with every collector request."""
    identity = config.identity
    return {
        "Content-Type": "application/json",
        "Authorization": f"Bearer {config.api_key}",
        "X-User-ID": identity.effective_user_id,
        "X-User-Email": identity.email or "",
        "X-Team-ID": identity.team_id or "",
    }


class HttpCollector:
    """CollectorPort implementation that POSTs batches with httpx.

    Each batch is sent as ``POST {endpoint}/logs/batch`` with body
    ``{"logs": [...], "timestamp": ...}``. Any 2xx reply acknowledges the
    whole batch; anything else, including a timeout, raises NetworkError.

    Example:
        ```python
        collector = HttpCollector(config)
        status = await collector.submit_batch(records)
        await collector.aclose()
        ```
    """

    def __init__(
        self,
        config: DeliveryConfig,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the collector.

        Args:
            config: Delivery settings (endpoint, key, identity, timeout).
            client: Optional preconfigured client, e.g. with a mock transport.
                The collector only closes clients it created itself.
        """
        self._url = config.batch_url
        self._headers = build_headers(config)
        self._timeout = config.request_timeout_seconds
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=self._timeout)

    async def submit_batch(self, logs: Sequence[dict[str, Any]]) -> int:
        """POST one batch and return the 2xx status code.

        Raises:
            NetworkError: On timeout, transport failure or non-2xx status.
        """
        body = encode_batch(logs, sent_at=time.time())
        try:
            response = await self._client.post(
                self._url, json=body, headers=self._headers, timeout=self._timeout
            )
        except httpx.TimeoutException as exc:
            raise NetworkError(f"collector request timed out: {exc!s}") from exc
        except httpx.HTTPError as exc:
            raise NetworkError(f"collector request failed: {exc!s}") from exc

        if not 200 <= response.status_code < 300:
            raise NetworkError(
                f"collector replied {response.status_code}",
                status_code=response.status_code,
            )
        logger.debug("Batch of %d accepted with %d", len(logs), response.status_code)
        return response.status_code

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
