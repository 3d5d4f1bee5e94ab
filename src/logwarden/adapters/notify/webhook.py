"""Webhook sink that POSTs alert notifications as JSON."""

import asyncio
import logging
from typing import Any

import httpx

from logwarden.adapters.async_utils import drain, spawn
from logwarden.core.models import AlertNotification

logger = logging.getLogger(__name__)


class WebhookSink:
    """AlertSinkPort implementation backed by an HTTP webhook.

    Delivery is fire-and-forget: ``publish`` schedules the request on the
    bound event loop and returns at once. Failures (transport errors,
    timeouts, non-2xx replies) are logged and never raised.
    """

    def __init__(
        self,
        url: str,
        headers: dict[str, str] | None = None,
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the sink.

        Args:
            url: Webhook URL receiving ``POST`` requests.
            headers: Extra headers (e.g. authentication) for every request.
            timeout: Upper bound on one request, in seconds.
            client: Optional preconfigured client; only self-created
                clients are closed by ``aclose``.
        """
        self.url = url
        self._headers = {"Content-Type": "application/json", **(headers or {})}
        self._timeout = timeout
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._loop: asyncio.AbstractEventLoop | None = None
        self._tasks: set[asyncio.Task[Any]] = set()

    def bind(self, loop: asyncio.AbstractEventLoop) -> None:
        """Run future requests on ``loop`` regardless of the publishing thread."""
        self._loop = loop

    def publish(self, notification: AlertNotification) -> None:
        if not spawn(self._post(notification), self._loop, self._tasks):
            logger.warning(
                "No event loop available, webhook skipped for alert %s", notification.id
            )

    async def _post(self, notification: AlertNotification) -> None:
        try:
            response = await self._client.post(
                self.url,
                json=notification.to_dict(),
                headers=self._headers,
                timeout=self._timeout,
            )
        except httpx.HTTPError as exc:
            logger.warning(
                "Webhook delivery of alert %s failed: %s", notification.id, exc
            )
            return
        if not response.is_success:
            logger.warning(
                "Webhook rejected alert %s with status %d",
                notification.id,
                response.status_code,
            )

    async def aclose(self) -> None:
        """Wait for in-flight requests, then release the client."""
        await drain(self._tasks)
        if self._owns_client:
            await self._client.aclose()
