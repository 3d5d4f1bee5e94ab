"""Port interfaces for delivery and notification adapters.

These protocols define the contracts that adapters must implement.
The engine and the pipeline depend only on these interfaces, not on
concrete implementations.
"""

from collections.abc import Sequence
from typing import Any, Protocol, runtime_checkable

from logwarden.core.models import AlertNotification


@runtime_checkable
class CollectorPort(Protocol):
    """Port for the remote log collector.

    Adapters implementing this protocol accept a whole batch of serialized
    entries and acknowledge it as a unit.
    Examples: HttpCollector, InMemoryCollector.
    """

    async def submit_batch(self, logs: Sequence[dict[str, Any]]) -> int:
        """Submit one batch.

        Args:
            logs: Serialized entries, in delivery order.

        Returns:
            The (2xx) status code of the acknowledgement.

        Raises:
            NetworkError: On timeout, transport failure or non-2xx reply.
        """
        ...

    async def aclose(self) -> None:
        """Release any connections held by the adapter."""
        ...


@runtime_checkable
class AlertSinkPort(Protocol):
    """Port for a destination of alert notifications.

    publish() must not block on I/O; sinks that talk to the network
    schedule the request and return.
    Examples: WebhookSink, NotificationFanout.
    """

    def publish(self, notification: AlertNotification) -> None:
        """Deliver one notification."""
        ...
