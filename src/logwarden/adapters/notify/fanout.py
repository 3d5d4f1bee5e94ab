"""Fan-out of alert notifications to subscribers, a callback and a webhook.

Every destination is failure-isolated: an exception raised by one
listener is logged and does not stop delivery to the others.
"""

import asyncio
import logging
import threading
from collections.abc import Callable
from typing import Any

from logwarden.adapters.notify.webhook import WebhookSink
from logwarden.core.models import AlertNotification

logger = logging.getLogger(__name__)

Listener = Callable[[AlertNotification], Any]

_CLOSED = object()

DEFAULT_STREAM_BUFFER = 100


class AlertStream:
    """Async iterator receiving every notification published after creation.

    Holds at most ``buffer_size`` unread notifications. When a slow
    consumer lets the buffer fill, the oldest unread notification is
    dropped with a warning.

    Example:
        ```python
        async for notification in engine.stream():
            print(notification.title)
        ```
    """

    def __init__(
        self,
        loop: asyncio.AbstractEventLoop,
        unsubscribe: Callable[["AlertStream"], None],
        buffer_size: int = DEFAULT_STREAM_BUFFER,
    ) -> None:
        self._loop = loop
        # One slot beyond the buffer is kept free for the end-of-stream marker
        self._queue: asyncio.Queue[Any] = asyncio.Queue(maxsize=buffer_size + 1)
        self._buffer_size = buffer_size
        self._unsubscribe = unsubscribe
        self.dropped = 0

    def push(self, item: Any) -> None:
        """Enqueue an item from any thread."""
        try:
            self._loop.call_soon_threadsafe(self._put, item)
        except RuntimeError:
            logger.debug("Alert stream loop is closed, item dropped")

    def _put(self, item: Any) -> None:
        if item is _CLOSED:
            # Only an earlier end marker can occupy the spare slot
            if not self._queue.full():
                self._queue.put_nowait(item)
            return
        if self._queue.qsize() >= self._buffer_size:
            self._queue.get_nowait()
            self.dropped += 1
            logger.warning(
                "Alert stream buffer full (%d), dropped oldest notification",
                self._buffer_size,
            )
        self._queue.put_nowait(item)

    def close(self) -> None:
        self.push(_CLOSED)

    def __aiter__(self) -> "AlertStream":
        return self

    async def __anext__(self) -> AlertNotification:
        item = await self._queue.get()
        if item is _CLOSED:
            raise StopAsyncIteration
        return item  # type: ignore[no-any-return]

    async def aclose(self) -> None:
        """Stop receiving notifications."""
        self._unsubscribe(self)
        self.close()


class NotificationFanout:
    """Single publish operation fanning out to every registered sink.

    Sinks:
        - listeners registered with ``subscribe`` (broadcast, each gets all)
        - async streams created with ``stream``
        - one optional synchronous callback
        - one optional WebhookSink
    """

    def __init__(
        self,
        callback: Listener | None = None,
        webhook: WebhookSink | None = None,
    ) -> None:
        self._callback = callback
        self.webhook = webhook
        self._listeners: list[Listener] = []
        self._streams: list[AlertStream] = []
        self._lock = threading.Lock()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def set_callback(self, callback: Listener | None) -> None:
        self._callback = callback

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener called with every notification.

        Returns:
            A function that removes the listener again.
        """
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def stream(self, buffer_size: int = DEFAULT_STREAM_BUFFER) -> AlertStream:
        """Create an async stream of notifications.

        Must be called from a running event loop; notifications published
        from other threads are handed over to that loop. A stream created
        after ``close`` ends immediately.
        """
        stream = AlertStream(
            asyncio.get_running_loop(), self._remove_stream, buffer_size
        )
        with self._lock:
            if self._closed:
                stream.close()
            else:
                self._streams.append(stream)
        return stream

    def _remove_stream(self, stream: AlertStream) -> None:
        with self._lock:
            if stream in self._streams:
                self._streams.remove(stream)

    def publish(self, notification: AlertNotification) -> None:
        """Deliver a notification to every sink; never raises."""
        with self._lock:
            if self._closed:
                return
            listeners = list(self._listeners)
            streams = list(self._streams)

        for stream in streams:
            stream.push(notification)
        for listener in listeners:
            self._deliver("listener", listener, notification)
        if self._callback is not None:
            self._deliver("callback", self._callback, notification)
        if self.webhook is not None:
            self._deliver("webhook", self.webhook.publish, notification)

    def _deliver(
        self, sink: str, target: Listener, notification: AlertNotification
    ) -> None:
        try:
            target(notification)
        except Exception:
            logger.exception("Alert %s: %s raised", notification.id, sink)

    def close(self) -> None:
        """Close every stream and drop all listeners."""
        with self._lock:
            self._closed = True
            streams, self._streams = self._streams, []
            self._listeners.clear()
        for stream in streams:
            stream.close()

    async def aclose(self) -> None:
        """Close the channel and wait for pending webhook requests."""
        self.close()
        if self.webhook is not None:
            await self.webhook.aclose()
