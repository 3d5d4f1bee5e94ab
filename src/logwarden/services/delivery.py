"""Batched, retrying delivery of entries to the remote collector.

Entries are serialized on enqueue and held in a bounded PendingQueue.
A send is triggered when the queue reaches the batch size, when a
critical entry arrives, when batching is disabled, on every timer tick,
on an offline to online transition, and on an explicit ``flush_now``.

A batch is acknowledged as a whole. On failure it goes back to the head
of the queue in its original order, so delivery is at-least-once and
every record carries a unique id for de-duplication.
"""

import asyncio
import logging
import threading
from contextlib import suppress
from dataclasses import dataclass
from enum import Enum
from typing import Any

from logwarden.adapters.async_utils import drain, spawn
from logwarden.adapters.collector.http import HttpCollector
from logwarden.adapters.storage.pending_queue import PendingQueue, Record
from logwarden.core.config import DeliveryConfig
from logwarden.core.encoding.records import encode_entry
from logwarden.core.entries import is_critical
from logwarden.core.errors import NetworkError
from logwarden.core.models import Entry
from logwarden.core.ports import CollectorPort

logger = logging.getLogger(__name__)


class PipelineState(str, Enum):
    """Phase of the delivery pipeline."""

    IDLE = "idle"
    BATCHING = "batching"
    SENDING = "sending"
    BACKOFF_WAIT = "backoff_wait"


@dataclass(frozen=True)
class DeliveryResult:
    """Outcome of a flush.

    Attributes:
        ok: True when every attempted batch was acknowledged.
        sent: Number of entries acknowledged by the collector.
        status_code: Status of the last reply, if any.
        error: The failure that stopped the flush, if any.
    """

    ok: bool
    sent: int = 0
    status_code: int | None = None
    error: NetworkError | None = None


class DeliveryPipeline:
    """Queue, batch and ship entries to a CollectorPort.

    ``enqueue`` may be called from any thread and never blocks or raises.
    Sends run as detached tasks on the loop bound by ``start`` and are
    serialized so that only one batch is in flight at a time.

    Example:
        ```python
        pipeline = DeliveryPipeline(config)
        await pipeline.start()
        pipeline.enqueue(plain("user signed in"))
        result = await pipeline.flush_now()
        await pipeline.aclose()
        ```
    """

    def __init__(
        self,
        config: DeliveryConfig,
        collector: CollectorPort | None = None,
        online: bool = True,
    ) -> None:
        """Initialize the pipeline.

        Args:
            config: Delivery settings.
            collector: Destination of batches; an HttpCollector built from
                ``config`` when omitted.
            online: Initial connectivity state.
        """
        self._config = config
        self._collector: CollectorPort = collector or HttpCollector(config)
        self._queue = PendingQueue(config.queue_capacity)
        self._state = PipelineState.IDLE
        self._online = online
        self._closed = False
        self._loop: asyncio.AbstractEventLoop | None = None
        self._timer: asyncio.Task[None] | None = None
        self._tasks: set[asyncio.Task[Any]] = set()
        self._send_lock: asyncio.Lock | None = None
        # At most one scheduled flush waits for the send lock at a time
        self._flush_guard = threading.Lock()
        self._flush_requested = False

    def _get_lock(self) -> asyncio.Lock:
        """Get or create the send lock (lazy to avoid event loop issues)."""
        if self._send_lock is None:
            self._send_lock = asyncio.Lock()
        return self._send_lock

    @property
    def config(self) -> DeliveryConfig:
        return self._config

    @property
    def collector(self) -> CollectorPort:
        return self._collector

    @property
    def pending_count(self) -> int:
        return len(self._queue)

    @property
    def is_online(self) -> bool:
        return self._online

    @property
    def state(self) -> PipelineState:
        return self._state

    def pending(self) -> list[Record]:
        """Queued records, head first."""
        return self._queue.snapshot()

    # ------------------------------------------------------------------
    # Producer side
    # ------------------------------------------------------------------

    def enqueue(self, entry: Entry) -> None:
        """Serialize an entry and queue it for delivery."""
        if not self._config.enabled or self._closed:
            return
        try:
            record = encode_entry(
                entry,
                self._config.identity,
                environment=self._config.environment,
                max_field_length=self._config.max_field_length,
            )
            critical = is_critical(entry)
        except Exception:
            logger.exception("Entry could not be serialized and was not queued")
            return

        length, dropped = self._queue.push(record)
        if dropped:
            logger.warning(
                "Pending queue full (capacity %d), dropped %d oldest entries",
                self._queue.capacity,
                dropped,
            )
        if self._state is PipelineState.IDLE:
            self._state = PipelineState.BATCHING

        if (
            not self._config.enable_batching
            or length >= self._config.batch_size
            or critical
        ):
            self._schedule_flush()

    def _schedule_flush(self) -> None:
        """Request a background flush, merging with one already waiting."""
        with self._flush_guard:
            if self._flush_requested:
                return
            self._flush_requested = True
        if not spawn(self._scheduled_flush(), self._loop, self._tasks):
            with self._flush_guard:
                self._flush_requested = False
            logger.debug(
                "No event loop available, %d entries wait for the next flush",
                len(self._queue),
            )

    async def _scheduled_flush(self) -> None:
        async with self._get_lock():
            # Triggers arriving from here on schedule a follow-up flush
            with self._flush_guard:
                self._flush_requested = False
            if self._closed:
                return
            await self._flush_locked()

    # ------------------------------------------------------------------
    # Sending
    # ------------------------------------------------------------------

    async def flush_now(self) -> DeliveryResult:
        """Send queued entries in batches until the queue is empty.

        Stops at the first failed batch, which is re-queued at the head.

        Returns:
            DeliveryResult describing the flush. Never raises NetworkError.
        """
        async with self._get_lock():
            return await self._flush_locked()

    async def _flush_locked(self) -> DeliveryResult:
        sent = 0
        status_code: int | None = None
        while len(self._queue):
            if not self._online:
                return DeliveryResult(
                    ok=False,
                    sent=sent,
                    error=NetworkError("collector unreachable: offline"),
                )
            batch = self._queue.take(self._config.batch_size)
            if not batch:
                break
            result = await self._send(batch)
            if not result.ok:
                return DeliveryResult(
                    ok=False,
                    sent=sent,
                    status_code=result.status_code,
                    error=result.error,
                )
            sent += result.sent
            status_code = result.status_code
        self._state = PipelineState.BATCHING if len(self._queue) else PipelineState.IDLE
        return DeliveryResult(ok=True, sent=sent, status_code=status_code)

    async def _send(self, batch: list[Record]) -> DeliveryResult:
        self._state = PipelineState.SENDING
        try:
            status_code = await asyncio.wait_for(
                self._collector.submit_batch(batch),
                timeout=self._config.request_timeout_seconds,
            )
        except asyncio.CancelledError:
            self._queue.requeue_front(batch)
            raise
        except asyncio.TimeoutError:
            error = NetworkError(
                f"collector request exceeded {self._config.request_timeout_seconds:g}s"
            )
            return self._requeue(batch, error)
        except NetworkError as exc:
            return self._requeue(batch, exc)
        except Exception as exc:
            logger.exception("Collector raised unexpectedly")
            return self._requeue(batch, NetworkError(f"collector failed: {exc!s}"))

        logger.info("Uploaded batch of %d entries (status %d)", len(batch), status_code)
        return DeliveryResult(ok=True, sent=len(batch), status_code=status_code)

    def _requeue(self, batch: list[Record], error: NetworkError) -> DeliveryResult:
        dropped = self._queue.requeue_front(batch)
        self._state = PipelineState.BACKOFF_WAIT
        logger.warning(
            "Batch of %d entries failed, re-queued for retry: %s", len(batch), error
        )
        if dropped:
            logger.warning(
                "Pending queue full after re-queue, dropped %d oldest entries", dropped
            )
        return DeliveryResult(ok=False, status_code=error.status_code, error=error)

    async def _run_timer(self) -> None:
        while True:
            # Interval is re-read so reconfigure applies after the current tick
            await asyncio.sleep(self._config.batch_upload_interval_seconds)
            if not len(self._queue):
                continue
            try:
                await self.flush_now()
            except Exception:
                logger.exception("Periodic flush failed")

    # ------------------------------------------------------------------
    # Control
    # ------------------------------------------------------------------

    def set_online(self, online: bool) -> None:
        """Record a connectivity change; going online triggers a flush."""
        was_online, self._online = self._online, online
        if online and not was_online:
            logger.info(
                "Collector reachable again, flushing %d pending entries",
                len(self._queue),
            )
            self._schedule_flush()

    def reconfigure(
        self, config: DeliveryConfig, collector: CollectorPort | None = None
    ) -> None:
        """Apply new delivery settings without losing queued entries.

        Args:
            config: New settings. A smaller queue_capacity drops the oldest
                entries.
            collector: Replacement collector; the previous one is closed.
        """
        self._config = config
        dropped = self._queue.resize(config.queue_capacity)
        if dropped:
            logger.warning(
                "Queue capacity reduced to %d, dropped %d oldest entries",
                config.queue_capacity,
                dropped,
            )
        if collector is not None and collector is not self._collector:
            previous, self._collector = self._collector, collector
            if not spawn(previous.aclose(), self._loop, self._tasks):
                logger.debug("No event loop available to close the replaced collector")

    async def join(self) -> None:
        """Wait until every send scheduled so far has finished."""
        await drain(self._tasks)

    async def start(self) -> None:
        """Bind to the running loop and start the periodic flush timer."""
        self._loop = asyncio.get_running_loop()
        if self._timer is None and not self._closed:
            self._timer = self._loop.create_task(self._run_timer())
        if len(self._queue):
            self._schedule_flush()

    async def aclose(self) -> None:
        """Stop the timer, let the in-flight send finish and close the collector.

        A scheduled flush that has not started yet returns without sending.
        Entries still queued are not sent.
        """
        self._closed = True
        if self._timer is not None:
            self._timer.cancel()
            with suppress(asyncio.CancelledError):
                await self._timer
            self._timer = None
        await drain(self._tasks)
        await self._collector.aclose()
