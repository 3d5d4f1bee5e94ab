"""Bounded pending queue for entries awaiting delivery.

Provides a fixed-capacity FIFO that evicts the oldest records when it
is full. Failed batches go back in at the head so they are retried
before anything queued after them.
"""

import threading
from collections import deque
from collections.abc import Sequence
from typing import Any

Record = dict[str, Any]


class PendingQueue:
    """Thread-safe bounded FIFO of serialized entries.

    New records are appended at the tail. When the queue is over capacity
    the oldest record (at the head) is dropped. ``requeue_front`` puts a
    batch back at the head in its original order.

    Args:
        capacity: Maximum number of records to hold.
    """

    def __init__(self, capacity: int) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self._capacity = capacity
        self._buffer: deque[Record] = deque()
        self._lock = threading.Lock()

    @property
    def capacity(self) -> int:
        return self._capacity

    def __len__(self) -> int:
        with self._lock:
            return len(self._buffer)

    def _evict_overflow(self) -> int:
        dropped = 0
        while len(self._buffer) > self._capacity:
            self._buffer.popleft()
            dropped += 1
        return dropped

    def push(self, record: Record) -> tuple[int, int]:
        """Append a record at the tail.

        Returns:
            (queue length after the push, number of records dropped)
        """
        with self._lock:
            self._buffer.append(record)
            dropped = self._evict_overflow()
            return len(self._buffer), dropped

    def take(self, max_items: int) -> list[Record]:
        """Remove and return up to ``max_items`` records from the head."""
        with self._lock:
            count = min(max_items, len(self._buffer))
            return [self._buffer.popleft() for _ in range(count)]

    def requeue_front(self, batch: Sequence[Record]) -> int:
        """Put a batch back at the head, preserving its order.

        Returns:
            Number of records dropped to stay within capacity.
        """
        with self._lock:
            self._buffer.extendleft(reversed(batch))
            return self._evict_overflow()

    def resize(self, capacity: int) -> int:
        """Change the capacity, dropping the oldest records if it shrinks.

        Returns:
            Number of records dropped.
        """
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        with self._lock:
            self._capacity = capacity
            return self._evict_overflow()

    def snapshot(self) -> list[Record]:
        """Return the queued records, head first, without removing them."""
        with self._lock:
            return list(self._buffer)
