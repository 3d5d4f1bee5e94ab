"""In-memory collector adapter."""

from collections.abc import Sequence
from typing import Any

from logwarden.core.errors import NetworkError


class InMemoryCollector:
    """In-memory implementation of CollectorPort.

    Keeps every accepted batch in a list. Suitable for testing and for
    running the pipeline without a remote collector. Failures can be
    scripted with ``fail_next``.
    """

    def __init__(self) -> None:
        self.batches: list[list[dict[str, Any]]] = []
        self.attempts: list[list[dict[str, Any]]] = []
        self._failures_left = 0
        self.closed = False

    def fail_next(self, count: int = 1) -> None:
        """Make the next ``count`` submissions raise NetworkError."""
        self._failures_left = count

    async def submit_batch(self, logs: Sequence[dict[str, Any]]) -> int:
        batch = list(logs)
        self.attempts.append(batch)
        if self._failures_left > 0:
            self._failures_left -= 1
            raise NetworkError("simulated collector failure", status_code=503)
        self.batches.append(batch)
        return 200

    async def aclose(self) -> None:
        self.closed = True

    @property
    def delivered(self) -> list[dict[str, Any]]:
        """All accepted records, flattened in delivery order."""
        return [record for batch in self.batches for record in batch]
