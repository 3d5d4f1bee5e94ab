"""Storage adapters for entries awaiting delivery."""

from logwarden.adapters.storage.pending_queue import PendingQueue

__all__ = ["PendingQueue"]
