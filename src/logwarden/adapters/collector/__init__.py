"""Collector adapters implementing CollectorPort."""

from logwarden.adapters.collector.http import HttpCollector, build_headers
from logwarden.adapters.collector.in_memory import InMemoryCollector

__all__ = [
    "HttpCollector",
    "InMemoryCollector",
    "build_headers",
]
