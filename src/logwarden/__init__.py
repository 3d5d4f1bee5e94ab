"""logwarden: in-process alerting and batched log delivery.

Instrumentation hooks hand entries to an EmbeddedRuntime, which evaluates
them against alert rules and ships them to a remote collector.
"""

from logwarden.adapters.collector.http import HttpCollector
from logwarden.adapters.collector.in_memory import InMemoryCollector
from logwarden.adapters.logging import LogwardenHandler
from logwarden.core.config import AlertConfig, CollectorIdentity, DeliveryConfig
from logwarden.core.entries import database, navigation, network, plain
from logwarden.core.errors import (
    ConfigError,
    LogwardenError,
    NetworkError,
    ValidationError,
)
from logwarden.core.models import (
    AlertNotification,
    AlertRule,
    AlertSeverity,
    AlertType,
    DatabaseEntry,
    Entry,
    EntryKind,
    NavigationAction,
    NavigationEntry,
    NetworkEntry,
    PlainEntry,
)
from logwarden.core.rules import PREDEFINED_RULES
from logwarden.runtime.embedded import EmbeddedRuntime
from logwarden.services.alerts import AlertEngine
from logwarden.services.delivery import (
    DeliveryPipeline,
    DeliveryResult,
    PipelineState,
)

__all__ = [
    # Runtime
    "EmbeddedRuntime",
    "AlertEngine",
    "DeliveryPipeline",
    "DeliveryResult",
    "PipelineState",
    # Configuration
    "AlertConfig",
    "CollectorIdentity",
    "DeliveryConfig",
    "PREDEFINED_RULES",
    # Models
    "AlertNotification",
    "AlertRule",
    "AlertSeverity",
    "AlertType",
    "DatabaseEntry",
    "Entry",
    "EntryKind",
    "NavigationAction",
    "NavigationEntry",
    "NetworkEntry",
    "PlainEntry",
    # Entry helpers
    "database",
    "navigation",
    "network",
    "plain",
    # Errors
    "ConfigError",
    "LogwardenError",
    "NetworkError",
    "ValidationError",
    # Adapters
    "HttpCollector",
    "InMemoryCollector",
    "LogwardenHandler",
]
