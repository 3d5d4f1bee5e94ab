"""In-process runtime combining the alert engine and the delivery pipeline.

The runtime is the single ingestion point for instrumentation hooks:
every entry handed to ``submit`` is evaluated by the AlertEngine and,
independently, queued by the DeliveryPipeline. A failure in one path
never affects the other, and nothing raised inside either reaches the
producer.
"""

import asyncio
import logging
import time
from collections.abc import Callable, Iterable
from types import TracebackType
from typing import Any

from logwarden.adapters.collector.http import HttpCollector
from logwarden.adapters.notify.fanout import (
    DEFAULT_STREAM_BUFFER,
    AlertStream,
    Listener,
)
from logwarden.core import entries
from logwarden.core.config import AlertConfig, DeliveryConfig
from logwarden.core.errors import ConfigError
from logwarden.core.models import (
    AlertNotification,
    AlertRule,
    DatabaseEntry,
    Entry,
    NavigationAction,
    NavigationEntry,
    NetworkEntry,
    PlainEntry,
)
from logwarden.core.ports import CollectorPort
from logwarden.core.rules import DEFAULT_CRASH_KEYWORDS
from logwarden.services.alerts import AlertEngine
from logwarden.services.delivery import DeliveryPipeline, DeliveryResult

logger = logging.getLogger(__name__)


class EmbeddedRuntime:
    """Shared instance that producers hand their entries to.

    Create one runtime per application and pass it to every hook. Use it
    as an async context manager, or call ``start`` and ``aclose``
    explicitly, so that network work has an event loop to run on.

    Example:
        ```python
        runtime = EmbeddedRuntime(
            AlertConfig(rules=PREDEFINED_RULES, on_alert=print),
            DeliveryConfig.production(url, key, CollectorIdentity(user_id="u1")),
        )
        async with runtime:
            runtime.network("GET", "https://api.x.com/users", status_code=503)
            runtime.log("checkout finished", source="cart")
        ```
    """

    def __init__(
        self,
        alert_config: AlertConfig | None = None,
        delivery_config: DeliveryConfig | None = None,
        collector: CollectorPort | None = None,
        clock: Callable[[], float] = time.time,
        crash_keywords: Iterable[str] = DEFAULT_CRASH_KEYWORDS,
    ) -> None:
        """Initialize the runtime.

        Args:
            alert_config: Alert settings; alerting runs with no rules if omitted.
            delivery_config: Collector settings; delivery is off if omitted
                or invalid.
            collector: Destination of batches, overriding the HttpCollector
                built from ``delivery_config``.
            clock: Source of "now" for alert windows and cooldowns.
            crash_keywords: Substrings treated as crash markers.
        """
        self.engine = AlertEngine(
            alert_config or AlertConfig(), clock=clock, crash_keywords=crash_keywords
        )
        self._custom_collector = collector
        self._started = False
        self.pipeline = self._build_pipeline(delivery_config)

    def _build_pipeline(
        self, config: DeliveryConfig | None
    ) -> DeliveryPipeline | None:
        if config is None:
            return None
        try:
            config.validate()
        except ConfigError as exc:
            logger.error("Remote delivery disabled, invalid configuration: %s", exc)
            return None
        return DeliveryPipeline(config, collector=self._custom_collector)

    @property
    def delivery_enabled(self) -> bool:
        return self.pipeline is not None

    # ------------------------------------------------------------------
    # Ingestion
    # ------------------------------------------------------------------

    def submit(self, entry: Entry) -> None:
        """Route an entry to alert evaluation and delivery; never raises."""
        try:
            self.engine.ingest(entry)
        except Exception:
            logger.exception("Alert evaluation failed")
        if self.pipeline is None:
            return
        try:
            self.pipeline.enqueue(entry)
        except Exception:
            logger.exception("Queuing entry for delivery failed")

    def log(self, message: object, source: str | None = None) -> PlainEntry:
        """Record a plain message."""
        entry = entries.plain(message, source=source)
        self.submit(entry)
        return entry

    def network(
        self,
        method: str,
        url: str,
        status_code: int | None = None,
        sent_at: float | None = None,
        received_at: float | None = None,
        **fields: Any,
    ) -> NetworkEntry:
        """Record a completed HTTP exchange."""
        entry = entries.network(
            method,
            url,
            status_code=status_code,
            sent_at=sent_at,
            received_at=received_at,
            **fields,
        )
        self.submit(entry)
        return entry

    def navigation(
        self,
        action: NavigationAction | str,
        route_name: str | None = None,
        previous_route: str | None = None,
        arguments: Any = None,
        previous_arguments: Any = None,
    ) -> NavigationEntry:
        """Record a route transition."""
        entry = entries.navigation(
            action,
            route_name=route_name,
            previous_route=previous_route,
            arguments=arguments,
            previous_arguments=previous_arguments,
        )
        self.submit(entry)
        return entry

    def database(self, target: str, value: Any, source: str) -> DatabaseEntry:
        """Record a storage write."""
        entry = entries.database(target, value, source)
        self.submit(entry)
        return entry

    # ------------------------------------------------------------------
    # Alerts
    # ------------------------------------------------------------------

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        return self.engine.subscribe(listener)

    def alert_stream(self, buffer_size: int = DEFAULT_STREAM_BUFFER) -> AlertStream:
        return self.engine.stream(buffer_size)

    @property
    def recent_alerts(self) -> tuple[AlertNotification, ...]:
        return self.engine.recent_alerts

    def failure_counts(self) -> dict[str, int]:
        return self.engine.all_failure_counts()

    def clear_failures(self, endpoint: str) -> None:
        self.engine.clear_failures(endpoint)

    def update_rules(self, rules: Iterable[AlertRule]) -> None:
        self.engine.update_rules(rules)

    async def update_alert_config(self, config: AlertConfig) -> None:
        await self.engine.reconfigure(config)

    # ------------------------------------------------------------------
    # Delivery
    # ------------------------------------------------------------------

    @property
    def pending_count(self) -> int:
        return self.pipeline.pending_count if self.pipeline is not None else 0

    async def flush_now(self) -> DeliveryResult:
        """Send all queued entries now."""
        if self.pipeline is None:
            return DeliveryResult(ok=True)
        return await self.pipeline.flush_now()

    def set_online(self, online: bool) -> None:
        if self.pipeline is not None:
            self.pipeline.set_online(online)

    async def update_delivery_config(self, config: DeliveryConfig) -> None:
        """Apply new delivery settings, keeping entries already queued.

        An invalid configuration is logged and the current one stays active.
        """
        try:
            config.validate()
        except ConfigError as exc:
            logger.error("Delivery configuration rejected: %s", exc)
            return
        if self.pipeline is None:
            self.pipeline = DeliveryPipeline(config, collector=self._custom_collector)
            if self._started:
                await self.pipeline.start()
            return
        if self._custom_collector is None:
            self.pipeline.reconfigure(config, collector=HttpCollector(config))
        else:
            self.pipeline.reconfigure(config)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Bind background work to the running event loop."""
        self.engine.bind(asyncio.get_running_loop())
        if self.pipeline is not None:
            await self.pipeline.start()
        self._started = True

    async def aclose(self) -> None:
        """Stop background work, close connections and end alert streams."""
        if self.pipeline is not None:
            await self.pipeline.aclose()
        await self.engine.aclose()
        self._started = False

    async def __aenter__(self) -> "EmbeddedRuntime":
        await self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()
