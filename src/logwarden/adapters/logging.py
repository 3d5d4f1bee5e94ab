"""Python logging handler adapter for logwarden.

This adapter bridges Python's standard library logging module to an
EmbeddedRuntime, so that records logged by the host application feed
alert evaluation and remote delivery as plain entries.
"""

import logging
import traceback
from typing import TYPE_CHECKING

from logwarden.core.models import PlainEntry

if TYPE_CHECKING:
    from logwarden.runtime.embedded import EmbeddedRuntime

# Records from our own loggers would loop back into the runtime
_INTERNAL_LOGGER = "logwarden"


class LogwardenHandler(logging.Handler):
    """Logging handler that submits log records to an EmbeddedRuntime.

    Example:
        ```python
        from logwarden import EmbeddedRuntime, LogwardenHandler

        runtime = EmbeddedRuntime(alert_config)
        handler = LogwardenHandler(runtime)
        logging.getLogger().addHandler(handler)
        ```
    """

    def __init__(
        self,
        runtime: "EmbeddedRuntime",
        level: int = logging.NOTSET,
        include_source: bool = True,
    ) -> None:
        """Initialize the handler with a runtime.

        Args:
            runtime: Runtime receiving the entries.
            level: Minimum level of records to forward.
            include_source: Use the logger name as the entry's source.
        """
        super().__init__(level)
        self._runtime = runtime
        self._include_source = include_source

    def emit(self, record: logging.LogRecord) -> None:
        """Convert a log record to a PlainEntry and submit it.

        Args:
            record: The log record to emit.
        """
        if record.name == _INTERNAL_LOGGER or record.name.startswith(
            _INTERNAL_LOGGER + "."
        ):
            return
        try:
            entry = PlainEntry(
                message=self._render(record),
                source=record.name if self._include_source else None,
                timestamp=record.created,
            )
        except Exception:
            self.handleError(record)
            return
        self._runtime.submit(entry)

    def _render(self, record: logging.LogRecord) -> str:
        # Level prefix lets "[ERROR] ..." reach the collector immediately
        message = f"[{record.levelname}] {record.getMessage()}"
        if record.exc_info:
            exc_type, exc_value, exc_tb = record.exc_info
            message += "\n" + "".join(
                traceback.format_exception(exc_type, exc_value, exc_tb)
            )
        return message
