"""Alert notification sinks."""

from logwarden.adapters.notify.fanout import AlertStream, NotificationFanout
from logwarden.adapters.notify.webhook import WebhookSink

__all__ = [
    "AlertStream",
    "NotificationFanout",
    "WebhookSink",
]
