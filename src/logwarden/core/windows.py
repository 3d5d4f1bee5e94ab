"""Rolling per-endpoint failure windows.

Each (rule id, normalized endpoint) pair owns a deque of failure
timestamps. Timestamps older than ``now - window`` are discarded on every
insert and every read, so a window never reports stale failures.

FailureWindowTracker is not thread-safe; the alert engine serializes access.
"""

from collections import deque
from urllib.parse import urlsplit


def normalize_endpoint(url: str) -> str:
    """Reduce a URL to scheme://host/path for failure grouping.

    Query strings, fragments and ports are dropped so that
    ``https://api.x.com/a?x=1`` and ``https://api.x.com:8443/a?y=2``
    count against the same endpoint. Input that does not parse as an
    absolute URL, including one with an invalid port, is returned
    unchanged.

    Args:
        url: Request URL as seen by the network hook.

    Returns:
        Normalized endpoint key.
    """
    try:
        parts = urlsplit(url)
        # urlsplit only validates the port when it is read
        has_port = parts.port is not None
    except ValueError:
        return url
    if not parts.scheme or not (parts.hostname or has_port):
        return url
    return f"{parts.scheme}://{parts.hostname or ''}{parts.path}"


def _trim(window: deque[float], cutoff: float) -> None:
    while window and window[0] < cutoff:
        window.popleft()


class FailureWindowTracker:
    """Failure timestamps grouped by rule and endpoint."""

    def __init__(self) -> None:
        self._windows: dict[tuple[str, str], deque[float]] = {}

    def record(
        self, rule_id: str, endpoint: str, now: float, window_seconds: float
    ) -> int:
        """Add a failure at ``now`` and return the trimmed window size.

        Args:
            rule_id: Rule the failure counts against.
            endpoint: Normalized endpoint.
            now: Unix timestamp of the failure.
            window_seconds: Window length of the rule.

        Returns:
            Number of failures within [now - window_seconds, now].
        """
        window = self._windows.setdefault((rule_id, endpoint), deque())
        _trim(window, now - window_seconds)
        window.append(now)
        return len(window)

    def count(
        self, rule_id: str, endpoint: str, now: float, window_seconds: float
    ) -> int:
        """Return the number of failures still inside the window."""
        window = self._windows.get((rule_id, endpoint))
        if window is None:
            return 0
        _trim(window, now - window_seconds)
        return len(window)

    def endpoints(self) -> set[str]:
        return {endpoint for _, endpoint in self._windows}

    def rules_for(self, endpoint: str) -> list[str]:
        return [rule_id for rule_id, key in self._windows if key == endpoint]

    def clear_endpoint(self, endpoint: str) -> None:
        """Forget failures for ``endpoint`` under every rule."""
        for key in [key for key in self._windows if key[1] == endpoint]:
            del self._windows[key]

    def clear(self) -> None:
        self._windows.clear()
