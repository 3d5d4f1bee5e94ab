"""Runtime wiring shared by instrumentation hooks."""

from logwarden.runtime.embedded import EmbeddedRuntime

__all__ = ["EmbeddedRuntime"]
