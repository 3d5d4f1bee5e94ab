"""Domain models, configuration and pure helpers."""
