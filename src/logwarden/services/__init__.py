"""Application services: alert evaluation and delivery."""
