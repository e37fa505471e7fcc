"""Route group exports."""

from . import health, routes, subscriptions

__all__ = ["health", "routes", "subscriptions"]
