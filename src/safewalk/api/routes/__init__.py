"""Route group exports."""

from . import alerts, health, navigation, routes

__all__ = ["alerts", "health", "navigation", "routes"]
