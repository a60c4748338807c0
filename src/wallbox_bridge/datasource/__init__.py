"""Charger data sources."""

from wallbox_bridge.datasource.base import Subscription, TelemetryHandler, WallboxDataSource

__all__ = [
    "Subscription",
    "TelemetryHandler",
    "WallboxDataSource",
]
