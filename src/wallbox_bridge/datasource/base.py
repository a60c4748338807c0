"""Data source boundary.

The bridge reads and controls the charger through this protocol. The
production implementation talks to the charger's local Redis and MySQL
(:mod:`wallbox_bridge.datasource.wallbox`); tests use in-memory fakes.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Protocol

from wallbox_bridge.state.store import TelemetryStore

TelemetryHandler = Callable[[str], None]


class Subscription(Protocol):
    """Handle of a running telemetry subscription."""

    def stop(self) -> None: ...


class WallboxDataSource(Protocol):
    def refresh(self, store: TelemetryStore) -> None:
        """Bulk-refresh the SQL, ``state`` and ``m2w`` sections.

        Raises
        ------
        DataSourceError
            If any backing store cannot be read.
        """
        ...

    def refresh_telemetry(self, store: TelemetryStore) -> None:
        """Seed the telemetry section. Failures are logged, never raised."""
        ...

    def serial_number(self) -> str: ...

    def available_current(self) -> int: ...

    def set_locked(self, payload: str) -> None: ...

    def set_charging_enable(self, payload: str) -> None: ...

    def set_max_charging_current(self, payload: str) -> None: ...

    def set_halo_brightness(self, payload: str) -> None: ...

    def subscribe_telemetry(self, handler: TelemetryHandler) -> Subscription:
        """Deliver raw telemetry event payloads to *handler* on a listener thread."""
        ...

    def close(self) -> None: ...
