"""Custom exception hierarchy for wallbox_bridge."""

from __future__ import annotations


class BridgeError(Exception):
    """Base exception for all wallbox_bridge errors."""


class BridgeConfigError(BridgeError):
    """Invalid or missing configuration."""


class EntityRegistrationError(BridgeError):
    """An entity could not be registered (e.g. empty key)."""


class DataSourceError(BridgeError):
    """Charger data source failure (Redis or SQL).

    Raised for initial connection failures and bulk refresh failures.
    Both are fatal for the bridge.
    """

    def __init__(self, message: str, *, source: str = "") -> None:
        self.source = source
        super().__init__(message)


class BusConnectionError(BridgeError):
    """MQTT broker connection could not be established or was lost."""

    def __init__(self, message: str, *, reason_code: int | None = None) -> None:
        self.reason_code = reason_code
        super().__init__(message)


class TelemetryDecodeError(BridgeError):
    """A telemetry event envelope could not be decoded.

    Recoverable: the event pipeline logs and discards the message.
    """
