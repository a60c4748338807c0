"""wallbox_bridge - Expose a Wallbox charger's local state as MQTT entities."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("wallbox-mqtt-bridge")
except PackageNotFoundError:
    __version__ = "0+local"
from wallbox_bridge.bridge import FatalErrorChannel, WallboxBridge
from wallbox_bridge.config import BridgeConfig
from wallbox_bridge.dispatcher import CommandDispatcher
from wallbox_bridge.entities import ComponentKind, Entity, EntityRegistry
from wallbox_bridge.exceptions import (
    BridgeConfigError,
    BridgeError,
    BusConnectionError,
    DataSourceError,
    EntityRegistrationError,
    TelemetryDecodeError,
)
from wallbox_bridge.ingestion.telemetry import TelemetryEventPipeline
from wallbox_bridge.ratelimit import DeltaRateLimit
from wallbox_bridge.scheduler import PollScheduler
from wallbox_bridge.state import TelemetryStore

__all__ = [
    "__version__",
    "BridgeConfig",
    "BridgeConfigError",
    "BridgeError",
    "BusConnectionError",
    "CommandDispatcher",
    "ComponentKind",
    "DataSourceError",
    "DeltaRateLimit",
    "Entity",
    "EntityRegistrationError",
    "EntityRegistry",
    "FatalErrorChannel",
    "PollScheduler",
    "TelemetryDecodeError",
    "TelemetryEventPipeline",
    "TelemetryStore",
    "WallboxBridge",
]
