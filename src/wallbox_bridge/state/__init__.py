"""State layer.

Holds the live charger snapshot that both the poll loop and the telemetry
event pipeline write to, and the table of fields it tracks.
"""

from wallbox_bridge.state.fields import (
    ALL_FIELDS,
    TELEMETRY_UPDATERS,
    FieldSpec,
    StoreSection,
)
from wallbox_bridge.state.store import TelemetryStore

__all__ = [
    "ALL_FIELDS",
    "TELEMETRY_UPDATERS",
    "FieldSpec",
    "StoreSection",
    "TelemetryStore",
]
