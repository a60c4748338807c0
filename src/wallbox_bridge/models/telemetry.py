"""Telemetry event envelope model.

The charger firmware publishes telemetry events on the
``/wbx/telemetry/events`` Redis channel as JSON::

    {
      "header": {"message_id": "...", "source": "...", "timestamp": "..."},
      "body": {"sensors": [{"id": "SENSOR_...", "metadata": [], "timestamp": "...", "value": 1.0}]}
    }
"""

from __future__ import annotations

from typing import Any

from pydantic import Field

from wallbox_bridge.models._base import WallboxBaseModel


class TelemetryHeader(WallboxBaseModel):
    message_id: str = ""
    source: str = ""
    timestamp: str = ""


class SensorReading(WallboxBaseModel):
    """A single sensor reading inside an event body."""

    id: str
    metadata: list[Any] = Field(default_factory=list)
    timestamp: str = ""
    value: float = 0.0


class TelemetryBody(WallboxBaseModel):
    sensors: list[SensorReading] = Field(default_factory=list)


class TelemetryEnvelope(WallboxBaseModel):
    """Decoded ``/wbx/telemetry/events`` message."""

    header: TelemetryHeader = Field(default_factory=TelemetryHeader)
    body: TelemetryBody = Field(default_factory=TelemetryBody)


class TelemetryFrame(WallboxBaseModel):
    """One sensor reading, flattened out of an envelope and applied immediately."""

    sensor_id: str
    value: float
    timestamp: str = ""

    @classmethod
    def from_reading(cls, reading: SensorReading) -> TelemetryFrame:
        return cls(sensor_id=reading.id, value=reading.value, timestamp=reading.timestamp)
