"""Typed models for charger status codes and telemetry events."""

from wallbox_bridge.models._base import UNKNOWN_LABEL, WallboxBaseModel, WallboxEnum
from wallbox_bridge.models.status import (
    ChargerStatus,
    ControlPilotState,
    StateMachineState,
    cable_connected,
    describe_code,
    effective_status,
)
from wallbox_bridge.models.telemetry import (
    SensorReading,
    TelemetryBody,
    TelemetryEnvelope,
    TelemetryFrame,
    TelemetryHeader,
)

__all__ = [
    "UNKNOWN_LABEL",
    "ChargerStatus",
    "ControlPilotState",
    "SensorReading",
    "StateMachineState",
    "TelemetryBody",
    "TelemetryEnvelope",
    "TelemetryFrame",
    "TelemetryHeader",
    "WallboxBaseModel",
    "WallboxEnum",
    "cable_connected",
    "describe_code",
    "effective_status",
]
