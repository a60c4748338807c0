"""Charger field table.

Every value the bridge tracks is declared once here as a :class:`FieldSpec`:
which store section it lives in, its identifier in that section, the key it
has in the backing Redis hash or SQL row, and its numeric type.

Telemetry events address fields by sensor id (``SENSOR_...``).
:data:`TELEMETRY_UPDATERS` maps each known sensor id to a typed update
function built from this table.
"""

from __future__ import annotations

import math
from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, Any

from wallbox_bridge._constants import TELEMETRY_FIELD_PREFIX
from wallbox_bridge.ingestion.normalize import safe_float

if TYPE_CHECKING:
    from wallbox_bridge.state.store import TelemetryStore

Number = int | float


class StoreSection(StrEnum):
    SQL = "sql"
    STATE = "state"
    M2W = "m2w"
    TELEMETRY = "telemetry"


@dataclass(frozen=True, slots=True)
class FieldSpec:
    """Declaration of one tracked charger field."""

    section: StoreSection
    name: str
    source_key: str
    kind: type[int] | type[float] = float

    @property
    def key(self) -> str:
        """Store-wide unique identifier, e.g. ``"m2w.line1_power"``."""
        return f"{self.section.value}.{self.name}"

    @property
    def sensor_id(self) -> str | None:
        """Telemetry event sensor id, ``None`` for non-telemetry fields."""
        if self.section is not StoreSection.TELEMETRY:
            return None
        return self.source_key.removeprefix(TELEMETRY_FIELD_PREFIX)

    @property
    def default(self) -> Number:
        return self.kind(0)

    def parse(self, raw: Any) -> Number:
        """Convert a raw Redis/SQL/event value to this field's type.

        Raises
        ------
        ValueError
            If *raw* is not numeric.
        """
        parsed = safe_float(raw)
        if parsed is None or math.isinf(parsed):
            raise ValueError(f"{self.key}: not a number: {raw!r}")
        if self.kind is int:
            return int(parsed)
        return parsed


def _sql(name: str, kind: type[int] | type[float] = float, source_key: str | None = None) -> FieldSpec:
    return FieldSpec(StoreSection.SQL, name, source_key or name, kind)


def _state(name: str, source_key: str, kind: type[int] | type[float] = float) -> FieldSpec:
    return FieldSpec(StoreSection.STATE, name, source_key, kind)


def _m2w(name: str, source_key: str, kind: type[int] | type[float] = float) -> FieldSpec:
    return FieldSpec(StoreSection.M2W, name, source_key, kind)


def _telemetry(name: str, sensor_id: str) -> FieldSpec:
    return FieldSpec(StoreSection.TELEMETRY, name, TELEMETRY_FIELD_PREFIX + sensor_id, float)


SQL_FIELDS: tuple[FieldSpec, ...] = (
    _sql("lock", int),
    _sql("charging_enable", int),
    _sql("max_charging_current", int),
    _sql("halo_brightness", int),
    _sql("cumulative_added_energy"),
    _sql("added_range"),
)

STATE_FIELDS: tuple[FieldSpec, ...] = (
    _state("session_state", "session.state", int),
    _state("control_pilot", "ctrlPilot", int),
    _state("s2_open", "S2open", int),
    _state("schedule_energy", "scheduleEnergy"),
)

M2W_FIELDS: tuple[FieldSpec, ...] = (
    _m2w("charger_status", "tms.charger_status", int),
    _m2w("line1_power", "tms.line1.power_watt.value"),
    _m2w("line2_power", "tms.line2.power_watt.value"),
    _m2w("line3_power", "tms.line3.power_watt.value"),
    _m2w("line1_current", "tms.line1.current_amp.value"),
    _m2w("line2_current", "tms.line2.current_amp.value"),
    _m2w("line3_current", "tms.line3.current_amp.value"),
    _m2w("power_boost_line1_power", "PBO.line1.power.value"),
    _m2w("power_boost_line2_power", "PBO.line2.power.value"),
    _m2w("power_boost_line3_power", "PBO.line3.power.value"),
    _m2w("power_boost_line1_current", "PBO.line1.current.value"),
    _m2w("power_boost_line2_current", "PBO.line2.current.value"),
    _m2w("power_boost_line3_current", "PBO.line3.current.value"),
    _m2w("power_boost_cumulative_energy", "PBO.energy_wh.value"),
    _m2w("temp_l1", "tms.line1.temp_deg.value"),
    _m2w("temp_l2", "tms.line2.temp_deg.value"),
    _m2w("temp_l3", "tms.line3.temp_deg.value"),
)

TELEMETRY_FIELDS: tuple[FieldSpec, ...] = (
    # Power and current
    _telemetry("icp_max_current", "SENSOR_ICP_MAX_CURRENT"),
    _telemetry("internal_meter_current_l1", "SENSOR_INTERNAL_METER_CURRENT_L1"),
    _telemetry("internal_meter_current_l2", "SENSOR_INTERNAL_METER_CURRENT_L2"),
    _telemetry("internal_meter_current_l3", "SENSOR_INTERNAL_METER_CURRENT_L3"),
    _telemetry("max_available_current", "SENSOR_MAX_AVAILABLE_CURRENT"),
    _telemetry("user_current_proposal", "SENSOR_USER_CURRENT_PROPOSAL"),
    _telemetry("dynamic_power_sharing_max_current", "SENSOR_DYNAMIC_POWER_SHARING_MAX_CURRENT"),
    # Voltage
    _telemetry("internal_meter_voltage_l1", "SENSOR_INTERNAL_METER_VOLTAGE_L1"),
    _telemetry("internal_meter_voltage_l2", "SENSOR_INTERNAL_METER_VOLTAGE_L2"),
    _telemetry("internal_meter_voltage_l3", "SENSOR_INTERNAL_METER_VOLTAGE_L3"),
    _telemetry("internal_meter_voltage_filter_status", "SENSOR_INTERNAL_METER_VOLTAGE_FILTER_STATUS"),
    _telemetry("control_pilot_high_tenths_of_volts", "SENSOR_CONTROL_PILOT_HIGH_TENTHS_OF_VOLTS"),
    _telemetry("control_pilot_low_tenths_of_volts", "SENSOR_CONTROL_PILOT_LOW_TENTHS_OF_VOLTS"),
    # Energy
    _telemetry("internal_meter_energy", "SENSOR_INTERNAL_METER_ENERGY"),
    _telemetry("ecosmart_green_energy", "SENSOR_ECOSMART_GREEN_ENERGY"),
    _telemetry("ecosmart_energy_total", "SENSOR_ECOSMART_ENERGY_TOTAL"),
    # EcoSmart
    _telemetry("ecosmart_mode", "SENSOR_ECOSMART_MODE"),
    _telemetry("ecosmart_status", "SENSOR_ECOSMART_STATUS"),
    _telemetry("ecosmart_current_proposal", "SENSOR_ECOSMART_CURRENT_PROPOSAL"),
    _telemetry("internal_meter_frequency", "SENSOR_INTERNAL_METER_FREQUENCY"),
    # Schedule and PowerBoost
    _telemetry("schedule_status", "SENSOR_SCHEDULE_STATUS"),
    _telemetry("schedule_current_proposal", "SENSOR_SCHEDULE_CURRENT_PROPOSAL"),
    _telemetry("powerboost_status", "SENSOR_DCA_POWERBOOST_STATUS"),
    _telemetry("powerboost_proposal_current", "SENSOR_POWERBOOST_PROPOSAL_CURRENT"),
    # Tracked but not exposed as entities yet
    _telemetry("charging_enable", "SENSOR_CHARGING_ENABLE"),
    _telemetry("control_pilot_duty", "SENSOR_CONTROL_PILOT_DUTY"),
    _telemetry("control_pilot_status", "SENSOR_CONTROL_PILOT_STATUS"),
    _telemetry("max_charging_current", "SENSOR_MAX_CHARGING_CURRENT"),
    _telemetry("mid_status", "SENSOR_MID_STATUS"),
    _telemetry("power_sharing_status", "SENSOR_POWER_SHARING_STATUS"),
    _telemetry("temp_l1", "SENSOR_TEMP_L1"),
    _telemetry("temp_l2", "SENSOR_TEMP_L2"),
    _telemetry("temp_l3", "SENSOR_TEMP_L3"),
    _telemetry("welding", "SENSOR_WELDING"),
    _telemetry("firmware_error", "SENSOR_FIRMWARE_ERROR"),
    _telemetry("power_relay_management_command", "SENSOR_POWER_RELAY_MANAGEMENT_COMMAND"),
)

ALL_FIELDS: tuple[FieldSpec, ...] = SQL_FIELDS + STATE_FIELDS + M2W_FIELDS + TELEMETRY_FIELDS

FIELDS_BY_SECTION: dict[StoreSection, tuple[FieldSpec, ...]] = {
    StoreSection.SQL: SQL_FIELDS,
    StoreSection.STATE: STATE_FIELDS,
    StoreSection.M2W: M2W_FIELDS,
    StoreSection.TELEMETRY: TELEMETRY_FIELDS,
}

TelemetryUpdater = Callable[["TelemetryStore", float], None]


def _make_updater(spec: FieldSpec) -> TelemetryUpdater:
    def update(store: TelemetryStore, value: float) -> None:
        store.set(spec, value)

    return update


TELEMETRY_UPDATERS: dict[str, TelemetryUpdater] = {
    spec.sensor_id: _make_updater(spec) for spec in TELEMETRY_FIELDS if spec.sensor_id is not None
}
