"""Entity sets exposed by the bridge.

The registry is assembled from feature-gated sets: the base set is always
present, the diagnostic and telemetry-event sets are added with
``debug_sensors`` and the power boost set with ``power_boost_enabled``.
Sets are folded in that order; a later set overrides earlier entities with
the same key.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

from wallbox_bridge.config import BridgeConfig
from wallbox_bridge.datasource.base import WallboxDataSource
from wallbox_bridge.entities.entity import ComponentKind, Entity, ReadAccessor, Value
from wallbox_bridge.entities.registry import EntityRegistry
from wallbox_bridge.models.status import (
    ControlPilotState,
    StateMachineState,
    cable_connected,
    describe_code,
    effective_status,
)
from wallbox_bridge.ratelimit import DeltaRateLimit
from wallbox_bridge.state.fields import StoreSection
from wallbox_bridge.state.store import TelemetryStore

_logger = logging.getLogger(__name__)

Clock = Callable[[], float]
EntitySet = dict[str, Entity]

SQL = StoreSection.SQL
STATE = StoreSection.STATE
M2W = StoreSection.M2W
TELEMETRY = StoreSection.TELEMETRY

# (min interval seconds, min delta) per measured quantity
_POWER_LIMIT = (10.0, 100.0)
_CURRENT_LIMIT = (10.0, 0.2)
_VOLTAGE_LIMIT = (10.0, 2.0)
_ENERGY_LIMIT = (10.0, 50.0)


# ------------------------------------------------------------------
# Read accessors
# ------------------------------------------------------------------


def field_reader(section: StoreSection, name: str) -> ReadAccessor:
    def read(store: TelemetryStore) -> Value:
        return store.get(section, name)

    return read


def sum_reader(section: StoreSection, *names: str) -> ReadAccessor:
    def read(store: TelemetryStore) -> Value:
        return sum(store.get(section, name) for name in names)

    return read


def scaled_reader(section: StoreSection, name: str, divisor: float) -> ReadAccessor:
    def read(store: TelemetryStore) -> Value:
        return store.get(section, name) / divisor

    return read


def _effective_status(store: TelemetryStore) -> Value:
    return effective_status(store.get(M2W, "charger_status"), store.get(STATE, "session_state"))


def _cable_connected(store: TelemetryStore) -> Value:
    return cable_connected(store.get(M2W, "charger_status"))


def _control_pilot_status(store: TelemetryStore) -> Value:
    return describe_code(ControlPilotState, store.get(STATE, "control_pilot"))


def _state_machine_state(store: TelemetryStore) -> Value:
    return describe_code(StateMachineState, store.get(STATE, "session_state"))


# ------------------------------------------------------------------
# Metadata helpers
# ------------------------------------------------------------------


def _measurement(name: str, device_class: str, unit: str, **extra: str) -> dict[str, str]:
    config = {
        "name": name,
        "device_class": device_class,
        "unit_of_measurement": unit,
        "state_class": "measurement",
        "suggested_display_precision": "1",
    }
    config.update(extra)
    return config


def _energy_total(name: str, state_class: str = "total_increasing", **extra: str) -> dict[str, str]:
    return _measurement(name, "energy", "Wh", state_class=state_class, **extra)


def _limit(limits: tuple[float, float], clock: Clock) -> DeltaRateLimit:
    interval, delta = limits
    return DeltaRateLimit(interval, delta, clock=clock)


def _sensor(
    key: str,
    read: ReadAccessor,
    config: dict[str, str],
    *,
    rate_limit: DeltaRateLimit | None = None,
) -> Entity:
    return Entity(key=key, component=ComponentKind.SENSOR, read=read, rate_limit=rate_limit, config=config)


# ------------------------------------------------------------------
# Entity sets
# ------------------------------------------------------------------


def base_entities(source: WallboxDataSource, *, clock: Clock = time.monotonic) -> EntitySet:
    """Entities exposed on every charger."""
    entities: list[Entity] = [
        _sensor(
            "added_energy",
            field_reader(STATE, "schedule_energy"),
            _energy_total("Added energy", state_class="total"),
            rate_limit=_limit(_ENERGY_LIMIT, clock),
        ),
        _sensor(
            "added_range",
            field_reader(SQL, "added_range"),
            _measurement(
                "Added range",
                "distance",
                "km",
                state_class="total",
                icon="mdi:map-marker-distance",
            ),
        ),
        Entity(
            key="cable_connected",
            component=ComponentKind.BINARY_SENSOR,
            read=_cable_connected,
            config={
                "name": "Cable connected",
                "payload_on": "1",
                "payload_off": "0",
                "icon": "mdi:ev-plug-type1",
                "device_class": "plug",
            },
        ),
        Entity(
            key="charging_enable",
            component=ComponentKind.SWITCH,
            read=field_reader(SQL, "charging_enable"),
            write=source.set_charging_enable,
            config={
                "name": "Charging enable",
                "payload_on": "1",
                "payload_off": "0",
                "icon": "mdi:ev-station",
            },
        ),
        _sensor(
            "charging_power",
            sum_reader(M2W, "line1_power", "line2_power", "line3_power"),
            _measurement("Charging power", "power", "W"),
            rate_limit=_limit(_POWER_LIMIT, clock),
        ),
    ]
    for line in (1, 2, 3):
        entities.append(
            _sensor(
                f"charging_power_l{line}",
                field_reader(M2W, f"line{line}_power"),
                _measurement(f"Charging power L{line}", "power", "W"),
                rate_limit=_limit(_POWER_LIMIT, clock),
            )
        )
    for line in (1, 2, 3):
        entities.append(
            _sensor(
                f"charging_current_l{line}",
                field_reader(M2W, f"line{line}_current"),
                _measurement(f"Charging current L{line}", "current", "A"),
                rate_limit=_limit(_CURRENT_LIMIT, clock),
            )
        )
    entities += [
        _sensor(
            "cumulative_added_energy",
            field_reader(SQL, "cumulative_added_energy"),
            _energy_total("Cumulative added energy"),
        ),
        Entity(
            key="halo_brightness",
            component=ComponentKind.NUMBER,
            read=field_reader(SQL, "halo_brightness"),
            write=source.set_halo_brightness,
            config={
                "name": "Halo Brightness",
                "min": "0",
                "max": "100",
                "icon": "mdi:brightness-percent",
                "unit_of_measurement": "%",
                "entity_category": "config",
            },
        ),
        Entity(
            key="lock",
            component=ComponentKind.LOCK,
            read=field_reader(SQL, "lock"),
            write=source.set_locked,
            config={
                "name": "Lock",
                "payload_lock": "1",
                "payload_unlock": "0",
                "state_locked": "1",
                "state_unlocked": "0",
            },
        ),
        Entity(
            key="max_charging_current",
            component=ComponentKind.NUMBER,
            read=field_reader(SQL, "max_charging_current"),
            write=source.set_max_charging_current,
            config={
                "name": "Max charging current",
                "min": "6",
                "max": str(source.available_current()),
                "unit_of_measurement": "A",
                "device_class": "current",
            },
        ),
        _sensor("status", _effective_status, {"name": "Status"}),
    ]
    for line in (1, 2, 3):
        entities.append(
            _sensor(
                f"temp_l{line}",
                field_reader(M2W, f"temp_l{line}"),
                _measurement(f"Temperature Line {line}", "temperature", "°C"),
            )
        )
    return {entity.key: entity for entity in entities}


def debug_entities() -> EntitySet:
    """Diagnostic entities for the charger's internal state machine."""
    entities = [
        _sensor("control_pilot", _control_pilot_status, {"name": "Control pilot"}),
        _sensor("m2w_status", field_reader(M2W, "charger_status"), {"name": "M2W Status"}),
        _sensor("state_machine_state", _state_machine_state, {"name": "State machine"}),
        _sensor("s2_open", field_reader(STATE, "s2_open"), {"name": "S2 open"}),
    ]
    return {entity.key: entity for entity in entities}


def telemetry_event_entities(*, clock: Clock = time.monotonic) -> EntitySet:
    """Entities backed by the asynchronous telemetry event stream."""
    entities: list[Entity] = [
        _sensor(
            "icp_max_current",
            field_reader(TELEMETRY, "icp_max_current"),
            _measurement("ICP Max Current", "current", "A"),
        ),
    ]
    for line in (1, 2, 3):
        extra = {"icon": "mdi:leaf"} if line == 3 else {}
        entities.append(
            _sensor(
                f"internal_meter_current_l{line}",
                field_reader(TELEMETRY, f"internal_meter_current_l{line}"),
                _measurement(f"Internal Meter Current L{line}", "current", "A", **extra),
                rate_limit=_limit(_CURRENT_LIMIT, clock),
            )
        )
    entities.append(
        _sensor(
            "user_current_proposal",
            field_reader(TELEMETRY, "user_current_proposal"),
            _measurement("User Current Proposal", "current", "A"),
        )
    )
    for line in (1, 2, 3):
        entities.append(
            _sensor(
                f"internal_meter_voltage_l{line}",
                field_reader(TELEMETRY, f"internal_meter_voltage_l{line}"),
                _measurement(f"Internal Meter Voltage L{line}", "voltage", "V"),
                rate_limit=_limit(_VOLTAGE_LIMIT, clock),
            )
        )
    entities += [
        # The firmware reports control pilot levels in tenths of volts.
        _sensor(
            "control_pilot_high_voltage",
            scaled_reader(TELEMETRY, "control_pilot_high_tenths_of_volts", 10.0),
            _measurement("Control Pilot High Voltage", "voltage", "V"),
        ),
        _sensor(
            "control_pilot_low_voltage",
            scaled_reader(TELEMETRY, "control_pilot_low_tenths_of_volts", 10.0),
            _measurement("Control Pilot Low Voltage", "voltage", "V"),
        ),
        _sensor(
            "internal_meter_energy",
            field_reader(TELEMETRY, "internal_meter_energy"),
            _energy_total("Internal Meter Energy"),
        ),
        _sensor(
            "ecosmart_green_energy",
            field_reader(TELEMETRY, "ecosmart_green_energy"),
            _energy_total("EcoSmart Green Energy", icon="mdi:leaf"),
        ),
        _sensor(
            "ecosmart_energy_total",
            field_reader(TELEMETRY, "ecosmart_energy_total"),
            _energy_total("EcoSmart Total Energy"),
        ),
        _sensor(
            "ecosmart_mode",
            field_reader(TELEMETRY, "ecosmart_mode"),
            {"name": "EcoSmart Mode", "icon": "mdi:leaf"},
        ),
        _sensor(
            "ecosmart_status",
            field_reader(TELEMETRY, "ecosmart_status"),
            {"name": "EcoSmart Status", "icon": "mdi:leaf"},
        ),
        _sensor(
            "ecosmart_current_proposal",
            field_reader(TELEMETRY, "ecosmart_current_proposal"),
            _measurement("EcoSmart Current Proposal", "current", "A", icon="mdi:leaf"),
        ),
        _sensor(
            "internal_meter_frequency",
            field_reader(TELEMETRY, "internal_meter_frequency"),
            _measurement("Internal Meter Frequency", "frequency", "Hz"),
        ),
        _sensor(
            "schedule_status",
            field_reader(TELEMETRY, "schedule_status"),
            {"name": "Schedule Status", "icon": "mdi:calendar-clock"},
        ),
        _sensor(
            "schedule_current_proposal",
            field_reader(TELEMETRY, "schedule_current_proposal"),
            _measurement("Schedule Current Proposal", "current", "A", icon="mdi:calendar-clock"),
        ),
        _sensor(
            "powerboost_status",
            field_reader(TELEMETRY, "powerboost_status"),
            {"name": "PowerBoost Status"},
        ),
        _sensor(
            "powerboost_proposal_current",
            field_reader(TELEMETRY, "powerboost_proposal_current"),
            _measurement("PowerBoost Current Proposal", "current", "A"),
        ),
    ]
    return {entity.key: entity for entity in entities}


def power_boost_entities(*, clock: Clock = time.monotonic) -> EntitySet:
    """Entities for chargers paired with a Power Boost meter."""
    entities: list[Entity] = []
    for line in (1, 2, 3):
        entities.append(
            _sensor(
                f"power_boost_power_l{line}",
                field_reader(M2W, f"power_boost_line{line}_power"),
                _measurement(f"Power Boost L{line}", "power", "W"),
                rate_limit=_limit(_POWER_LIMIT, clock),
            )
        )
    for line in (1, 2, 3):
        entities.append(
            _sensor(
                f"power_boost_current_l{line}",
                field_reader(M2W, f"power_boost_line{line}_current"),
                _measurement(f"Power Boost current L{line}", "current", "A"),
                rate_limit=_limit(_CURRENT_LIMIT, clock),
            )
        )
    entities.append(
        _sensor(
            "power_boost_cumulative_added_energy",
            field_reader(M2W, "power_boost_cumulative_energy"),
            _energy_total("Power Boost Cumulative added energy"),
        )
    )
    return {entity.key: entity for entity in entities}


def build_registry(
    source: WallboxDataSource,
    config: BridgeConfig,
    *,
    clock: Clock = time.monotonic,
) -> EntityRegistry:
    """Assemble the registry for *config*'s feature flags."""
    registry = EntityRegistry()
    registry.merge(base_entities(source, clock=clock))
    if config.debug_sensors:
        registry.merge(debug_entities())
        registry.merge(telemetry_event_entities(clock=clock))
    if config.power_boost_enabled:
        registry.merge(power_boost_entities(clock=clock))
    _logger.info(
        "Entity registry built entities=%d debug=%s power_boost=%s",
        len(registry),
        config.debug_sensors,
        config.power_boost_enabled,
    )
    return registry
