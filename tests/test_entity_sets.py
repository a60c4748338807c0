from __future__ import annotations

import pytest

from wallbox_bridge.config import BridgeConfig
from wallbox_bridge.entities import ComponentKind, format_value
from wallbox_bridge.entities.sets import (
    base_entities,
    build_registry,
    debug_entities,
    power_boost_entities,
    telemetry_event_entities,
)
from wallbox_bridge.state import StoreSection, TelemetryStore


@pytest.mark.parametrize(
    ("value", "expected"),
    [(250.0, "250"), (0.0, "0"), (231.4, "231.4"), (7, "7"), (-3.0, "-3"), ("Ready", "Ready"), (True, "1")],
)
def test_format_value(value: object, expected: str) -> None:
    assert format_value(value) == expected  # type: ignore[arg-type]


def test_base_set_keys(source) -> None:
    keys = list(base_entities(source))

    assert keys[:5] == ["added_energy", "added_range", "cable_connected", "charging_enable", "charging_power"]
    assert {"lock", "max_charging_current", "halo_brightness", "status", "temp_l3"} <= set(keys)


def test_writable_entities_are_the_control_ones(source) -> None:
    writable = {key for key, entity in base_entities(source).items() if entity.writable}
    assert writable == {"charging_enable", "halo_brightness", "lock", "max_charging_current"}


def test_max_charging_current_range_uses_available_current(source) -> None:
    source.current_limit = 40
    entity = base_entities(source)["max_charging_current"]

    assert entity.component is ComponentKind.NUMBER
    assert entity.config["min"] == "6"
    assert entity.config["max"] == "40"


def test_rate_limits_per_quantity(source) -> None:
    entities = {**base_entities(source), **telemetry_event_entities(), **power_boost_entities()}

    def limits(key: str) -> tuple[float, float]:
        limiter = entities[key].rate_limit
        assert limiter is not None
        return limiter.min_interval_seconds, limiter.min_delta

    assert limits("charging_power") == (10.0, 100.0)
    assert limits("charging_current_l2") == (10.0, 0.2)
    assert limits("internal_meter_voltage_l1") == (10.0, 2.0)
    assert limits("added_energy") == (10.0, 50.0)
    assert limits("power_boost_power_l3") == (10.0, 100.0)
    assert entities["status"].rate_limit is None
    assert entities["lock"].rate_limit is None


def test_each_entity_owns_its_limiter(source) -> None:
    entities = base_entities(source)
    limiters = [entity.rate_limit for entity in entities.values() if entity.rate_limit is not None]
    assert len({id(limiter) for limiter in limiters}) == len(limiters)


def test_derived_readers(source, store: TelemetryStore) -> None:
    entities = {**base_entities(source), **debug_entities(), **telemetry_event_entities()}
    store.apply_section(
        StoreSection.M2W,
        {
            "tms.charger_status": "1",
            "tms.line1.power_watt.value": "3680",
            "tms.line2.power_watt.value": "3680.5",
            "tms.line3.power_watt.value": "0",
        },
    )
    store.apply_section(StoreSection.STATE, {"session.state": "193", "ctrlPilot": "194"})
    store.apply_telemetry("SENSOR_CONTROL_PILOT_HIGH_TENTHS_OF_VOLTS", 61)

    assert entities["charging_power"].read_state(store) == "7360.5"
    assert entities["status"].read_state(store) == "Charging"
    assert entities["cable_connected"].read_state(store) == "1"
    assert entities["control_pilot"].read_state(store) == "194: Charging 2"
    assert entities["state_machine_state"].read_state(store) == "193: Charging 1"
    assert entities["control_pilot_high_voltage"].read_state(store) == "6.1"


def test_status_override_while_locked(source, store: TelemetryStore) -> None:
    entity = base_entities(source)["status"]
    store.apply_section(StoreSection.M2W, {"tms.charger_status": "0"})
    store.apply_section(StoreSection.STATE, {"session.state": str(0xD1)})

    assert entity.read_state(store) == "Locked"


@pytest.mark.parametrize(
    ("debug", "power_boost", "present", "absent"),
    [
        (False, False, "lock", "control_pilot"),
        (True, False, "internal_meter_voltage_l1", "power_boost_power_l1"),
        (False, True, "power_boost_cumulative_added_energy", "m2w_status"),
    ],
)
def test_build_registry_feature_flags(source, debug: bool, power_boost: bool, present: str, absent: str) -> None:
    config = BridgeConfig(debug_sensors=debug, power_boost_enabled=power_boost)
    registry = build_registry(source, config)

    assert present in registry
    assert absent not in registry
    assert registry.keys()[0] == "added_energy"


def test_build_registry_all_sets(source) -> None:
    config = BridgeConfig(debug_sensors=True, power_boost_enabled=True)
    registry = build_registry(source, config)

    expected = (
        len(base_entities(source))
        + len(debug_entities())
        + len(telemetry_event_entities())
        + len(power_boost_entities())
    )
    assert len(registry) == expected


def test_internal_meter_current_icons() -> None:
    configs = {key: entity.config for key, entity in telemetry_event_entities().items()}

    assert configs["internal_meter_current_l3"]["icon"] == "mdi:leaf"
    assert "icon" not in configs["internal_meter_current_l1"]
    assert "icon" not in configs["internal_meter_current_l2"]
