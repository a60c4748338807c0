from __future__ import annotations

import threading

import pytest

from wallbox_bridge.state import ALL_FIELDS, TELEMETRY_UPDATERS, FieldSpec, StoreSection, TelemetryStore
from wallbox_bridge.state.fields import TELEMETRY_FIELDS


def test_all_fields_start_at_zero(store: TelemetryStore) -> None:
    snapshot = store.snapshot()

    assert len(snapshot) == len(ALL_FIELDS)
    assert set(snapshot.values()) == {0}
    assert isinstance(store.get(StoreSection.SQL, "lock"), int)
    assert isinstance(store.get(StoreSection.M2W, "line1_power"), float)


def test_field_keys_are_unique() -> None:
    keys = [spec.key for spec in ALL_FIELDS]
    assert len(keys) == len(set(keys))


def test_every_telemetry_field_has_an_updater() -> None:
    assert set(TELEMETRY_UPDATERS) == {spec.sensor_id for spec in TELEMETRY_FIELDS}
    assert "SENSOR_CONTROL_PILOT_HIGH_TENTHS_OF_VOLTS" in TELEMETRY_UPDATERS


def test_apply_section_converts_types(store: TelemetryStore) -> None:
    skipped = store.apply_section(
        StoreSection.M2W,
        {"tms.charger_status": "1", "tms.line1.power_watt.value": "7360.5", "tms.line2.power_watt.value": b"12"},
    )

    assert skipped == []
    assert store.get(StoreSection.M2W, "charger_status") == 1
    assert store.get(StoreSection.M2W, "line1_power") == 7360.5
    assert store.get(StoreSection.M2W, "line2_power") == 12.0


def test_apply_section_missing_keys_keep_previous_values(store: TelemetryStore) -> None:
    store.apply_section(StoreSection.STATE, {"session.state": "193", "ctrlPilot": "194"})
    store.apply_section(StoreSection.STATE, {"session.state": None, "ctrlPilot": "161"})

    assert store.get(StoreSection.STATE, "session_state") == 193
    assert store.get(StoreSection.STATE, "control_pilot") == 161


def test_strict_apply_is_atomic(store: TelemetryStore) -> None:
    store.apply_section(StoreSection.SQL, {"lock": 1, "halo_brightness": 50})

    with pytest.raises(ValueError):
        store.apply_section(StoreSection.SQL, {"lock": 0, "halo_brightness": "bright"})

    assert store.get(StoreSection.SQL, "lock") == 1
    assert store.get(StoreSection.SQL, "halo_brightness") == 50


def test_lenient_apply_reports_skipped_keys(store: TelemetryStore) -> None:
    skipped = store.apply_section(
        StoreSection.TELEMETRY,
        {"telemetry.SENSOR_TEMP_L1": "40.5", "telemetry.SENSOR_TEMP_L2": "nan", "telemetry.SENSOR_TEMP_L3": "x"},
        strict=False,
    )

    assert skipped == ["telemetry.SENSOR_TEMP_L2", "telemetry.SENSOR_TEMP_L3"]
    assert store.get(StoreSection.TELEMETRY, "temp_l1") == 40.5


def test_refreshed_at_uses_clock(store: TelemetryStore, clock) -> None:
    assert store.refreshed_at(StoreSection.M2W) is None
    clock.now = 12.5
    store.apply_section(StoreSection.M2W, {})
    assert store.refreshed_at(StoreSection.M2W) == 12.5


def test_apply_telemetry_unknown_sensor(store: TelemetryStore) -> None:
    before = store.snapshot()
    assert store.apply_telemetry("UNKNOWN_X", 1.0) is False
    assert store.snapshot() == before


def test_apply_telemetry_known_sensor(store: TelemetryStore) -> None:
    assert store.apply_telemetry("SENSOR_DCA_POWERBOOST_STATUS", 3) is True
    assert store.get(StoreSection.TELEMETRY, "powerboost_status") == 3.0


def test_field_spec_parse_rejects_non_numbers() -> None:
    spec = FieldSpec(StoreSection.SQL, "lock", "lock", int)

    assert spec.parse("1.9") == 1
    assert spec.sensor_id is None
    with pytest.raises(ValueError):
        spec.parse("inf")
    with pytest.raises(ValueError):
        spec.parse("")


def test_set_rejects_undeclared_field() -> None:
    store = TelemetryStore(fields=[FieldSpec(StoreSection.SQL, "lock", "lock", int)])

    with pytest.raises(KeyError):
        store.set(FieldSpec(StoreSection.SQL, "halo_brightness", "halo_brightness", int), 1)


def test_concurrent_writers_do_not_lose_updates(store: TelemetryStore) -> None:
    spec = store.spec(StoreSection.SQL, "max_charging_current")

    def increment() -> None:
        for _ in range(1000):
            with store.locked():
                store.set(spec, store.get(StoreSection.SQL, "max_charging_current") + 1)

    threads = [threading.Thread(target=increment) for _ in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert store.get(StoreSection.SQL, "max_charging_current") == 4000
