from __future__ import annotations

import threading

import pytest

from wallbox_bridge.entities import ComponentKind, Entity, EntityRegistry
from wallbox_bridge.entities.sets import field_reader, sum_reader
from wallbox_bridge.exceptions import DataSourceError
from wallbox_bridge.ratelimit import DeltaRateLimit
from wallbox_bridge.scheduler import PollScheduler, SchedulerState
from wallbox_bridge.state import StoreSection, TelemetryStore


def _scheduler(registry, store, source, bus, *, interval: float = 1.0) -> PollScheduler:
    return PollScheduler(
        registry=registry,
        store=store,
        source=source,
        publish=bus.publish,
        topic_for=lambda key: f"wallbox_test/{key}/state",
        interval=interval,
    )


def _set_power(source, *lines: float) -> None:
    for index, watts in enumerate(lines, start=1):
        source.m2w[f"tms.line{index}.power_watt.value"] = str(watts)


def test_unchanged_value_published_once(store: TelemetryStore, source, bus) -> None:
    registry = EntityRegistry(
        [
            Entity(
                key="halo_brightness",
                component=ComponentKind.NUMBER,
                read=field_reader(StoreSection.SQL, "halo_brightness"),
            )
        ]
    )
    source.sql["halo_brightness"] = 60
    scheduler = _scheduler(registry, store, source, bus)

    for _ in range(5):
        scheduler.tick()

    assert bus.payloads("wallbox_test/halo_brightness/state") == ["60"]
    assert source.refresh_calls == 5
    assert scheduler.ticks == 5


def test_every_distinct_transition_published(store: TelemetryStore, source, bus) -> None:
    registry = EntityRegistry(
        [Entity(key="lock", component=ComponentKind.LOCK, read=field_reader(StoreSection.SQL, "lock"))]
    )
    scheduler = _scheduler(registry, store, source, bus)

    for value in (0, 1, 1, 0, 0, 1):
        source.sql["lock"] = value
        scheduler.tick()

    assert bus.payloads("wallbox_test/lock/state") == ["0", "1", "0", "1"]


def test_charging_power_rate_limited_end_to_end(store: TelemetryStore, source, bus, clock) -> None:
    registry = EntityRegistry(
        [
            Entity(
                key="charging_power",
                component=ComponentKind.SENSOR,
                read=sum_reader(StoreSection.M2W, "line1_power", "line2_power", "line3_power"),
                rate_limit=DeltaRateLimit(10, 100, clock=clock),
            )
        ]
    )
    scheduler = _scheduler(registry, store, source, bus)
    topic = "wallbox_test/charging_power/state"

    _set_power(source, 0, 0, 0)
    assert scheduler.tick() == ["charging_power"]

    clock.advance(1)
    assert scheduler.tick() == []

    clock.advance(1)
    _set_power(source, 250, 0, 0)
    assert scheduler.tick() == ["charging_power"]

    clock.advance(1)
    _set_power(source, 130, 130, 0)
    assert scheduler.tick() == []

    assert bus.payloads(topic) == ["0", "250"]
    assert scheduler.published["charging_power"] == "250"
    assert store.get(StoreSection.M2W, "line1_power") == 130.0


def test_suppressed_change_reevaluated_against_last_published(store: TelemetryStore, source, bus, clock) -> None:
    registry = EntityRegistry(
        [
            Entity(
                key="charging_power_l1",
                component=ComponentKind.SENSOR,
                read=field_reader(StoreSection.M2W, "line1_power"),
                rate_limit=DeltaRateLimit(10, 100, clock=clock),
            )
        ]
    )
    scheduler = _scheduler(registry, store, source, bus)

    _set_power(source, 1000)
    scheduler.tick()
    for _ in range(9):
        clock.advance(1)
        _set_power(source, 1050)
        scheduler.tick()
    assert bus.payloads("wallbox_test/charging_power_l1/state") == ["1000"]

    clock.advance(1)
    scheduler.tick()
    assert bus.payloads("wallbox_test/charging_power_l1/state") == ["1000", "1050"]


def test_publish_follows_registry_order(store: TelemetryStore, source, bus) -> None:
    registry = EntityRegistry(
        [
            Entity(key="b", component=ComponentKind.SENSOR, read=lambda _s: "b"),
            Entity(key="a", component=ComponentKind.SENSOR, read=lambda _s: "a"),
        ]
    )
    scheduler = _scheduler(registry, store, source, bus)

    assert scheduler.tick() == ["b", "a"]
    assert [topic for topic, _payload, _retain in bus.published] == ["wallbox_test/b/state", "wallbox_test/a/state"]


def test_refresh_failure_propagates(store: TelemetryStore, source, bus) -> None:
    registry = EntityRegistry([Entity(key="a", component=ComponentKind.SENSOR, read=lambda _s: 1)])
    source.refresh_error = DataSourceError("redis down", source="redis")
    scheduler = _scheduler(registry, store, source, bus)

    with pytest.raises(DataSourceError):
        scheduler.tick()
    assert bus.published == []
    assert scheduler.state is SchedulerState.IDLE


def test_run_propagates_refresh_failure(store: TelemetryStore, source, bus) -> None:
    registry = EntityRegistry([Entity(key="a", component=ComponentKind.SENSOR, read=lambda _s: 1)])
    source.refresh_error = DataSourceError("sql down", source="sql")
    scheduler = _scheduler(registry, store, source, bus, interval=0.01)

    with pytest.raises(DataSourceError):
        scheduler.run()
    assert scheduler.state is SchedulerState.STOPPED


def test_stop_ends_run_loop(store: TelemetryStore, source, bus) -> None:
    registry = EntityRegistry([Entity(key="a", component=ComponentKind.SENSOR, read=lambda _s: 1)])
    scheduler = _scheduler(registry, store, source, bus, interval=0.01)

    thread = threading.Thread(target=scheduler.run)
    thread.start()
    scheduler.stop()
    thread.join(timeout=5)

    assert not thread.is_alive()
    assert scheduler.state is SchedulerState.STOPPED
    assert scheduler.tick() == []


def test_interval_must_be_positive(store: TelemetryStore, source, bus) -> None:
    with pytest.raises(ValueError):
        _scheduler(EntityRegistry(), store, source, bus, interval=0)
