from __future__ import annotations

from collections.abc import Callable
from typing import Any

import pytest

from wallbox_bridge._mqtt import LastWill, MessageHandler
from wallbox_bridge.ingestion.normalize import coerce_int
from wallbox_bridge.state.fields import StoreSection
from wallbox_bridge.state.store import TelemetryStore


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 0.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeSubscription:
    def __init__(self) -> None:
        self.stopped = False

    def stop(self) -> None:
        self.stopped = True


class FakeDataSource:
    """In-memory charger. Section dicts are keyed by source key."""

    def __init__(self, serial: str = "12345", available_current: int = 32) -> None:
        self.serial = serial
        self.current_limit = available_current
        self.sql: dict[str, Any] = {}
        self.state: dict[str, Any] = {}
        self.m2w: dict[str, Any] = {}
        self.telemetry: dict[str, Any] = {}
        self.refresh_error: Exception | None = None
        self.refresh_calls = 0
        self.writes: list[tuple[str, str]] = []
        self.handler: Callable[[str], Any] | None = None
        self.subscriptions: list[FakeSubscription] = []
        self.closed = False

    def refresh(self, store: TelemetryStore) -> None:
        self.refresh_calls += 1
        if self.refresh_error is not None:
            raise self.refresh_error
        store.apply_section(StoreSection.STATE, self.state)
        store.apply_section(StoreSection.M2W, self.m2w)
        store.apply_section(StoreSection.SQL, self.sql)

    def refresh_telemetry(self, store: TelemetryStore) -> None:
        store.apply_section(StoreSection.TELEMETRY, self.telemetry, strict=False)

    def serial_number(self) -> str:
        return self.serial

    def available_current(self) -> int:
        return self.current_limit

    def _write(self, column: str, payload: str) -> None:
        self.writes.append((column, payload))
        self.sql[column] = coerce_int(payload)

    def set_locked(self, payload: str) -> None:
        self._write("lock", payload)

    def set_charging_enable(self, payload: str) -> None:
        self._write("charging_enable", payload)

    def set_max_charging_current(self, payload: str) -> None:
        self._write("max_charging_current", payload)

    def set_halo_brightness(self, payload: str) -> None:
        self._write("halo_brightness", payload)

    def subscribe_telemetry(self, handler: Callable[[str], Any]) -> FakeSubscription:
        self.handler = handler
        subscription = FakeSubscription()
        self.subscriptions.append(subscription)
        return subscription

    def close(self) -> None:
        self.closed = True


class FakeBus:
    """Records what the bridge sends to the broker."""

    def __init__(self) -> None:
        self.will: LastWill | None = None
        self.published: list[tuple[str, str | bytes, bool]] = []
        self.handlers: dict[str, MessageHandler] = {}
        self.started = False
        self.stopped = False
        self.start_error: Exception | None = None
        self.publish_error: Exception | None = None

    def start(self, will: LastWill) -> None:
        if self.start_error is not None:
            raise self.start_error
        self.will = will
        self.started = True

    def publish(self, topic: str, payload: str | bytes, *, retain: bool = True) -> None:
        if self.publish_error is not None:
            raise self.publish_error
        self.published.append((topic, payload, retain))

    def subscribe(self, topic: str, handler: MessageHandler) -> None:
        self.handlers[topic] = handler

    def stop(self) -> None:
        self.stopped = True

    def payloads(self, topic: str) -> list[str | bytes]:
        return [payload for published_topic, payload, _retain in self.published if published_topic == topic]


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(clock: FakeClock) -> TelemetryStore:
    return TelemetryStore(clock=clock)


@pytest.fixture
def source() -> FakeDataSource:
    return FakeDataSource()


@pytest.fixture
def bus() -> FakeBus:
    return FakeBus()
