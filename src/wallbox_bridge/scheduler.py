"""Poll/diff/publish loop.

Every tick refreshes the store from the data source, evaluates each entity
in registry order and publishes the values that changed. Entities with a
rate limiter publish a change only when their limiter allows it; a
suppressed change is re-evaluated on the next tick against the last value
actually published.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from enum import StrEnum

from wallbox_bridge.datasource.base import WallboxDataSource
from wallbox_bridge.entities.registry import EntityRegistry
from wallbox_bridge.ingestion.normalize import coerce_float
from wallbox_bridge.state.store import TelemetryStore

Publisher = Callable[[str, str], None]
TopicBuilder = Callable[[str], str]


class SchedulerState(StrEnum):
    IDLE = "idle"
    TICKING = "ticking"
    STOPPED = "stopped"


class PollScheduler:
    """Fixed-interval poll loop.

    Parameters
    ----------
    registry : EntityRegistry
        Entities to evaluate, in order.
    store : TelemetryStore
        Live state read by entity accessors.
    source : WallboxDataSource
        Bulk refresh provider. A refresh failure propagates out of
        :meth:`tick` and :meth:`run`.
    publish : callable
        ``publish(topic, payload)``; expected to block until delivered.
    topic_for : callable
        Maps an entity key to its state topic.
    interval : float
        Seconds between ticks.
    """

    def __init__(
        self,
        *,
        registry: EntityRegistry,
        store: TelemetryStore,
        source: WallboxDataSource,
        publish: Publisher,
        topic_for: TopicBuilder,
        interval: float,
        logger: logging.Logger | None = None,
    ) -> None:
        if interval <= 0:
            raise ValueError(f"interval must be positive, got {interval}")
        self._registry = registry
        self._store = store
        self._source = source
        self._publish = publish
        self._topic_for = topic_for
        self._interval = interval
        self._logger = logger or logging.getLogger(__name__)
        self._published: dict[str, str] = {}
        self._lock = threading.Lock()
        self._stop = threading.Event()
        self._state = SchedulerState.IDLE
        self.ticks = 0

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def published(self) -> dict[str, str]:
        """Copy of the last transmitted value per entity key."""
        with self._lock:
            return dict(self._published)

    def tick(self) -> list[str]:
        """Run one refresh/evaluate/publish pass.

        Returns the keys published during this tick, in registry order.
        """
        with self._lock:
            if self._state is SchedulerState.STOPPED:
                return []
            self._state = SchedulerState.TICKING
            try:
                self._source.refresh(self._store)
                return self._publish_changes()
            finally:
                self.ticks += 1
                if self._state is SchedulerState.TICKING:
                    self._state = SchedulerState.IDLE

    def _publish_changes(self) -> list[str]:
        with self._store.locked():
            current = [(entity, entity.read_state(self._store)) for entity in self._registry.all()]

        sent: list[str] = []
        for entity, payload in current:
            if self._published.get(entity.key) == payload:
                continue
            if entity.rate_limit is not None and not entity.rate_limit.allow(coerce_float(payload)):
                self._logger.debug("Rate limited %s=%s", entity.key, payload)
                continue
            self._logger.debug("Publishing %s=%s", entity.key, payload)
            self._publish(self._topic_for(entity.key), payload)
            self._published[entity.key] = payload
            sent.append(entity.key)
        return sent

    def run(self) -> None:
        """Tick every *interval* seconds until :meth:`stop` is called.

        The first tick happens one interval after the call.
        """
        self._logger.info("Poll loop started interval=%ss entities=%d", self._interval, len(self._registry))
        try:
            while not self._stop.wait(self._interval):
                self.tick()
        finally:
            self._state = SchedulerState.STOPPED
            self._logger.info("Poll loop stopped after %d ticks", self.ticks)

    def stop(self) -> None:
        """Request the loop to stop after the current tick."""
        self._stop.set()
