"""Top-level bridge run loop.

Wires the data source, entity registry, poll loop, telemetry pipeline and
command dispatcher to the MQTT bus, then waits for either a shutdown
request or a fatal error. Both end in the same orderly shutdown: stop the
poll loop and the telemetry listener, publish ``offline``, disconnect and
release the data source.
"""

from __future__ import annotations

import dataclasses
import json
import logging
import threading
import time
from collections.abc import Callable
from typing import Protocol

from wallbox_bridge._constants import AVAILABILITY_OFFLINE, AVAILABILITY_ONLINE
from wallbox_bridge._mqtt import BridgeMqttRuntime, LastWill, MessageHandler, MqttSettings
from wallbox_bridge._redact import redact_for_log
from wallbox_bridge.config import BridgeConfig
from wallbox_bridge.datasource.base import WallboxDataSource
from wallbox_bridge.discovery import (
    availability_topic,
    build_discovery_config,
    command_subscription,
    discovery_topic,
    state_topic,
)
from wallbox_bridge.dispatcher import CommandDispatcher
from wallbox_bridge.entities.registry import EntityRegistry
from wallbox_bridge.entities.sets import build_registry
from wallbox_bridge.exceptions import BusConnectionError
from wallbox_bridge.ingestion.telemetry import TelemetryEventPipeline
from wallbox_bridge.scheduler import PollScheduler
from wallbox_bridge.state.store import TelemetryStore

_logger = logging.getLogger(__name__)


class BusRuntime(Protocol):
    def start(self, will: LastWill) -> None: ...

    def publish(self, topic: str, payload: str | bytes, *, retain: bool = True) -> None: ...

    def subscribe(self, topic: str, handler: MessageHandler) -> None: ...

    def stop(self) -> None: ...


class FatalErrorChannel:
    """Collects the first fatal error raised on any bridge thread."""

    def __init__(self, wakeup: threading.Event | None = None) -> None:
        self._lock = threading.Lock()
        self._error: BaseException | None = None
        self._wakeup = wakeup or threading.Event()

    @property
    def error(self) -> BaseException | None:
        with self._lock:
            return self._error

    def report(self, error: BaseException) -> None:
        with self._lock:
            if self._error is None:
                self._error = error
                _logger.error("Fatal error reported: %s", error)
            else:
                _logger.debug("Additional fatal error ignored: %s", error)
        self._wakeup.set()


class WallboxBridge:
    """Bridges one charger to the MQTT bus.

    Usage::

        bridge = WallboxBridge(config, RedisSqlDataSource.connect(config))
        bridge.run()  # blocks until request_shutdown() or a fatal error
    """

    def __init__(
        self,
        config: BridgeConfig,
        source: WallboxDataSource,
        *,
        runtime: BusRuntime | None = None,
        store: TelemetryStore | None = None,
        clock: Callable[[], float] = time.monotonic,
        logger: logging.Logger | None = None,
    ) -> None:
        self._config = config
        self._source = source
        self._runtime = runtime
        self._store = store or TelemetryStore(clock=clock)
        self._clock = clock
        self._logger = logger or _logger
        self._wakeup = threading.Event()
        self._fatal = FatalErrorChannel(self._wakeup)
        self._shutdown_requested = False
        self._registry: EntityRegistry | None = None
        self._scheduler: PollScheduler | None = None
        self._pipeline: TelemetryEventPipeline | None = None
        self._poll_thread: threading.Thread | None = None
        self._serial = ""

    @property
    def store(self) -> TelemetryStore:
        return self._store

    @property
    def registry(self) -> EntityRegistry | None:
        return self._registry

    @property
    def scheduler(self) -> PollScheduler | None:
        return self._scheduler

    @property
    def fatal_error(self) -> BaseException | None:
        return self._fatal.error

    def report_fatal(self, error: BaseException) -> None:
        """Report an unrecoverable error; the run loop shuts down."""
        self._fatal.report(error)

    def request_shutdown(self) -> None:
        """Cooperative shutdown signal. Safe to call from any thread or a signal handler."""
        self._shutdown_requested = True
        self._wakeup.set()

    # ------------------------------------------------------------------
    # Startup
    # ------------------------------------------------------------------

    def _build_runtime(self) -> BusRuntime:
        config = self._config
        settings = MqttSettings(
            host=config.mqtt_host,
            port=config.mqtt_port,
            username=config.mqtt_username,
            password=config.mqtt_password,
            keepalive=config.mqtt_keepalive,
        )
        return BridgeMqttRuntime(settings, on_connection_lost=self.report_fatal, logger=self._logger)

    def _publish_discovery(self, runtime: BusRuntime, registry: EntityRegistry) -> None:
        for entity in registry.all():
            payload = build_discovery_config(entity, serial=self._serial, device_name=self._config.device_name)
            runtime.publish(
                discovery_topic(self._config.discovery_prefix, self._serial, entity),
                json.dumps(payload),
            )
        self._logger.info("Published discovery config for %d entities", len(registry))

    def start(self) -> None:
        """Connect everything and start the poll and telemetry threads.

        Raises
        ------
        DataSourceError
            If the initial refresh fails.
        BusConnectionError
            If the broker cannot be reached.
        """
        config = self._config
        self._logger.debug("Starting bridge config=%s", redact_for_log(dataclasses.asdict(config)))
        self._source.refresh(self._store)
        self._serial = self._source.serial_number()
        registry = build_registry(self._source, config, clock=self._clock)
        self._registry = registry

        runtime = self._runtime or self._build_runtime()
        self._runtime = runtime
        availability = availability_topic(self._serial)
        runtime.start(LastWill(availability, AVAILABILITY_OFFLINE))

        self._publish_discovery(runtime, registry)
        runtime.publish(availability, AVAILABILITY_ONLINE)

        dispatcher = CommandDispatcher(registry, logger=self._logger)
        runtime.subscribe(command_subscription(self._serial), dispatcher.handle_message)

        pipeline = TelemetryEventPipeline(self._store, logger=self._logger)
        pipeline.start(self._source)
        self._pipeline = pipeline

        scheduler = PollScheduler(
            registry=registry,
            store=self._store,
            source=self._source,
            publish=runtime.publish,
            topic_for=lambda key: state_topic(self._serial, key),
            interval=config.polling_interval_seconds,
            logger=self._logger,
        )
        self._scheduler = scheduler
        self._poll_thread = threading.Thread(target=self._run_scheduler, name="wallbox-poll", daemon=True)
        self._poll_thread.start()
        self._logger.info("Bridge started serial=%s", self._serial)

    def _run_scheduler(self) -> None:
        scheduler = self._scheduler
        if scheduler is None:
            return
        try:
            scheduler.run()
        except Exception as exc:
            self.report_fatal(exc)

    # ------------------------------------------------------------------
    # Run loop
    # ------------------------------------------------------------------

    def wait(self, poll_interval: float = 1.0) -> None:
        """Block until shutdown is requested or a fatal error is reported."""
        while not self._wakeup.wait(poll_interval):
            pass

    def run(self) -> None:
        """Start, wait, shut down.

        Raises the fatal error, if any, after the orderly shutdown.
        """
        try:
            self.start()
        except Exception as exc:
            self.report_fatal(exc)
        else:
            self.wait()
        finally:
            self.shutdown()

        error = self._fatal.error
        if error is not None:
            raise error

    def shutdown(self) -> None:
        """Stop threads, publish ``offline`` and release resources."""
        if self._fatal.error is None:
            self._logger.info("Interrupted. Exiting...")

        scheduler = self._scheduler
        if scheduler is not None:
            scheduler.stop()
        thread = self._poll_thread
        self._poll_thread = None
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=self._config.polling_interval_seconds + 30.0)

        pipeline = self._pipeline
        self._pipeline = None
        if pipeline is not None:
            pipeline.stop()

        runtime = self._runtime
        if runtime is not None and self._serial:
            try:
                runtime.publish(availability_topic(self._serial), AVAILABILITY_OFFLINE)
            except BusConnectionError as exc:
                self._logger.warning("Could not publish offline availability: %s", exc)
            runtime.stop()

        self._source.close()
