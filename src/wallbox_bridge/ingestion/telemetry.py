"""Telemetry event ingestion.

The charger firmware publishes sensor readings on a Redis channel as they
change. This pipeline decodes each message into
:class:`~wallbox_bridge.models.telemetry.TelemetryFrame` objects and writes
them into the store, so the next poll tick sees them without a Redis round
trip. Bad messages and unknown sensors are logged and dropped; nothing
here ever stops the listener.
"""

from __future__ import annotations

import json
import logging
import threading
from typing import Any

from pydantic import ValidationError

from wallbox_bridge.datasource.base import Subscription, WallboxDataSource
from wallbox_bridge.exceptions import TelemetryDecodeError
from wallbox_bridge.models.telemetry import TelemetryEnvelope, TelemetryFrame
from wallbox_bridge.state.store import TelemetryStore


def decode_envelope(payload: str | bytes) -> list[TelemetryFrame]:
    """Decode a raw event message into frames, in body order.

    Raises
    ------
    TelemetryDecodeError
        If the payload is not JSON or does not match the envelope shape.
    """
    try:
        parsed: Any = json.loads(payload)
    except (TypeError, ValueError) as exc:
        raise TelemetryDecodeError(f"telemetry event is not JSON: {exc}") from exc
    except RecursionError as exc:
        raise TelemetryDecodeError("telemetry event is nested too deeply") from exc
    if not isinstance(parsed, dict):
        raise TelemetryDecodeError("telemetry event is not a JSON object")
    try:
        envelope = TelemetryEnvelope.model_validate({**parsed, "raw": parsed})
    except ValidationError as exc:
        raise TelemetryDecodeError(f"telemetry event has unexpected shape: {exc}") from exc
    except RecursionError as exc:
        raise TelemetryDecodeError("telemetry event is nested too deeply") from exc
    return [TelemetryFrame.from_reading(reading) for reading in envelope.body.sensors]


class TelemetryEventPipeline:
    """Applies telemetry events to a :class:`TelemetryStore`.

    Usage::

        pipeline = TelemetryEventPipeline(store)
        pipeline.start(data_source)
        ...
        pipeline.stop()
    """

    def __init__(self, store: TelemetryStore, *, logger: logging.Logger | None = None) -> None:
        self._store = store
        self._logger = logger or logging.getLogger(__name__)
        self._subscription: Subscription | None = None
        self._stop_timer: threading.Timer | None = None
        self._lock = threading.Lock()
        self.received = 0
        self.applied = 0
        self.discarded = 0

    @property
    def is_running(self) -> bool:
        return self._subscription is not None

    def apply_frame(self, frame: TelemetryFrame) -> bool:
        """Write one frame into the store. Unknown sensor ids are skipped."""
        try:
            known = self._store.apply_telemetry(frame.sensor_id, frame.value)
        except ValueError:
            self._logger.warning("Telemetry value rejected sensor=%s value=%r", frame.sensor_id, frame.value)
            return False
        if not known:
            self._logger.info("No matching store field for sensor id %s", frame.sensor_id)
            return False
        self._logger.debug("Telemetry applied sensor=%s value=%s", frame.sensor_id, frame.value)
        return True

    def handle_message(self, payload: str | bytes) -> int:
        """Process one raw channel message. Returns the number of frames applied."""
        with self._lock:
            self.received += 1
        try:
            frames = decode_envelope(payload)
        except TelemetryDecodeError as exc:
            with self._lock:
                self.discarded += 1
            self._logger.warning("Discarding telemetry event: %s", exc)
            return 0

        applied = sum(1 for frame in frames if self.apply_frame(frame))
        with self._lock:
            self.applied += applied
        return applied

    def start(self, source: WallboxDataSource, *, duration: float | None = None) -> None:
        """Seed the telemetry section and subscribe to the event channel.

        With *duration*, the subscription stops by itself after that many
        seconds.
        """
        self.stop()
        source.refresh_telemetry(self._store)
        self._subscription = source.subscribe_telemetry(self.handle_message)
        self._logger.info("Telemetry event listener started")

        if duration is not None:
            timer = threading.Timer(duration, self._expire, args=(duration,))
            timer.daemon = True
            timer.start()
            self._stop_timer = timer

    def _expire(self, duration: float) -> None:
        self._logger.info("Telemetry subscription time limit of %ss reached, stopping", duration)
        self.stop()

    def stop(self) -> None:
        """Stop the subscription if running."""
        timer = self._stop_timer
        self._stop_timer = None
        if timer is not None and timer is not threading.current_thread():
            timer.cancel()

        subscription = self._subscription
        self._subscription = None
        if subscription is None:
            return
        subscription.stop()
        self._logger.info("Telemetry event listener stopped")
