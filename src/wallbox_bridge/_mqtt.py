"""Internal MQTT runtime."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, cast

import paho.mqtt.client as mqtt

from wallbox_bridge._constants import MQTT_QOS
from wallbox_bridge.exceptions import BusConnectionError

MessageHandler = Callable[[str, bytes], None]

_PUBLISH_TIMEOUT_SECONDS = 10.0


@dataclass(frozen=True)
class MqttSettings:
    """Broker connection details."""

    host: str
    port: int
    username: str = ""
    password: str = ""
    keepalive: int = 60
    client_id: str = ""


@dataclass(frozen=True)
class LastWill:
    topic: str
    payload: str
    qos: int = MQTT_QOS
    retain: bool = True


class BridgeMqttRuntime:
    """Threaded paho-mqtt runtime.

    paho's network loop runs on its own thread. Inbound messages are handed
    to subscribers on that thread. Losing the connection after startup is
    reported through *on_connection_lost*; there is no reconnect.
    """

    def __init__(
        self,
        settings: MqttSettings,
        *,
        on_connection_lost: Callable[[BusConnectionError], None] | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._settings = settings
        self._on_connection_lost = on_connection_lost
        self._logger = logger or logging.getLogger(__name__)
        self._client: mqtt.Client | None = None
        self._running = False
        self._stopping = False

    @property
    def is_running(self) -> bool:
        """Whether the MQTT runtime is actively running."""
        return self._running

    def start(self, will: LastWill, *, connect_timeout: float = 10.0) -> None:
        """Connect with *will* registered and start the network loop.

        Raises
        ------
        BusConnectionError
            If the broker is unreachable or refuses the connection.
        """
        self.stop()
        settings = self._settings
        self._logger.debug(
            "MQTT runtime start requested host=%s port=%s client_id=%s",
            settings.host,
            settings.port,
            settings.client_id,
        )

        client = mqtt.Client(
            callback_api_version=cast(Any, mqtt).CallbackAPIVersion.VERSION2,
            client_id=settings.client_id,
        )
        client.enable_logger(self._logger)
        if settings.username:
            client.username_pw_set(settings.username, settings.password or None)
        client.will_set(will.topic, will.payload, qos=will.qos, retain=will.retain)

        connected = threading.Event()
        outcome: dict[str, Any] = {}

        def on_connect(
            _c: mqtt.Client,
            _userdata: Any,
            _flags: Any,
            reason_code: Any,
            _properties: Any,
        ) -> None:
            outcome["reason_code"] = reason_code
            if reason_code.value != 0:
                self._logger.warning("MQTT connect failed: %s", reason_code)
            else:
                self._logger.debug("MQTT connected successfully reason=%s", reason_code)
            connected.set()

        def on_disconnect(
            _client: mqtt.Client,
            _userdata: Any,
            _disconnect_flags: Any,
            reason_code: Any,
            _properties: Any,
        ) -> None:
            if not self._running or self._stopping:
                return
            self._running = False
            self._logger.error("MQTT connection lost: %s", reason_code)
            if self._on_connection_lost is not None:
                self._on_connection_lost(
                    BusConnectionError(
                        f"Connection to MQTT lost: {reason_code}",
                        reason_code=getattr(reason_code, "value", None),
                    )
                )

        client.on_connect = on_connect
        client.on_disconnect = on_disconnect

        try:
            client.connect(settings.host, settings.port, keepalive=settings.keepalive)
        except OSError as exc:
            raise BusConnectionError(f"MQTT broker {settings.host}:{settings.port} unreachable: {exc}") from exc
        client.loop_start()

        if not connected.wait(connect_timeout):
            client.loop_stop()
            raise BusConnectionError(f"MQTT connect timed out after {connect_timeout}s")
        reason_code = outcome.get("reason_code")
        if reason_code is None or reason_code.value != 0:
            client.loop_stop()
            raise BusConnectionError(
                f"MQTT connection refused: {reason_code}",
                reason_code=getattr(reason_code, "value", None),
            )

        self._client = client
        self._stopping = False
        self._running = True
        self._logger.debug("MQTT network loop started")

    def publish(self, topic: str, payload: str | bytes, *, retain: bool = True, qos: int = MQTT_QOS) -> None:
        """Publish and wait until the broker acknowledged the message.

        Raises
        ------
        BusConnectionError
            If the runtime is not connected or the publish fails.
        """
        client = self._client
        if client is None or not self._running:
            raise BusConnectionError("MQTT runtime is not running")
        info = client.publish(topic, payload, qos=qos, retain=retain)
        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            raise BusConnectionError(f"MQTT publish to {topic} failed: {mqtt.error_string(info.rc)}")
        try:
            info.wait_for_publish(timeout=_PUBLISH_TIMEOUT_SECONDS)
        except (RuntimeError, ValueError) as exc:
            raise BusConnectionError(f"MQTT publish to {topic} failed: {exc}") from exc
        if not info.is_published():
            raise BusConnectionError(
                f"MQTT publish to {topic} not acknowledged within {_PUBLISH_TIMEOUT_SECONDS}s"
            )
        self._logger.debug("Published topic=%s payload=%s", topic, payload)

    def subscribe(self, topic: str, handler: MessageHandler, *, qos: int = MQTT_QOS) -> None:
        """Route messages matching *topic* to *handler* on the network thread."""
        client = self._client
        if client is None:
            raise BusConnectionError("MQTT runtime is not running")

        def on_message(_c: mqtt.Client, _userdata: Any, msg: mqtt.MQTTMessage) -> None:
            try:
                handler(msg.topic, msg.payload)
            except Exception:
                self._logger.exception("MQTT message handler failed topic=%s", msg.topic)

        client.message_callback_add(topic, on_message)
        client.subscribe(topic, qos=qos)
        self._logger.debug("MQTT subscribed topic=%s", topic)

    def stop(self) -> None:
        """Disconnect and stop the network loop if running."""
        client = self._client
        self._client = None
        was_running = self._running
        self._stopping = True
        self._running = False

        if client is None:
            return
        try:
            if was_running:
                self._logger.debug("MQTT disconnect requested")
                client.disconnect()
        finally:
            client.loop_stop()
            self._logger.debug("MQTT network loop stopped")
