"""Charger data source backed by the charger's local Redis and MySQL."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

import redis
from redis.client import PubSubWorkerThread
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from wallbox_bridge._constants import (
    CHARGER_TYPE_CPB1,
    EVENT_REQUEST_LOCK,
    EVENT_REQUEST_LOGIN,
    EVENT_REQUEST_PAUSE,
    EVENT_REQUEST_RESUME,
    MQ_LOGIN,
    MQ_STATEMACHINE,
    REDIS_M2W_HASH,
    REDIS_STATE_HASH,
    REDIS_TELEMETRY_HASH,
    TELEMETRY_EVENTS_CHANNEL,
)
from wallbox_bridge._redact import redact_url
from wallbox_bridge.config import BridgeConfig
from wallbox_bridge.datasource._mqueue import PosixQueueSender
from wallbox_bridge.datasource.base import TelemetryHandler
from wallbox_bridge.exceptions import DataSourceError
from wallbox_bridge.ingestion.normalize import coerce_int, safe_int
from wallbox_bridge.state.fields import FIELDS_BY_SECTION, StoreSection
from wallbox_bridge.state.store import TelemetryStore

_logger = logging.getLogger(__name__)

_CHARGER_TYPE_QUERY = "SELECT SUBSTRING_INDEX(`part_number`, '-', 1) AS charger_type FROM `charger_info`"
_SERIAL_NUMBER_QUERY = "SELECT `serial_num` FROM `charger_info`"
_USER_ID_QUERY = "SELECT `user_id` FROM `users` WHERE `user_id` != 1 ORDER BY `user_id` DESC LIMIT 1"
_AVAILABLE_CURRENT_QUERY = "SELECT `max_avbl_current` FROM `state_values` ORDER BY `id` DESC LIMIT 1"
_CONFIG_VALUE_QUERY = "SELECT `{column}` FROM `wallbox_config`"
_CONFIG_UPDATE = "UPDATE `wallbox_config` SET `{column}` = :value"

_SQL_REFRESH_QUERY = (
    "SELECT "
    "  `wallbox_config`.`charging_enable`,"
    "  `wallbox_config`.`lock`,"
    "  `wallbox_config`.`max_charging_current`,"
    "  `wallbox_config`.`halo_brightness`,"
    "  `power_outage_values`.`charged_energy` AS cumulative_added_energy,"
    "  IF(`active_session`.`unique_id` != 0,"
    "    `active_session`.`charged_range`,"
    "    `latest_session`.`charged_range`) AS added_range "
    "FROM `wallbox_config`,"
    "    `active_session`,"
    "    `power_outage_values`,"
    "    (SELECT * FROM `session` ORDER BY `id` DESC LIMIT 1) AS latest_session"
)

_WRITABLE_COLUMNS = frozenset({"lock", "charging_enable", "max_charging_current", "halo_brightness"})


class _RedisSubscription:
    def __init__(self, pubsub: redis.client.PubSub, worker: PubSubWorkerThread) -> None:
        self._pubsub = pubsub
        self._worker = worker

    def stop(self) -> None:
        self._worker.stop()
        self._worker.join(timeout=5.0)
        self._pubsub.close()


class RedisSqlDataSource:
    """Reads and controls a Wallbox charger through its local databases.

    Parameters
    ----------
    redis_client : redis.Redis
        Client for the charger's Redis, created with ``decode_responses=True``.
    engine : sqlalchemy.engine.Engine
        Engine for the charger's MySQL database.
    queue_sender : PosixQueueSender, optional
        Sender for firmware control events.
    """

    def __init__(
        self,
        redis_client: redis.Redis,
        engine: Engine,
        *,
        queue_sender: PosixQueueSender | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._redis = redis_client
        self._engine = engine
        self._queue = queue_sender or PosixQueueSender()
        self._logger = logger or _logger
        self._charger_type: str | None = None

    @classmethod
    def connect(cls, config: BridgeConfig) -> RedisSqlDataSource:
        """Connect to Redis and MySQL and probe both.

        Raises
        ------
        DataSourceError
            If either store is unreachable.
        """
        _logger.info(
            "Connecting data source redis=%s:%s database=%s",
            config.redis_host,
            config.redis_port,
            redact_url(config.database_url),
        )
        client = redis.Redis(
            host=config.redis_host,
            port=config.redis_port,
            db=config.redis_db,
            decode_responses=True,
        )
        try:
            client.ping()
        except redis.RedisError as exc:
            raise DataSourceError(f"Redis unreachable: {exc}", source="redis") from exc

        try:
            engine = create_engine(config.database_url, pool_pre_ping=True)
        except (SQLAlchemyError, ImportError) as exc:
            raise DataSourceError(f"Invalid database URL: {exc}", source="sql") from exc

        source = cls(client, engine)
        source.charger_type()
        return source

    # ------------------------------------------------------------------
    # SQL helpers
    # ------------------------------------------------------------------

    def _scalar(self, query: str) -> Any:
        try:
            with self._engine.connect() as conn:
                return conn.execute(text(query)).scalar()
        except SQLAlchemyError as exc:
            raise DataSourceError(f"SQL query failed: {exc}", source="sql") from exc

    def _update_config(self, column: str, value: int) -> None:
        if column not in _WRITABLE_COLUMNS:
            raise ValueError(f"Column {column!r} is not writable")
        try:
            with self._engine.begin() as conn:
                conn.execute(text(_CONFIG_UPDATE.format(column=column)), {"value": value})
        except SQLAlchemyError as exc:
            raise DataSourceError(f"Updating {column} failed: {exc}", source="sql") from exc
        self._logger.debug("wallbox_config.%s set to %s", column, value)

    def _config_value(self, column: str) -> int | None:
        return safe_int(self._scalar(_CONFIG_VALUE_QUERY.format(column=column)))

    # ------------------------------------------------------------------
    # Identity
    # ------------------------------------------------------------------

    def charger_type(self) -> str:
        if self._charger_type is None:
            value = self._scalar(_CHARGER_TYPE_QUERY)
            self._charger_type = str(value or "")
            self._logger.debug("Charger type %s", self._charger_type)
        return self._charger_type

    def serial_number(self) -> str:
        return str(self._scalar(_SERIAL_NUMBER_QUERY) or "")

    def user_id(self) -> str:
        return str(self._scalar(_USER_ID_QUERY) or "")

    def available_current(self) -> int:
        return safe_int(self._scalar(_AVAILABLE_CURRENT_QUERY)) or 0

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def _hmget(self, name: str, section: StoreSection) -> dict[str, Any]:
        keys = [spec.source_key for spec in FIELDS_BY_SECTION[section]]
        values = self._redis.hmget(name, keys)
        return dict(zip(keys, values, strict=True))

    def refresh(self, store: TelemetryStore) -> None:
        try:
            state = self._hmget(REDIS_STATE_HASH, StoreSection.STATE)
            m2w = self._hmget(REDIS_M2W_HASH, StoreSection.M2W)
        except redis.RedisError as exc:
            raise DataSourceError(f"Redis refresh failed: {exc}", source="redis") from exc

        try:
            with self._engine.connect() as conn:
                row: Mapping[str, Any] | None = conn.execute(text(_SQL_REFRESH_QUERY)).mappings().first()
        except SQLAlchemyError as exc:
            raise DataSourceError(f"SQL refresh failed: {exc}", source="sql") from exc

        try:
            store.apply_section(StoreSection.STATE, state)
            store.apply_section(StoreSection.M2W, m2w)
            if row is not None:
                store.apply_section(StoreSection.SQL, row)
        except ValueError as exc:
            raise DataSourceError(f"Unparsable charger value: {exc}", source="redis") from exc

    def refresh_telemetry(self, store: TelemetryStore) -> None:
        try:
            telemetry = self._hmget(REDIS_TELEMETRY_HASH, StoreSection.TELEMETRY)
        except redis.RedisError as exc:
            self._logger.warning("Error fetching telemetry data: %s", exc)
            return
        skipped = store.apply_section(StoreSection.TELEMETRY, telemetry, strict=False)
        for key in skipped:
            self._logger.warning("Error scanning telemetry field %s=%r", key, telemetry.get(key))

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def set_locked(self, payload: str) -> None:
        lock = coerce_int(payload)
        if lock == self._config_value("lock"):
            return
        if self.charger_type() == CHARGER_TYPE_CPB1:
            self._update_config("lock", lock)
        elif lock == 1:
            self._queue.send(MQ_LOGIN, EVENT_REQUEST_LOCK)
        else:
            self._queue.send(MQ_LOGIN, EVENT_REQUEST_LOGIN.format(user_id=self.user_id()))

    def set_charging_enable(self, payload: str) -> None:
        enable = coerce_int(payload)
        if enable == self._config_value("charging_enable"):
            return
        self._queue.send(MQ_STATEMACHINE, EVENT_REQUEST_RESUME if enable == 1 else EVENT_REQUEST_PAUSE)

    def set_max_charging_current(self, payload: str) -> None:
        self._update_config("max_charging_current", coerce_int(payload))

    def set_halo_brightness(self, payload: str) -> None:
        self._update_config("halo_brightness", coerce_int(payload))

    # ------------------------------------------------------------------
    # Telemetry events
    # ------------------------------------------------------------------

    def subscribe_telemetry(self, handler: TelemetryHandler) -> _RedisSubscription:
        def on_message(message: dict[str, Any]) -> None:
            data = message.get("data")
            if isinstance(data, (str, bytes)):
                handler(data)

        pubsub = self._redis.pubsub(ignore_subscribe_messages=True)
        try:
            pubsub.subscribe(**{TELEMETRY_EVENTS_CHANNEL: on_message})
        except redis.RedisError as exc:
            raise DataSourceError(f"Telemetry subscribe failed: {exc}", source="redis") from exc
        worker = pubsub.run_in_thread(sleep_time=1.0, daemon=True, exception_handler=self._on_worker_error)
        self._logger.debug("Subscribed to %s", TELEMETRY_EVENTS_CHANNEL)
        return _RedisSubscription(pubsub, worker)

    def _on_worker_error(self, exc: BaseException, pubsub: Any, worker: PubSubWorkerThread) -> None:
        """Stop the listener on connection loss. Handler errors are logged and the listener keeps running."""
        if isinstance(exc, redis.RedisError) or not isinstance(exc, Exception):
            self._logger.error("Telemetry subscription failed: %s", exc)
            worker.stop()
            return
        self._logger.error("Telemetry event handler failed", exc_info=exc)

    def close(self) -> None:
        try:
            self._redis.close()
        finally:
            self._engine.dispose()
