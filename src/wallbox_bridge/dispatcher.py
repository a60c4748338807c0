"""Inbound command dispatch."""

from __future__ import annotations

import logging
import threading

from wallbox_bridge.entities.registry import EntityRegistry
from wallbox_bridge.exceptions import BridgeError


class CommandDispatcher:
    """Routes ``<prefix>/<key>/set`` commands to entity write accessors.

    Commands for unknown or read-only entities are logged and dropped.
    Write accessors run synchronously on the caller's thread, one at a
    time; no timeout is applied.
    """

    def __init__(self, registry: EntityRegistry, *, logger: logging.Logger | None = None) -> None:
        self._registry = registry
        self._logger = logger or logging.getLogger(__name__)
        self._lock = threading.Lock()

    def dispatch(self, entity_key: str, payload: str) -> bool:
        """Apply *payload* to the entity *entity_key*.

        Returns ``True`` when a write accessor was invoked and completed.
        """
        entity = self._registry.get(entity_key)
        if entity is None:
            self._logger.warning("Dropping command for unknown entity %s", entity_key)
            return False
        if entity.write is None:
            self._logger.warning("Dropping command for read-only entity %s", entity_key)
            return False

        self._logger.info("Setting %s to %s", entity_key, payload)
        with self._lock:
            try:
                entity.write(payload)
            except BridgeError:
                self._logger.exception("Command for %s failed", entity_key)
                return False
        return True

    def handle_message(self, topic: str, payload: bytes) -> bool:
        """Transport callback for the command subscription."""
        parts = topic.split("/")
        if len(parts) < 3 or parts[-1] != "set":
            self._logger.warning("Ignoring message on unexpected topic %s", topic)
            return False
        return self.dispatch(parts[-2], payload.decode("utf-8", errors="replace"))
