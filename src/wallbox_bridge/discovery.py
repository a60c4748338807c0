"""Discovery config payloads.

Each entity is announced once at startup on
``{discovery_prefix}/{component}/{serial}_{key}/config`` so that the
dashboard can create it without manual setup.
"""

from __future__ import annotations

from typing import Any

from wallbox_bridge._constants import TOPIC_PREFIX_TEMPLATE
from wallbox_bridge.entities.entity import Entity


def topic_prefix(serial: str) -> str:
    return TOPIC_PREFIX_TEMPLATE.format(serial=serial)


def availability_topic(serial: str) -> str:
    return f"{topic_prefix(serial)}/availability"


def state_topic(serial: str, key: str) -> str:
    return f"{topic_prefix(serial)}/{key}/state"


def command_subscription(serial: str) -> str:
    return f"{topic_prefix(serial)}/+/set"


def unique_id(serial: str, entity: Entity) -> str:
    return f"{serial}_{entity.key}"


def discovery_topic(discovery_prefix: str, serial: str, entity: Entity) -> str:
    return f"{discovery_prefix}/{entity.component.value}/{unique_id(serial, entity)}/config"


def build_discovery_config(entity: Entity, *, serial: str, device_name: str) -> dict[str, Any]:
    """Discovery payload for *entity*.

    ``~`` is the entity's base topic; the consumer expands it in
    ``state_topic`` and ``command_topic``. Entity metadata is applied last
    and may override any generated key.
    """
    config: dict[str, Any] = {
        "~": f"{topic_prefix(serial)}/{entity.key}",
        "availability_topic": availability_topic(serial),
        "state_topic": "~/state",
        "unique_id": unique_id(serial, entity),
        "device": {
            "identifiers": serial,
            "name": device_name,
        },
    }
    if entity.writable:
        config["command_topic"] = "~/set"
    config.update(entity.config)
    return config
