"""Ordered entity registry."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator, Mapping

from wallbox_bridge.entities.entity import Entity
from wallbox_bridge.exceptions import EntityRegistrationError

_logger = logging.getLogger(__name__)


class EntityRegistry:
    """Entities by key, iterated in registration order.

    Registering a key twice replaces the earlier entity. The replacement
    keeps the position of the first registration, so iteration order is
    the order in which keys were first seen.
    """

    def __init__(self, entities: Iterable[Entity] = ()) -> None:
        self._entities: dict[str, Entity] = {}
        for entity in entities:
            self.register(entity)

    def register(self, entity: Entity) -> None:
        """Add *entity*, replacing any entity with the same key.

        Raises
        ------
        EntityRegistrationError
            If the entity key is empty.
        """
        if not entity.key or not entity.key.strip():
            raise EntityRegistrationError("entity key must be non-empty")
        if entity.key in self._entities:
            _logger.debug("Entity %s overridden", entity.key)
        self._entities[entity.key] = entity

    def merge(self, entities: Mapping[str, Entity] | Iterable[Entity]) -> None:
        """Fold an entity set into the registry, later entries winning."""
        values = entities.values() if isinstance(entities, Mapping) else entities
        for entity in values:
            self.register(entity)

    def get(self, key: str) -> Entity | None:
        return self._entities.get(key)

    def all(self) -> list[Entity]:
        return list(self._entities.values())

    def keys(self) -> list[str]:
        return list(self._entities)

    def __contains__(self, key: object) -> bool:
        return key in self._entities

    def __iter__(self) -> Iterator[Entity]:
        return iter(self.all())

    def __len__(self) -> int:
        return len(self._entities)
