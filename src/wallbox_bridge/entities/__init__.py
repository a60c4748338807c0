"""Entities exposed on the bus and the registry that holds them."""

from wallbox_bridge.entities.entity import ComponentKind, Entity, Value, format_value
from wallbox_bridge.entities.registry import EntityRegistry

__all__ = [
    "ComponentKind",
    "Entity",
    "EntityRegistry",
    "Value",
    "format_value",
]
