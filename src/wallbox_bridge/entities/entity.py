"""Entity abstraction.

An entity is one charger attribute exposed on the bus: a read accessor over
the :class:`~wallbox_bridge.state.store.TelemetryStore`, an optional write
accessor bound to the data source, an optional rate limiter and the
discovery metadata describing it.
"""

from __future__ import annotations

import math
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from enum import StrEnum

from wallbox_bridge.ratelimit import DeltaRateLimit
from wallbox_bridge.state.store import TelemetryStore

Value = int | float | str
ReadAccessor = Callable[[TelemetryStore], Value]
WriteAccessor = Callable[[str], None]


class ComponentKind(StrEnum):
    """Discovery component type of an entity."""

    SENSOR = "sensor"
    BINARY_SENSOR = "binary_sensor"
    SWITCH = "switch"
    NUMBER = "number"
    LOCK = "lock"


def format_value(value: Value) -> str:
    """Render *value* in its canonical wire form.

    Integral floats drop the fractional part (``250.0`` -> ``"250"``) so a
    value reads the same whether it came from an integer or a float field.
    Other floats use the shortest round-tripping representation.
    """
    if isinstance(value, bool):
        return str(int(value))
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if math.isfinite(value) and value.is_integer() and abs(value) < 1e21:
            return str(int(value))
        return repr(value)
    return str(value)


@dataclass(frozen=True, slots=True)
class Entity:
    """A named, optionally writable charger attribute.

    Parameters
    ----------
    key : str
        Unique entity key; also the topic segment.
    component : ComponentKind
        Discovery component type.
    read : callable
        Returns the current value from the store.
    write : callable or None
        Applies a raw command payload. ``None`` for read-only entities.
    rate_limit : DeltaRateLimit or None
        Publish suppression for noisy numeric values.
    config : mapping
        Discovery metadata (``name``, ``device_class``, ...), in order.
    """

    key: str
    component: ComponentKind
    read: ReadAccessor
    write: WriteAccessor | None = None
    rate_limit: DeltaRateLimit | None = None
    config: Mapping[str, str] = field(default_factory=dict)

    @property
    def writable(self) -> bool:
        return self.write is not None

    def read_state(self, store: TelemetryStore) -> str:
        """Evaluate the read accessor and render the canonical value."""
        return format_value(self.read(store))
