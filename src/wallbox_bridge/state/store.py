"""Live charger state snapshot.

The store has two writers: the poll loop's bulk refresh and the telemetry
event pipeline. Entity readers run on the poll loop. All access goes through
one re-entrant lock; readers that need a consistent view over several
fields hold :meth:`TelemetryStore.locked` for the whole pass.
"""

from __future__ import annotations

import contextlib
import threading
import time
from collections.abc import Callable, Iterable, Iterator, Mapping
from typing import Any

from wallbox_bridge.state.fields import (
    ALL_FIELDS,
    FIELDS_BY_SECTION,
    TELEMETRY_UPDATERS,
    FieldSpec,
    Number,
    StoreSection,
)


class TelemetryStore:
    """Thread-safe mapping from field identifier to last known value.

    Every declared field starts at zero, like a freshly booted charger that
    has not reported yet.
    """

    def __init__(
        self,
        fields: Iterable[FieldSpec] = ALL_FIELDS,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._lock = threading.RLock()
        self._clock = clock
        self._specs: dict[str, FieldSpec] = {spec.key: spec for spec in fields}
        self._values: dict[str, Number] = {key: spec.default for key, spec in self._specs.items()}
        self._refreshed_at: dict[StoreSection, float] = {}

    @contextlib.contextmanager
    def locked(self) -> Iterator[TelemetryStore]:
        """Hold the store lock for a multi-field read or write cycle."""
        with self._lock:
            yield self

    def spec(self, section: StoreSection, name: str) -> FieldSpec:
        """Look up a field declaration.

        Raises
        ------
        KeyError
            If the field is not declared.
        """
        return self._specs[f"{section.value}.{name}"]

    def get(self, section: StoreSection, name: str) -> Number:
        key = f"{section.value}.{name}"
        with self._lock:
            return self._values[key]

    def set(self, spec: FieldSpec, value: Any) -> None:
        """Overwrite one field, converting *value* to the field's type."""
        converted = spec.parse(value)
        with self._lock:
            if spec.key not in self._specs:
                raise KeyError(spec.key)
            self._values[spec.key] = converted

    def apply_section(
        self,
        section: StoreSection,
        raw: Mapping[str, Any],
        *,
        strict: bool = True,
    ) -> list[str]:
        """Bulk-update a section from a row keyed by source key.

        Keys absent from *raw* (or mapped to ``None``) keep their previous
        value. Unparsable values raise :class:`ValueError` when *strict*;
        otherwise they are skipped and their source keys returned.
        The section is updated atomically: with *strict*, nothing is written
        if any value fails.
        """
        parsed: dict[str, Number] = {}
        skipped: list[str] = []
        for spec in FIELDS_BY_SECTION[section]:
            if spec.key not in self._specs:
                continue
            value = raw.get(spec.source_key)
            if value is None:
                continue
            try:
                parsed[spec.key] = spec.parse(value)
            except ValueError:
                if strict:
                    raise
                skipped.append(spec.source_key)

        with self._lock:
            self._values.update(parsed)
            self._refreshed_at[section] = self._clock()
        return skipped

    def apply_telemetry(self, sensor_id: str, value: float) -> bool:
        """Update the telemetry field for *sensor_id*.

        Returns ``False`` when the sensor id is not tracked; the store is
        left unchanged in that case.
        """
        updater = TELEMETRY_UPDATERS.get(sensor_id)
        if updater is None:
            return False
        updater(self, value)
        return True

    def refreshed_at(self, section: StoreSection) -> float | None:
        """Monotonic time of the last bulk refresh of *section*."""
        with self._lock:
            return self._refreshed_at.get(section)

    def snapshot(self) -> dict[str, Number]:
        """Copy of all values keyed by ``"<section>.<name>"``."""
        with self._lock:
            return dict(self._values)
