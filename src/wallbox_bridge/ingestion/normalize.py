"""Normalization helpers.

Centralizes lenient parsing of values read from Redis, SQL rows and
command payloads. Malformed numbers never raise: they coerce to zero,
matching how the charger firmware treats them.
"""

from __future__ import annotations

import math
from typing import Any


def safe_float(value: Any) -> float | None:
    if value is None or value == "":
        return None
    if isinstance(value, bytes):
        value = value.decode("utf-8", errors="replace")
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(result):
        return None
    return result


def safe_int(value: Any) -> int | None:
    parsed = safe_float(value)
    if parsed is None or math.isinf(parsed):
        return None
    return int(parsed)


def coerce_float(value: Any) -> float:
    """Parse *value* as a float, ``0.0`` when it is not numeric."""
    parsed = safe_float(value)
    return 0.0 if parsed is None else parsed


def coerce_int(value: Any) -> int:
    """Parse *value* as an integer, ``0`` when it is not an integer literal.

    Command payloads are expected to be integer text (``"1"``, ``"16"``).
    Anything else, including ``"1.5"`` and ``""``, becomes ``0``.
    """
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, bytes):
        value = value.decode("utf-8", errors="replace")
    try:
        return int(str(value).strip())
    except ValueError:
        return 0
