"""Base enum and model for charger payloads.

Status enums inherit from :class:`WallboxEnum` which requires an
``UNKNOWN`` member at ``-1`` and a ``_missing_`` hook that returns
``UNKNOWN`` for any code without a mapped member. Lookups therefore
fail closed instead of raising ``ValueError``.

Pydantic models for inbound payloads inherit from
:class:`WallboxBaseModel`.
"""

from __future__ import annotations

import enum
from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

UNKNOWN_LABEL = "Unknown"


class WallboxEnum(enum.IntEnum):
    """Base for charger status code enums.

    Every subclass **must** define ``UNKNOWN = -1`` and may override
    :meth:`_labels` to supply human readable names.
    """

    @classmethod
    def _missing_(cls, value: object) -> WallboxEnum:
        # pylint: disable=no-member
        if hasattr(cls, "UNKNOWN"):
            unknown: WallboxEnum = cls.UNKNOWN  # type: ignore[attr-defined]
            return unknown
        return next(iter(cls))

    @classmethod
    def from_code(cls, code: Any) -> WallboxEnum:
        """Resolve a raw (possibly non-integer) code to a member."""
        try:
            return cls(int(code))
        except (TypeError, ValueError, OverflowError):
            return cls(-1)

    @classmethod
    def _labels(cls) -> Mapping[int, str]:
        return {}

    @property
    def label(self) -> str:
        return type(self)._labels().get(int(self), UNKNOWN_LABEL)


class WallboxBaseModel(BaseModel):
    """Base for inbound payload models.

    Unknown keys are ignored so newer firmware fields never break decoding.
    The original payload is kept in ``raw``.
    """

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    raw: dict[str, Any] = Field(default_factory=dict, exclude=True)
