"""Delta rate limiting for noisy numeric entities.

A :class:`DeltaRateLimit` decides whether a new sample is worth publishing.
A sample passes when the publish window has elapsed, or when it moved far
enough away from the last accepted sample. Rejected samples leave the state
untouched, so a slowly drifting value is still published once the window
has elapsed.
"""

from __future__ import annotations

import time
from collections.abc import Callable


class DeltaRateLimit:
    """Time-or-magnitude gate owned by a single entity.

    Parameters
    ----------
    min_interval_seconds : float
        Length of the publish window. Any sample is accepted once the
        window has elapsed, and the acceptance opens a new window.
    min_delta : float
        Accept any sample whose absolute distance from the last accepted
        value is at least this large. Such an acceptance moves the
        reference value but leaves the current window running.
    clock : callable
        Monotonic time source in seconds. Injectable for tests.

    Examples
    --------
    With a 10 s window and a delta of 100, samples ``0, 50, 150, 150`` at
    ``t = 0, 1, 2, 11`` are accepted, rejected, accepted (delta) and
    accepted (window).

    Instances are not thread-safe; each one is evaluated only by the poll
    loop.
    """

    __slots__ = (
        "min_interval_seconds",
        "min_delta",
        "_clock",
        "_last_value",
        "_last_accepted_at",
        "_window_started_at",
    )

    def __init__(
        self,
        min_interval_seconds: float,
        min_delta: float,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if min_interval_seconds < 0:
            raise ValueError(f"min_interval_seconds must be >= 0, got {min_interval_seconds}")
        if min_delta < 0:
            raise ValueError(f"min_delta must be >= 0, got {min_delta}")
        self.min_interval_seconds = float(min_interval_seconds)
        self.min_delta = float(min_delta)
        self._clock = clock
        self._last_value: float | None = None
        self._last_accepted_at: float | None = None
        self._window_started_at: float | None = None

    @property
    def last_value(self) -> float | None:
        """Last accepted value, ``None`` before the first sample."""
        return self._last_value

    @property
    def last_accepted_at(self) -> float | None:
        return self._last_accepted_at

    @property
    def window_started_at(self) -> float | None:
        """Clock time at which the current publish window opened."""
        return self._window_started_at

    def allow(self, value: float) -> bool:
        """Return ``True`` and record *value* if it should be published."""
        now = self._clock()
        if self._last_value is None or self._window_started_at is None:
            self._accept(value, now)
            self._window_started_at = now
            return True

        if now - self._window_started_at >= self.min_interval_seconds:
            self._accept(value, now)
            self._window_started_at = now
            return True

        if abs(value - self._last_value) >= self.min_delta:
            self._accept(value, now)
            return True

        return False

    def _accept(self, value: float, now: float) -> None:
        self._last_value = value
        self._last_accepted_at = now

    def __repr__(self) -> str:
        return f"DeltaRateLimit(min_interval_seconds={self.min_interval_seconds}, min_delta={self.min_delta})"
