"""Minimum-interval rate limiter for frame emission."""

from __future__ import annotations

from typing import Optional


class FrameThrottle:
    """Allows an emission only when ``min_interval`` has passed since the last one.

    Only emitted frames count: a skipped tick does not reset the clock, so a
    tick cadence faster than the interval still emits at the interval.
    """

    def __init__(self, min_interval: float) -> None:
        if min_interval < 0:
            raise ValueError("min_interval must be >= 0")
        self.min_interval = min_interval
        self._last: Optional[float] = None

    @property
    def last_emit(self) -> Optional[float]:
        return self._last

    def ready(self, now: float) -> bool:
        return self._last is None or (now - self._last) >= self.min_interval

    def mark(self, now: float) -> None:
        self._last = now

    def reset(self) -> None:
        self._last = None
