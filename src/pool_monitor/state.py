"""Per-account delta state."""

from __future__ import annotations

from collections import deque
from typing import Deque, Optional, Tuple

from .config import settings


class AccountState:
    """Last value, a fixed-size window of recent deltas and their running sum.

    The window sum is maintained incrementally: an evicted delta is subtracted
    before the new one is added, so each update is O(1) regardless of the
    window size.
    """

    def __init__(self, capacity: int = settings.ring_size) -> None:
        if capacity < 1:
            raise ValueError(f"ring capacity must be positive, got {capacity}")
        self._capacity = capacity
        self._ring: Deque[float] = deque()
        self._last_value: Optional[float] = None
        self._rolling_sum = 0.0

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def last_value(self) -> Optional[float]:
        return self._last_value

    @property
    def rolling_sum(self) -> float:
        return self._rolling_sum

    @property
    def ring(self) -> Tuple[float, ...]:
        return tuple(self._ring)

    def apply(self, value: float) -> Tuple[float, float]:
        """Record ``value`` and return ``(delta, rolling_sum)``."""
        if self._last_value is None:
            delta = 0.0
        else:
            delta = value - self._last_value
        self._last_value = value

        if len(self._ring) == self._capacity:
            self._rolling_sum -= self._ring.popleft()
        self._ring.append(delta)
        self._rolling_sum += delta
        return delta, self._rolling_sum


__all__ = ["AccountState"]
