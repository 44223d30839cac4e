"""
Cost bucket — in-memory accounting of a restoring point budget.

The bucket tracks how many points are currently consumed. Points restore
continuously at a fixed rate per elapsed wall-clock second. "Available" is
always derived, never stored:

    available = capacity_max - consumed - safety_margin

Restoration clamps at zero. Reservation does not clamp at the top: the
caller is expected to wait until enough points are available instead.
No I/O happens here; the clock is injectable for tests.
"""

import math
import time
from typing import Callable


class CostBucket:
    """Leaky/restoring bucket of cost points."""

    def __init__(
        self,
        capacity_max: float,
        restore_rate_per_second: float,
        safety_margin: float = 0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if capacity_max <= 0:
            raise ValueError("capacity_max must be positive")
        if restore_rate_per_second <= 0:
            raise ValueError("restore_rate_per_second must be positive")
        if safety_margin < 0 or safety_margin >= capacity_max:
            raise ValueError("safety_margin must be in [0, capacity_max)")

        self._capacity_max = float(capacity_max)
        self._restore_rate = float(restore_rate_per_second)
        self._safety_margin = float(safety_margin)
        self._clock = clock
        self._consumed = 0.0
        self._last_reconciled_at = clock()

    @property
    def capacity_max(self) -> float:
        return self._capacity_max

    @property
    def restore_rate_per_second(self) -> float:
        return self._restore_rate

    @property
    def safety_margin(self) -> float:
        return self._safety_margin

    @property
    def consumed(self) -> float:
        return self._consumed

    @property
    def last_reconciled_at(self) -> float:
        return self._last_reconciled_at

    @property
    def usable_capacity(self) -> float:
        """Largest single reservation the bucket can ever satisfy."""
        return self._capacity_max - self._safety_margin

    def restore(self) -> float:
        """
        Advance the bucket for elapsed time.

        Returns:
            Points restored by this call
        """
        now = self._clock()
        elapsed = max(0.0, now - self._last_reconciled_at)
        restored = min(self._consumed, elapsed * self._restore_rate)
        self._consumed -= restored
        self._last_reconciled_at = now
        return restored

    def available(self) -> float:
        """Raw available points (may be negative after an overdraft). Does not restore."""
        return self._capacity_max - self._consumed - self._safety_margin

    def wait_ms_for(self, requested_cost: float) -> int:
        """Milliseconds until requested_cost fits, rounded up. Does not restore."""
        deficit = requested_cost - self.available()
        if deficit <= 0:
            return 0
        return math.ceil(deficit / self._restore_rate * 1000)

    def reserve(self, cost: float) -> None:
        """Reserve points unconditionally."""
        self._consumed += cost

    def set_available(self, server_available: float) -> None:
        """Overwrite consumed from an authoritative available reading."""
        consumed = self._capacity_max - server_available
        self._consumed = min(self._capacity_max, max(0.0, consumed))
        self._last_reconciled_at = self._clock()

    def reset(self) -> None:
        self._consumed = 0.0
        self._last_reconciled_at = self._clock()
