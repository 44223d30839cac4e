"""
Supplier API Rate Limiter using a cost-based bucket.

The supplier quota is cost based: every request consumes a variable number
of points from a bucket that restores at a fixed rate. The true server-side
state is only visible when a response carries a cost envelope, so the
limiter runs two modes side by side:

- predictive: before a request, wait until the estimated cost fits
  (ESTIMATED_COSTS), then reserve it
- corrective: after a response, overwrite local usage with the server's
  currentlyAvailable reading

Bucket Configuration (defaults):
- Capacity: 2000 points
- Restore Rate: 100 points per second
- Safety Margin: 100 points kept unavailable

Usage:
    from supplier_sync.utils.rate_limiter import RateLimiter

    limiter = RateLimiter.from_settings(settings)
    await limiter.wait_for_capacity(ESTIMATED_COSTS["getProducts"])
    # Now safe to call the supplier API
    cost = parse_cost_from_response(body)
    if cost:
        limiter.update_from_response(cost)
"""

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from supplier_sync.core.config import Settings
from supplier_sync.core.constants.rate_limit import (
    DEFAULT_MAX_COST,
    DEFAULT_RESTORE_RATE,
    DEFAULT_SAFETY_MARGIN,
)
from supplier_sync.utils.cost_bucket import CostBucket

logger = logging.getLogger("rate_limiter")


class ThrottleStatus(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    maximum_available: float = Field(alias="maximumAvailable")
    currently_available: float = Field(alias="currentlyAvailable")
    restore_rate: float = Field(alias="restoreRate")


class CostInfo(BaseModel):
    """Cost envelope attached to upstream responses (extensions.cost)."""
    model_config = ConfigDict(populate_by_name=True)

    requested_query_cost: float = Field(alias="requestedQueryCost")
    actual_query_cost: Optional[float] = Field(default=None, alias="actualQueryCost")
    throttle_status: ThrottleStatus = Field(alias="throttleStatus")


def parse_cost_from_response(response: Any) -> Optional[CostInfo]:
    """
    Parse cost information from an upstream response body.

    Args:
        response: Decoded JSON body

    Returns:
        CostInfo if the envelope is present and well formed, None otherwise
    """
    if not isinstance(response, dict):
        return None
    extensions = response.get("extensions")
    if not isinstance(extensions, dict):
        return None
    cost = extensions.get("cost")
    if not isinstance(cost, dict):
        return None
    try:
        return CostInfo.model_validate(cost)
    except PydanticValidationError as e:
        logger.debug(f"Ignoring malformed cost envelope: {e}")
        return None


class RateLimiter:
    """
    Process-local cost limiter for the supplier API.

    One instance is shared by every job dispatched from the process; it is
    constructed once and injected (see container.get_rate_limiter). The
    check-and-reserve step never awaits, and waiters re-check after every
    sleep, so coroutines sharing an instance cannot overdraw the bucket.
    """

    def __init__(
        self,
        max_cost: float = DEFAULT_MAX_COST,
        restore_rate: float = DEFAULT_RESTORE_RATE,
        safety_margin: float = DEFAULT_SAFETY_MARGIN,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        name: str = "supplier",
    ):
        """
        Initialize the rate limiter.

        Args:
            max_cost: Maximum bucket size in points
            restore_rate: Points restored per second
            safety_margin: Points kept unavailable as a buffer
            clock: Wall-clock source in seconds
            sleep: Coroutine used to suspend the caller (seconds)
            name: Label used in logs
        """
        self._bucket = CostBucket(
            capacity_max=max_cost,
            restore_rate_per_second=restore_rate,
            safety_margin=safety_margin,
            clock=clock,
        )
        self._sleep = sleep
        self._name = name

        logger.info(
            f"RateLimiter[{name}] initialized: max_cost={max_cost}, "
            f"restore_rate={restore_rate}/s, safety_margin={safety_margin}"
        )

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs) -> "RateLimiter":
        return cls(
            max_cost=settings.rate_limit_max_cost,
            restore_rate=settings.rate_limit_restore_rate,
            safety_margin=settings.rate_limit_safety_margin,
            **kwargs,
        )

    @property
    def bucket(self) -> CostBucket:
        return self._bucket

    async def wait_for_capacity(self, requested_cost: float) -> int:
        """
        Suspend until requested_cost fits in the bucket, then reserve it.

        Waiting never fails, it only delays.

        Args:
            requested_cost: Estimated cost of the upcoming request

        Returns:
            Total milliseconds spent waiting
        """
        if requested_cost <= 0:
            raise ValueError("requested_cost must be positive")
        if requested_cost > self._bucket.usable_capacity:
            raise ValueError(
                f"requested_cost {requested_cost} exceeds usable capacity "
                f"{self._bucket.usable_capacity}"
            )

        waited_ms = 0
        self._bucket.restore()
        wait_ms = self._bucket.wait_ms_for(requested_cost)

        while wait_ms > 0:
            logger.debug(
                f"RateLimiter[{self._name}] waiting {wait_ms}ms for "
                f"{requested_cost - self._bucket.available():.1f} points to restore"
            )
            await self._sleep(wait_ms / 1000)
            waited_ms += wait_ms
            self._bucket.restore()
            wait_ms = self._bucket.wait_ms_for(requested_cost)

        # Reserve the cost
        self._bucket.reserve(requested_cost)

        logger.debug(
            f"RateLimiter[{self._name}] reserved {requested_cost} points. "
            f"Usage: {self._bucket.consumed:.1f}/{self._bucket.capacity_max:.0f}"
        )
        return waited_ms

    def reconcile_from_server(self, server_available: float) -> None:
        """
        Replace local usage with the server's authoritative available points.

        Takes precedence over any local estimate for the same request.
        """
        self._bucket.set_available(server_available)
        logger.debug(
            f"RateLimiter[{self._name}] reconciled from server: available={server_available}, "
            f"consumed={self._bucket.consumed:.1f}"
        )

    def update_from_response(self, cost_info: CostInfo) -> None:
        """Reconcile from a parsed cost envelope."""
        self.reconcile_from_server(cost_info.throttle_status.currently_available)
        if cost_info.actual_query_cost is not None:
            logger.debug(
                f"RateLimiter[{self._name}] actual cost={cost_info.actual_query_cost}, "
                f"requested={cost_info.requested_query_cost}"
            )

    def available_now(self) -> float:
        """Currently available points (never negative)."""
        self._bucket.restore()
        return max(0.0, self._bucket.available())

    def reset(self) -> None:
        """
        Reset the bucket to full capacity.

        Out-of-band recovery only (e.g. after a long idle period).
        """
        self._bucket.reset()
        logger.info(f"RateLimiter[{self._name}] reset to full capacity")

    def get_status(self) -> dict:
        """
        Get current rate limiter status (for monitoring).

        Returns:
            Dict with consumed, capacity, available points, utilization, etc.
        """
        available = self.available_now()
        capacity = self._bucket.capacity_max
        return {
            "name": self._name,
            "consumed": self._bucket.consumed,
            "max_cost": capacity,
            "available_points": available,
            "utilization_percent": round(self._bucket.consumed / capacity * 100),
            "restore_rate": self._bucket.restore_rate_per_second,
            "safety_margin": self._bucket.safety_margin,
            "last_reconciled_at": self._bucket.last_reconciled_at,
        }
