"""
Repeating task — "run once immediately, then repeat" on an asyncio loop.

Contract:
- start() runs the callback right away, then every interval_seconds after
  the previous run finished. Starting an already running task is a no-op.
- stop() lets a tick that is in progress finish, cancels the pending wait,
  and is a no-op when already stopped.
- An exception raised by the callback is logged; the task keeps repeating.
"""
import asyncio
import logging
from typing import Awaitable, Callable, Optional

logger = logging.getLogger("repeating_task")


class RepeatingTask:
    """Cancellable periodic coroutine runner."""

    def __init__(
        self,
        callback: Callable[[], Awaitable[object]],
        interval_seconds: float,
        name: str = "repeating-task",
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self._callback = callback
        self._interval = interval_seconds
        self._name = name
        self._task: Optional[asyncio.Task] = None
        self._stop_event: Optional[asyncio.Event] = None
        self._runs = 0

    @property
    def interval_seconds(self) -> float:
        return self._interval

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def runs(self) -> int:
        """Number of callback invocations since construction."""
        return self._runs

    def start(self) -> bool:
        """
        Schedule the loop on the running event loop.

        Returns:
            True if a new loop was started, False if one was already running
        """
        if self.is_running:
            return False
        self._stop_event = asyncio.Event()
        self._task = asyncio.get_running_loop().create_task(self._run(), name=self._name)
        return True

    async def stop(self) -> None:
        """Stop after the current tick (if any) completes."""
        if self._task is None:
            return
        task = self._task
        self._stop_event.set()
        try:
            await task
        finally:
            self._task = None

    async def _run(self) -> None:
        while not self._stop_event.is_set():
            self._runs += 1
            try:
                await self._callback()
            except Exception as e:
                logger.error(f"[{self._name}] tick failed: {e}")

            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self._interval)
            except asyncio.TimeoutError:
                continue
