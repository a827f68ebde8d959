"""
Turn pacing schedulers

The engine never sleeps. When an enemy turn is due it asks a scheduler to
call `CombatEngine.tick` later; the scheduler decides what "later" means.
"""
import asyncio
import logging
from collections import deque
from typing import Callable, Deque, Optional

logger = logging.getLogger(__name__)

Callback = Callable[[], object]


class Scheduler:
    """Base scheduler interface."""

    def schedule(self, callback: Callback, delay: float) -> None:
        raise NotImplementedError

    def cancel(self) -> None:
        """Drop any callback that has not run yet."""


class ImmediateScheduler(Scheduler):
    """Runs callbacks synchronously, ignoring the delay."""

    def schedule(self, callback: Callback, delay: float) -> None:
        callback()


class ManualScheduler(Scheduler):
    """Queues callbacks until the caller steps the queue (tests, turn-based UIs)."""

    def __init__(self):
        self._queue: Deque[Callback] = deque()

    def schedule(self, callback: Callback, delay: float) -> None:
        self._queue.append(callback)

    def cancel(self) -> None:
        self._queue.clear()

    @property
    def pending(self) -> int:
        return len(self._queue)

    def step(self) -> bool:
        """Run the oldest queued callback. Returns False when the queue is empty."""
        if not self._queue:
            return False
        callback = self._queue.popleft()
        callback()
        return True

    def run_pending(self, limit: int = 1000) -> int:
        """Run callbacks (including ones they enqueue) until the queue drains."""
        ran = 0
        while self._queue and ran < limit:
            self.step()
            ran += 1
        if self._queue:
            logger.warning("ManualScheduler stopped after %d callbacks", limit)
        return ran


class AsyncioScheduler(Scheduler):
    """Delivers callbacks on an asyncio event loop after the pacing delay.

    Holds one timer at a time; scheduling again replaces the armed one.
    """

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self._loop = loop
        self._handle: Optional[asyncio.TimerHandle] = None

    @property
    def armed(self) -> bool:
        return self._handle is not None and not self._handle.cancelled()

    def schedule(self, callback: Callback, delay: float) -> None:
        loop = self._loop or asyncio.get_running_loop()
        self.cancel()
        logger.debug("scheduling tick in %.2fs", delay)
        self._handle = loop.call_later(delay, self._fire, callback)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fire(self, callback: Callback) -> None:
        self._handle = None
        callback()
