"""
Pending-work counter used to detect that a crawl has finished.
"""

import asyncio
import logging
from typing import Callable, Optional


class PendingCounter:
    """
    Counts tasks that have been enqueued but not yet settled.

    Every task is counted before it is pushed and uncounted once its
    processing is finished. A worker must count all the children of a task
    before it uncounts the task itself; otherwise the counter can touch zero
    while more work is about to be queued.

    `wait_for_zero()` resolves the first time the counter returns to zero
    after having been non-zero, and stays resolved afterwards.
    """

    def __init__(self, on_change: Optional[Callable[[int], None]] = None):
        self._value = 0
        self._started = False
        self._zero = asyncio.Event()
        self._on_change = on_change
        self.logger = logging.getLogger(__name__)

    @property
    def value(self) -> int:
        return self._value

    @property
    def done(self) -> bool:
        return self._zero.is_set()

    def increment(self, n: int = 1):
        if n < 0:
            raise ValueError("increment must be non-negative")
        if self._zero.is_set():
            raise RuntimeError(f"Counter incremented by {n} after completion was signalled")
        self._value += n
        self._started = True
        self._notify()

    def decrement(self, n: int = 1):
        if n < 0:
            raise ValueError("decrement must be non-negative")
        if n > self._value:
            raise ValueError(f"Pending counter would go negative ({self._value} - {n})")
        self._value -= n
        self._notify()
        if self._value == 0 and self._started and not self._zero.is_set():
            self.logger.debug("Pending counter reached zero")
            self._zero.set()

    async def wait_for_zero(self):
        """Suspend until all counted work has been settled."""
        await self._zero.wait()

    def _notify(self):
        if self._on_change is not None:
            self._on_change(self._value)
