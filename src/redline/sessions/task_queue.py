"""Single-worker FIFO task queue."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import TypeVar

T = TypeVar("T")


class SerialTaskQueue:
    """Runs submitted coroutine factories one at a time, in arrival order.

    An operation starts only after every previously submitted operation has
    settled, whether it returned or raised. Failures propagate to the
    submitter only; the queue stays usable.
    """

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._pending = 0

    @property
    def pending(self) -> int:
        """Operations submitted and not yet settled, including the running one."""
        return self._pending

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    async def run(self, operation: Callable[[], Awaitable[T]]) -> T:
        self._pending += 1
        try:
            async with self._lock:
                return await operation()
        finally:
            self._pending -= 1
