"""psutil-backed memory-pressure signal source."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

import psutil

from redline.models.session import MemoryPressureLevel
from redline.sessions.manager import SessionManager

logger = logging.getLogger(__name__)


def _virtual_memory_percent() -> float:
    return float(psutil.virtual_memory().percent)


class MemoryPressureMonitor:
    """Polls system memory usage and pushes level changes to the manager.

    Only transitions are pushed, so a model loaded while memory is already
    critical is not evicted again on every poll.
    """

    def __init__(
        self,
        manager: SessionManager,
        *,
        poll_seconds: float = 30.0,
        moderate_percent: float = 85.0,
        critical_percent: float = 95.0,
        sampler: Callable[[], float] = _virtual_memory_percent,
    ) -> None:
        self._manager = manager
        self._poll_seconds = poll_seconds
        self._moderate = moderate_percent
        self._critical = critical_percent
        self._sampler = sampler
        self._last_level = MemoryPressureLevel.NOMINAL
        self._task: asyncio.Task[None] | None = None

    @property
    def last_level(self) -> MemoryPressureLevel:
        return self._last_level

    def classify(self, percent: float) -> MemoryPressureLevel:
        if percent >= self._critical:
            return MemoryPressureLevel.CRITICAL
        if percent >= self._moderate:
            return MemoryPressureLevel.MODERATE
        return MemoryPressureLevel.NOMINAL

    async def check_once(self) -> MemoryPressureLevel:
        percent = self._sampler()
        level = self.classify(percent)
        if level is not self._last_level:
            logger.info("Memory pressure changed %s -> %s (%.1f%% used)", self._last_level, level, percent)
            self._last_level = level
            await self._manager.handle_memory_pressure(level)
        return level

    async def _run(self) -> None:
        while True:
            try:
                await self.check_once()
            except Exception:
                logger.exception("Memory pressure check failed")
            await asyncio.sleep(self._poll_seconds)

    def start(self) -> None:
        if self._poll_seconds <= 0:
            logger.debug("Memory monitoring disabled")
            return
        if self._task is None or self._task.done():
            self._task = asyncio.get_running_loop().create_task(self._run())
            logger.debug("Memory monitoring started (every %.0fs)", self._poll_seconds)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
