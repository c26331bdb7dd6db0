"""Single-slot session manager.

Only one model may be resident at a time. Every ``acquire`` and
``evict_all`` runs through one FIFO task queue, so a model switch always
finishes tearing down the previous engine handle before the next one is
constructed, even with concurrent callers and a background idle timer.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from redline.core.protocols import IInferenceEngine
from redline.models.session import (
    MemoryPressureLevel,
    ProgressCallback,
    SamplingParams,
    SessionState,
)
from redline.sessions.inference_session import InferenceSession
from redline.sessions.task_queue import SerialTaskQueue

logger = logging.getLogger(__name__)

SessionFactory = Callable[[str], InferenceSession]


class SessionManager:
    """Owns the active InferenceSession and decides when it goes away."""

    def __init__(
        self,
        engine: IInferenceEngine,
        *,
        sampling: SamplingParams | None = None,
        idle_timeout: float = 600.0,
        max_init_attempts: int = 2,
        on_progress: ProgressCallback | None = None,
        session_factory: SessionFactory | None = None,
    ) -> None:
        self._engine = engine
        self._sampling = sampling or SamplingParams()
        self._idle_timeout = idle_timeout
        self._max_init_attempts = max_init_attempts
        self._on_progress = on_progress
        self._session_factory = session_factory or self._default_factory
        self._queue = SerialTaskQueue()
        self._active: InferenceSession | None = None
        self._idle_handle: asyncio.TimerHandle | None = None
        self._idle_task: asyncio.Task[None] | None = None
        self.idle_deadline: float | None = None

    def _default_factory(self, model_id: str) -> InferenceSession:
        return InferenceSession(
            model_id,
            self._engine,
            sampling=self._sampling,
            on_progress=self._on_progress,
            max_init_attempts=self._max_init_attempts,
        )

    # ---- inspection ----

    @property
    def active_session(self) -> InferenceSession | None:
        return self._active

    @property
    def active_model_id(self) -> str | None:
        return self._active.model_id if self._active is not None else None

    def is_active(self, session: InferenceSession) -> bool:
        """True while ``session`` is still the manager's READY session."""
        return self._active is session and session.state is SessionState.READY

    # ---- acquire / evict ----

    async def acquire(self, model_id: str) -> InferenceSession:
        """Return a READY session for ``model_id``, creating it if needed.

        Raises:
            SessionAbortedError: initialization was cancelled.
            SessionError: the model could not be loaded.
        """
        return await self._queue.run(lambda: self._acquire(model_id))

    async def _acquire(self, model_id: str) -> InferenceSession:
        active = self._active
        if active is not None and active.model_id == model_id and active.state is SessionState.READY:
            logger.debug("Reusing active session for model %s", model_id)
            self._reset_idle_timer()
            return active

        await self._evict()

        logger.debug("Creating new session for model %s", model_id)
        session = self._session_factory(model_id)
        self._active = session
        try:
            await session.start()
        except BaseException:
            if self._active is session:
                self._active = None
            raise
        self._reset_idle_timer()
        return session

    async def evict_all(self) -> None:
        """Unload the active session, if any. A no-op when nothing is loaded."""
        self._cancel_idle_timer()
        await self._queue.run(self._evict)

    async def _evict(self) -> None:
        session, self._active = self._active, None
        if session is None:
            return
        await session.unload()
        logger.info("Evicted model %s", session.model_id)

    async def cancel_active(self, *, wait: bool = True) -> bool:
        """Stop an in-flight initialization. Returns True if one was cancelled.

        This is the user-facing stop: the model's cached artifact is deleted.
        With ``wait=False`` it returns once the stop is signalled instead of
        after the load has unwound.

        Bypasses the task queue: the initialization being cancelled is the
        operation currently holding it.
        """
        session = self._active
        if session is None or session.state is not SessionState.INITIALIZING:
            return False
        await session.cancel(cleanup=True, wait=wait)
        return True

    # ---- idle eviction ----

    def touch(self) -> None:
        """Record activity on the active session, pushing back idle eviction."""
        if self._active is not None:
            self._reset_idle_timer()

    def _reset_idle_timer(self) -> None:
        self._cancel_idle_timer()
        if self._idle_timeout <= 0:
            return
        loop = asyncio.get_running_loop()
        self.idle_deadline = loop.time() + self._idle_timeout
        self._idle_handle = loop.call_later(self._idle_timeout, self._on_idle_timeout)

    def _cancel_idle_timer(self) -> None:
        if self._idle_handle is not None:
            self._idle_handle.cancel()
            self._idle_handle = None
        self.idle_deadline = None

    def _on_idle_timeout(self) -> None:
        self._idle_handle = None
        self.idle_deadline = None
        logger.info("Idle timeout of %.0fs reached; evicting model", self._idle_timeout)
        self._idle_task = asyncio.get_running_loop().create_task(self._evict_if_idle())

    async def _evict_if_idle(self) -> None:
        async def evict_unless_rearmed() -> None:
            # An acquire queued ahead of us re-armed the timer; the session is in use.
            if self._idle_handle is not None:
                logger.debug("Idle eviction skipped; session was used again")
                return
            await self._evict()

        try:
            await self._queue.run(evict_unless_rearmed)
        except Exception:
            logger.exception("Idle eviction failed")

    # ---- memory pressure ----

    async def handle_memory_pressure(self, level: MemoryPressureLevel) -> bool:
        """React to a pushed memory-pressure level. Returns True if it evicted."""
        if level is not MemoryPressureLevel.CRITICAL:
            logger.debug("Memory pressure %s; no action", level)
            return False
        logger.warning("Critical memory pressure, unloading models")
        session = self._active
        if session is not None and session.state is SessionState.INITIALIZING:
            session.request_cancel()
        await self.evict_all()
        return True

    async def close(self) -> None:
        """Stop the idle timer and release everything. Used at shutdown."""
        session = self._active
        if session is not None and session.state is SessionState.INITIALIZING:
            session.request_cancel()
        await self.evict_all()
        if self._idle_task is not None and not self._idle_task.done():
            self._idle_task.cancel()
