"""One loaded model and its lifecycle.

State machine::

    UNINITIALIZED --start()--> INITIALIZING(DOWNLOADING | WARMING) --> READY
    INITIALIZING  --cancel()--> CANCELLED   (artifact deleted on user stop or mid-download)
    INITIALIZING  --error-->    FAILED      (one clear-and-retry on cache corruption)
    READY         --unload()--> UNINITIALIZED

The load phase is detected once per attempt and latched for the rest of it.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from redline.core.exceptions import (
    CacheCorruptionError,
    EngineError,
    RedlineError,
    SessionAbortedError,
    SessionError,
    SessionNotReadyError,
)
from redline.core.protocols import IEngineHandle, IInferenceEngine
from redline.core.types import Messages
from redline.models.session import (
    LoadPhase,
    LoadProgress,
    ProgressCallback,
    SamplingParams,
    SessionState,
)
from redline.sessions.cancellation import CancellationToken

logger = logging.getLogger(__name__)

# Substrings seen in engine errors raised over a stale or broken cache index.
CORRUPTION_SIGNATURES = ("object store", "IDBDatabase", "cache index", "manifest")


def is_cache_corruption(exc: BaseException) -> bool:
    """Return True when ``exc`` looks like a corrupted local cache index."""
    if isinstance(exc, CacheCorruptionError):
        return True
    message = str(exc)
    return any(sig in message for sig in CORRUPTION_SIGNATURES)


class InferenceSession:
    """Exclusive owner of one engine handle."""

    def __init__(
        self,
        model_id: str,
        engine: IInferenceEngine,
        *,
        sampling: SamplingParams | None = None,
        on_progress: ProgressCallback | None = None,
        max_init_attempts: int = 2,
    ) -> None:
        self.model_id = model_id
        self.state = SessionState.UNINITIALIZED
        self.generation = 0
        self._engine = engine
        self._sampling = sampling or SamplingParams()
        self._on_progress = on_progress
        self._max_init_attempts = max(1, max_init_attempts)
        self._handle: IEngineHandle | None = None
        self._token: CancellationToken | None = None
        self._phase: LoadPhase | None = None
        self._settled: asyncio.Event | None = None

    def __repr__(self) -> str:
        return (
            f"InferenceSession(model_id={self.model_id!r}, state={self.state}, "
            f"generation={self.generation})"
        )

    @property
    def phase(self) -> LoadPhase | None:
        """Latched load phase of the current or last initialization attempt."""
        return self._phase

    @property
    def cancel_requested(self) -> bool:
        return self._token is not None and self._token.cancelled

    @property
    def is_ready(self) -> bool:
        return self.state is SessionState.READY and self._handle is not None

    # ---- lifecycle ----

    async def start(self) -> None:
        """Load the model, downloading it first if it is not cached.

        Raises:
            SessionAbortedError: ``cancel()`` was called while initializing.
            SessionError: the engine failed to load the model.
        """
        if self.state is SessionState.READY:
            return
        if self.state is SessionState.INITIALIZING:
            raise SessionError(self.model_id, f"Model {self.model_id} is already initializing")

        self.generation += 1
        generation = self.generation
        token = CancellationToken(self.model_id, generation)
        self._token = token
        self._settled = asyncio.Event()
        self._phase = None
        self.state = SessionState.INITIALIZING

        try:
            await self._start_with_retry(token, generation)
        finally:
            self._settled.set()

    async def _start_with_retry(self, token: CancellationToken, generation: int) -> None:
        attempt = 0
        while True:
            attempt += 1
            try:
                await self._load(token, generation)
            except (SessionAbortedError, asyncio.CancelledError):
                await self._abort(token, generation)
                raise
            except Exception as exc:
                await self._release_handle()
                if token.cancelled:
                    await self._abort(token, generation)
                    raise SessionAbortedError(self.model_id, generation) from exc
                if is_cache_corruption(exc) and attempt < self._max_init_attempts:
                    logger.warning(
                        "Model cache for %s looks corrupted (%s); clearing cache and retrying",
                        self.model_id,
                        exc,
                    )
                    await self._engine.clear_cache()
                    continue
                self.state = SessionState.FAILED
                logger.error("Failed to load model %s: %s", self.model_id, exc)
                if isinstance(exc, SessionError):
                    raise
                raise SessionError(
                    self.model_id, f"Model {self.model_id} failed to load: {exc}"
                ) from exc
            else:
                self.state = SessionState.READY
                logger.info("Model %s ready (generation %d)", self.model_id, generation)
                return

    async def _load(self, token: CancellationToken, generation: int) -> None:
        cached = await self._engine.is_model_cached(self.model_id)
        phase = LoadPhase.WARMING if cached else LoadPhase.DOWNLOADING
        self._phase = phase
        self._emit(phase, 0.0, "Preparing model", generation)
        token.raise_if_cancelled()

        mismatch_logged = False

        def on_engine_progress(fraction: float, text: str) -> None:
            nonlocal mismatch_logged
            if token.cancelled or generation != self.generation:
                return
            if phase is LoadPhase.WARMING and "download" in text.lower() and not mismatch_logged:
                logger.warning(
                    "Engine reports downloading for %s although it was cached; keeping phase %s",
                    self.model_id,
                    phase,
                )
                mismatch_logged = True
            self._emit(phase, fraction, text, generation)

        logger.info("Loading model %s (phase %s)", self.model_id, phase)
        self._handle = await self._engine.load_model(self.model_id, on_engine_progress, token)
        token.raise_if_cancelled()
        self._emit(phase, 1.0, "Ready", generation)

    def _emit(self, phase: LoadPhase, fraction: float, text: str, generation: int) -> None:
        if self._on_progress is None:
            return
        progress = LoadProgress(
            model_id=self.model_id,
            phase=phase,
            fraction=min(1.0, max(0.0, fraction)),
            text=text,
            generation=generation,
        )
        try:
            self._on_progress(progress)
        except Exception:
            logger.exception("Progress callback failed for %s", self.model_id)

    async def _abort(self, token: CancellationToken, generation: int) -> None:
        await self._release_handle()
        self.state = SessionState.CANCELLED
        logger.info("Loading of %s cancelled (generation %d)", self.model_id, generation)
        # A partial download is always discarded. A complete artifact only goes on a user stop.
        if not token.cleanup and self._phase is not LoadPhase.DOWNLOADING:
            return
        try:
            await self._engine.delete_model(self.model_id)
        except Exception as exc:
            logger.error("Failed to clean up partial model %s: %s", self.model_id, exc)

    async def _release_handle(self) -> None:
        handle, self._handle = self._handle, None
        if handle is None:
            return
        try:
            await handle.unload()
        except Exception as exc:
            logger.error("Error unloading engine handle for %s: %s", self.model_id, exc)

    async def cancel(self, *, cleanup: bool = True, wait: bool = True) -> None:
        """Request cancellation and, by default, wait for ``start()`` to unwind.

        With ``cleanup`` the model's cached artifact is deleted even when it
        was already complete. A no-op unless the session is INITIALIZING.
        """
        if self.state is not SessionState.INITIALIZING or self._token is None:
            logger.debug("Cancel ignored for %s in state %s", self.model_id, self.state)
            return
        logger.info("Cancelling initialization of %s", self.model_id)
        self._token.cancel(cleanup=cleanup)
        if wait and self._settled is not None:
            await self._settled.wait()

    def request_cancel(self) -> None:
        """Signal cancellation without waiting for the unwind. Keeps cached artifacts."""
        if self.state is SessionState.INITIALIZING and self._token is not None:
            self._token.cancel()

    async def unload(self) -> None:
        """Release the engine handle and return to UNINITIALIZED."""
        logger.debug("Unloading model %s", self.model_id)
        await self._release_handle()
        self.state = SessionState.UNINITIALIZED
        self._phase = None

    # ---- generation ----

    def _require_ready(self) -> IEngineHandle:
        if self.state is not SessionState.READY or self._handle is None:
            raise SessionNotReadyError(self.model_id, str(self.state))
        return self._handle

    async def generate(self, messages: Messages) -> str:
        handle = self._require_ready()
        try:
            return await handle.generate(messages, self._sampling)
        except RedlineError:
            raise
        except Exception as exc:
            raise EngineError(f"Generation with {self.model_id} failed: {exc}") from exc

    async def stream(self, messages: Messages) -> AsyncIterator[str]:
        """Yield text deltas as the engine produces them."""
        handle = self._require_ready()
        try:
            async for delta in handle.stream(messages, self._sampling):
                yield delta
        except RedlineError:
            raise
        except Exception as exc:
            raise EngineError(f"Generation with {self.model_id} failed: {exc}") from exc
