"""Cooperative cancellation for session initialization."""

from __future__ import annotations

import asyncio

from redline.core.exceptions import SessionAbortedError


class CancellationToken:
    """Signals that one initialization attempt should unwind.

    A fresh token is issued for every ``InferenceSession.start()`` call and
    handed to each suspension point (cache lookup, engine load), which calls
    :meth:`raise_if_cancelled` at its own checkpoints.

    ``cleanup`` records whether whoever cancelled also asked for the model's
    cached artifact to be deleted. Only an explicit user stop does; eviction
    for memory pressure or shutdown keeps a complete artifact on disk.
    """

    def __init__(self, model_id: str, generation: int = 0) -> None:
        self.model_id = model_id
        self.generation = generation
        self._event = asyncio.Event()
        self._cleanup = False

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def cleanup(self) -> bool:
        return self._cleanup

    def cancel(self, cleanup: bool = False) -> None:
        self._cleanup = self._cleanup or cleanup
        self._event.set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise SessionAbortedError(self.model_id, self.generation)

    async def wait(self) -> None:
        await self._event.wait()

    def __repr__(self) -> str:
        return (
            f"CancellationToken(model_id={self.model_id!r}, "
            f"generation={self.generation}, cancelled={self.cancelled}, cleanup={self.cleanup})"
        )
