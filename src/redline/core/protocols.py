"""Protocol interfaces for all Redline abstractions.

All inter-layer communication uses these Protocols: structural typing,
no inheritance required, easy to test with isinstance().
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Callable
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from redline.core.types import Messages

if TYPE_CHECKING:
    from redline.models.session import SamplingParams
    from redline.sessions.cancellation import CancellationToken

EngineProgressCallback = Callable[[float, str], None]


# ---------------------------------------------------------------------------
# Inference engine
# ---------------------------------------------------------------------------

@runtime_checkable
class IEngineHandle(Protocol):
    """One loaded model. Owned by exactly one InferenceSession."""

    async def generate(self, messages: Messages, sampling: SamplingParams) -> str: ...

    def stream(self, messages: Messages, sampling: SamplingParams) -> AsyncIterator[str]: ...

    async def unload(self) -> None: ...


@runtime_checkable
class IInferenceEngine(Protocol):
    """Opaque load / unload / generate capability plus model cache access."""

    async def load_model(
        self,
        model_id: str,
        on_progress: EngineProgressCallback,
        token: CancellationToken,
    ) -> IEngineHandle: ...

    async def is_model_cached(self, model_id: str) -> bool: ...

    async def delete_model(self, model_id: str) -> None: ...

    async def clear_cache(self) -> None: ...


# ---------------------------------------------------------------------------
# Persistence: key-value store
# ---------------------------------------------------------------------------

@runtime_checkable
class IKeyValueStore(Protocol):
    """Durable string key-value store. Every call may suspend on I/O."""

    async def get(self, key: str) -> str | None: ...

    async def set(self, key: str, value: str) -> None: ...

    async def delete(self, key: str) -> None: ...

    async def close(self) -> None: ...
