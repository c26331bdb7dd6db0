"""Shared test doubles: re-export the in-memory store and mock engine."""

from __future__ import annotations

import asyncio

from redline.model_providers.mock_provider import MockEngine, MockHandle
from redline.persistence.memory_backend import MemoryKeyValueStore

DEFAULT_MODEL = "qwen2.5-3b-instruct-q4_k_m"
OTHER_MODEL = "llama-3.2-3b-instruct-q4_k_m"


class FailingStore:
    """IKeyValueStore whose every operation raises."""

    async def get(self, key: str) -> str | None:
        raise ConnectionError("store unavailable")

    async def set(self, key: str, value: str) -> None:
        raise ConnectionError("store unavailable")

    async def delete(self, key: str) -> None:
        raise ConnectionError("store unavailable")

    async def close(self) -> None:
        return None


class SlowStore(MemoryKeyValueStore):
    """In-memory store whose writes take ``delay`` seconds of network-like latency."""

    def __init__(self, delay: float) -> None:
        super().__init__()
        self.delay = delay

    async def set(self, key: str, value: str) -> None:
        await asyncio.sleep(self.delay)
        await super().set(key, value)


__all__ = [
    "DEFAULT_MODEL",
    "OTHER_MODEL",
    "FailingStore",
    "MemoryKeyValueStore",
    "MockEngine",
    "MockHandle",
    "SlowStore",
]
