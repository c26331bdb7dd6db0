"""In-memory key-value store: dict-backed, used for dev runs and unit tests."""

from __future__ import annotations


class MemoryKeyValueStore:
    """Dict-backed IKeyValueStore. Nothing survives the process."""

    def __init__(self) -> None:
        self._store: dict[str, str] = {}

    async def get(self, key: str) -> str | None:
        return self._store.get(key)

    async def set(self, key: str, value: str) -> None:
        self._store[key] = value

    async def delete(self, key: str) -> None:
        self._store.pop(key, None)

    async def close(self) -> None:
        return None
