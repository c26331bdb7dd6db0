"""Redis key-value store implementing IKeyValueStore."""

from __future__ import annotations

import redis.asyncio as redis

from redline.core.exceptions import StoreError


class RedisKeyValueStore:
    """IKeyValueStore backed by Redis through the asyncio client.

    Every key is stored under ``namespace`` so several services can share
    one Redis database.
    """

    def __init__(
        self,
        host: str = "localhost",
        port: int = 6379,
        db: int = 0,
        namespace: str = "redline:",
    ) -> None:
        self._namespace = namespace
        self._client = redis.Redis(
            host=host, port=port, db=db, decode_responses=True,
        )

    def _key(self, key: str) -> str:
        return f"{self._namespace}{key}"

    async def get(self, key: str) -> str | None:
        try:
            return await self._client.get(self._key(key))
        except Exception as exc:
            raise StoreError(f"Redis GET failed for key={key!r}: {exc}") from exc

    async def set(self, key: str, value: str) -> None:
        try:
            await self._client.set(self._key(key), value)
        except Exception as exc:
            raise StoreError(f"Redis SET failed for key={key!r}: {exc}") from exc

    async def delete(self, key: str) -> None:
        try:
            await self._client.delete(self._key(key))
        except Exception as exc:
            raise StoreError(f"Redis DELETE failed for key={key!r}: {exc}") from exc

    async def close(self) -> None:
        await self._client.aclose()
