"""Pluggable key-value store backends behind the IKeyValueStore protocol."""

from __future__ import annotations

from redline.core.config import AppSettings
from redline.core.protocols import IKeyValueStore
from redline.persistence.file_backend import FileKeyValueStore
from redline.persistence.memory_backend import MemoryKeyValueStore
from redline.persistence.redis_backend import RedisKeyValueStore


def create_store(settings: AppSettings | None = None) -> IKeyValueStore:
    """Create the key-value store selected by ``settings.store.backend``."""
    if settings is None:
        settings = AppSettings()

    backend = settings.store.backend
    if backend == "redis":
        return RedisKeyValueStore(
            host=settings.redis.host,
            port=settings.redis.port,
            db=settings.redis.db,
            namespace=settings.redis.namespace,
        )
    if backend == "memory":
        return MemoryKeyValueStore()
    return FileKeyValueStore(settings.store.path)
