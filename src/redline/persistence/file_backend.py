"""JSON-file key-value store: the durable default when no Redis is configured.

All keys live in one JSON object. Writes go to a temporary file that then
replaces the original, so a crash mid-write leaves the previous contents.
"""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path

from redline.core.exceptions import StoreError

logger = logging.getLogger(__name__)


class FileKeyValueStore:
    """IKeyValueStore persisted to a single JSON file on local disk."""

    def __init__(self, path: Path | str) -> None:
        self._path = Path(path).expanduser()
        self._lock = asyncio.Lock()
        self._data: dict[str, str] | None = None

    @property
    def path(self) -> Path:
        return self._path

    def _read(self) -> dict[str, str]:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise StoreError(f"Could not read store file {self._path}: {exc}") from exc
        if not isinstance(data, dict):
            raise StoreError(f"Store file {self._path} does not hold a JSON object")
        return {str(k): str(v) for k, v in data.items()}

    def _write(self, data: dict[str, str]) -> None:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp = self._path.with_suffix(self._path.suffix + ".tmp")
            tmp.write_text(json.dumps(data, indent=2, sort_keys=True), encoding="utf-8")
            tmp.replace(self._path)
        except OSError as exc:
            raise StoreError(f"Could not write store file {self._path}: {exc}") from exc

    async def _loaded(self) -> dict[str, str]:
        if self._data is None:
            self._data = await asyncio.to_thread(self._read)
        return self._data

    async def get(self, key: str) -> str | None:
        async with self._lock:
            data = await self._loaded()
            return data.get(key)

    async def set(self, key: str, value: str) -> None:
        async with self._lock:
            data = dict(await self._loaded())
            data[key] = value
            await asyncio.to_thread(self._write, data)
            self._data = data

    async def delete(self, key: str) -> None:
        async with self._lock:
            data = dict(await self._loaded())
            if data.pop(key, None) is None:
                return
            await asyncio.to_thread(self._write, data)
            self._data = data

    async def close(self) -> None:
        logger.debug("Closing file store at %s", self._path)
        self._data = None
