"""In-process inference via llama-cpp-python.

Downloads GGUF artifacts from the Hugging Face Hub into a local model
directory and loads them directly into process memory. Zero HTTP overhead.

Cache layout::

    <models_dir>/index.json            {"<model_id>": {"path": ..., "complete": bool}}
    <models_dir>/<model_id>/<hf_file>
"""

from __future__ import annotations

import asyncio
import json
import logging
import shutil
from collections.abc import AsyncIterator
from pathlib import Path
from typing import Any

from redline.core.config import LLMConfig
from redline.core.exceptions import CacheCorruptionError, EngineError, ModelNotSupportedError
from redline.core.protocols import EngineProgressCallback
from redline.core.types import Messages
from redline.models.catalog import ModelSpec, get_model_spec
from redline.models.session import SamplingParams
from redline.sessions.cancellation import CancellationToken

logger = logging.getLogger(__name__)

INDEX_FILE = "index.json"


class LlamaCppHandle:
    """IEngineHandle wrapping one ``llama_cpp.Llama`` instance."""

    def __init__(self, model_id: str, llm: Any) -> None:
        self.model_id = model_id
        self._llm = llm
        # llama.cpp contexts are not safe for concurrent completions.
        self._lock = asyncio.Lock()

    def _params(self, sampling: SamplingParams) -> dict[str, Any]:
        return {
            "temperature": sampling.temperature,
            "max_tokens": sampling.max_tokens,
            "frequency_penalty": sampling.frequency_penalty,
            "presence_penalty": sampling.presence_penalty,
            "stop": sampling.stop or None,
        }

    def _require_llm(self) -> Any:
        if self._llm is None:
            raise EngineError(f"Model {self.model_id} has been unloaded")
        return self._llm

    async def generate(self, messages: Messages, sampling: SamplingParams) -> str:
        async with self._lock:
            llm = self._require_llm()
            response = await asyncio.to_thread(
                llm.create_chat_completion, messages=messages, **self._params(sampling)
            )
        return response["choices"][0]["message"].get("content") or ""

    async def stream(self, messages: Messages, sampling: SamplingParams) -> AsyncIterator[str]:
        async with self._lock:
            llm = self._require_llm()
            chunks = await asyncio.to_thread(
                llm.create_chat_completion, messages=messages, stream=True, **self._params(sampling)
            )
            while True:
                chunk = await asyncio.to_thread(next, chunks, None)
                if chunk is None:
                    break
                delta = chunk["choices"][0].get("delta", {}).get("content")
                if delta:
                    yield delta

    async def unload(self) -> None:
        async with self._lock:
            llm, self._llm = self._llm, None
        if llm is not None:
            await asyncio.to_thread(llm.close)
            logger.info("Unloaded %s", self.model_id)


class LlamaCppEngine:
    """IInferenceEngine implementation backed by llama-cpp-python."""

    def __init__(self, config: LLMConfig) -> None:
        self._config = config
        self._models_dir = Path(config.models_dir)

    # ---- cache index ----

    @property
    def _index_path(self) -> Path:
        return self._models_dir / INDEX_FILE

    def _read_index(self) -> dict[str, dict[str, Any]]:
        path = self._index_path
        if not path.exists():
            return {}
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise CacheCorruptionError(str(path), str(exc)) from exc
        if not isinstance(data, dict):
            raise CacheCorruptionError(str(path), "index is not an object")
        return data

    def _write_index(self, index: dict[str, dict[str, Any]]) -> None:
        self._models_dir.mkdir(parents=True, exist_ok=True)
        tmp = self._index_path.with_suffix(".tmp")
        tmp.write_text(json.dumps(index, indent=2), encoding="utf-8")
        tmp.replace(self._index_path)

    def _mark(self, model_id: str, path: Path, complete: bool) -> None:
        index = self._read_index()
        index[model_id] = {"path": str(path), "complete": complete}
        self._write_index(index)

    def _cached_path(self, model_id: str) -> Path | None:
        entry = self._read_index().get(model_id)
        if not entry or not entry.get("complete"):
            return None
        path = Path(entry["path"])
        return path if path.exists() else None

    # ---- IInferenceEngine ----

    async def is_model_cached(self, model_id: str) -> bool:
        spec = get_model_spec(model_id)
        if spec is None:
            return False
        return await asyncio.to_thread(self._cached_path, spec.id) is not None

    async def load_model(
        self,
        model_id: str,
        on_progress: EngineProgressCallback,
        token: CancellationToken,
    ) -> LlamaCppHandle:
        spec = get_model_spec(model_id)
        if spec is None:
            raise ModelNotSupportedError(model_id)

        path = await asyncio.to_thread(self._cached_path, spec.id)
        if path is None:
            path = await self._download(spec, on_progress, token)
        token.raise_if_cancelled()

        on_progress(0.7, f"Loading {spec.name} into memory")
        llm = await asyncio.to_thread(self._construct, path)
        handle = LlamaCppHandle(spec.id, llm)
        if token.cancelled:
            await handle.unload()
            token.raise_if_cancelled()
        on_progress(0.95, f"{spec.name} loaded")
        return handle

    async def prefetch(
        self, model_id: str, on_progress: EngineProgressCallback | None = None
    ) -> Path:
        """Download ``model_id`` into the cache without loading it."""
        spec = get_model_spec(model_id)
        if spec is None:
            raise ModelNotSupportedError(model_id)
        path = await asyncio.to_thread(self._cached_path, spec.id)
        if path is not None:
            return path
        return await self._download(
            spec, on_progress or (lambda fraction, text: None), CancellationToken(spec.id)
        )

    async def _download(
        self, spec: ModelSpec, on_progress: EngineProgressCallback, token: CancellationToken
    ) -> Path:
        from huggingface_hub import hf_hub_download

        target_dir = self._models_dir / spec.id
        target = target_dir / spec.hf_file
        await asyncio.to_thread(self._mark, spec.id, target, False)

        on_progress(0.05, f"Downloading {spec.name} ({spec.size})")
        token.raise_if_cancelled()
        logger.info("Downloading %s from %s", spec.hf_file, spec.hf_repo)
        downloaded = await asyncio.to_thread(
            hf_hub_download,
            repo_id=spec.hf_repo,
            filename=spec.hf_file,
            local_dir=str(target_dir),
        )
        token.raise_if_cancelled()

        path = Path(downloaded)
        await asyncio.to_thread(self._mark, spec.id, path, True)
        on_progress(0.6, f"Downloaded {spec.name}")
        return path

    def _construct(self, path: Path) -> Any:
        from llama_cpp import Llama

        cfg = self._config
        logger.info("Loading GGUF model from %s", path)
        try:
            return Llama(
                model_path=str(path),
                n_ctx=cfg.n_ctx,
                n_gpu_layers=cfg.n_gpu_layers,
                n_threads=cfg.n_threads,
                verbose=False,
            )
        except ValueError as exc:
            if "Failed to create llama_context" in str(exc) and cfg.n_gpu_layers != 0:
                logger.warning("GPU init failed for %s, falling back to CPU", path.name)
                return Llama(
                    model_path=str(path),
                    n_ctx=cfg.n_ctx,
                    n_gpu_layers=0,
                    n_threads=cfg.n_threads,
                    verbose=False,
                )
            raise EngineError(f"Could not load {path.name}: {exc}") from exc

    async def delete_model(self, model_id: str) -> None:
        spec = get_model_spec(model_id)
        canonical = spec.id if spec is not None else model_id

        def _delete() -> None:
            shutil.rmtree(self._models_dir / canonical, ignore_errors=True)
            try:
                index = self._read_index()
            except CacheCorruptionError:
                return
            if index.pop(canonical, None) is not None:
                self._write_index(index)

        await asyncio.to_thread(_delete)
        logger.info("Deleted cached artifacts for %s", canonical)

    async def clear_cache(self) -> None:
        await asyncio.to_thread(shutil.rmtree, self._models_dir, True)
        logger.warning("Cleared model cache at %s", self._models_dir)
