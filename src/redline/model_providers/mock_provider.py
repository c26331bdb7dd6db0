"""Mock inference engine for local development and testing.

Simulates downloads and loads in memory and returns canned responses.
No real model is ever loaded.
"""

from __future__ import annotations

import asyncio
import json
import re
from collections.abc import AsyncIterator, Iterable

from redline.core.exceptions import ModelNotSupportedError
from redline.core.protocols import EngineProgressCallback
from redline.core.types import Messages
from redline.models.catalog import get_model_spec
from redline.models.session import SamplingParams
from redline.sessions.cancellation import CancellationToken

_INPUT_TEXT = re.compile(r'"""\n(.*)\n"""', re.DOTALL)


class MockHandle:
    """IEngineHandle implementation backed by a :class:`MockEngine`."""

    def __init__(self, engine: MockEngine, model_id: str) -> None:
        self._engine = engine
        self.model_id = model_id
        self.unloaded = False

    async def generate(self, messages: Messages, sampling: SamplingParams) -> str:
        self._engine.generate_calls += 1
        await asyncio.sleep(0)
        return self._engine.respond(messages)

    async def stream(self, messages: Messages, sampling: SamplingParams) -> AsyncIterator[str]:
        self._engine.generate_calls += 1
        response = self._engine.respond(messages)
        size = self._engine.chunk_size
        for start in range(0, len(response), size):
            await asyncio.sleep(0)
            yield response[start : start + size]

    async def unload(self) -> None:
        if self.unloaded:
            return
        self.unloaded = True
        self._engine.live_handles -= 1


class MockEngine:
    """IInferenceEngine implementation that never touches disk or network.

    Without a canned response the engine echoes the input text back as a
    well-formed correction.
    """

    def __init__(
        self,
        default_response: str | None = None,
        *,
        cached: Iterable[str] = (),
        steps: int = 4,
        step_delay: float = 0.0,
        chunk_size: int = 8,
        misreport_download: bool = False,
    ) -> None:
        self._default_response = default_response
        self._canned_responses: dict[str, str] = {}
        self._load_failures: list[BaseException] = []
        self._generate_failures: list[BaseException] = []
        self.cached: set[str] = set(cached)
        self.partial: set[str] = set()
        self.steps = max(1, steps)
        self.step_delay = step_delay
        self.chunk_size = max(1, chunk_size)
        self.misreport_download = misreport_download

        self.load_calls: list[str] = []
        self.delete_calls: list[str] = []
        self.clear_cache_calls = 0
        self.generate_calls = 0
        self.live_handles = 0
        self.max_live_handles = 0
        self.loading = asyncio.Event()

    # ---- test controls ----

    def set_response(self, prompt_contains: str, response: str) -> None:
        """Register a canned response for prompts containing a keyword."""
        self._canned_responses[prompt_contains] = response

    def fail_next_load(self, exc: BaseException) -> None:
        """Raise ``exc`` from the next ``load_model`` call, after it has started."""
        self._load_failures.append(exc)

    def fail_next_generate(self, exc: BaseException) -> None:
        self._generate_failures.append(exc)

    def respond(self, messages: Messages) -> str:
        if self._generate_failures:
            raise self._generate_failures.pop(0)
        last_content = messages[-1].get("content", "") if messages else ""
        for keyword, response in self._canned_responses.items():
            if keyword in last_content:
                return response
        if self._default_response is not None:
            return self._default_response
        match = _INPUT_TEXT.search(last_content)
        text = match.group(1) if match else last_content
        return json.dumps({"corrected": text, "explanation": []})

    # ---- IInferenceEngine ----

    async def is_model_cached(self, model_id: str) -> bool:
        await asyncio.sleep(0)
        return model_id in self.cached

    async def load_model(
        self,
        model_id: str,
        on_progress: EngineProgressCallback,
        token: CancellationToken,
    ) -> MockHandle:
        if get_model_spec(model_id) is None:
            raise ModelNotSupportedError(model_id)
        self.load_calls.append(model_id)
        self.loading.set()

        downloading = model_id not in self.cached
        if downloading:
            self.partial.add(model_id)

        if self._load_failures:
            await asyncio.sleep(0)
            raise self._load_failures.pop(0)

        for step in range(1, self.steps + 1):
            await asyncio.sleep(self.step_delay)
            token.raise_if_cancelled()
            fraction = step / (self.steps + 1)
            if downloading or self.misreport_download:
                on_progress(fraction, f"Downloading {model_id} ({fraction:.0%})")
            else:
                on_progress(fraction, f"Loading {model_id} from cache")

        if downloading:
            self.partial.discard(model_id)
            self.cached.add(model_id)

        self.live_handles += 1
        self.max_live_handles = max(self.max_live_handles, self.live_handles)
        return MockHandle(self, model_id)

    async def delete_model(self, model_id: str) -> None:
        self.delete_calls.append(model_id)
        self.partial.discard(model_id)
        self.cached.discard(model_id)

    async def clear_cache(self) -> None:
        self.clear_cache_calls += 1
        self.partial.clear()
        self.cached.clear()
