"""Tests for the mock engine used in dev mode."""

from __future__ import annotations

import json

import pytest

from redline.core.exceptions import ModelNotSupportedError
from redline.core.protocols import IEngineHandle, IInferenceEngine
from redline.models.correction import CorrectionStyle, Language
from redline.models.session import SamplingParams
from redline.services.prompts import build_messages
from redline.sessions.cancellation import CancellationToken
from tests.fakes import DEFAULT_MODEL, MockEngine


def test_satisfies_protocols():
    engine = MockEngine()
    assert isinstance(engine, IInferenceEngine)


@pytest.mark.anyio
async def test_echoes_input_text_by_default():
    engine = MockEngine()
    handle = await engine.load_model(DEFAULT_MODEL, lambda f, t: None, CancellationToken(DEFAULT_MODEL))
    assert isinstance(handle, IEngineHandle)

    messages = build_messages("Line one\nline two", CorrectionStyle.STANDARD, Language.EN)
    payload = json.loads(await handle.generate(messages, SamplingParams()))
    assert payload == {"corrected": "Line one\nline two", "explanation": []}


@pytest.mark.anyio
async def test_rejects_unknown_model():
    with pytest.raises(ModelNotSupportedError):
        await MockEngine().load_model("gpt-nano", lambda f, t: None, CancellationToken("gpt-nano"))


@pytest.mark.anyio
async def test_tracks_live_handles():
    engine = MockEngine()
    handle = await engine.load_model(DEFAULT_MODEL, lambda f, t: None, CancellationToken(DEFAULT_MODEL))
    assert engine.live_handles == 1
    await handle.unload()
    await handle.unload()
    assert engine.live_handles == 0
