"""Session lifecycle, progress and sampling models."""

from __future__ import annotations

from collections.abc import Callable
from enum import StrEnum

from pydantic import BaseModel, Field


class SessionState(StrEnum):
    UNINITIALIZED = "UNINITIALIZED"
    INITIALIZING = "INITIALIZING"
    READY = "READY"
    CANCELLED = "CANCELLED"
    FAILED = "FAILED"


class LoadPhase(StrEnum):
    DOWNLOADING = "DOWNLOADING"
    WARMING = "WARMING"


class MemoryPressureLevel(StrEnum):
    NOMINAL = "NOMINAL"
    MODERATE = "MODERATE"
    CRITICAL = "CRITICAL"


class LoadProgress(BaseModel):
    """Progress report emitted while a session is INITIALIZING."""

    model_config = {"frozen": True}

    model_id: str
    phase: LoadPhase
    fraction: float = Field(ge=0.0, le=1.0)
    text: str = ""
    generation: int = 0


ProgressCallback = Callable[[LoadProgress], None]


class SamplingParams(BaseModel):
    """Sampling parameters forwarded verbatim to the engine."""

    temperature: float = 0.0
    max_tokens: int = 1024
    frequency_penalty: float = 0.5
    presence_penalty: float = 0.3
    stop: list[str] = Field(default_factory=list)
