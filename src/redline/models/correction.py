"""Correction request/result and model capability models."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import StrEnum

from pydantic import BaseModel, Field


class CorrectionStyle(StrEnum):
    FORMAL = "formal"
    STANDARD = "standard"
    SIMPLE = "simple"
    ACADEMIC = "academic"
    CASUAL = "casual"


class Language(StrEnum):
    EN = "en"
    RU = "ru"
    ES = "es"
    DE = "de"
    FR = "fr"
    JA = "ja"


class CorrectionRequest(BaseModel):
    """Body of a correction request from a UI collaborator."""

    text: str
    style: CorrectionStyle = CorrectionStyle.STANDARD
    language: Language = Language.EN
    model_id: str | None = None


class CorrectionResult(BaseModel):
    """What the client renders: original text, corrected text, and why."""

    original: str
    corrected: str
    explanation: str | list[str] | None = None
    parse_error: str | None = None
    raw: str | None = None
    model_id: str | None = None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CapabilityRecord(BaseModel):
    """Persisted reliability statistics for one model identifier."""

    model_id: str
    failure_rate: float = Field(default=0.0, ge=0.0, le=1.0)
    failures: float = 0.0
    samples: int = 0
    known_issues: list[str] = Field(default_factory=list)
    last_updated: datetime = Field(default_factory=_utcnow)
