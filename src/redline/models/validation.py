"""Response validation outcome models."""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field


class RecoveryStrategy(StrEnum):
    DIRECT = "DIRECT"
    REPAIRED = "REPAIRED"
    CODE_BLOCK = "CODE_BLOCK"
    BRACE_EXTRACTION = "BRACE_EXTRACTION"
    FIELD_EXTRACTION = "FIELD_EXTRACTION"


class ErrorKind(StrEnum):
    MALFORMED = "malformed"
    MISSING_FIELD = "missing_field"
    INVALID_TYPE = "invalid_type"
    UNKNOWN = "unknown"


class Severity(StrEnum):
    CRITICAL = "critical"
    WARNING = "warning"
    INFO = "info"


class ParseErrorCategory(BaseModel):
    """Why a raw model response could not be turned into a correction."""

    model_config = {"frozen": True}

    kind: ErrorKind
    severity: Severity
    field: str | None = None
    details: str = ""


class ParsedCorrection(BaseModel):
    """Normalized correction payload.

    ``corrected`` is kept as the model sent it (usually a string); the
    correction service decides how to coerce other shapes. Unrecognized
    keys survive in ``extra``.
    """

    model_config = {"frozen": True}

    corrected: Any
    explanation: Any = None
    extra: dict[str, Any] = Field(default_factory=dict)


class ValidationOutcome(BaseModel):
    """Result of running the recovery pipeline over one raw response."""

    model_config = {"frozen": True}

    is_valid: bool
    parsed: ParsedCorrection | None = None
    recovery_strategy: RecoveryStrategy | None = None
    error_category: ParseErrorCategory | None = None
