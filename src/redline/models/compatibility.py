"""How well each catalog model handles each correction language."""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel

from redline.models.catalog import get_model_spec
from redline.models.correction import Language


class CompatibilityLevel(StrEnum):
    EXCELLENT = "excellent"  # native or near-native
    GOOD = "good"  # strong, minor issues
    FAIR = "fair"  # adequate, may miss nuances
    LIMITED = "limited"  # weak, not recommended


LEVEL_ORDER = {
    CompatibilityLevel.EXCELLENT: 0,
    CompatibilityLevel.GOOD: 1,
    CompatibilityLevel.FAIR: 2,
    CompatibilityLevel.LIMITED: 3,
}


class ModelLanguageCompatibility(BaseModel):
    model_config = {"frozen": True}

    model_id: str
    language: Language
    level: CompatibilityLevel
    notes: str | None = None


def _entries(model_id: str, *rows: tuple[Language, CompatibilityLevel, str]) -> list[ModelLanguageCompatibility]:
    return [
        ModelLanguageCompatibility(model_id=model_id, language=lang, level=level, notes=notes)
        for lang, level, notes in rows
    ]


_E, _G, _F, _L = (
    CompatibilityLevel.EXCELLENT,
    CompatibilityLevel.GOOD,
    CompatibilityLevel.FAIR,
    CompatibilityLevel.LIMITED,
)

COMPATIBILITY_MATRIX: tuple[ModelLanguageCompatibility, ...] = (
    # --- Pro ---
    *_entries(
        "gemma-2-9b-it-q4_k_m",
        (Language.EN, _E, "Native English, elite quality"),
        (Language.RU, _F, "Limited Russian support"),
        (Language.ES, _G, "Good Spanish support"),
        (Language.DE, _G, "Good German support"),
        (Language.FR, _F, "Limited French support"),
        (Language.JA, _F, "Understands Japanese but misses particles"),
    ),
    *_entries(
        "llama-3.1-8b-instruct-q4_k_m",
        (Language.EN, _E, "Excellent for structured English text"),
        (Language.RU, _F, "Fair Russian support"),
        (Language.ES, _G, "Good Spanish support"),
        (Language.DE, _G, "Good German support"),
        (Language.FR, _G, "Good French support"),
        (Language.JA, _L, "Weak Japanese, not recommended"),
    ),
    *_entries(
        "qwen2.5-7b-instruct-q4_k_m",
        (Language.EN, _E, "Native English support"),
        (Language.RU, _E, "Excellent Russian grammar support"),
        (Language.ES, _E, "Strong Spanish support"),
        (Language.DE, _E, "Strong German cases and grammar"),
        (Language.FR, _G, "Good French support"),
        (Language.JA, _E, "Strong Japanese support"),
    ),
    # --- Standard ---
    *_entries(
        "llama-3.2-3b-instruct-q4_k_m",
        (Language.EN, _E, "Strong English"),
        (Language.RU, _L, "Limited Russian support, not recommended"),
        (Language.ES, _G, "Good Spanish support"),
        (Language.DE, _G, "Good German support"),
        (Language.FR, _G, "Good French support"),
        (Language.JA, _L, "Weak Japanese, not recommended"),
    ),
    *_entries(
        "qwen2.5-3b-instruct-q4_k_m",
        (Language.EN, _E, "Strong English, recommended"),
        (Language.RU, _G, "Good Russian support"),
        (Language.ES, _G, "Good Spanish support"),
        (Language.DE, _G, "Good German support"),
        (Language.FR, _F, "Fair French support"),
        (Language.JA, _G, "Good Japanese support"),
    ),
    *_entries(
        "gemma-2-2b-it-q4_k_m",
        (Language.EN, _G, "Good English for short sentences"),
        (Language.RU, _L, "Weak Russian support"),
        (Language.ES, _F, "Fair Spanish support"),
        (Language.DE, _F, "Fair German support"),
        (Language.FR, _F, "Fair French support"),
        (Language.JA, _L, "Weak Japanese support"),
    ),
    # --- Flash ---
    *_entries(
        "qwen2.5-1.5b-instruct-q4_k_m",
        (Language.EN, _G, "Typos and punctuation only"),
        (Language.RU, _F, "Fair Russian support"),
        (Language.ES, _F, "Fair Spanish support"),
        (Language.DE, _F, "Fair German support"),
        (Language.FR, _F, "Fair French support"),
        (Language.JA, _F, "Fair Japanese support"),
    ),
)


def get_compatibility(model_id: str, language: Language) -> ModelLanguageCompatibility:
    """Look up a model/language pair. Unknown pairs are FAIR with no notes."""
    spec = get_model_spec(model_id)
    canonical = spec.id if spec is not None else model_id
    for entry in COMPATIBILITY_MATRIX:
        if entry.model_id == canonical and entry.language is language:
            return entry
    return ModelLanguageCompatibility(
        model_id=canonical, language=language, level=CompatibilityLevel.FAIR
    )


def language_compatibilities(language: Language) -> list[ModelLanguageCompatibility]:
    """Every known entry for ``language``, best first."""
    entries = [entry for entry in COMPATIBILITY_MATRIX if entry.language is language]
    return sorted(entries, key=lambda entry: LEVEL_ORDER[entry.level])


def best_models_for_language(language: Language) -> list[str]:
    """Model ids rated excellent or good for ``language``, in catalog order."""
    best: list[str] = []
    for entry in COMPATIBILITY_MATRIX:
        if entry.language is not language or LEVEL_ORDER[entry.level] > LEVEL_ORDER[_G]:
            continue
        if entry.model_id not in best:
            best.append(entry.model_id)
    return best
