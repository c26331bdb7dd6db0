"""Catalog of models the in-process engine knows how to fetch and load."""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel


class ModelSpeed(StrEnum):
    FAST = "fast"
    MEDIUM = "medium"
    SLOW = "slow"


class ModelCategory(StrEnum):
    PRO = "pro"
    STANDARD = "standard"
    FLASH = "flash"


class ModelSpec(BaseModel):
    """A downloadable GGUF artifact set and its display metadata."""

    model_config = {"frozen": True}

    id: str
    name: str
    family: str
    size: str
    speed: ModelSpeed
    category: ModelCategory
    description: str = ""
    hf_repo: str
    hf_file: str


DEFAULT_MODEL_ID = "qwen2.5-3b-instruct-q4_k_m"
MAX_TEXT_LENGTH = 12000  # ~3000 tokens

SUPPORTED_MODELS: tuple[ModelSpec, ...] = (
    # --- High quality ---
    ModelSpec(
        id="gemma-2-9b-it-q4_k_m",
        name="Gemma 2 9B (Pro)",
        family="Google",
        size="4.84GB",
        speed=ModelSpeed.SLOW,
        category=ModelCategory.PRO,
        description="Complex rewrites, deep stylistic changes and paragraph restructuring.",
        hf_repo="bartowski/gemma-2-9b-it-GGUF",
        hf_file="gemma-2-9b-it-Q4_K_M.gguf",
    ),
    ModelSpec(
        id="llama-3.1-8b-instruct-q4_k_m",
        name="Llama 3.1 8B (Pro)",
        family="Meta",
        size="4.31GB",
        speed=ModelSpeed.SLOW,
        category=ModelCategory.PRO,
        description="Polishing professional reports and business correspondence.",
        hf_repo="bartowski/Meta-Llama-3.1-8B-Instruct-GGUF",
        hf_file="Meta-Llama-3.1-8B-Instruct-Q4_K_M.gguf",
    ),
    ModelSpec(
        id="qwen2.5-7b-instruct-q4_k_m",
        name="Qwen 2.5 7B (Pro)",
        family="Alibaba",
        size="3.99GB",
        speed=ModelSpeed.MEDIUM,
        category=ModelCategory.PRO,
        description="Multilingual grammar and technical documentation.",
        hf_repo="bartowski/Qwen2.5-7B-Instruct-GGUF",
        hf_file="Qwen2.5-7B-Instruct-Q4_K_M.gguf",
    ),
    # --- Balanced ---
    ModelSpec(
        id="llama-3.2-3b-instruct-q4_k_m",
        name="Llama 3.2 3B (Standard)",
        family="Meta",
        size="1.72GB",
        speed=ModelSpeed.FAST,
        category=ModelCategory.STANDARD,
        description="Quick daily grammar fixes and chat messages.",
        hf_repo="bartowski/Llama-3.2-3B-Instruct-GGUF",
        hf_file="Llama-3.2-3B-Instruct-Q4_K_M.gguf",
    ),
    ModelSpec(
        id=DEFAULT_MODEL_ID,
        name="Qwen 2.5 3B (Standard)",
        family="Alibaba",
        size="1.66GB",
        speed=ModelSpeed.FAST,
        category=ModelCategory.STANDARD,
        description="Fixes errors while preserving the original meaning.",
        hf_repo="bartowski/Qwen2.5-3B-Instruct-GGUF",
        hf_file="Qwen2.5-3B-Instruct-Q4_K_M.gguf",
    ),
    ModelSpec(
        id="gemma-2-2b-it-q4_k_m",
        name="Gemma 2 2B (Standard)",
        family="Google",
        size="1.40GB",
        speed=ModelSpeed.FAST,
        category=ModelCategory.STANDARD,
        description="Lightweight; simple sentence rewrites.",
        hf_repo="bartowski/gemma-2-2b-it-GGUF",
        hf_file="gemma-2-2b-it-Q4_K_M.gguf",
    ),
    # --- Ultra fast ---
    ModelSpec(
        id="qwen2.5-1.5b-instruct-q4_k_m",
        name="Qwen 2.5 1.5B (Flash)",
        family="Alibaba",
        size="0.83GB",
        speed=ModelSpeed.FAST,
        category=ModelCategory.FLASH,
        description="Instant checks for typos and basic punctuation.",
        hf_repo="bartowski/Qwen2.5-1.5B-Instruct-GGUF",
        hf_file="Qwen2.5-1.5B-Instruct-Q4_K_M.gguf",
    ),
)


def get_model_spec(model_id: str) -> ModelSpec | None:
    """Look up a catalog entry, ignoring case."""
    wanted = model_id.lower()
    for spec in SUPPORTED_MODELS:
        if spec.id.lower() == wanted:
            return spec
    return None
