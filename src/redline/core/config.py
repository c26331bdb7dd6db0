"""Application configuration using pydantic-settings with grouped env prefixes."""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings


class LLMConfig(BaseSettings):
    """Inference engine and sampling configuration."""

    model_config = {"env_prefix": "REDLINE_LLM_"}

    engine: Literal["mock", "llama_cpp"] = "mock"
    default_model: str = "qwen2.5-3b-instruct-q4_k_m"
    models_dir: Path = Path.home() / ".redline" / "models"
    n_ctx: int = 2048
    n_gpu_layers: int = -1  # -1 offloads every layer
    n_threads: int = 4
    temperature: float = 0.0
    max_tokens: int = 1024
    frequency_penalty: float = 0.5
    presence_penalty: float = 0.3


class SessionConfig(BaseSettings):
    """Session lifecycle and eviction configuration."""

    model_config = {"env_prefix": "REDLINE_SESSION_"}

    idle_timeout_seconds: float = 600.0
    max_init_attempts: int = 2
    memory_poll_seconds: float = 30.0
    memory_moderate_percent: float = 85.0
    memory_critical_percent: float = 95.0


class RedisConfig(BaseSettings):
    """Redis key-value store configuration."""

    model_config = {"env_prefix": "REDLINE_REDIS_"}

    host: str = "localhost"
    port: int = 6379
    db: int = 0
    namespace: str = "redline:"


class StoreConfig(BaseSettings):
    """Durable key-value store selection."""

    model_config = {"env_prefix": "REDLINE_STORE_"}

    backend: Literal["file", "memory", "redis"] = "file"
    path: Path = Path.home() / ".redline" / "store.json"


class AppSettings(BaseSettings):
    """Root application settings aggregating all sub-configs."""

    model_config = {"env_prefix": "REDLINE_"}

    environment: Literal["dev", "uat", "prod"] = "dev"
    log_level: str = "INFO"

    llm: LLMConfig = LLMConfig()
    session: SessionConfig = SessionConfig()
    redis: RedisConfig = RedisConfig()
    store: StoreConfig = StoreConfig()
