"""Redline exception hierarchy."""

from __future__ import annotations


class RedlineError(Exception):
    """Base exception for all Redline errors."""


class SessionError(RedlineError):
    """An inference session could not be created, started or used."""

    def __init__(self, model_id: str, message: str) -> None:
        self.model_id = model_id
        super().__init__(message)


class SessionAbortedError(SessionError):
    """Session initialization was cancelled by the user.

    Kept apart from genuine failures so callers can stay silent about it.
    """

    def __init__(self, model_id: str, generation: int = 0) -> None:
        self.generation = generation
        super().__init__(model_id, f"Loading of model {model_id} was aborted")


class SessionNotReadyError(SessionError):
    """Generation was requested from a session that is not READY."""

    def __init__(self, model_id: str, state: str) -> None:
        self.state = state
        super().__init__(model_id, f"Model {model_id} is not ready (state={state})")


class ModelNotSupportedError(SessionError):
    """The requested model identifier is not in the catalog."""

    def __init__(self, model_id: str) -> None:
        super().__init__(model_id, f"Model {model_id} is not supported by the current engine")


class EngineError(RedlineError):
    """The inference engine failed to load a model or generate text."""


class CacheCorruptionError(EngineError):
    """The local model cache index is unreadable."""

    def __init__(self, path: str, message: str) -> None:
        self.path = path
        super().__init__(f"Model cache index at {path} is corrupted: {message}")


class StoreError(RedlineError):
    """Key-value store operation failed."""
