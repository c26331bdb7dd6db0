"""FastAPI application with lifespan, service wiring and router mounting."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from redline.api.dependencies import ProgressTracker, Services
from redline.api.routes import correction, health, models
from redline.capability.registry import CapabilityRegistry
from redline.core.config import AppSettings
from redline.core.exceptions import (
    EngineError,
    ModelNotSupportedError,
    SessionAbortedError,
    SessionError,
    SessionNotReadyError,
)
from redline.core.logging import configure_logging
from redline.core.protocols import IInferenceEngine, IKeyValueStore
from redline.model_providers.in_process_slm import LlamaCppEngine
from redline.model_providers.mock_provider import MockEngine
from redline.models.session import SamplingParams
from redline.persistence import create_store
from redline.services.correction import CorrectionService
from redline.sessions.manager import SessionManager
from redline.sessions.memory import MemoryPressureMonitor

logger = logging.getLogger(__name__)


def create_engine(settings: AppSettings) -> IInferenceEngine:
    if settings.llm.engine == "llama_cpp":
        return LlamaCppEngine(settings.llm)
    return MockEngine()


def build_services(
    settings: AppSettings | None = None,
    *,
    store: IKeyValueStore | None = None,
    engine: IInferenceEngine | None = None,
) -> Services:
    """Construct and wire every long-lived collaborator."""
    if settings is None:
        settings = AppSettings()
    store = store if store is not None else create_store(settings)
    engine = engine if engine is not None else create_engine(settings)

    llm = settings.llm
    sampling = SamplingParams(
        temperature=llm.temperature,
        max_tokens=llm.max_tokens,
        frequency_penalty=llm.frequency_penalty,
        presence_penalty=llm.presence_penalty,
    )
    progress = ProgressTracker()
    sessions = SessionManager(
        engine,
        sampling=sampling,
        idle_timeout=settings.session.idle_timeout_seconds,
        max_init_attempts=settings.session.max_init_attempts,
        on_progress=progress,
    )
    registry = CapabilityRegistry(store)
    corrections = CorrectionService(
        sessions=sessions, registry=registry, default_model=llm.default_model
    )
    monitor = MemoryPressureMonitor(
        sessions,
        poll_seconds=settings.session.memory_poll_seconds,
        moderate_percent=settings.session.memory_moderate_percent,
        critical_percent=settings.session.memory_critical_percent,
    )
    return Services(
        settings=settings,
        store=store,
        engine=engine,
        sessions=sessions,
        registry=registry,
        corrections=corrections,
        monitor=monitor,
        progress=progress,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Initialize and tear down application resources."""
    services: Services = app.state.services
    configure_logging(services.settings.log_level)
    loaded = await services.registry.load()
    logger.info(
        "Redline starting (engine=%s, default model=%s, %d capability records)",
        services.settings.llm.engine,
        services.settings.llm.default_model,
        loaded,
    )
    services.monitor.start()
    try:
        yield
    finally:
        await services.monitor.stop()
        await services.sessions.close()
        await services.store.close()
        logger.info("Redline stopped")


def _error(status_code: int, body: dict) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=body)


def _register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(SessionAbortedError)
    async def aborted(request: Request, exc: SessionAbortedError) -> JSONResponse:
        return _error(409, {"status": "aborted", "model_id": exc.model_id})

    @app.exception_handler(ModelNotSupportedError)
    async def unsupported(request: Request, exc: ModelNotSupportedError) -> JSONResponse:
        return _error(404, {"status": "unsupported", "model_id": exc.model_id, "detail": str(exc)})

    @app.exception_handler(SessionNotReadyError)
    async def not_ready(request: Request, exc: SessionNotReadyError) -> JSONResponse:
        return _error(409, {"status": "not_ready", "model_id": exc.model_id, "detail": str(exc)})

    @app.exception_handler(SessionError)
    async def session_failed(request: Request, exc: SessionError) -> JSONResponse:
        return _error(503, {"status": "failed", "model_id": exc.model_id, "detail": str(exc)})

    @app.exception_handler(EngineError)
    async def engine_failed(request: Request, exc: EngineError) -> JSONResponse:
        logger.error("Engine failure: %s", exc)
        return _error(502, {"status": "engine_error", "detail": str(exc)})


def create_app(
    settings: AppSettings | None = None, services: Services | None = None
) -> FastAPI:
    """Create and configure the FastAPI application."""
    if services is None:
        services = build_services(settings)
    app = FastAPI(
        title="Redline Grammar Correction Service",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.services = services
    _register_error_handlers(app)
    app.include_router(health.router)
    app.include_router(correction.router)
    app.include_router(models.router)
    return app
