"""Health check endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from redline.api.dependencies import Services, get_services

router = APIRouter(tags=["health"])


@router.get("/health")
async def health() -> dict[str, str]:
    return {"status": "healthy"}


@router.get("/ready")
async def ready(services: Services = Depends(get_services)) -> dict:
    session = services.sessions.active_session
    return {
        "status": "ready",
        "engine": services.settings.llm.engine,
        "active_model": session.model_id if session is not None else None,
        "session_state": str(session.state) if session is not None else None,
        "memory_pressure": str(services.monitor.last_level),
    }
