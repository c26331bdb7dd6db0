"""Model catalog, session lifecycle, capability and memory-pressure endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from redline.api.dependencies import Services, get_services
from redline.core.exceptions import ModelNotSupportedError
from redline.models.catalog import SUPPORTED_MODELS, ModelSpec, get_model_spec
from redline.models.compatibility import LEVEL_ORDER, CompatibilityLevel, get_compatibility
from redline.models.correction import CapabilityRecord, Language
from redline.models.session import MemoryPressureLevel

router = APIRouter(tags=["models"])


class MemoryPressureSignal(BaseModel):
    level: MemoryPressureLevel


def _require_spec(model_id: str) -> ModelSpec:
    spec = get_model_spec(model_id)
    if spec is None:
        raise ModelNotSupportedError(model_id)
    return spec


@router.get("/models")
async def list_models(
    language: Language | None = None, services: Services = Depends(get_services)
) -> list[dict]:
    """Catalog entries with cache, activity, reliability and language fit.

    With ``language`` each entry carries that language's compatibility and
    the listing is ordered best fit first; otherwise every language's level
    is reported.
    """
    active = services.sessions.active_model_id
    listing = []
    for spec in SUPPORTED_MODELS:
        entry = spec.model_dump(mode="json")
        entry["cached"] = await services.engine.is_model_cached(spec.id)
        entry["active"] = spec.id == active
        entry["reliable"] = services.registry.is_reliable(spec.id)
        if language is not None:
            compat = get_compatibility(spec.id, language)
            entry["compatibility"] = {"level": str(compat.level), "notes": compat.notes}
        else:
            entry["compatibility"] = {
                str(lang): str(get_compatibility(spec.id, lang).level) for lang in Language
            }
        listing.append(entry)
    if language is not None:
        listing.sort(key=lambda e: LEVEL_ORDER[CompatibilityLevel(e["compatibility"]["level"])])
    return listing


@router.get("/models/active")
async def active_model(services: Services = Depends(get_services)) -> dict:
    session = services.sessions.active_session
    progress = services.progress.latest
    return {
        "model_id": session.model_id if session is not None else None,
        "state": str(session.state) if session is not None else None,
        "phase": str(session.phase) if session is not None and session.phase else None,
        "cancel_requested": session.cancel_requested if session is not None else False,
        "progress": progress.model_dump(mode="json") if progress is not None else None,
    }


@router.post("/models/cancel")
async def cancel_loading(services: Services = Depends(get_services)) -> dict:
    """Stop an in-flight load. Returns once the stop is signalled; poll /models/active."""
    cancelled = await services.sessions.cancel_active(wait=False)
    return {"cancelled": cancelled}


@router.post("/models/{model_id}/load")
async def load_model(model_id: str, services: Services = Depends(get_services)) -> dict:
    spec = _require_spec(model_id)
    session = await services.sessions.acquire(spec.id)
    return {"model_id": session.model_id, "state": str(session.state)}


@router.delete("/models/active")
async def unload_model(services: Services = Depends(get_services)) -> dict:
    model_id = services.sessions.active_model_id
    await services.sessions.evict_all()
    return {"evicted": model_id}


@router.delete("/models/{model_id}/cache")
async def delete_cached_model(model_id: str, services: Services = Depends(get_services)) -> dict:
    spec = _require_spec(model_id)
    if services.sessions.active_model_id == spec.id:
        await services.sessions.evict_all()
    await services.engine.delete_model(spec.id)
    return {"deleted": spec.id}


@router.get("/capabilities", response_model=list[CapabilityRecord])
async def list_capabilities(services: Services = Depends(get_services)) -> list[CapabilityRecord]:
    return services.registry.models_by_reliability()


@router.get("/capabilities/{model_id}", response_model=CapabilityRecord)
async def get_capability(model_id: str, services: Services = Depends(get_services)) -> CapabilityRecord:
    return services.registry.get_capability(model_id)


@router.delete("/capabilities")
async def reset_capabilities(services: Services = Depends(get_services)) -> dict:
    await services.registry.clear()
    return {"cleared": True}


@router.post("/memory-pressure")
async def memory_pressure(
    signal: MemoryPressureSignal, services: Services = Depends(get_services)
) -> dict:
    evicted = await services.sessions.handle_memory_pressure(signal.level)
    return {"level": str(signal.level), "evicted": evicted}
