"""Text correction endpoint."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from redline.api.dependencies import Services, get_services
from redline.models.catalog import MAX_TEXT_LENGTH
from redline.models.correction import CorrectionRequest, CorrectionResult

router = APIRouter(tags=["correction"])


@router.post("/correct", response_model=CorrectionResult)
async def correct(
    request: CorrectionRequest, services: Services = Depends(get_services)
) -> CorrectionResult:
    """Correct the submitted text with the requested (or default) model."""
    if not request.text.strip():
        raise HTTPException(status_code=422, detail="Text must not be empty")
    if len(request.text) > MAX_TEXT_LENGTH:
        raise HTTPException(
            status_code=413,
            detail=f"Text exceeds the {MAX_TEXT_LENGTH} character limit",
        )
    return await services.corrections.correct(
        request.text,
        request.style,
        request.language,
        model_id=request.model_id,
    )
