"""Free-text AI helpers that are not tied to a stored product."""
from __future__ import annotations

from fastapi import APIRouter, Depends

from catalog.api.products import get_inference_service
from catalog.schemas.product import SummaryRequest, SummaryResponse
from catalog.services.inference import InferenceService

router = APIRouter(prefix="/ai", tags=["ai"])


@router.post(
    "/summary",
    response_model=SummaryResponse,
    summary="Summarise arbitrary text",
)
async def generate_summary(
    payload: SummaryRequest,
    inference: InferenceService = Depends(get_inference_service),
) -> SummaryResponse:
    """Return a short summary of ``text``.

    An unconfigured provider answers 500 and a provider failure 502, both
    through the ``CatalogError`` handler.
    """
    return SummaryResponse(summary=await inference.summarize(payload.text))
