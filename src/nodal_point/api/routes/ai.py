"""AI helpers for the intelligence feed."""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from src.nodal_point.api.deps import get_llm_service
from src.nodal_point.api.errors import NotConfiguredError, UpstreamError

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/ai", tags=["ai"])


class AnalyzeSignalRequest(BaseModel):
    headline: str = Field(min_length=1, max_length=2000)


@router.post("/analyze-signal")
async def analyze_signal(
    body: AnalyzeSignalRequest,
    llm: Any = Depends(get_llm_service),
) -> dict:
    """One-sentence summary of a market headline for the signal card."""
    if not llm.configured:
        raise NotConfiguredError("AI provider not configured")
    try:
        summary = await llm.analyze_signal(body.headline)
    except Exception as exc:
        # LiteLLM surfaces provider failures as many different exception types
        logger.warning("ai.analyze_signal_failed", error=str(exc))
        raise UpstreamError("AI analysis failed", message=str(exc)) from exc
    return {"summary": summary}
