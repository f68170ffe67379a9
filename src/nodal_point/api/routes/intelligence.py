"""Market intelligence API: signal feed, account linking, scrape trigger."""

from __future__ import annotations

from typing import Any

import httpx
from fastapi import APIRouter, Depends, Query

from src.nodal_point.api.deps import get_intelligence_repository, get_scrape_trigger
from src.nodal_point.api.errors import NotConfiguredError, NotFoundError, UpstreamError
from src.nodal_point.intelligence.schemas import LinkSignalRequest

router = APIRouter(prefix="/api/intelligence", tags=["intelligence"])


@router.get("/signals")
async def list_signals(
    limit: int = Query(default=20, ge=1, le=100),
    signal_status: str | None = Query(default=None, alias="status"),
    repo: Any = Depends(get_intelligence_repository),
) -> dict:
    signals = await repo.list_signals(limit=limit, status=signal_status)
    return {"signals": [s.model_dump(mode="json") for s in signals]}


@router.post("/link-signal")
async def link_signal(
    body: LinkSignalRequest,
    repo: Any = Depends(get_intelligence_repository),
) -> dict:
    signal = await repo.link_signal(body.signal_id, body.account_id)
    if signal is None:
        raise NotFoundError("Signal not found")
    return {"success": True, "signal": signal.model_dump(mode="json")}


@router.post("/trigger-scrape")
async def trigger_scrape(trigger: Any = Depends(get_scrape_trigger)) -> dict:
    if not trigger.configured:
        raise NotConfiguredError("Supabase edge functions not configured")
    try:
        status_code, payload = await trigger.trigger()
    except httpx.HTTPError as exc:
        raise UpstreamError("Scrape trigger failed", message=str(exc)) from exc
    if status_code >= 400:
        raise UpstreamError("Scrape trigger failed", status_code=status_code, details=payload)
    return {"success": True, "result": payload}
