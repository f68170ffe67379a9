"""AssemblyAI realtime token endpoint."""

from __future__ import annotations

from typing import Any

import httpx
from fastapi import APIRouter, Depends

from src.nodal_point.api.deps import get_assembly_service
from src.nodal_point.api.errors import NotConfiguredError, UpstreamError

router = APIRouter(prefix="/api/assembly", tags=["assembly"])


@router.get("/token")
async def assembly_token(assembly: Any = Depends(get_assembly_service)) -> dict:
    if not assembly.configured:
        raise NotConfiguredError("AssemblyAI API key not configured")
    try:
        response = await assembly.create_token()
    except httpx.HTTPError as exc:
        raise UpstreamError("AssemblyAI unreachable", message=str(exc)) from exc

    if response.is_error:
        raise UpstreamError("Failed to create AssemblyAI token", status_code=response.status_code)
    token = response.json().get("token")
    if not token:
        raise UpstreamError("AssemblyAI returned no token")
    return {"token": token}
