"""Maps API: browser config plus server-side place search and geocoding."""

from __future__ import annotations

from typing import Any

import httpx
from fastapi import APIRouter, Depends, Query

from src.nodal_point.api.deps import get_app_settings, get_maps_service
from src.nodal_point.api.errors import NotConfiguredError, UpstreamError
from src.nodal_point.config import Settings
from src.nodal_point.services.maps import MapsError

router = APIRouter(prefix="/api/maps", tags=["maps"])


@router.get("/config")
async def maps_config(settings: Settings = Depends(get_app_settings)) -> dict:
    """Key and map id for the browser Maps JS loader."""
    if not settings.GOOGLE_MAPS_API_KEY:
        raise NotConfiguredError("Google Maps API key not configured")
    return {"apiKey": settings.GOOGLE_MAPS_API_KEY, "mapId": settings.GOOGLE_MAP_ID or None}


async def _run(coro: Any) -> dict:
    try:
        result = await coro
    except MapsError as exc:
        raise UpstreamError(str(exc), status_code=exc.status_code) from exc
    except httpx.HTTPError as exc:
        raise UpstreamError("Maps provider unreachable", message=str(exc)) from exc
    return result.model_dump(by_alias=True)


@router.get("/search")
async def maps_search(
    q: str = Query(min_length=1, max_length=300),
    maps: Any = Depends(get_maps_service),
) -> dict:
    if not maps.configured:
        raise NotConfiguredError("Maps provider not configured")
    return await _run(maps.search(q))


@router.get("/geocode")
async def maps_geocode(
    address: str = Query(min_length=1, max_length=300),
    maps: Any = Depends(get_maps_service),
) -> dict:
    if not maps.configured:
        raise NotConfiguredError("Maps provider not configured")
    return await _run(maps.geocode(address))
