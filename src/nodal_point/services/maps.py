"""Place search and geocoding with Google as primary and Mapbox as fallback.

Results from either provider are normalized to the same small record so the
account map widgets do not care which one answered.
"""

from __future__ import annotations

from typing import Any
from urllib.parse import quote

import httpx
import structlog
from pydantic import BaseModel

from src.nodal_point.core.monitoring import record_vendor_call

logger = structlog.get_logger(__name__)

GOOGLE_TEXT_SEARCH_URL = "https://maps.googleapis.com/maps/api/place/textsearch/json"
GOOGLE_GEOCODE_URL = "https://maps.googleapis.com/maps/api/geocode/json"
MAPBOX_GEOCODE_URL = "https://api.mapbox.com/geocoding/v5/mapbox.places/{query}.json"

# Google answers 200 with these statuses for a good request
_GOOGLE_OK = {"OK", "ZERO_RESULTS"}


class Place(BaseModel):
    name: str = ""
    address: str = ""
    lat: float | None = None
    lng: float | None = None
    place_id: str | None = None


class MapsResult(BaseModel):
    source: str
    results: list[Place]


class MapsError(RuntimeError):
    """The provider rejected the request (bad key, quota, ...)."""

    def __init__(self, message: str, status_code: int = 502) -> None:
        super().__init__(message)
        self.status_code = status_code


def _google_place(item: dict[str, Any]) -> Place:
    location = (item.get("geometry") or {}).get("location") or {}
    return Place(
        name=item.get("name") or "",
        address=item.get("formatted_address") or "",
        lat=location.get("lat"),
        lng=location.get("lng"),
        place_id=item.get("place_id"),
    )


def _mapbox_place(feature: dict[str, Any]) -> Place:
    center = feature.get("center") or [None, None]
    return Place(
        name=feature.get("text") or "",
        address=feature.get("place_name") or "",
        lng=center[0],
        lat=center[1],
        place_id=feature.get("id"),
    )


class MapsService:
    """Google Places/Geocoding client with a Mapbox fallback.

    Google is used whenever its key is set; Mapbox only when it is not.
    """

    TIMEOUT = 10.0

    def __init__(self, google_api_key: str, mapbox_token: str) -> None:
        self._google_key = google_api_key
        self._mapbox_token = mapbox_token

    @property
    def configured(self) -> bool:
        return bool(self._google_key or self._mapbox_token)

    async def search(self, query: str) -> MapsResult:
        if self._google_key:
            data = await self._google(GOOGLE_TEXT_SEARCH_URL, "places_search", {"query": query})
            return MapsResult(
                source="google", results=[_google_place(r) for r in data.get("results", [])]
            )
        return await self._mapbox(query, "places_search", types=None)

    async def geocode(self, address: str) -> MapsResult:
        if self._google_key:
            data = await self._google(GOOGLE_GEOCODE_URL, "geocode", {"address": address})
            return MapsResult(
                source="google", results=[_google_place(r) for r in data.get("results", [])]
            )
        return await self._mapbox(address, "geocode", types="address")

    async def _google(self, url: str, operation: str, params: dict[str, str]) -> dict[str, Any]:
        async with httpx.AsyncClient(timeout=self.TIMEOUT) as client:
            response = await client.get(url, params={**params, "key": self._google_key})
        record_vendor_call("google_maps", operation, response.status_code)
        if response.is_error:
            raise MapsError(f"Google Maps returned {response.status_code}", response.status_code)
        data = response.json()
        status = data.get("status", "OK")
        if status not in _GOOGLE_OK:
            logger.warning("maps.google_rejected", operation=operation, status=status)
            raise MapsError(data.get("error_message") or f"Google Maps status {status}")
        return data

    async def _mapbox(self, query: str, operation: str, types: str | None) -> MapsResult:
        params = {"access_token": self._mapbox_token, "limit": "5", "country": "us"}
        if types:
            params["types"] = types
        async with httpx.AsyncClient(timeout=self.TIMEOUT) as client:
            response = await client.get(
                MAPBOX_GEOCODE_URL.format(query=quote(query, safe="")), params=params
            )
        record_vendor_call("mapbox", operation, response.status_code)
        if response.is_error:
            raise MapsError(f"Mapbox returned {response.status_code}", response.status_code)
        features = response.json().get("features", [])
        return MapsResult(source="mapbox", results=[_mapbox_place(f) for f in features])
