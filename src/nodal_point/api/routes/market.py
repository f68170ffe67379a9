"""Market data API: 4CP forecast, strike list, and ERCOT/EIA pass-throughs."""

from __future__ import annotations

from typing import Any

import httpx
import structlog
from fastapi import APIRouter, Depends, Query

from src.nodal_point.api.deps import (
    get_eia_client,
    get_ercot_client,
    get_forecast_poller,
    get_strike_list_repository,
)
from src.nodal_point.api.errors import ApiError, BadRequestError, NotConfiguredError, UpstreamError
from src.nodal_point.market.ercot import ErcotDataError
from src.nodal_point.market.poller import ForecastUnavailableError
from src.nodal_point.market.schemas import ForecastResponse

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/market", tags=["market"])


@router.get("/4cp-forecast", response_model=ForecastResponse, response_model_by_alias=True)
async def fourcp_forecast(poller: Any = Depends(get_forecast_poller)) -> ForecastResponse:
    """Latest 4CP forecast; refetched first when the cache has gone stale."""
    try:
        return await poller.get()
    except ForecastUnavailableError as exc:
        raise ApiError("4CP forecast failed", message=str(exc)) from exc


@router.get("/4cp-strike-list")
async def strike_list(
    limit: int = Query(default=10, ge=1, le=100),
    repo: Any = Depends(get_strike_list_repository),
) -> dict:
    accounts = await repo.exposed_accounts(limit=limit)
    return {"accounts": [a.model_dump(mode="json") for a in accounts]}


@router.get("/ercot")
async def ercot_data(
    data_type: str = Query(default="prices", alias="type"),
    ercot: Any = Depends(get_ercot_client),
) -> dict:
    if data_type not in ("prices", "grid"):
        raise BadRequestError('Invalid type parameter. Use "prices" or "grid".')
    try:
        report = await ercot.market_data(data_type)
    except (httpx.HTTPError, ErcotDataError) as exc:
        logger.error("ercot.request_failed", type=data_type, error=str(exc))
        raise ApiError("Failed to fetch ERCOT data", message=str(exc)) from exc
    return report.model_dump(mode="json")


@router.get("/eia")
async def eia_retail_prices(
    state: str = Query(default="TX", min_length=2, max_length=2),
    sector: str = Query(default="COM", min_length=3, max_length=3),
    length: int = Query(default=12, ge=1, le=120),
    eia: Any = Depends(get_eia_client),
) -> dict:
    if not eia.configured:
        raise NotConfiguredError("EIA API key not configured")
    try:
        return await eia.retail_prices(state=state, sector=sector, length=length)
    except httpx.HTTPStatusError as exc:
        raise UpstreamError(
            "EIA request failed", status_code=exc.response.status_code
        ) from exc
    except httpx.HTTPError as exc:
        raise UpstreamError("EIA request failed", message=str(exc)) from exc
