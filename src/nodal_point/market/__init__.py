"""ERCOT market data: 4CP risk scoring, scrapers, and the forecast poller.

Exports:
    compute_forecast: Score 4CP risk from grid conditions and prices.
    ErcotForecastSource: Builds forecasts from live ERCOT feeds.
    ErcotClient: Public CDR scraper for grid conditions and prices.
    EiaClient: EIA retail electricity price client.
    StrikeListRepository: 4CP-exposed accounts to call.
    ForecastPoller: Scheduled, retrying forecast cache.
    FourCPForecast, ForecastResponse, RiskLevel: Forecast records.
"""

from src.nodal_point.market.eia import EiaClient
from src.nodal_point.market.ercot import ErcotClient, ErcotDataError
from src.nodal_point.market.forecast import ErcotForecastSource, compute_forecast
from src.nodal_point.market.poller import ForecastPoller, ForecastUnavailableError
from src.nodal_point.market.schemas import (
    ForecastResponse,
    FourCPForecast,
    GridConditions,
    RiskLevel,
    SettlementPrices,
)
from src.nodal_point.market.strike_list import StrikeListRepository, StrikeTarget

__all__ = [
    "EiaClient",
    "ErcotClient",
    "ErcotDataError",
    "ErcotForecastSource",
    "ForecastPoller",
    "ForecastResponse",
    "ForecastUnavailableError",
    "FourCPForecast",
    "GridConditions",
    "RiskLevel",
    "SettlementPrices",
    "StrikeListRepository",
    "StrikeTarget",
    "compute_forecast",
]
