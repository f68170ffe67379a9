"""Pydantic records for ERCOT market data and the 4CP forecast.

Field names are snake_case in Python and serialize to camelCase, the shape
the dashboard widgets already consume.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RiskLevel(str, Enum):
    """4CP risk bands, lowest to highest."""

    OFF_SEASON = "OFF_SEASON"
    LOW = "LOW"
    MODERATE = "MODERATE"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"
    BATTLE_STATIONS = "BATTLE_STATIONS"


# ── ERCOT feeds ─────────────────────────────────────────────────────────────


class GridConditions(BaseModel):
    """Real-time system conditions scraped from ERCOT (MW unless noted).

    Kept snake_case on the wire to match the legacy /api/market/ercot payload.
    """

    actual_load: float | None = None
    total_capacity: float | None = None
    wind_gen: float | None = None
    pv_gen: float | None = None
    net_load: float | None = None
    frequency: float | None = None  # Hz
    reserves: float | None = None
    forecast_load: float | None = None
    scarcity_prob: float | None = None  # percent


class SettlementPrices(BaseModel):
    """Real-time settlement point prices in $/MWh."""

    houston: float = 0.0
    north: float = 0.0
    south: float = 0.0
    west: float = 0.0
    hub_avg: float = 0.0


class SourceMetadata(BaseModel):
    source: str
    url: str
    last_updated: datetime


class GridReport(BaseModel):
    timestamp: datetime
    metrics: GridConditions
    metadata: SourceMetadata


class PriceReport(BaseModel):
    timestamp: str
    prices: SettlementPrices
    metadata: SourceMetadata


# ── 4CP forecast ────────────────────────────────────────────────────────────


class GridSnapshot(_CamelModel):
    """Telemetry the forecast was scored from."""

    actual_load: float = 0.0
    reserves: float | None = None
    hub_price: float = 0.0
    load_pct: float = 0.0


class FourCPForecast(_CamelModel):
    """Coincident peak risk at a point in time.

    probability is the 0-1 form of score (0-100).
    """

    probability: float = Field(ge=0.0, le=1.0)
    score: int = Field(ge=0, le=100)
    risk_level: RiskLevel
    is_peak_season: bool
    is_time_window: bool
    peaks_recorded: int = 0
    peaks_remaining: int = 4
    alert_message: str | None = None
    signals: list[str] = Field(default_factory=list)
    grid_snapshot: GridSnapshot | None = None
    month: int
    central_hour: int
    generated_at: datetime


class ForecastResponse(FourCPForecast):
    """Forecast as served by the poller, with cache freshness."""

    stale: bool = False
    fetched_at: datetime
