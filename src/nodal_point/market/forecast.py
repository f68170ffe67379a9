"""4CP (Four Coincident Peak) risk scoring.

ERCOT bills transmission on each customer's demand during the four monthly
system peaks of June through September. Brokers call exposed accounts ahead
of a likely peak so they can curtail. The score is a weighted heuristic over
live grid telemetry:

    load vs. historical peak     up to 35 pts
    operating reserves           up to 20 pts
    2pm-6pm Central window       up to 20 pts
    hub price                    up to 15 pts
    ERCOT scarcity probability   up to 10 pts
"""

from __future__ import annotations

import asyncio
import math
from datetime import datetime, timezone
from zoneinfo import ZoneInfo

import structlog

from src.nodal_point.market.ercot import ErcotClient
from src.nodal_point.market.schemas import (
    FourCPForecast,
    GridConditions,
    GridSnapshot,
    RiskLevel,
    SettlementPrices,
)

logger = structlog.get_logger(__name__)

CENTRAL = ZoneInfo("America/Chicago")

# Recent summer peaks run ~75-85 GW; used as the denominator for load %.
ERCOT_HISTORICAL_PEAK_MW = 80_000

PEAK_SEASON_MONTHS = range(6, 10)
RISK_WINDOW_HOURS = range(14, 18)
APPROACH_WINDOW_HOURS = range(13, 19)

OFF_SEASON_SIGNAL = "Outside ERCOT 4CP monitoring window (Jun-Sep)"

_RISK_BANDS: list[tuple[int, RiskLevel]] = [
    (80, RiskLevel.BATTLE_STATIONS),
    (65, RiskLevel.CRITICAL),
    (45, RiskLevel.HIGH),
    (25, RiskLevel.MODERATE),
]


def risk_level_for(score: int) -> RiskLevel:
    """Map a 0-100 score to its risk band (in-season only)."""
    for threshold, level in _RISK_BANDS:
        if score >= threshold:
            return level
    return RiskLevel.LOW


def alert_message_for(score: int) -> str | None:
    if score >= 80:
        return f"BATTLE STATIONS: 4CP probability at {score}%. Call 4CP-exposed accounts immediately."
    if score >= 65:
        return f"4CP risk CRITICAL at {score}%. Prepare account outreach list."
    if score >= 45:
        return f"4CP risk HIGH at {score}%. Monitor grid closely."
    return None


def compute_forecast(
    grid: GridConditions | None,
    prices: SettlementPrices | None,
    now: datetime | None = None,
) -> FourCPForecast:
    """Score current 4CP risk from grid conditions and hub prices.

    Either input may be None when its feed was unavailable; missing values
    contribute no points.
    """
    now = now or datetime.now(timezone.utc)
    local = now.astimezone(CENTRAL)
    month, hour = local.month, local.hour
    tz_label = local.strftime("%Z")

    is_peak_season = month in PEAK_SEASON_MONTHS
    is_time_window = hour in RISK_WINDOW_HOURS

    if not is_peak_season:
        return FourCPForecast(
            probability=0.0,
            score=0,
            risk_level=RiskLevel.OFF_SEASON,
            is_peak_season=False,
            is_time_window=False,
            peaks_recorded=0,
            peaks_remaining=4,
            alert_message=None,
            signals=[OFF_SEASON_SIGNAL],
            grid_snapshot=None,
            month=month,
            central_hour=hour,
            generated_at=now,
        )

    grid = grid or GridConditions()
    prices = prices or SettlementPrices()
    points = 0.0
    signals: list[str] = []

    # 1. Load vs historical peak
    actual_load = grid.actual_load or 0.0
    load_pct = (actual_load / ERCOT_HISTORICAL_PEAK_MW) * 100 if actual_load > 0 else 0.0
    points += min(35.0, (load_pct / 100) * 35)
    if load_pct > 85:
        signals.append(f"Load at {load_pct:.1f}% of seasonal maximum - critical threshold")
    elif load_pct > 70:
        signals.append(f"Load at {load_pct:.1f}% of seasonal maximum - elevated")

    # 2. Operating reserves
    reserves = grid.reserves
    if reserves is not None:
        if reserves < 3000:
            points += 20
            signals.append(f"Reserves critically low at {round(reserves):,} MW")
        elif reserves < 5000:
            points += 12
            signals.append(f"Reserves tight at {round(reserves):,} MW")
        elif reserves < 8000:
            points += 5

    # 3. Time of day
    if is_time_window:
        points += 20
        signals.append(f"Within 4CP risk window: {hour}:00 {tz_label}")
    elif hour in APPROACH_WINDOW_HOURS:
        points += 8
        signals.append(f"Approaching 4CP risk window: {hour}:00 {tz_label}")

    # 4. Hub price
    hub_price = prices.hub_avg or 0.0
    if hub_price > 500:
        points += 15
        signals.append(f"Scarcity adder active: Hub at ${hub_price:.0f}/MWh")
    elif hub_price > 100:
        points += 10
        signals.append(f"Hub price elevated: ${hub_price:.0f}/MWh")
    elif hub_price > 50:
        points += 3

    # 5. Scarcity probability
    scarcity = grid.scarcity_prob or 0.0
    if scarcity > 50:
        points += 10
        signals.append(f"ERCOT scarcity probability: {scarcity:.0f}%")
    elif scarcity > 20:
        points += 5

    score = min(100, math.floor(points + 0.5))

    return FourCPForecast(
        probability=score / 100,
        score=score,
        risk_level=risk_level_for(score),
        is_peak_season=True,
        is_time_window=is_time_window,
        peaks_recorded=0,
        peaks_remaining=4,
        alert_message=alert_message_for(score),
        signals=signals,
        grid_snapshot=GridSnapshot(
            actual_load=actual_load,
            reserves=reserves,
            hub_price=hub_price,
            load_pct=round(load_pct, 1),
        ),
        month=month,
        central_hour=hour,
        generated_at=now,
    )


class ErcotForecastSource:
    """Builds a forecast from live ERCOT feeds.

    Grid and price feeds are fetched concurrently; a failed feed is scored as
    missing rather than failing the whole forecast. When both fail the error
    propagates so the poller can retry.
    """

    def __init__(self, ercot: ErcotClient) -> None:
        self._ercot = ercot

    async def __call__(self) -> FourCPForecast:
        grid_result, price_result = await asyncio.gather(
            self._ercot.grid_conditions(),
            self._ercot.realtime_prices(),
            return_exceptions=True,
        )
        if isinstance(grid_result, Exception) and isinstance(price_result, Exception):
            raise grid_result

        grid = None
        prices = None
        if isinstance(grid_result, Exception):
            logger.warning("forecast.grid_feed_failed", error=str(grid_result))
        else:
            grid = grid_result.metrics
        if isinstance(price_result, Exception):
            logger.warning("forecast.price_feed_failed", error=str(price_result))
        else:
            prices = price_result.prices

        return compute_forecast(grid, prices)
