"""ERCOT public data scraper.

Reads the two Current Day Reports (CDR) HTML pages ERCOT publishes without
credentials: real-time system conditions and real-time settlement point
prices. Both pages are plain HTML tables parsed with BeautifulSoup.
"""

from __future__ import annotations

from datetime import datetime, timezone

import httpx
import structlog
from bs4 import BeautifulSoup, Tag

from src.nodal_point.core.monitoring import record_vendor_call
from src.nodal_point.market.schemas import (
    GridConditions,
    GridReport,
    PriceReport,
    SettlementPrices,
    SourceMetadata,
)

logger = structlog.get_logger(__name__)

PRICES_URL = "https://www.ercot.com/content/cdr/html/real_time_spp.html"
GRID_URL = "https://www.ercot.com/content/cdr/html/real_time_system_conditions.html"
SOURCE_NAME = "ERCOT Public CDR (Scraper)"

# ERCOT serves a bot wall to default client user agents.
FETCH_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    ),
}

# Column positions in the real-time SPP table
_HUB_AVG_COL = 4
_HOUSTON_COL = 11
_NORTH_COL = 13
_SOUTH_COL = 15
_WEST_COL = 16

# Row labels on the system conditions page; matched as prefixes because
# ERCOT appends qualifiers such as "(not including Ancillary Services)".
_GRID_LABELS: dict[str, str] = {
    "actual_load": "Actual System Demand",
    "total_capacity": "Total System Capacity",
    "wind_gen": "Total Wind Output",
    "pv_gen": "Total PVGR Output",
    "net_load": "Average Net Load",
    "frequency": "Current Frequency",
}


class ErcotDataError(RuntimeError):
    """The CDR page was fetched but held no usable data."""


def _to_float(value: str | None) -> float | None:
    if value is None:
        return None
    try:
        return float(value.replace(",", ""))
    except ValueError:
        return None


def _cell_text(cell: Tag) -> str:
    return cell.get_text(" ", strip=True)


def parse_prices(html: str) -> tuple[str, SettlementPrices]:
    """Extract the latest interval from the real-time SPP table.

    Returns the interval label (date and time cells) and the zone prices.
    Unparseable zone cells read as 0; the hub average falls back to the mean
    of the four load zones when its own cell is missing.
    """
    soup = BeautifulSoup(html, "html.parser")
    data_rows = [
        row
        for row in soup.find_all("tr")
        if row.find("td") is not None and row.find("td", class_="label") is None
    ]
    if not data_rows:
        raise ErcotDataError("No data rows found in ERCOT price table")

    cells = [_cell_text(td) for td in data_rows[-1].find_all("td")]

    def cell(index: int) -> float | None:
        return _to_float(cells[index]) if index < len(cells) else None

    houston = cell(_HOUSTON_COL) or 0.0
    north = cell(_NORTH_COL) or 0.0
    south = cell(_SOUTH_COL) or 0.0
    west = cell(_WEST_COL) or 0.0
    hub = cell(_HUB_AVG_COL)
    if hub is None:
        hub = (houston + north + south + west) / 4

    label = " ".join(cells[:2]) if cells else ""
    return label, SettlementPrices(
        houston=houston, north=north, south=south, west=west, hub_avg=hub
    )


def parse_grid_conditions(html: str) -> GridConditions:
    """Extract system conditions; reserves and scarcity are derived from load."""
    soup = BeautifulSoup(html, "html.parser")
    values: dict[str, float] = {}
    for td in soup.find_all("td"):
        text = _cell_text(td)
        for field, label in _GRID_LABELS.items():
            if field in values or not text.startswith(label):
                continue
            value_cell = td.find_next("td")
            parsed = _to_float(_cell_text(value_cell)) if value_cell is not None else None
            if parsed is not None:
                values[field] = parsed

    load = values.get("actual_load")
    capacity = values.get("total_capacity")
    if load and capacity:
        reserves = max(0.0, capacity - load)
        values["reserves"] = reserves
        values["forecast_load"] = load * 1.02
        values["scarcity_prob"] = round(max(0.0, (1 - reserves / (load * 0.1)) * 10), 1)

    return GridConditions(**values)


class ErcotClient:
    """Async scraper for ERCOT CDR pages. Each call is one GET; no retries."""

    TIMEOUT = 15.0

    async def _fetch(self, url: str, operation: str) -> str:
        async with httpx.AsyncClient(timeout=self.TIMEOUT, headers=FETCH_HEADERS) as client:
            response = await client.get(url)
        record_vendor_call("ercot", operation, response.status_code)
        response.raise_for_status()
        return response.text

    async def realtime_prices(self) -> PriceReport:
        logger.info("ercot.scrape_prices")
        html = await self._fetch(PRICES_URL, "prices")
        label, prices = parse_prices(html)
        return PriceReport(
            timestamp=label,
            prices=prices,
            metadata=SourceMetadata(
                source=SOURCE_NAME, url=PRICES_URL, last_updated=datetime.now(timezone.utc)
            ),
        )

    async def grid_conditions(self) -> GridReport:
        logger.info("ercot.scrape_grid")
        html = await self._fetch(GRID_URL, "grid")
        now = datetime.now(timezone.utc)
        return GridReport(
            timestamp=now,
            metrics=parse_grid_conditions(html),
            metadata=SourceMetadata(source=SOURCE_NAME, url=GRID_URL, last_updated=now),
        )

    async def market_data(self, data_type: str) -> PriceReport | GridReport:
        """Dispatch on the ``type`` query value used by /api/market/ercot."""
        if data_type == "prices":
            return await self.realtime_prices()
        if data_type == "grid":
            return await self.grid_conditions()
        raise ValueError('Invalid type parameter. Use "prices" or "grid".')
