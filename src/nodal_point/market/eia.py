"""EIA Open Data client for retail electricity prices."""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from src.nodal_point.core.monitoring import record_vendor_call

logger = structlog.get_logger(__name__)

EIA_RETAIL_SALES_URL = "https://api.eia.gov/v2/electricity/retail-sales/data/"


class EiaClient:
    """Thin async wrapper over the EIA v2 retail-sales dataset.

    Args:
        api_key: EIA Open Data API key. Empty means not configured.
    """

    TIMEOUT = 15.0

    def __init__(self, api_key: str) -> None:
        self._api_key = api_key

    @property
    def configured(self) -> bool:
        return bool(self._api_key)

    async def retail_prices(
        self,
        state: str = "TX",
        sector: str = "COM",
        length: int = 12,
    ) -> dict[str, Any]:
        """Latest monthly retail prices (cents/kWh), newest first.

        Returns the vendor JSON body unchanged.
        """
        params = [
            ("api_key", self._api_key),
            ("frequency", "monthly"),
            ("data[0]", "price"),
            ("facets[stateid][]", state.upper()),
            ("facets[sectorid][]", sector.upper()),
            ("sort[0][column]", "period"),
            ("sort[0][direction]", "desc"),
            ("length", str(length)),
        ]
        async with httpx.AsyncClient(timeout=self.TIMEOUT) as client:
            response = await client.get(EIA_RETAIL_SALES_URL, params=params)
        record_vendor_call("eia", "retail_prices", response.status_code)
        response.raise_for_status()
        logger.debug("eia.retail_prices_fetched", state=state, sector=sector)
        return response.json()
