"""Invokes the Supabase edge function that scrapes new market signals."""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from src.nodal_point.core.monitoring import record_vendor_call

logger = structlog.get_logger(__name__)


class ScrapeTrigger:
    """POSTs to ``{supabase_url}/functions/v1/{function_name}``.

    Args:
        supabase_url: Project URL, e.g. https://xyz.supabase.co.
        service_role_key: Service role key sent as the bearer token.
        function_name: Edge function slug.
    """

    # Scrapes fan out to several news sources before answering
    TIMEOUT = 60.0

    def __init__(self, supabase_url: str, service_role_key: str, function_name: str) -> None:
        self._url = f"{supabase_url.rstrip('/')}/functions/v1/{function_name}"
        self._service_role_key = service_role_key
        self._function_name = function_name

    @property
    def configured(self) -> bool:
        return bool(self._service_role_key) and self._url.startswith("http")

    async def trigger(self, body: dict[str, Any] | None = None) -> tuple[int, Any]:
        """Run the function; returns the vendor status code and decoded body."""
        headers = {
            "Authorization": f"Bearer {self._service_role_key}",
            "Content-Type": "application/json",
        }
        async with httpx.AsyncClient(timeout=self.TIMEOUT) as client:
            response = await client.post(self._url, json=body or {}, headers=headers)
        record_vendor_call("supabase", self._function_name, response.status_code)
        logger.info(
            "intelligence.scrape_triggered",
            function=self._function_name,
            status=response.status_code,
        )
        try:
            payload: Any = response.json()
        except ValueError:
            payload = {"raw": response.text}
        return response.status_code, payload
