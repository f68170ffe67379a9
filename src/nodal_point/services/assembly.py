"""AssemblyAI realtime (streaming v3) temporary token issue.

The browser opens the transcription websocket directly with a short-lived
token so the account API key never leaves the server.
"""

from __future__ import annotations

import httpx
import structlog

from src.nodal_point.core.monitoring import record_vendor_call

logger = structlog.get_logger(__name__)

TOKEN_URL = "https://streaming.assemblyai.com/v3/token"

# The streaming API rejects lifetimes outside this range
MIN_TTL_SECONDS = 1
MAX_TTL_SECONDS = 600


class AssemblyAIService:
    TIMEOUT = 10.0

    def __init__(self, api_key: str, ttl_seconds: int = MAX_TTL_SECONDS) -> None:
        self._api_key = api_key
        self._ttl = max(MIN_TTL_SECONDS, min(ttl_seconds, MAX_TTL_SECONDS))

    @property
    def configured(self) -> bool:
        return bool(self._api_key)

    async def create_token(self) -> httpx.Response:
        """Request a temporary token. Returns the raw vendor response."""
        async with httpx.AsyncClient(timeout=self.TIMEOUT) as client:
            response = await client.get(
                TOKEN_URL,
                params={"expires_in_seconds": self._ttl},
                headers={"Authorization": self._api_key},
            )
        record_vendor_call("assemblyai", "token", response.status_code)
        if response.is_error:
            logger.warning("assemblyai.token_failed", status=response.status_code)
        return response
