"""Async HTTP client wrapper for the Twilio REST and Intelligence APIs.

Covers the handful of reads the CRM needs: recording and call lookups for SID
resolution and enrichment, Conversational Intelligence transcripts, and
authenticated media fetches for the recording audio proxy. No retries here;
callers decide how to treat failures.
"""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from src.nodal_point.core.monitoring import record_vendor_call

logger = structlog.get_logger(__name__)

API_BASE_URL = "https://api.twilio.com/2010-04-01"
INTELLIGENCE_BASE_URL = "https://intelligence.twilio.com/v2"


class TwilioClient:
    """Async client for the Twilio REST API using account basic auth.

    Args:
        account_sid: Twilio Account SID (``AC...``).
        auth_token: Twilio auth token.
    """

    TIMEOUT_READ = 10.0
    TIMEOUT_MEDIA = 30.0

    def __init__(self, account_sid: str, auth_token: str) -> None:
        self._account_sid = account_sid
        self._auth_token = auth_token
        self._account_url = f"{API_BASE_URL}/Accounts/{account_sid}"

    @property
    def configured(self) -> bool:
        return bool(self._account_sid and self._auth_token)

    @property
    def account_sid(self) -> str:
        return self._account_sid

    def _client(self, timeout: float) -> httpx.AsyncClient:
        """Create a new httpx client with specified timeout."""
        return httpx.AsyncClient(
            auth=(self._account_sid, self._auth_token),
            timeout=timeout,
        )

    async def _get_json(self, url: str, operation: str, params: dict | None = None) -> dict:
        async with self._client(self.TIMEOUT_READ) as client:
            response = await client.get(url, params=params)
        record_vendor_call("twilio", operation, response.status_code)
        response.raise_for_status()
        return response.json()

    async def fetch_recording(self, recording_sid: str) -> dict:
        """GET /Recordings/{sid}.json -- includes call_sid, duration, channels, source."""
        return await self._get_json(
            f"{self._account_url}/Recordings/{recording_sid}.json", "fetch_recording"
        )

    async def fetch_call(self, call_sid: str) -> dict:
        """GET /Calls/{sid}.json -- includes to, from, status, duration."""
        return await self._get_json(f"{self._account_url}/Calls/{call_sid}.json", "fetch_call")

    async def list_recordings(self, call_sid: str, limit: int = 1) -> list[dict]:
        """List recordings attached to a call, newest first."""
        data = await self._get_json(
            f"{self._account_url}/Recordings.json",
            "list_recordings",
            params={"CallSid": call_sid, "PageSize": limit},
        )
        return list(data.get("recordings") or [])

    async def fetch_transcript(self, transcript_sid: str) -> dict:
        """GET Intelligence /Transcripts/{sid}."""
        return await self._get_json(
            f"{INTELLIGENCE_BASE_URL}/Transcripts/{transcript_sid}", "fetch_transcript"
        )

    @staticmethod
    def transcript_source_sid(transcript: dict[str, Any]) -> str | None:
        """Extract the media source SID a transcript was created from.

        The Intelligence API nests it under channel.media_properties; webhook
        payloads flatten it to source_sid / sourceSid.
        """
        channel = transcript.get("channel") or {}
        media = channel.get("media_properties") or {}
        return (
            media.get("source_sid")
            or transcript.get("source_sid")
            or transcript.get("sourceSid")
        )

    def recording_media_url(self, recording_sid: str) -> str:
        return f"{self._account_url}/Recordings/{recording_sid}.mp3"

    async def fetch_media(self, url: str) -> httpx.Response:
        """Fetch recording media with account credentials; body is fully read."""
        async with self._client(self.TIMEOUT_MEDIA) as client:
            response = await client.get(url, follow_redirects=True)
        record_vendor_call("twilio", "fetch_media", response.status_code)
        logger.info(
            "twilio.media_fetched",
            status=response.status_code,
            content_type=response.headers.get("content-type"),
            size=len(response.content),
        )
        return response
