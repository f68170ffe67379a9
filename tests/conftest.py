"""Shared fixtures for API and service tests.

Provides:
- make_app(): FastAPI app with services placed directly on app.state
  (httpx's ASGITransport does not run the lifespan, so nothing real starts)
- InMemoryCallStore: CallRepository test double
- FakeTwilio: TwilioClient test double with canned recordings and calls
- api_client(): async context manager yielding an httpx client for an app
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any

import httpx
import pytest
from httpx import ASGITransport, AsyncClient

from src.nodal_point.calls.schemas import CallRecord
from src.nodal_point.config import Settings
from src.nodal_point.main import create_app
from src.nodal_point.telephony.twilio_client import API_BASE_URL

ACCOUNT_SID = "AC" + "0" * 32
CALL_SID = "CA" + "a" * 32
OTHER_CALL_SID = "CA" + "b" * 32
RECORDING_SID = "RE" + "c" * 32


def make_settings(**overrides: Any) -> Settings:
    """Settings isolated from the developer's .env file."""
    return Settings(_env_file=None, **overrides)


def make_app(settings: Settings | None = None, **state: Any):
    app = create_app()
    app.state.settings = settings or make_settings()
    for name, value in state.items():
        setattr(app.state, name, value)
    return app


@asynccontextmanager
async def api_client(app):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


# ── In-Memory Test Doubles ───────────────────────────────────────────────────


class InMemoryCallStore:
    """In-memory CallRepository for testing without a database."""

    def __init__(self) -> None:
        self.calls: dict[str, CallRecord] = {}
        self.contacts: dict[str, dict[str, Any]] = {}
        self.accounts: dict[str, dict[str, Any]] = {}

    async def get_call(self, call_sid: str) -> CallRecord | None:
        return self.calls.get(call_sid)

    async def save_call(self, call: CallRecord) -> CallRecord:
        self.calls[call.id] = call
        return call

    async def find_contact_by_phone(self, phone: str) -> tuple[str, str] | None:
        for contact_id, contact in self.contacts.items():
            if phone in (contact.get("phone"), contact.get("mobile"), contact.get("workPhone")):
                return contact_id, contact.get("name", "")
        return None

    async def list_calls(
        self, limit: int = 50, offset: int = 0, call_sid: str | None = None
    ) -> list[CallRecord]:
        if call_sid:
            return [c for c in self.calls.values() if c.id == call_sid][:1]
        ordered = sorted(
            self.calls.values(),
            key=lambda c: c.timestamp or datetime.min.replace(tzinfo=timezone.utc),
            reverse=True,
        )
        return ordered[offset:offset + limit]

    async def calls_for_account(self, account_id: str, limit: int = 50) -> list[CallRecord] | None:
        if account_id not in self.accounts:
            return None
        return [c for c in self.calls.values() if c.account_id == account_id][:limit]

    async def calls_for_contact(self, contact_id: str, limit: int = 50) -> list[CallRecord] | None:
        if contact_id not in self.contacts:
            return None
        return [c for c in self.calls.values() if c.contact_id == contact_id][:limit]


class FakeTwilio:
    """TwilioClient double. Unknown SIDs raise like a Twilio 404 would."""

    def __init__(self, configured: bool = True) -> None:
        self.configured = configured
        self.account_sid = ACCOUNT_SID
        self.recordings: dict[str, dict[str, Any]] = {}
        self.transcripts: dict[str, dict[str, Any]] = {}
        self.call_resources: dict[str, dict[str, Any]] = {}
        self.recordings_by_call: dict[str, list[dict[str, Any]]] = {}
        self.media: dict[str, httpx.Response] = {}
        self.requests: list[tuple[str, str]] = []

    def _not_found(self, url: str) -> httpx.HTTPStatusError:
        request = httpx.Request("GET", url)
        return httpx.HTTPStatusError(
            "404 Not Found", request=request, response=httpx.Response(404, request=request)
        )

    async def fetch_recording(self, recording_sid: str) -> dict:
        self.requests.append(("fetch_recording", recording_sid))
        if recording_sid not in self.recordings:
            raise self._not_found(recording_sid)
        return self.recordings[recording_sid]

    async def fetch_transcript(self, transcript_sid: str) -> dict:
        self.requests.append(("fetch_transcript", transcript_sid))
        if transcript_sid not in self.transcripts:
            raise self._not_found(transcript_sid)
        return self.transcripts[transcript_sid]

    async def fetch_call(self, call_sid: str) -> dict:
        self.requests.append(("fetch_call", call_sid))
        if call_sid not in self.call_resources:
            raise self._not_found(call_sid)
        return self.call_resources[call_sid]

    async def list_recordings(self, call_sid: str, limit: int = 1) -> list[dict]:
        self.requests.append(("list_recordings", call_sid))
        return self.recordings_by_call.get(call_sid, [])[:limit]

    def recording_media_url(self, recording_sid: str) -> str:
        return f"{API_BASE_URL}/Accounts/{ACCOUNT_SID}/Recordings/{recording_sid}.mp3"

    async def fetch_media(self, url: str) -> httpx.Response:
        self.requests.append(("fetch_media", url))
        return self.media.get(
            url,
            httpx.Response(200, content=b"ID3audio", headers={"content-type": "audio/mpeg"}),
        )


@pytest.fixture
def call_store() -> InMemoryCallStore:
    return InMemoryCallStore()


@pytest.fixture
def twilio() -> FakeTwilio:
    return FakeTwilio()
