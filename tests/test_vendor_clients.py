"""Unit tests for outbound vendor clients with httpx patched out.

Covers TwilioClient, EiaClient, MapsService, AssemblyAIService,
ScrapeTrigger and ZohoService.
"""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import httpx
import pytest
from jose import jwt

from conftest import ACCOUNT_SID, CALL_SID, RECORDING_SID
from src.nodal_point.intelligence.scrape_trigger import ScrapeTrigger
from src.nodal_point.market.eia import EIA_RETAIL_SALES_URL, EiaClient
from src.nodal_point.services.assembly import TOKEN_URL, AssemblyAIService
from src.nodal_point.services.maps import MapsError, MapsService
from src.nodal_point.services.zoho import (
    ZohoAuthError,
    ZohoService,
    ZohoTokens,
    email_allowed,
)
from src.nodal_point.telephony.twilio_client import API_BASE_URL, TwilioClient


def _response(status: int, json=None, method: str = "GET", url: str = "https://test.com", **kw):
    return httpx.Response(status, json=json, request=httpx.Request(method, url), **kw)


# ── TwilioClient ─────────────────────────────────────────────────────────────


class TestTwilioClient:
    @pytest.mark.asyncio
    async def test_fetch_recording_url(self):
        client = TwilioClient(ACCOUNT_SID, "token")
        with patch(
            "httpx.AsyncClient.get",
            new_callable=AsyncMock,
            return_value=_response(200, {"call_sid": CALL_SID}),
        ) as mock_get:
            data = await client.fetch_recording(RECORDING_SID)

        assert data == {"call_sid": CALL_SID}
        url = mock_get.call_args.args[0]
        assert url == f"{API_BASE_URL}/Accounts/{ACCOUNT_SID}/Recordings/{RECORDING_SID}.json"

    @pytest.mark.asyncio
    async def test_http_errors_raise(self):
        client = TwilioClient(ACCOUNT_SID, "token")
        with patch("httpx.AsyncClient.get", new_callable=AsyncMock, return_value=_response(404)):
            with pytest.raises(httpx.HTTPStatusError):
                await client.fetch_call(CALL_SID)

    def test_transcript_source_sid_shapes(self):
        nested = {"channel": {"media_properties": {"source_sid": RECORDING_SID}}}
        assert TwilioClient.transcript_source_sid(nested) == RECORDING_SID
        assert TwilioClient.transcript_source_sid({"sourceSid": CALL_SID}) == CALL_SID
        assert TwilioClient.transcript_source_sid({}) is None

    def test_configured(self):
        assert TwilioClient(ACCOUNT_SID, "token").configured
        assert not TwilioClient("", "").configured


# ── EiaClient ────────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_eia_query_parameters():
    client = EiaClient("eia-key")
    with patch(
        "httpx.AsyncClient.get",
        new_callable=AsyncMock,
        return_value=_response(200, {"response": {"data": []}}),
    ) as mock_get:
        await client.retail_prices(state="tx", sector="res", length=6)

    assert mock_get.call_args.args[0] == EIA_RETAIL_SALES_URL
    params = dict(mock_get.call_args.kwargs["params"])
    assert params["api_key"] == "eia-key"
    assert params["facets[stateid][]"] == "TX"
    assert params["facets[sectorid][]"] == "RES"
    assert params["length"] == "6"


# ── MapsService ──────────────────────────────────────────────────────────────


class TestMapsService:
    @pytest.mark.asyncio
    async def test_google_primary(self):
        service = MapsService("g-key", "mb-token")
        body = {
            "status": "OK",
            "results": [
                {
                    "name": "Nodal Point HQ",
                    "formatted_address": "1 Main St, Houston, TX",
                    "geometry": {"location": {"lat": 29.76, "lng": -95.37}},
                    "place_id": "abc",
                }
            ],
        }
        with patch("httpx.AsyncClient.get", new_callable=AsyncMock, return_value=_response(200, body)):
            result = await service.search("nodal point")

        assert result.source == "google"
        assert result.results[0].lat == 29.76
        assert result.results[0].place_id == "abc"

    @pytest.mark.asyncio
    async def test_google_rejection_raises(self):
        service = MapsService("g-key", "")
        body = {"status": "REQUEST_DENIED", "error_message": "API key invalid"}
        with patch("httpx.AsyncClient.get", new_callable=AsyncMock, return_value=_response(200, body)):
            with pytest.raises(MapsError, match="API key invalid"):
                await service.geocode("1 Main St")

    @pytest.mark.asyncio
    async def test_mapbox_without_google_key(self):
        service = MapsService("", "mb-token")
        body = {
            "features": [
                {"text": "Main St", "place_name": "1 Main St, Houston", "center": [-95.37, 29.76], "id": "addr.1"}
            ]
        }
        with patch(
            "httpx.AsyncClient.get", new_callable=AsyncMock, return_value=_response(200, body)
        ) as mock_get:
            result = await service.geocode("1 Main St")

        assert result.source == "mapbox"
        assert result.results[0].lng == -95.37
        assert result.results[0].lat == 29.76
        assert mock_get.call_args.kwargs["params"]["types"] == "address"
        assert "1%20Main%20St" in mock_get.call_args.args[0]


# ── AssemblyAIService ────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_assembly_ttl_clamped():
    service = AssemblyAIService("aai-key", ttl_seconds=3600)
    with patch(
        "httpx.AsyncClient.get",
        new_callable=AsyncMock,
        return_value=_response(200, {"token": "tmp"}),
    ) as mock_get:
        response = await service.create_token()

    assert response.json() == {"token": "tmp"}
    assert mock_get.call_args.args[0] == TOKEN_URL
    assert mock_get.call_args.kwargs["params"] == {"expires_in_seconds": 600}
    assert mock_get.call_args.kwargs["headers"] == {"Authorization": "aai-key"}


# ── ScrapeTrigger ────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_scrape_trigger_posts_to_edge_function():
    trigger = ScrapeTrigger("https://proj.supabase.co/", "service-key", "scrape-market-intelligence")
    with patch(
        "httpx.AsyncClient.post",
        new_callable=AsyncMock,
        return_value=_response(200, {"inserted": 4}, method="POST"),
    ) as mock_post:
        status, payload = await trigger.trigger()

    assert (status, payload) == (200, {"inserted": 4})
    assert mock_post.call_args.args[0] == (
        "https://proj.supabase.co/functions/v1/scrape-market-intelligence"
    )
    assert mock_post.call_args.kwargs["headers"]["Authorization"] == "Bearer service-key"


def test_scrape_trigger_not_configured_without_key():
    assert not ScrapeTrigger("https://proj.supabase.co", "", "fn").configured
    assert not ScrapeTrigger("", "key", "fn").configured


# ── ZohoService ──────────────────────────────────────────────────────────────


def _zoho() -> ZohoService:
    return ZohoService("client-id", "client-secret", "https://app.nodalpoint.io/api/auth/callback/zoho")


class TestZohoService:
    def test_authorize_url(self):
        url = _zoho().authorize_url(state="xyz")
        assert url.startswith("https://accounts.zoho.com/oauth/v2/auth?")
        assert "access_type=offline" in url
        assert "state=xyz" in url
        assert "ZohoMail.messages.ALL" in url

    @pytest.mark.asyncio
    async def test_exchange_code_error_body(self):
        with patch(
            "httpx.AsyncClient.post",
            new_callable=AsyncMock,
            return_value=_response(200, {"error": "invalid_code"}, method="POST"),
        ):
            with pytest.raises(ZohoAuthError, match="invalid_code"):
                await _zoho().exchange_code("bad")

    @pytest.mark.asyncio
    async def test_exchange_code(self):
        body = {"access_token": "at", "refresh_token": "rt", "expires_in": 3600}
        with patch(
            "httpx.AsyncClient.post",
            new_callable=AsyncMock,
            return_value=_response(200, body, method="POST"),
        ):
            tokens = await _zoho().exchange_code("good")
        assert tokens.access_token == "at"
        assert tokens.refresh_token == "rt"

    @pytest.mark.asyncio
    async def test_identity_from_id_token(self):
        id_token = jwt.encode({"email": "Rep@NodalPoint.io", "sub": "zuid-1"}, "k", algorithm="HS256")
        tokens = ZohoTokens("at", None, id_token, 3600)

        identity = await _zoho().identity(tokens)

        assert identity.email == "rep@nodalpoint.io"
        assert identity.user_id == "zuid-1"

    @pytest.mark.asyncio
    async def test_identity_from_user_info(self):
        tokens = ZohoTokens("at", None, None, 3600)
        with patch(
            "httpx.AsyncClient.get",
            new_callable=AsyncMock,
            return_value=_response(200, {"Email": "rep@nodalpoint.io", "ZUID": 42}),
        ):
            identity = await _zoho().identity(tokens)
        assert identity.user_id == "42"

    @pytest.mark.asyncio
    async def test_mail_account_id(self):
        with patch(
            "httpx.AsyncClient.get",
            new_callable=AsyncMock,
            return_value=_response(200, {"data": [{"accountId": 9001}]}),
        ):
            assert await _zoho().mail_account_id("at") == "9001"


def test_email_domain_check():
    assert email_allowed("rep@nodalpoint.io", "nodalpoint.io")
    assert email_allowed("REP@NODALPOINT.IO", "@nodalpoint.io")
    assert not email_allowed("rep@nodalpoint.io.evil.com", "nodalpoint.io")
    assert not email_allowed("rep@gmail.com", "nodalpoint.io")
