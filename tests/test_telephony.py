"""Unit tests for Twilio SID resolution, phone helpers, and Voice tokens."""

from __future__ import annotations

import pytest
from jose import jwt

from conftest import CALL_SID, OTHER_CALL_SID, RECORDING_SID, FakeTwilio
from src.nodal_point.telephony.access_token import create_voice_token
from src.nodal_point.telephony.phone import (
    format_phone,
    normalize_phone,
    pick_business_and_target,
)
from src.nodal_point.telephony.sids import is_call_sid, is_recording_sid, resolve_to_call_sid

TRANSCRIPT_SID = "GT" + "d" * 32


# ── SID validators ───────────────────────────────────────────────────────────


class TestSidValidators:
    def test_call_sid_shape(self):
        assert is_call_sid(CALL_SID)
        assert is_call_sid("ca" + "A" * 32)
        assert not is_call_sid(RECORDING_SID)
        assert not is_call_sid("CA123")
        assert not is_call_sid(CALL_SID + "0")
        assert not is_call_sid(None)
        assert not is_call_sid(42)

    @pytest.mark.parametrize("suffix", ["\n", " ", "\t", "\r\n"])
    def test_trailing_whitespace_is_rejected(self, suffix):
        assert is_call_sid(CALL_SID + suffix) is False
        assert is_recording_sid(RECORDING_SID + suffix) is False
        assert is_call_sid(" " + CALL_SID) is False

    def test_recording_sid_shape(self):
        assert is_recording_sid(RECORDING_SID)
        assert not is_recording_sid(CALL_SID)
        assert not is_recording_sid("RE" + "z" * 32)


# ── resolve_to_call_sid ──────────────────────────────────────────────────────


class TestResolveToCallSid:
    @pytest.mark.asyncio
    async def test_valid_call_sid_needs_no_network(self):
        client = FakeTwilio()
        result = await resolve_to_call_sid(
            call_sid=f"  {CALL_SID} ", recording_sid=RECORDING_SID, client=client
        )
        assert result == CALL_SID
        assert client.requests == []

    @pytest.mark.asyncio
    async def test_recording_sid_looked_up_once(self):
        client = FakeTwilio()
        client.recordings[RECORDING_SID] = {"call_sid": OTHER_CALL_SID}

        result = await resolve_to_call_sid(recording_sid=RECORDING_SID, client=client)

        assert result == OTHER_CALL_SID
        assert client.requests == [("fetch_recording", RECORDING_SID)]

    @pytest.mark.asyncio
    async def test_transcript_pointing_at_call(self):
        client = FakeTwilio()
        client.transcripts[TRANSCRIPT_SID] = {
            "channel": {"media_properties": {"source_sid": OTHER_CALL_SID}}
        }
        result = await resolve_to_call_sid(transcript_sid=TRANSCRIPT_SID, client=client)
        assert result == OTHER_CALL_SID

    @pytest.mark.asyncio
    async def test_transcript_then_recording(self):
        client = FakeTwilio()
        client.transcripts[TRANSCRIPT_SID] = {"source_sid": RECORDING_SID}
        client.recordings[RECORDING_SID] = {"call_sid": OTHER_CALL_SID}

        result = await resolve_to_call_sid(transcript_sid=TRANSCRIPT_SID, client=client)

        assert result == OTHER_CALL_SID
        assert client.requests == [
            ("fetch_transcript", TRANSCRIPT_SID),
            ("fetch_recording", RECORDING_SID),
        ]

    @pytest.mark.asyncio
    async def test_lookup_failures_resolve_to_none(self):
        client = FakeTwilio()
        result = await resolve_to_call_sid(
            recording_sid=RECORDING_SID, transcript_sid=TRANSCRIPT_SID, client=client
        )
        assert result is None

    @pytest.mark.asyncio
    async def test_without_credentials_nothing_is_fetched(self):
        client = FakeTwilio(configured=False)
        result = await resolve_to_call_sid(recording_sid=RECORDING_SID, client=client)
        assert result is None
        assert client.requests == []

    @pytest.mark.asyncio
    async def test_invalid_call_sid_is_not_returned(self):
        result = await resolve_to_call_sid(call_sid="not-a-sid", client=None)
        assert result is None


# ── Phone helpers ────────────────────────────────────────────────────────────


class TestPhone:
    def test_format_full_number(self):
        assert format_phone("'+1 713-555-0100") == "+1 (713)-555-0100"
        assert format_phone("7135550100") == "+1 (713)-555-0100"

    def test_format_apostrophe_and_country_code_forms(self):
        assert format_phone("'5551234567") == "+1 (555)-123-4567"
        assert format_phone("15551234567") == "+1 (555)-123-4567"

    def test_format_partial_numbers(self):
        assert format_phone("713") == "+1 (713"
        assert format_phone("71355") == "+1 (713)-55"
        assert format_phone("") == ""
        assert format_phone(None) == ""

    def test_normalize_keeps_last_ten_digits(self):
        assert normalize_phone("+1 (713) 555-0100") == "7135550100"
        assert normalize_phone(None) == ""

    def test_call_from_business_number_is_outbound(self):
        business, target, direction = pick_business_and_target(
            "+17135550100", "+18325550199", ["8325550199"]
        )
        assert (business, target, direction) == ("8325550199", "7135550100", "outbound")

    def test_call_to_business_number_is_inbound(self):
        business, target, direction = pick_business_and_target(
            "+18325550199", "+17135550100", ["8325550199"]
        )
        assert (business, target, direction) == ("8325550199", "7135550100", "inbound")

    def test_unknown_numbers_default_to_first_business_number(self):
        business, target, direction = pick_business_and_target(
            "+17135550100", None, ["8325550199", "2815550123"]
        )
        assert (business, target, direction) == ("8325550199", "7135550100", "outbound")


# ── Voice access token ───────────────────────────────────────────────────────


def test_voice_token_claims():
    token = create_voice_token(
        account_sid="AC" + "0" * 32,
        api_key_sid="SK" + "1" * 32,
        api_key_secret="secret",
        identity="agent@nodalpoint.io",
        outgoing_application_sid="AP" + "2" * 32,
        now=1_700_000_000,
    )

    headers = jwt.get_unverified_header(token)
    assert headers["cty"] == "twilio-fpa;v=1"

    claims = jwt.decode(token, "secret", algorithms=["HS256"], options={"verify_exp": False})
    assert claims["iss"] == "SK" + "1" * 32
    assert claims["sub"] == "AC" + "0" * 32
    assert claims["exp"] - claims["iat"] == 3600
    grants = claims["grants"]
    assert grants["identity"] == "agent@nodalpoint.io"
    assert grants["voice"]["outgoing"]["application_sid"] == "AP" + "2" * 32
    assert grants["voice"]["incoming"]["allow"] is True
