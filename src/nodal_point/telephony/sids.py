"""Twilio SID validation and call-identifier resolution.

Calls reach us tagged with whichever identifier the triggering webhook had on
hand: a Call SID (``CA...``), a Recording SID (``RE...``), or a Conversational
Intelligence transcript SID (``GT...``). Call rows are keyed by Call SID only,
so every writer first narrows what it has down to one Call SID.

Resolution is lenient by contract: each vendor lookup is an optional step that
yields ``None`` on any failure, and the resolver falls back to the best Call
SID it already knew rather than raising.
"""

from __future__ import annotations

import re

import structlog

from src.nodal_point.telephony.twilio_client import TwilioClient

logger = structlog.get_logger(__name__)

_CALL_SID_RE = re.compile(r"CA[0-9a-f]{32}", re.IGNORECASE)
_RECORDING_SID_RE = re.compile(r"RE[0-9a-f]{32}", re.IGNORECASE)


def is_call_sid(value: object) -> bool:
    """True when value is a string shaped like a Twilio Call SID."""
    return isinstance(value, str) and _CALL_SID_RE.fullmatch(value) is not None


def is_recording_sid(value: object) -> bool:
    """True when value is a string shaped like a Twilio Recording SID."""
    return isinstance(value, str) and _RECORDING_SID_RE.fullmatch(value) is not None


def _clean(value: str | None) -> str:
    return value.strip() if isinstance(value, str) else ""


async def _recording_call_sid(client: TwilioClient, recording_sid: str) -> str | None:
    """Fetch a recording and return its parent Call SID, or None."""
    try:
        recording = await client.fetch_recording(recording_sid)
    except Exception as exc:
        logger.warning("twilio.recording_lookup_failed", recording_sid=recording_sid, error=str(exc))
        return None
    candidate = _clean(recording.get("call_sid"))
    return candidate if is_call_sid(candidate) else None


async def _transcript_source_sid(client: TwilioClient, transcript_sid: str) -> str | None:
    """Fetch a transcript and return the media source SID it declares, or None."""
    try:
        transcript = await client.fetch_transcript(transcript_sid)
    except Exception as exc:
        logger.warning("twilio.transcript_lookup_failed", transcript_sid=transcript_sid, error=str(exc))
        return None
    return _clean(TwilioClient.transcript_source_sid(transcript)) or None


async def resolve_to_call_sid(
    call_sid: str | None = None,
    recording_sid: str | None = None,
    transcript_sid: str | None = None,
    client: TwilioClient | None = None,
) -> str | None:
    """Resolve any mix of call, recording and transcript SIDs to a Call SID.

    Order of preference:
    1. A valid call_sid is returned as-is (trimmed) without network access.
    2. Without usable Twilio credentials nothing else can be checked, so the
       best known Call SID (or None) is returned.
    3. A valid recording_sid is looked up once for its parent call.
    4. A transcript_sid is looked up for its source SID, which is used
       directly when it is a Call SID or looked up as a recording otherwise.
    5. If every lookup comes back empty, fall back to the known Call SID.

    Never raises.
    """
    known = _clean(call_sid)
    known = known if is_call_sid(known) else None
    if known:
        return known

    if client is None or not client.configured:
        return known

    recording = _clean(recording_sid)
    if is_recording_sid(recording):
        resolved = await _recording_call_sid(client, recording)
        if resolved:
            return resolved

    transcript = _clean(transcript_sid)
    if transcript:
        source = await _transcript_source_sid(client, transcript)
        if is_call_sid(source):
            return source
        if is_recording_sid(source):
            resolved = await _recording_call_sid(client, source)
            if resolved:
                return resolved

    logger.debug(
        "twilio.call_sid_unresolved",
        recording_sid=recording or None,
        transcript_sid=transcript or None,
    )
    return known
