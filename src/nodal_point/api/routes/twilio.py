"""Twilio endpoints: softphone token, call status and recording webhooks,
audio proxy, and Call SID resolution."""

from __future__ import annotations

from typing import Any

import httpx
import structlog
from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import Response
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from src.nodal_point.api.deps import get_app_settings, get_call_service, get_twilio_client
from src.nodal_point.api.errors import BadRequestError, NotConfiguredError, UpstreamError
from src.nodal_point.calls.schemas import CallUpsert
from src.nodal_point.config import Settings
from src.nodal_point.telephony.access_token import TOKEN_TTL_SECONDS, create_voice_token
from src.nodal_point.telephony.sids import is_call_sid, is_recording_sid, resolve_to_call_sid
from src.nodal_point.telephony.twilio_client import API_BASE_URL

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/twilio", tags=["twilio"])

RECORDING_SOURCE = "twilio-recording-webhook"
STATUS_SOURCE = "twilio-status-webhook"


class ResolveSidRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    call_sid: str | None = None
    recording_sid: str | None = None
    transcript_sid: str | None = None


# ── Helpers ─────────────────────────────────────────────────────────────────


async def _read_webhook_body(request: Request) -> dict[str, Any]:
    """Twilio posts form-encoded bodies; replays and tests post JSON."""
    content_type = request.headers.get("content-type", "").lower()
    if "application/json" in content_type:
        try:
            data = await request.json()
        except ValueError as exc:
            raise BadRequestError("Invalid JSON body") from exc
        return data if isinstance(data, dict) else {}
    form = await request.form()
    return {key: value for key, value in form.items() if isinstance(value, str)}


def is_dual_channel(body: dict[str, Any]) -> bool:
    channels = str(body.get("RecordingChannels") or body.get("Channels") or "").lower()
    return channels in ("2", "dual", "both")


def dual_channel_mp3_url(raw_url: str) -> str:
    """Media URL that asks Twilio for both call legs as separate channels."""
    url = raw_url
    if not url.endswith(".mp3") and "/Recordings/" in url and "." not in url.rsplit("/", 1)[-1]:
        url = f"{url}.mp3"
    separator = "&" if "?" in url else "?"
    return f"{url}{separator}RequestedChannels=2"


def _to_int(value: Any) -> int | None:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


# ── Routes ──────────────────────────────────────────────────────────────────


@router.get("/token")
async def voice_token(
    identity: str = Query(default="agent", min_length=1, max_length=121),
    settings: Settings = Depends(get_app_settings),
) -> dict:
    """Mint a one-hour Voice access token for the browser softphone."""
    if not (
        settings.TWILIO_ACCOUNT_SID
        and settings.TWILIO_API_KEY_SID
        and settings.TWILIO_API_KEY_SECRET
        and settings.TWILIO_TWIML_APP_SID
    ):
        raise NotConfiguredError("Twilio not configured")

    token = create_voice_token(
        account_sid=settings.TWILIO_ACCOUNT_SID,
        api_key_sid=settings.TWILIO_API_KEY_SID,
        api_key_secret=settings.TWILIO_API_KEY_SECRET,
        identity=identity,
        outgoing_application_sid=settings.TWILIO_TWIML_APP_SID,
    )
    return {"token": token, "identity": identity, "ttl": TOKEN_TTL_SECONDS}


@router.post("/recording")
async def recording_webhook(
    request: Request,
    contact_id: str | None = Query(default=None, alias="contactId"),
    account_id: str | None = Query(default=None, alias="accountId"),
    service: Any = Depends(get_call_service),
    twilio: Any = Depends(get_twilio_client),
) -> dict:
    """Recording status callback.

    Completed recordings are attached to their call as a dual-channel mp3 URL.
    Mono recordings from the <Dial> verb are ignored: a dual-channel one for
    the same call follows.
    """
    body = await _read_webhook_body(request)
    status = body.get("RecordingStatus")
    call_sid = body.get("CallSid")
    recording_sid = body.get("RecordingSid") or ""
    recording_url = body.get("RecordingUrl") or ""
    source = str(body.get("RecordingSource") or body.get("Source") or "")

    if status == "completed" and source.lower() == "dialverb" and not is_dual_channel(body):
        logger.warning(
            "twilio.recording_mono_dialverb",
            call_sid=call_sid,
            recording_sid=recording_sid,
            channels=body.get("RecordingChannels"),
        )
        return {"success": True, "ignored": True, "reason": "mono_dialverb"}

    if status != "completed":
        return {"success": True}

    if not recording_url and is_call_sid(call_sid) and twilio.configured:
        try:
            recordings = await twilio.list_recordings(call_sid, limit=1)
        except httpx.HTTPError as exc:
            logger.warning("twilio.recording_list_failed", call_sid=call_sid, error=str(exc))
            recordings = []
        if recordings:
            recording_sid = recordings[0].get("sid") or recording_sid
            recording_url = twilio.recording_media_url(recording_sid)

    if not recording_url:
        return {"success": True}

    resolved = await resolve_to_call_sid(
        call_sid=call_sid, recording_sid=recording_sid, client=twilio
    )

    to = from_ = None
    call_duration = 0
    if resolved and twilio.configured:
        try:
            call_resource = await twilio.fetch_call(resolved)
            to, from_ = call_resource.get("to"), call_resource.get("from")
            call_duration = int(call_resource.get("duration") or 0)
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("twilio.call_fetch_failed", call_sid=resolved, error=str(exc))

    channels = body.get("RecordingChannels") or body.get("Channels")
    payload = CallUpsert(
        call_sid=resolved or call_sid,
        recording_sid=recording_sid or None,
        to=to,
        from_=from_,
        status="completed",
        duration=int(body.get("RecordingDuration") or 0) or call_duration,
        recording_url=dual_channel_mp3_url(recording_url),
        recording_channels=str(channels) if channels is not None else None,
        recording_track=body.get("RecordingTrack") or None,
        recording_source=source or None,
        source=RECORDING_SOURCE,
        contact_id=contact_id or None,
        account_id=account_id or None,
    )
    result = await service.upsert(payload)
    if result.pending:
        return {"success": True, "pending": True}
    return {"success": True, "callSid": result.call.id}


@router.post("/status")
@router.post("/dial-status")
async def call_status_webhook(
    request: Request,
    contact_id: str | None = Query(default=None, alias="contactId"),
    account_id: str | None = Query(default=None, alias="accountId"),
    agent_id: str | None = Query(default=None, alias="agentId"),
    agent_email: str | None = Query(default=None, alias="agentEmail"),
    target_phone: str | None = Query(default=None, alias="targetPhone"),
    service: Any = Depends(get_call_service),
) -> dict:
    """Call status callback for both the parent call and the <Dial> leg.

    Each event is merged into the call row so the stored status, duration and
    answered-by follow the call, and the outcome is re-derived from them.
    Browser softphone legs (``client:...``) are skipped; the PSTN leg carries
    the call.
    """
    body = await _read_webhook_body(request)
    call_sid = body.get("DialCallSid") or body.get("CallSid")
    status = body.get("DialCallStatus") or body.get("CallStatus")
    to, from_ = body.get("To") or "", body.get("From") or ""

    if not body.get("DialCallSid") and (to.startswith("client:") or from_.startswith("client:")):
        logger.info("twilio.status_browser_leg_skipped", call_sid=call_sid)
        return {"success": True, "ignored": True, "reason": "browser_leg"}

    if not call_sid or not status:
        raise BadRequestError("CallSid and CallStatus are required")

    duration = None
    for key in ("DialCallDuration", "CallDuration", "Duration"):
        duration = _to_int(body.get(key))
        if duration is not None:
            break

    recording_url = body.get("RecordingUrl") or None
    if recording_url and not recording_url.endswith(".mp3"):
        recording_url = f"{recording_url}.mp3"

    payload = CallUpsert(
        call_sid=call_sid,
        to=to or None,
        from_=from_ or None,
        status=status,
        duration=duration,
        answered_by=body.get("AnsweredBy") or None,
        recording_url=recording_url,
        target_phone=target_phone or None,
        contact_id=contact_id or None,
        account_id=account_id or None,
        agent_id=agent_id or None,
        agent_email=agent_email or None,
        source=STATUS_SOURCE,
    )
    result = await service.upsert(payload)
    if result.pending:
        return {"success": True, "pending": True}
    return {"success": True, "callSid": result.call.id, "outcome": result.call.outcome}


@router.get("/recording-audio")
async def recording_audio(
    url: str | None = Query(default=None),
    recording_sid: str | None = Query(default=None, alias="recordingSid"),
    twilio: Any = Depends(get_twilio_client),
) -> Response:
    """Stream a recording through our Twilio credentials.

    Only Twilio API URLs are fetched, so the credentials cannot be sent
    anywhere else.
    """
    if not twilio.configured:
        raise NotConfiguredError("Twilio not configured")

    if recording_sid:
        recording_sid = recording_sid.strip()
        if not is_recording_sid(recording_sid):
            raise BadRequestError("Invalid recordingSid")
        media_url = twilio.recording_media_url(recording_sid)
    elif url:
        if not url.startswith(API_BASE_URL + "/"):
            raise BadRequestError("Only Twilio recording URLs can be proxied")
        media_url = url
    else:
        raise BadRequestError("url or recordingSid is required")

    try:
        upstream = await twilio.fetch_media(media_url)
    except httpx.HTTPError as exc:
        raise UpstreamError("Failed to fetch recording", message=str(exc)) from exc

    return Response(
        content=upstream.content,
        status_code=upstream.status_code,
        media_type=upstream.headers.get("content-type", "audio/mpeg"),
    )


@router.post("/resolve-sid")
async def resolve_sid(
    body: ResolveSidRequest,
    twilio: Any = Depends(get_twilio_client),
) -> dict:
    call_sid = await resolve_to_call_sid(
        call_sid=body.call_sid,
        recording_sid=body.recording_sid,
        transcript_sid=body.transcript_sid,
        client=twilio,
    )
    return {"callSid": call_sid}
