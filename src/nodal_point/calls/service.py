"""Call upsert pipeline: SID resolution, contact auto-link, merge, save."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

import structlog

from src.nodal_point.calls.merge import merge_call
from src.nodal_point.calls.schemas import CallRecord, CallUpsert
from src.nodal_point.telephony.sids import resolve_to_call_sid
from src.nodal_point.telephony.twilio_client import TwilioClient

logger = structlog.get_logger(__name__)

# Shortest string worth matching against contact phone columns
_MIN_LINKABLE_PHONE = 6


class CallStore(Protocol):
    async def get_call(self, call_sid: str) -> CallRecord | None: ...

    async def save_call(self, call: CallRecord) -> CallRecord: ...

    async def find_contact_by_phone(self, phone: str) -> tuple[str, str] | None: ...


@dataclass
class UpsertResult:
    """Outcome of an upsert. ``call`` is None when no Call SID could be
    resolved and nothing was written."""

    call: CallRecord | None

    @property
    def pending(self) -> bool:
        return self.call is None


class CallService:
    """Persists partial call updates keyed by canonical Call SID.

    Args:
        repository: Call storage (CallRepository or a test double).
        twilio: Client used to resolve recording/transcript SIDs.
        business_numbers: Our own numbers, last 10 digits.
    """

    def __init__(
        self,
        repository: CallStore,
        twilio: TwilioClient | None,
        business_numbers: list[str],
    ) -> None:
        self._repository = repository
        self._twilio = twilio
        self._business_numbers = business_numbers

    async def upsert(self, payload: CallUpsert) -> UpsertResult:
        call_sid = await resolve_to_call_sid(
            call_sid=payload.call_sid,
            recording_sid=payload.recording_sid,
            transcript_sid=payload.transcript_sid,
            client=self._twilio,
        )
        if call_sid is None:
            logger.info(
                "calls.upsert_pending",
                call_sid=payload.call_sid,
                recording_sid=payload.recording_sid,
                transcript_sid=payload.transcript_sid,
            )
            return UpsertResult(call=None)

        current = await self._repository.get_call(call_sid)

        linked_contact = payload.contact_id or (current.contact_id if current else None)
        if not linked_contact:
            payload = await self._auto_link_contact(call_sid, payload)

        merged = merge_call(call_sid, payload, current, self._business_numbers)
        saved = await self._repository.save_call(merged)
        logger.info(
            "calls.upserted",
            call_sid=call_sid,
            status=saved.status,
            outcome=saved.outcome,
            created=current is None,
        )
        return UpsertResult(call=saved)

    async def _auto_link_contact(self, call_sid: str, payload: CallUpsert) -> CallUpsert:
        for phone in (payload.to, payload.from_):
            if not phone or len(phone) < _MIN_LINKABLE_PHONE:
                continue
            match = await self._repository.find_contact_by_phone(phone)
            if match is not None:
                contact_id, contact_name = match
                logger.info(
                    "calls.contact_auto_linked",
                    call_sid=call_sid,
                    contact_id=contact_id,
                )
                return payload.model_copy(
                    update={"contact_id": contact_id, "contact_name": contact_name}
                )
        return payload
