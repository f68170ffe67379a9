"""Call repository -- async persistence for call rows.

Uses the session_factory callable pattern. Columns that the production
schema keeps outside first-class columns (phones, recording details,
outcome, display names) live in the ``metadata`` JSON bag.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator, Callable
from typing import Any

import structlog
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.nodal_point.calls.schemas import CallRecord
from src.nodal_point.models import AccountModel, CallModel, ContactModel
from src.nodal_point.telephony.phone import normalize_phone

logger = structlog.get_logger(__name__)

# CallRecord field -> metadata key
_METADATA_FIELDS = {
    "direction": "direction",
    "outcome": "outcome",
    "answered_by": "answeredBy",
    "call_time": "callTime",
    "formatted_transcript": "formattedTranscript",
    "ai_summary": "aiSummary",
    "recording_sid": "recordingSid",
    "recording_channels": "recordingChannels",
    "recording_track": "recordingTrack",
    "recording_source": "recordingSource",
    "account_name": "accountName",
    "contact_name": "contactName",
    "target_phone": "targetPhone",
    "business_phone": "businessPhone",
}

DEFAULT_HISTORY_LIMIT = 50


# ── Serialization Helpers ───────────────────────────────────────────────────


def _model_to_call(model: CallModel) -> CallRecord:
    meta: dict[str, Any] = dict(model.metadata_json or {})
    values: dict[str, Any] = {
        field: meta[key] for field, key in _METADATA_FIELDS.items() if meta.get(key) is not None
    }
    if "recording_channels" in values:
        values["recording_channels"] = str(values["recording_channels"])
    summary = values.pop("ai_summary", None) or model.summary or ""
    return CallRecord(
        id=model.id,
        to=model.to or "",
        from_=model.from_ or "",
        status=model.status or "",
        duration=model.duration or 0,
        timestamp=model.timestamp,
        transcript=model.transcript or "",
        ai_insights=model.ai_insights,
        ai_summary=summary,
        recording_url=model.recording_url or "",
        account_id=model.account_id,
        contact_id=model.contact_id,
        owner_id=model.owner_id or "unassigned",
        assigned_to=model.assigned_to or model.owner_id or "unassigned",
        created_by=model.created_by or model.owner_id or "unassigned",
        source=model.source or "unknown",
        created_at=model.created_at,
        updated_at=model.updated_at,
        **values,
    )


def _apply_call(model: CallModel, call: CallRecord) -> None:
    data = call.model_dump(mode="json")
    meta = dict(model.metadata_json or {})
    meta.update({key: data[field] for field, key in _METADATA_FIELDS.items()})

    model.to = call.to or None
    model.from_ = call.from_ or None
    model.status = call.status or None
    model.duration = call.duration
    model.timestamp = call.timestamp
    model.transcript = call.transcript or None
    model.summary = call.ai_summary or None
    model.ai_insights = call.ai_insights
    model.recording_url = call.recording_url or None
    model.account_id = call.account_id
    model.contact_id = call.contact_id
    model.owner_id = call.owner_id
    model.assigned_to = call.assigned_to
    model.created_by = call.created_by
    model.source = call.source
    model.metadata_json = meta
    model.created_at = call.created_at
    model.updated_at = call.updated_at


def _phone_filters(phones: set[str]) -> list[Any]:
    conditions: list[Any] = []
    for phone in sorted(phones):
        conditions.append(CallModel.from_.like(f"%{phone}"))
        conditions.append(CallModel.to.like(f"%{phone}"))
    return conditions


# ── Repository ──────────────────────────────────────────────────────────────


class CallRepository:
    """Async persistence for calls plus the contact and account lookups the
    call pipeline needs.

    Args:
        session_factory: Async callable that yields AsyncSession instances.
    """

    def __init__(
        self, session_factory: Callable[..., AsyncGenerator[AsyncSession, None]]
    ) -> None:
        self._session_factory = session_factory

    async def get_call(self, call_sid: str) -> CallRecord | None:
        async for session in self._session_factory():
            model = await session.get(CallModel, call_sid)
            return _model_to_call(model) if model is not None else None

    async def save_call(self, call: CallRecord) -> CallRecord:
        """Insert or update the row keyed by ``call.id``."""
        async for session in self._session_factory():
            model = await session.get(CallModel, call.id)
            if model is None:
                model = CallModel(id=call.id, metadata_json={})
                session.add(model)
            _apply_call(model, call)
            await session.commit()
            await session.refresh(model)
            return _model_to_call(model)

    async def list_calls(
        self,
        limit: int = DEFAULT_HISTORY_LIMIT,
        offset: int = 0,
        call_sid: str | None = None,
    ) -> list[CallRecord]:
        """Most recent calls first, optionally restricted to one SID."""
        async for session in self._session_factory():
            stmt = select(CallModel).order_by(CallModel.timestamp.desc().nulls_last())
            if call_sid:
                stmt = stmt.where(CallModel.id == call_sid)
            stmt = stmt.offset(offset).limit(limit)
            result = await session.execute(stmt)
            return [_model_to_call(m) for m in result.scalars().all()]

    async def find_contact_by_phone(self, phone: str) -> tuple[str, str] | None:
        """Return (contact_id, name) for the first contact with ``phone`` on
        any of its four phone columns."""
        async for session in self._session_factory():
            stmt = (
                select(ContactModel.id, ContactModel.name)
                .where(
                    or_(
                        ContactModel.mobile == phone,
                        ContactModel.work_phone == phone,
                        ContactModel.phone == phone,
                        ContactModel.other_phone == phone,
                    )
                )
                .limit(1)
            )
            row = (await session.execute(stmt)).first()
            if row is None:
                return None
            return row.id, row.name or ""

    async def calls_for_account(
        self, account_id: str, limit: int = DEFAULT_HISTORY_LIMIT
    ) -> list[CallRecord] | None:
        """Calls linked to an account directly, through its contacts, or by
        any of their phone numbers. None when the account does not exist."""
        async for session in self._session_factory():
            account = await session.get(AccountModel, account_id)
            if account is None:
                return None

            contacts = (
                await session.execute(
                    select(ContactModel).where(ContactModel.account_id == account_id)
                )
            ).scalars().all()
            contact_ids = [c.id for c in contacts]
            phones = {normalize_phone(account.phone)}
            for contact in contacts:
                phones.update(
                    normalize_phone(p) for p in (contact.mobile, contact.work_phone, contact.other_phone)
                )
            phones.discard("")

            conditions: list[Any] = [CallModel.account_id == account_id]
            if contact_ids:
                conditions.append(CallModel.contact_id.in_(contact_ids))
            conditions.extend(_phone_filters(phones))

            stmt = (
                select(CallModel)
                .where(or_(*conditions))
                .order_by(CallModel.timestamp.desc().nulls_last())
                .limit(limit)
            )
            result = await session.execute(stmt)
            return [_model_to_call(m) for m in result.scalars().all()]

    async def calls_for_contact(
        self, contact_id: str, limit: int = DEFAULT_HISTORY_LIMIT
    ) -> list[CallRecord] | None:
        """Calls linked to a contact or made to/from any of its numbers.
        None when the contact does not exist."""
        async for session in self._session_factory():
            contact = await session.get(ContactModel, contact_id)
            if contact is None:
                return None

            phones = {
                normalize_phone(p)
                for p in (contact.phone, contact.mobile, contact.work_phone, contact.other_phone)
            }
            phones.discard("")

            conditions: list[Any] = [CallModel.contact_id == contact_id]
            conditions.extend(_phone_filters(phones))

            stmt = (
                select(CallModel)
                .where(or_(*conditions))
                .order_by(CallModel.timestamp.desc().nulls_last())
                .limit(limit)
            )
            result = await session.execute(stmt)
            return [_model_to_call(m) for m in result.scalars().all()]
