"""Pure merge rules for call upserts.

Twilio status callbacks, recording webhooks, the browser dialer and the
transcript pipeline all post partial updates for the same call in no
particular order. ``merge_call`` folds one update into the stored row.
"""

from __future__ import annotations

from datetime import datetime, timezone

from src.nodal_point.calls.schemas import CallRecord, CallUpsert
from src.nodal_point.telephony.phone import pick_business_and_target

_MACHINE_ANSWERS = {"machine_start", "machine_end_beep", "machine_end_silence", "machine_end_other"}

_STATUS_OUTCOMES = {
    "no-answer": "No Answer",
    "no_answer": "No Answer",
    "busy": "Busy",
    "failed": "Failed",
    "canceled": "Canceled",
    "cancelled": "Canceled",
}


def derive_outcome(
    status: str | None,
    duration: int | None = 0,
    answered_by: str | None = None,
    outcome: str | None = None,
) -> str:
    """Display outcome for a call.

    An explicit outcome always wins. A completed call answered by a machine
    is a voicemail; otherwise it connected if any time was billed.
    """
    if outcome:
        return outcome

    status = (status or "").lower()
    if status == "completed":
        if (answered_by or "").lower() in _MACHINE_ANSWERS:
            return "Voicemail"
        return "Connected" if (duration or 0) > 0 else "No Answer"
    if status in _STATUS_OUTCOMES:
        return _STATUS_OUTCOMES[status]
    return status[:1].upper() + status[1:]


def _pick(new, old):
    """Payload value when provided (even if falsy), else the stored one."""
    return new if new is not None else old


def merge_call(
    call_sid: str,
    payload: CallUpsert,
    current: CallRecord | None,
    business_numbers: list[str],
    now: datetime | None = None,
) -> CallRecord:
    """Fold ``payload`` into ``current`` and return the new row.

    - Provided payload fields replace stored ones.
    - Duration only grows: the max of every duration seen.
    - The original call timestamp and createdAt are never moved.
    - Direction is fixed by the first write.
    - Ownership goes to the posting user, else the existing owner.
    """
    now = now or datetime.now(timezone.utc)
    cur = current or CallRecord(id=call_sid)

    business, target, direction = pick_business_and_target(
        payload.to, payload.from_, business_numbers
    )

    status = payload.status or cur.status or "initiated"
    duration = max(payload.duration or 0, payload.duration_sec or 0, cur.duration or 0)
    answered_by = payload.answered_by or cur.answered_by

    user_id = (payload.agent_id or payload.user_id or "").strip()
    user_email = (payload.user_email or payload.agent_email or "").strip().lower()
    owner = user_id or user_email or (cur.owner_id if current and cur.owner_id.strip() else "unassigned")

    insights = _pick(payload.ai_insights, cur.ai_insights)

    return CallRecord(
        id=call_sid,
        to=_pick(payload.to, cur.to) or "",
        from_=_pick(payload.from_, cur.from_) or "",
        status=status,
        direction=(current.direction if current else None) or payload.direction or direction,
        duration=duration,
        timestamp=cur.timestamp or payload.call_time or payload.timestamp or now,
        call_time=payload.call_time or cur.call_time or cur.timestamp or now,
        answered_by=answered_by,
        outcome=derive_outcome(status, duration, answered_by, payload.outcome),
        transcript=_pick(payload.transcript, cur.transcript) or "",
        formatted_transcript=_pick(payload.formatted_transcript, cur.formatted_transcript) or "",
        ai_insights=insights,
        ai_summary=_pick(payload.ai_summary, cur.ai_summary)
        or ((insights or {}).get("summary") or ""),
        recording_url=payload.recording_url or cur.recording_url,
        recording_sid=payload.recording_sid or cur.recording_sid,
        recording_channels=str(_pick(payload.recording_channels, cur.recording_channels) or ""),
        recording_track=_pick(payload.recording_track, cur.recording_track) or "",
        recording_source=_pick(payload.recording_source, cur.recording_source) or "",
        account_id=_pick(payload.account_id, cur.account_id),
        account_name=_pick(payload.account_name, cur.account_name) or "",
        contact_id=_pick(payload.contact_id, cur.contact_id),
        contact_name=_pick(payload.contact_name, cur.contact_name) or "",
        target_phone=_pick(payload.target_phone, cur.target_phone or target) or "",
        business_phone=_pick(payload.business_phone, cur.business_phone or business) or "",
        owner_id=owner,
        assigned_to=owner,
        created_by=(cur.created_by if current and cur.created_by != "unassigned" else owner),
        source=payload.source or (cur.source if current else None) or "unknown",
        created_at=cur.created_at or now,
        updated_at=now,
    )
