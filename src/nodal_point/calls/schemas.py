"""Pydantic schemas for call rows.

Both schemas speak camelCase on the wire; the browser dialer, the Twilio
webhooks, and the call history pages all post and read that shape.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, computed_field
from pydantic.alias_generators import to_camel


class CallUpsert(BaseModel):
    """Partial call update. Every field is optional; absent fields keep the
    stored value during the merge."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    call_sid: str | None = None
    recording_sid: str | None = None
    transcript_sid: str | None = None

    to: str | None = None
    from_: str | None = Field(default=None, alias="from")
    status: str | None = None
    direction: str | None = None
    duration: int | None = None
    duration_sec: int | None = None
    timestamp: datetime | None = None
    call_time: datetime | None = None
    answered_by: str | None = None
    outcome: str | None = None

    transcript: str | None = None
    formatted_transcript: str | None = None
    ai_insights: dict[str, Any] | None = None
    ai_summary: str | None = None

    recording_url: str | None = None
    recording_channels: str | int | None = None
    recording_track: str | None = None
    recording_source: str | None = None

    account_id: str | None = None
    account_name: str | None = None
    contact_id: str | None = None
    contact_name: str | None = None
    target_phone: str | None = None
    business_phone: str | None = None

    source: str | None = None
    user_id: str | None = None
    agent_id: str | None = None
    user_email: str | None = None
    agent_email: str | None = None


class CallRecord(BaseModel):
    """Canonical call row, keyed by Call SID."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    to: str = ""
    from_: str = Field(default="", alias="from")
    status: str = ""
    direction: str = "outbound"
    duration: int = 0
    timestamp: datetime | None = None
    call_time: datetime | None = None
    answered_by: str | None = None
    outcome: str = ""

    transcript: str = ""
    formatted_transcript: str = ""
    ai_insights: dict[str, Any] | None = None
    ai_summary: str = ""

    recording_url: str = ""
    recording_sid: str = ""
    recording_channels: str = ""
    recording_track: str = ""
    recording_source: str = ""

    account_id: str | None = None
    account_name: str = ""
    contact_id: str | None = None
    contact_name: str = ""
    target_phone: str = ""
    business_phone: str = ""

    owner_id: str = "unassigned"
    assigned_to: str = "unassigned"
    created_by: str = "unassigned"
    source: str = "unknown"
    created_at: datetime | None = None
    updated_at: datetime | None = None

    # Aliases the frontend still reads
    @computed_field(alias="callSid")  # type: ignore[prop-decorator]
    @property
    def call_sid(self) -> str:
        return self.id

    @computed_field(alias="twilioSid")  # type: ignore[prop-decorator]
    @property
    def twilio_sid(self) -> str:
        return self.id

    @computed_field(alias="durationSec")  # type: ignore[prop-decorator]
    @property
    def duration_sec(self) -> int:
        return self.duration

    @computed_field(alias="audioUrl")  # type: ignore[prop-decorator]
    @property
    def audio_url(self) -> str:
        return self.recording_url

    def to_response(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)
