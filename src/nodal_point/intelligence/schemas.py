"""Wire schemas for market intelligence signals."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class SignalRead(BaseModel):
    id: str
    headline: str
    summary: str | None = None
    source_url: str | None = None
    signal_type: str | None = None
    entity_name: str | None = None
    account_id: str | None = None
    status: str = "new"
    ai_analysis: str | None = None
    published_at: datetime | None = None
    created_at: datetime | None = None


class LinkSignalRequest(BaseModel):
    """Attach a signal to the account it is about.

    Accepts ``signalId``/``accountId`` as sent by the dossier panel.
    """

    signal_id: str = Field(min_length=1, alias="signalId")
    account_id: str = Field(min_length=1, alias="accountId")

    model_config = {"populate_by_name": True}
