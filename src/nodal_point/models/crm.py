"""Core CRM tables: accounts, contacts, and calls.

The production schema was migrated from Firestore, so several tables keep
camelCase column names (``accountId``, ``recordingUrl``). Python attributes
are snake_case; the quoted column name is passed explicitly where they differ.
Foreign keys are nullable and not enforced beyond what Postgres provides.
"""

from __future__ import annotations

from datetime import date, datetime
from enum import Enum

from sqlalchemy import JSON, Boolean, Date, DateTime, ForeignKey, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from src.nodal_point.core.database import Base


class DealStage(str, Enum):
    """Display-only pipeline stage for deals."""

    PROSPECTING = "prospecting"
    QUALIFICATION = "qualification"
    PROPOSAL = "proposal"
    NEGOTIATION = "negotiation"
    CLOSED_WON = "closed_won"
    CLOSED_LOST = "closed_lost"

    @property
    def label(self) -> str:
        return self.value.replace("_", " ").title()


class AccountModel(Base):
    """Commercial electricity customer (the dossier subject)."""

    __tablename__ = "accounts"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(300), nullable=False)
    domain: Mapped[str | None] = mapped_column(String(300), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(40), nullable=True)
    industry: Mapped[str | None] = mapped_column(String(150), nullable=True)
    city: Mapped[str | None] = mapped_column(String(120), nullable=True)
    state: Mapped[str | None] = mapped_column(String(40), nullable=True)
    contract_end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    coincident_peak_exposure: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    liability_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), onupdate=func.now(), nullable=True
    )


class ContactModel(Base):
    """Person at an account. Any of the four phone columns may match a call."""

    __tablename__ = "contacts"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str | None] = mapped_column(String(300), nullable=True)
    email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(40), nullable=True)
    mobile: Mapped[str | None] = mapped_column(String(40), nullable=True)
    work_phone: Mapped[str | None] = mapped_column("workPhone", String(40), nullable=True)
    other_phone: Mapped[str | None] = mapped_column("otherPhone", String(40), nullable=True)
    account_id: Mapped[str | None] = mapped_column(
        "accountId", String(64), ForeignKey("accounts.id", ondelete="SET NULL"), nullable=True
    )


class CallModel(Base):
    """One row per Twilio call, keyed by its canonical Call SID."""

    __tablename__ = "calls"

    id: Mapped[str] = mapped_column(String(34), primary_key=True)
    to: Mapped[str | None] = mapped_column(String(40), nullable=True)
    from_: Mapped[str | None] = mapped_column("from", String(40), nullable=True)
    status: Mapped[str | None] = mapped_column(String(40), nullable=True)
    duration: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    timestamp: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    transcript: Mapped[str | None] = mapped_column(Text, nullable=True)
    summary: Mapped[str | None] = mapped_column(Text, nullable=True)
    ai_insights: Mapped[dict | None] = mapped_column("aiInsights", JSON, nullable=True)
    recording_url: Mapped[str | None] = mapped_column("recordingUrl", Text, nullable=True)
    account_id: Mapped[str | None] = mapped_column(
        "accountId", String(64), ForeignKey("accounts.id", ondelete="SET NULL"), nullable=True
    )
    contact_id: Mapped[str | None] = mapped_column(
        "contactId", String(64), ForeignKey("contacts.id", ondelete="SET NULL"), nullable=True
    )
    owner_id: Mapped[str | None] = mapped_column("ownerId", String(320), nullable=True)
    assigned_to: Mapped[str | None] = mapped_column("assignedTo", String(320), nullable=True)
    created_by: Mapped[str | None] = mapped_column("createdBy", String(320), nullable=True)
    source: Mapped[str | None] = mapped_column(String(80), nullable=True)
    metadata_json: Mapped[dict] = mapped_column("metadata", JSON, default=dict, nullable=False)
    created_at: Mapped[datetime | None] = mapped_column("createdAt", DateTime(timezone=True), nullable=True)
    updated_at: Mapped[datetime | None] = mapped_column("updatedAt", DateTime(timezone=True), nullable=True)
