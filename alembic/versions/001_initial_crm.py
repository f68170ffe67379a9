"""Initial CRM tables.

Revision ID: 001_initial_crm
Revises:
Create Date: 2026-10-19

Creates the tables the API reads and writes:
- accounts: commercial electricity customers, with 4CP exposure flags
- contacts: people at accounts, matched to calls by any phone column
- calls: one row per Twilio call keyed by Call SID (camelCase columns)
- market_intelligence: scraped news signals, optionally linked to an account
- zoho_connections: Zoho Mail OAuth tokens per (user, mailbox)

Foreign keys are nullable and SET NULL on delete.
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "001_initial_crm"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # ── accounts ────────────────────────────────────────────────────────────

    op.create_table(
        "accounts",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("name", sa.String(300), nullable=False),
        sa.Column("domain", sa.String(300), nullable=True),
        sa.Column("phone", sa.String(40), nullable=True),
        sa.Column("industry", sa.String(150), nullable=True),
        sa.Column("city", sa.String(120), nullable=True),
        sa.Column("state", sa.String(40), nullable=True),
        sa.Column("contract_end_date", sa.Date(), nullable=True),
        sa.Column(
            "coincident_peak_exposure",
            sa.Boolean(),
            server_default=sa.text("false"),
            nullable=False,
        ),
        sa.Column("liability_notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("idx_accounts_name", "accounts", ["name"])

    # ── contacts ────────────────────────────────────────────────────────────

    op.create_table(
        "contacts",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("name", sa.String(300), nullable=True),
        sa.Column("email", sa.String(320), nullable=True),
        sa.Column("phone", sa.String(40), nullable=True),
        sa.Column("mobile", sa.String(40), nullable=True),
        sa.Column("workPhone", sa.String(40), nullable=True),
        sa.Column("otherPhone", sa.String(40), nullable=True),
        sa.Column(
            "accountId",
            sa.String(64),
            sa.ForeignKey("accounts.id", ondelete="SET NULL"),
            nullable=True,
        ),
    )
    op.create_index("idx_contacts_account", "contacts", ["accountId"])

    # ── calls ───────────────────────────────────────────────────────────────

    op.create_table(
        "calls",
        sa.Column("id", sa.String(34), primary_key=True),
        sa.Column("to", sa.String(40), nullable=True),
        sa.Column("from", sa.String(40), nullable=True),
        sa.Column("status", sa.String(40), nullable=True),
        sa.Column("duration", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=True),
        sa.Column("transcript", sa.Text(), nullable=True),
        sa.Column("summary", sa.Text(), nullable=True),
        sa.Column("aiInsights", sa.JSON(), nullable=True),
        sa.Column("recordingUrl", sa.Text(), nullable=True),
        sa.Column(
            "accountId",
            sa.String(64),
            sa.ForeignKey("accounts.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column(
            "contactId",
            sa.String(64),
            sa.ForeignKey("contacts.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("ownerId", sa.String(320), nullable=True),
        sa.Column("assignedTo", sa.String(320), nullable=True),
        sa.Column("createdBy", sa.String(320), nullable=True),
        sa.Column("source", sa.String(80), nullable=True),
        sa.Column(
            "metadata",
            sa.JSON(),
            server_default=sa.text("'{}'::json"),
            nullable=False,
        ),
        sa.Column("createdAt", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updatedAt", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("idx_calls_timestamp", "calls", ["timestamp"])
    op.create_index("idx_calls_account", "calls", ["accountId"])
    op.create_index("idx_calls_contact", "calls", ["contactId"])

    # ── market_intelligence ─────────────────────────────────────────────────

    op.create_table(
        "market_intelligence",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("headline", sa.Text(), nullable=False),
        sa.Column("summary", sa.Text(), nullable=True),
        sa.Column("source_url", sa.Text(), nullable=True),
        sa.Column("signal_type", sa.String(60), nullable=True),
        sa.Column("entity_name", sa.String(300), nullable=True),
        sa.Column(
            "account_id",
            sa.String(64),
            sa.ForeignKey("accounts.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("status", sa.String(30), server_default=sa.text("'new'"), nullable=False),
        sa.Column("ai_analysis", sa.Text(), nullable=True),
        sa.Column("published_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("idx_market_intelligence_created", "market_intelligence", ["created_at"])

    # ── zoho_connections ────────────────────────────────────────────────────

    op.create_table(
        "zoho_connections",
        sa.Column("user_id", sa.String(64), primary_key=True),
        sa.Column("email", sa.String(320), primary_key=True),
        sa.Column("access_token", sa.Text(), nullable=False),
        sa.Column("refresh_token", sa.Text(), nullable=True),
        sa.Column("token_expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("account_id", sa.String(64), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("user_id", "email", name="uq_zoho_connection_user_email"),
    )


def downgrade() -> None:
    op.drop_table("zoho_connections")
    op.drop_index("idx_market_intelligence_created", table_name="market_intelligence")
    op.drop_table("market_intelligence")
    op.drop_index("idx_calls_contact", table_name="calls")
    op.drop_index("idx_calls_account", table_name="calls")
    op.drop_index("idx_calls_timestamp", table_name="calls")
    op.drop_table("calls")
    op.drop_index("idx_contacts_account", table_name="contacts")
    op.drop_table("contacts")
    op.drop_index("idx_accounts_name", table_name="accounts")
    op.drop_table("accounts")
