"""Initial schema

Revision ID: 001
Revises: None
Create Date: 2026-10-19
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _base_columns() -> list[sa.Column]:
    return [
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("is_deleted", sa.Boolean, nullable=False, server_default=sa.text("false")),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now(), index=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def _fk(name: str, target: str, nullable: bool = False, **kw) -> sa.Column:
    return sa.Column(name, postgresql.UUID(as_uuid=True), sa.ForeignKey(target), nullable=nullable, **kw)


def upgrade() -> None:
    # Users and trades
    op.create_table(
        "users",
        *_base_columns(),
        sa.Column("email", sa.String(255), unique=True, nullable=False, index=True),
        sa.Column("hashed_password", sa.String(255), nullable=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("phone", sa.String(50), nullable=True),
        sa.Column("role", sa.String(20), nullable=False, server_default="CUSTOMER"),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.text("true")),
    )

    op.create_table(
        "trades",
        *_base_columns(),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("slug", sa.String(255), unique=True, nullable=False, index=True),
        _fk("parent_id", "trades.id", nullable=True, index=True),
    )

    op.create_table(
        "trades_profiles",
        *_base_columns(),
        _fk("user_id", "users.id", unique=True, index=True),
        sa.Column("business_name", sa.String(255), nullable=False),
        sa.Column("slug", sa.String(255), unique=True, nullable=False, index=True),
        sa.Column("phone", sa.String(50), nullable=True),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("city", sa.String(255), nullable=True),
        sa.Column("postcode", sa.String(16), nullable=True),
        sa.Column("bio", sa.Text, nullable=True),
        sa.Column("coverage_radius", sa.Integer, nullable=False, server_default=sa.text("25")),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.text("true")),
        sa.Column("is_verified", sa.Boolean, nullable=False, server_default=sa.text("false")),
        sa.Column("verified_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("subscription_tier", sa.String(20), nullable=False, server_default="FREE"),
        sa.Column("subscription_id", sa.String(255), nullable=True),
        sa.Column("stripe_customer_id", sa.String(255), nullable=True),
        sa.Column("average_rating", sa.Float, nullable=False, server_default=sa.text("0.0")),
        sa.Column("review_count", sa.Integer, nullable=False, server_default=sa.text("0")),
        sa.Column("response_rate", sa.Float, nullable=True),
    )

    op.create_table(
        "profile_trades",
        _fk("profile_id", "trades_profiles.id", primary_key=True),
        _fk("trade_id", "trades.id", primary_key=True),
    )

    op.create_table(
        "portfolio_items",
        *_base_columns(),
        _fk("profile_id", "trades_profiles.id", index=True),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("location", sa.String(255), nullable=True),
        sa.Column("images", postgresql.JSONB, nullable=True),
    )

    # Jobs and applications
    op.create_table(
        "jobs",
        *_base_columns(),
        _fk("customer_id", "users.id", index=True),
        _fk("trade_id", "trades.id", index=True),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text, nullable=False),
        sa.Column("postcode", sa.String(16), nullable=False, index=True),
        sa.Column("address", sa.String(500), nullable=True),
        sa.Column("budget_min", sa.Integer, nullable=True),
        sa.Column("budget_max", sa.Integer, nullable=True),
        sa.Column("timeframe", sa.String(20), nullable=True),
        sa.Column("images", postgresql.JSONB, nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="OPEN", index=True),
        sa.Column("view_count", sa.Integer, nullable=False, server_default=sa.text("0")),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
    )

    op.create_table(
        "job_applications",
        *_base_columns(),
        _fk("job_id", "jobs.id", index=True),
        _fk("profile_id", "trades_profiles.id", index=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="PENDING"),
        sa.Column("cover_letter", sa.Text, nullable=False),
        sa.Column("proposed_budget", sa.Integer, nullable=True),
        sa.Column("proposed_start_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("viewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("job_id", "profile_id", name="uq_job_application_job_profile"),
    )

    # Quotes
    op.create_table(
        "quote_requests",
        *_base_columns(),
        _fk("profile_id", "trades_profiles.id", index=True),
        _fk("customer_id", "users.id", nullable=True, index=True),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text, nullable=False),
        sa.Column("trade_type", sa.String(255), nullable=True),
        sa.Column("postcode", sa.String(16), nullable=False),
        sa.Column("address", sa.String(500), nullable=True),
        sa.Column("timeframe", sa.String(20), nullable=True),
        sa.Column("preferred_dates", sa.String(255), nullable=True),
        sa.Column("budget_range", sa.String(50), nullable=True),
        sa.Column("images", postgresql.JSONB, nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="PENDING"),
        sa.Column("viewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("responded_at", sa.DateTime(timezone=True), nullable=True),
    )

    # Reviews, verifications, reports
    op.create_table(
        "reviews",
        *_base_columns(),
        _fk("profile_id", "trades_profiles.id", index=True),
        _fk("author_id", "users.id", index=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="PENDING", index=True),
        sa.Column("overall_rating", sa.Integer, nullable=False),
        sa.Column("quality_rating", sa.Integer, nullable=True),
        sa.Column("reliability_rating", sa.Integer, nullable=True),
        sa.Column("value_rating", sa.Integer, nullable=True),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("content", sa.Text, nullable=False),
        sa.Column("work_type", sa.String(255), nullable=True),
        sa.Column("work_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cost", sa.String(50), nullable=True),
        sa.Column("is_verified", sa.Boolean, nullable=False, server_default=sa.text("false")),
        sa.Column("moderation_reason", sa.Text, nullable=True),
        sa.Column("response", sa.Text, nullable=True),
        sa.Column("responded_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("author_id", "profile_id", name="uq_review_author_profile"),
    )

    op.create_table(
        "verifications",
        *_base_columns(),
        _fk("profile_id", "trades_profiles.id", index=True),
        sa.Column("type", sa.String(30), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="PENDING"),
        sa.Column("document_url", sa.String(1000), nullable=False),
        sa.Column("notes", sa.Text, nullable=True),
        sa.Column("verified_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("verified_by", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
    )

    op.create_table(
        "reports",
        *_base_columns(),
        _fk("reporter_id", "users.id", index=True),
        sa.Column("target_type", sa.String(20), nullable=False),
        sa.Column("target_id", postgresql.UUID(as_uuid=True), nullable=False, index=True),
        sa.Column("reason", sa.String(30), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="PENDING", index=True),
        sa.Column("resolution", sa.Text, nullable=True),
        sa.Column("content_action", sa.String(20), nullable=True),
        sa.Column("handled_by", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("handled_at", sa.DateTime(timezone=True), nullable=True),
    )

    # Messaging
    op.create_table(
        "conversations",
        *_base_columns(),
        _fk("quote_request_id", "quote_requests.id", nullable=True, index=True),
        _fk("job_application_id", "job_applications.id", nullable=True, index=True),
    )

    op.create_table(
        "conversation_participants",
        *_base_columns(),
        _fk("conversation_id", "conversations.id", index=True),
        _fk("user_id", "users.id", index=True),
        sa.Column("last_read_at", sa.DateTime(timezone=True), nullable=True),
    )

    op.create_table(
        "messages",
        *_base_columns(),
        _fk("conversation_id", "conversations.id", index=True),
        _fk("sender_id", "users.id"),
        sa.Column("content", sa.Text, nullable=False),
    )

    # Bad payer database
    op.create_table(
        "bad_payer_reports",
        *_base_columns(),
        _fk("reporter_id", "trades_profiles.id", index=True),
        sa.Column("incident_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("work_description", sa.Text, nullable=False),
        sa.Column("agreed_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("amount_owed", sa.Numeric(12, 2), nullable=False),
        sa.Column("payment_terms", sa.Text, nullable=True),
        sa.Column("location_area", sa.String(255), nullable=False),
        sa.Column("location_postcode", sa.String(4), nullable=True, index=True),
        sa.Column("latitude", sa.Float, nullable=True),
        sa.Column("longitude", sa.Float, nullable=True),
        sa.Column("invoice_reference", sa.String(255), nullable=True),
        sa.Column("contract_reference", sa.String(255), nullable=True),
        sa.Column("communication_summary", sa.Text, nullable=True),
        sa.Column("legal_consent_given", sa.Boolean, nullable=False, server_default=sa.text("false")),
        sa.Column("legal_consent_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("truth_declaration", sa.Boolean, nullable=False, server_default=sa.text("false")),
        sa.Column("status", sa.String(20), nullable=False, server_default="PENDING_REVIEW", index=True),
        sa.Column("is_public", sa.Boolean, nullable=False, server_default=sa.text("false")),
        sa.Column("admin_notes", sa.Text, nullable=True),
        sa.Column("rejection_reason", sa.Text, nullable=True),
        sa.Column("reviewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("reviewed_by", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
    )

    op.create_table(
        "bad_payer_disputes",
        *_base_columns(),
        _fk("report_id", "bad_payer_reports.id", index=True),
        sa.Column("contact_email", sa.String(255), nullable=False),
        sa.Column("contact_phone", sa.String(50), nullable=True),
        sa.Column("contact_name", sa.String(255), nullable=True),
        sa.Column("reason", sa.String(255), nullable=False),
        sa.Column("explanation", sa.Text, nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="PENDING"),
        sa.Column("admin_notes", sa.Text, nullable=True),
        sa.Column("handled_by", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("handled_at", sa.DateTime(timezone=True), nullable=True),
    )

    # Audit trail
    op.create_table(
        "audit_log",
        *_base_columns(),
        sa.Column("entity_type", sa.String(100), nullable=False, index=True),
        sa.Column("entity_id", postgresql.UUID(as_uuid=True), nullable=False, index=True),
        sa.Column("action", sa.String(50), nullable=False),
        sa.Column("actor_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("diff", postgresql.JSONB, nullable=True),
    )


def downgrade() -> None:
    for table in (
        "audit_log",
        "bad_payer_disputes",
        "bad_payer_reports",
        "messages",
        "conversation_participants",
        "conversations",
        "reports",
        "verifications",
        "reviews",
        "quote_requests",
        "job_applications",
        "jobs",
        "portfolio_items",
        "profile_trades",
        "trades_profiles",
        "trades",
        "users",
    ):
        op.drop_table(table)
