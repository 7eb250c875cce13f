"""create auth and crm tables

Revision ID: 202610190001
Revises:
Create Date: 2026-10-19 00:01:00
"""

from collections.abc import Sequence

from alembic import op
import sqlalchemy as sa


revision: str = "202610190001"
down_revision: str | None = None
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "auth_user",
        sa.Column("id", sa.String(length=64), nullable=False),
        sa.Column("email_address", sa.String(length=320), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("role", sa.String(length=32), nullable=False, server_default="developer"),
        sa.Column("password_hash", sa.Text(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("email_address"),
    )

    op.create_table(
        "auth_session",
        sa.Column("token", sa.String(length=128), nullable=False),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("user_agent", sa.Text(), nullable=True),
        sa.Column("ip_address", sa.String(length=64), nullable=True),
        sa.ForeignKeyConstraint(["user_id"], ["auth_user.id"]),
        sa.PrimaryKeyConstraint("token"),
    )
    op.create_index("ix_auth_session_user_id", "auth_session", ["user_id"], unique=False)

    op.create_table(
        "crm_organization",
        sa.Column("id", sa.String(length=64), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("industry", sa.Text(), nullable=True),
        sa.Column("website", sa.Text(), nullable=True),
        sa.Column("email", sa.Text(), nullable=True),
        sa.Column("phone", sa.Text(), nullable=True),
        sa.Column("billing_email", sa.Text(), nullable=True),
        sa.Column("tax_id", sa.Text(), nullable=True),
        sa.Column("address", sa.Text(), nullable=True),
        sa.Column("city", sa.Text(), nullable=True),
        sa.Column("country", sa.Text(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "crm_contact",
        sa.Column("id", sa.String(length=64), nullable=False),
        sa.Column("organization_id", sa.String(length=64), nullable=False),
        sa.Column("first_name", sa.Text(), nullable=False),
        sa.Column("last_name", sa.Text(), nullable=False),
        sa.Column("job_title", sa.Text(), nullable=True),
        sa.Column("email", sa.Text(), nullable=True),
        sa.Column("phone", sa.Text(), nullable=True),
        sa.Column("mobile", sa.Text(), nullable=True),
        sa.Column("linkedin_url", sa.Text(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("primary_contact", sa.Boolean(), nullable=False, server_default="0"),
        *_timestamps(),
        sa.ForeignKeyConstraint(["organization_id"], ["crm_organization.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_crm_contact_organization_id", "crm_contact", ["organization_id"], unique=False)

    op.create_table(
        "crm_pipeline",
        sa.Column("id", sa.String(length=64), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("is_default", sa.Boolean(), nullable=False, server_default="0"),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "crm_pipeline_stage",
        sa.Column("id", sa.String(length=64), nullable=False),
        sa.Column("pipeline_id", sa.String(length=64), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("color", sa.String(length=32), nullable=True),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("probability", sa.Float(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(["pipeline_id"], ["crm_pipeline.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("pipeline_id", "position", name="uq_crm_pipeline_stage_position"),
    )

    op.create_table(
        "crm_deal",
        sa.Column("id", sa.String(length=64), nullable=False),
        sa.Column("organization_id", sa.String(length=64), nullable=False),
        sa.Column("contact_id", sa.String(length=64), nullable=False),
        sa.Column("pipeline_stage_id", sa.String(length=64), nullable=True),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("domain", sa.Text(), nullable=True),
        sa.Column("domain_acquired_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("domain_expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("domain_cost", sa.Float(), nullable=False),
        sa.Column("deposit", sa.Float(), nullable=False),
        sa.Column("costs", sa.Float(), nullable=False),
        sa.Column("taxes", sa.Float(), nullable=False),
        sa.Column("net_total", sa.Float(), nullable=False),
        sa.Column("share_gil", sa.Float(), nullable=False),
        sa.Column("share_ric", sa.Float(), nullable=False),
        sa.Column("value", sa.Float(), nullable=False),
        sa.Column("currency", sa.String(length=8), nullable=False),
        sa.Column("expected_close_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("probability", sa.Integer(), nullable=False),
        sa.Column("source", sa.Text(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("lost_reason", sa.Text(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["organization_id"], ["crm_organization.id"]),
        sa.ForeignKeyConstraint(["contact_id"], ["crm_contact.id"]),
        sa.ForeignKeyConstraint(["pipeline_stage_id"], ["crm_pipeline_stage.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_crm_deal_organization_id", "crm_deal", ["organization_id"], unique=False)
    op.create_index("ix_crm_deal_contact_id", "crm_deal", ["contact_id"], unique=False)
    op.create_index("ix_crm_deal_pipeline_stage_id", "crm_deal", ["pipeline_stage_id"], unique=False)

    op.create_table(
        "crm_payment",
        sa.Column("id", sa.String(length=64), nullable=False),
        sa.Column("deal_id", sa.String(length=64), nullable=False),
        sa.Column("title", sa.Text(), nullable=True),
        sa.Column("amount", sa.Float(), nullable=False),
        sa.Column("currency", sa.String(length=8), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("due_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("method", sa.String(length=64), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("gil_amount", sa.Float(), nullable=False),
        sa.Column("ric_amount", sa.Float(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(["deal_id"], ["crm_deal.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_crm_payment_deal_id", "crm_payment", ["deal_id"], unique=False)

    op.create_table(
        "crm_project",
        sa.Column("id", sa.String(length=64), nullable=False),
        sa.Column("deal_id", sa.String(length=64), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("code", sa.String(length=64), nullable=True),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("start_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("target_end_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("actual_end_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("budget", sa.Float(), nullable=False),
        sa.Column("currency", sa.String(length=8), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(["deal_id"], ["crm_deal.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_crm_project_deal_id", "crm_project", ["deal_id"], unique=False)

    op.create_table(
        "crm_task",
        sa.Column("id", sa.String(length=64), nullable=False),
        sa.Column("project_id", sa.String(length=64), nullable=False),
        sa.Column("owner_user_id", sa.String(length=64), nullable=True),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("priority", sa.Integer(), nullable=False),
        sa.Column("due_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("estimated_hours", sa.Float(), nullable=False),
        sa.Column("actual_hours", sa.Float(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(["project_id"], ["crm_project.id"]),
        sa.ForeignKeyConstraint(["owner_user_id"], ["auth_user.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_crm_task_project_id", "crm_task", ["project_id"], unique=False)

    op.create_table(
        "crm_quotation",
        sa.Column("id", sa.String(length=64), nullable=False),
        sa.Column("deal_id", sa.String(length=64), nullable=False),
        sa.Column("created_by_user_id", sa.String(length=64), nullable=True),
        sa.Column("number", sa.String(length=32), nullable=False),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("introduction", sa.Text(), nullable=True),
        sa.Column("terms", sa.Text(), nullable=True),
        sa.Column("currency", sa.String(length=8), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("subtotal", sa.Float(), nullable=False),
        sa.Column("tax_rate", sa.Float(), nullable=False),
        sa.Column("tax_amount", sa.Float(), nullable=False),
        sa.Column("discount_amount", sa.Float(), nullable=False),
        sa.Column("total", sa.Float(), nullable=False),
        sa.Column("valid_until", sa.DateTime(timezone=True), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("public_token", sa.String(length=64), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["deal_id"], ["crm_deal.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("number", name="uq_crm_quotation_number"),
    )
    op.create_index("ix_crm_quotation_deal_id", "crm_quotation", ["deal_id"], unique=False)

    op.create_table(
        "crm_quotation_item",
        sa.Column("id", sa.String(length=64), nullable=False),
        sa.Column("quotation_id", sa.String(length=64), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("quantity", sa.Float(), nullable=False),
        sa.Column("unit_price", sa.Float(), nullable=False),
        sa.Column("unit_type", sa.String(length=32), nullable=True),
        sa.Column("line_total", sa.Float(), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(["quotation_id"], ["crm_quotation.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_crm_quotation_item_quotation_position",
        "crm_quotation_item",
        ["quotation_id", "position"],
        unique=False,
    )

    op.create_table(
        "crm_interaction",
        sa.Column("id", sa.String(length=64), nullable=False),
        sa.Column("user_id", sa.String(length=64), nullable=True),
        sa.Column("organization_id", sa.String(length=64), nullable=True),
        sa.Column("contact_id", sa.String(length=64), nullable=True),
        sa.Column("deal_id", sa.String(length=64), nullable=True),
        sa.Column("interaction_type", sa.String(length=16), nullable=False),
        sa.Column("subject", sa.Text(), nullable=True),
        sa.Column("body", sa.Text(), nullable=True),
        sa.Column("occurred_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("duration_minutes", sa.Integer(), nullable=False),
        sa.Column("transcript", sa.Text(), nullable=True),
        sa.Column("cleaned_transcript", sa.Text(), nullable=True),
        sa.Column("follow_up_completed", sa.Boolean(), nullable=False, server_default="0"),
        sa.Column("follow_up_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("follow_up_notes", sa.Text(), nullable=True),
        sa.Column("transcription_language", sa.String(length=8), nullable=False),
        sa.Column("transcription_status", sa.String(length=16), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(["organization_id"], ["crm_organization.id"]),
        sa.ForeignKeyConstraint(["contact_id"], ["crm_contact.id"]),
        sa.ForeignKeyConstraint(["deal_id"], ["crm_deal.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_crm_interaction_organization_id", "crm_interaction", ["organization_id"], unique=False)
    op.create_index("ix_crm_interaction_contact_id", "crm_interaction", ["contact_id"], unique=False)
    op.create_index("ix_crm_interaction_deal_id", "crm_interaction", ["deal_id"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_crm_interaction_deal_id", table_name="crm_interaction")
    op.drop_index("ix_crm_interaction_contact_id", table_name="crm_interaction")
    op.drop_index("ix_crm_interaction_organization_id", table_name="crm_interaction")
    op.drop_table("crm_interaction")
    op.drop_index("ix_crm_quotation_item_quotation_position", table_name="crm_quotation_item")
    op.drop_table("crm_quotation_item")
    op.drop_index("ix_crm_quotation_deal_id", table_name="crm_quotation")
    op.drop_table("crm_quotation")
    op.drop_index("ix_crm_task_project_id", table_name="crm_task")
    op.drop_table("crm_task")
    op.drop_index("ix_crm_project_deal_id", table_name="crm_project")
    op.drop_table("crm_project")
    op.drop_index("ix_crm_payment_deal_id", table_name="crm_payment")
    op.drop_table("crm_payment")
    op.drop_index("ix_crm_deal_pipeline_stage_id", table_name="crm_deal")
    op.drop_index("ix_crm_deal_contact_id", table_name="crm_deal")
    op.drop_index("ix_crm_deal_organization_id", table_name="crm_deal")
    op.drop_table("crm_deal")
    op.drop_table("crm_pipeline_stage")
    op.drop_table("crm_pipeline")
    op.drop_index("ix_crm_contact_organization_id", table_name="crm_contact")
    op.drop_table("crm_contact")
    op.drop_table("crm_organization")
    op.drop_index("ix_auth_session_user_id", table_name="auth_session")
    op.drop_table("auth_session")
    op.drop_table("auth_user")
