"""add work tracking fields to crm deal

Revision ID: 202610190002
Revises: 202610190001
Create Date: 2026-10-19 00:02:00
"""

from collections.abc import Sequence

from alembic import op
import sqlalchemy as sa


revision: str = "202610190002"
down_revision: str | None = "202610190001"
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None


def upgrade() -> None:
    with op.batch_alter_table("crm_deal") as batch_op:
        batch_op.add_column(sa.Column("work_type", sa.String(length=64), nullable=True))
        batch_op.add_column(sa.Column("work_closed_at", sa.DateTime(timezone=True), nullable=True))


def downgrade() -> None:
    with op.batch_alter_table("crm_deal") as batch_op:
        batch_op.drop_column("work_closed_at")
        batch_op.drop_column("work_type")
