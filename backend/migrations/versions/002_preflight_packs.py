"""Create preflight_packs table.

Revision ID: 002_preflight_packs
Revises: 001_pipeline_tables
Create Date: 2026-10-19

Tier 3: preflight_packs
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects.postgresql import JSONB

revision: str = "002_preflight_packs"
down_revision: str | None = "001_pipeline_tables"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "preflight_packs",
        sa.Column(
            "id",
            sa.UUID(as_uuid=False),
            primary_key=True,
            server_default=sa.text("gen_random_uuid()"),
        ),
        sa.Column(
            "intake_id",
            sa.UUID(as_uuid=False),
            sa.ForeignKey("intake_extractions.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "ai_run_id",
            sa.UUID(as_uuid=False),
            sa.ForeignKey("ai_runs.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column(
            "pack_version", sa.String(20), nullable=False, server_default="1.0"
        ),
        sa.Column(
            "sections", JSONB, nullable=False, server_default=sa.text("'{}'::jsonb")
        ),
        sa.Column(
            "critical_path_items",
            JSONB,
            nullable=False,
            server_default=sa.text("'[]'::jsonb"),
        ),
        sa.Column("estimated_completion_date", sa.String(32), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    )
    # "Latest pack per intake" lookups
    op.create_index("idx_preflight_packs_intake_id", "preflight_packs", ["intake_id"])
    op.create_index(
        "idx_preflight_packs_created_at", "preflight_packs", ["created_at"]
    )


def downgrade() -> None:
    op.drop_table("preflight_packs")
