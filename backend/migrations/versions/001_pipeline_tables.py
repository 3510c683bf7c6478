"""Create intake, run ledger, artifact and session tables.

Revision ID: 001_pipeline_tables
Revises: 000_enable_extensions
Create Date: 2026-10-19

Tier 0: uploaded_documents
Tier 1: intake_extractions
Tier 2: intake_attachments, ai_runs, customer_enrichment
Tier 3: ai_analysis, risk_diagnostics, action_item_sets,
        workflow_recommendations, interview_sessions
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects.postgresql import JSONB

revision: str = "001_pipeline_tables"
down_revision: str | None = "000_enable_extensions"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

_EMPTY_LIST = sa.text("'[]'::jsonb")
_EMPTY_OBJECT = sa.text("'{}'::jsonb")


def _id_column() -> sa.Column:
    return sa.Column(
        "id",
        sa.UUID(as_uuid=False),
        primary_key=True,
        server_default=sa.text("gen_random_uuid()"),
    )


def _timestamp_columns() -> list[sa.Column]:
    return [
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
    ]


def _intake_fk() -> sa.Column:
    return sa.Column(
        "intake_id",
        sa.UUID(as_uuid=False),
        sa.ForeignKey("intake_extractions.id", ondelete="CASCADE"),
        nullable=False,
    )


def _run_fk(nullable: bool = False) -> sa.Column:
    return sa.Column(
        "ai_run_id",
        sa.UUID(as_uuid=False),
        sa.ForeignKey("ai_runs.id", ondelete="SET NULL" if nullable else "RESTRICT"),
        nullable=nullable,
    )


def _index_latest(table: str) -> None:
    # "Latest artifact per intake" lookups
    op.create_index(f"idx_{table}_intake_id", table, ["intake_id"])
    op.create_index(f"idx_{table}_created_at", table, ["created_at"])


def upgrade() -> None:
    # Tier 0 - source documents
    op.create_table(
        "uploaded_documents",
        _id_column(),
        sa.Column("file_name", sa.String(500), nullable=False),
        sa.Column("file_type", sa.String(100), nullable=True),
        sa.Column("file_size", sa.Integer(), nullable=True),
        sa.Column(
            "status", sa.String(20), nullable=False, server_default="processing"
        ),
        sa.Column("metadata", JSONB, nullable=True),
        *_timestamp_columns(),
        sa.CheckConstraint(
            "status IN ('processing', 'completed', 'failed')",
            name="ck_uploaded_documents_status",
        ),
    )
    op.create_index(
        "idx_uploaded_documents_created_at", "uploaded_documents", ["created_at"]
    )

    # Tier 1 - the intake case every run belongs to
    op.create_table(
        "intake_extractions",
        _id_column(),
        sa.Column(
            "document_id",
            sa.UUID(as_uuid=False),
            sa.ForeignKey("uploaded_documents.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("company_name", sa.String(255), nullable=True),
        sa.Column("customer_contacts", JSONB, nullable=False, server_default=_EMPTY_LIST),
        sa.Column("vendor_contacts", JSONB, nullable=False, server_default=_EMPTY_LIST),
        sa.Column("go_live_date", sa.String(32), nullable=True),
        sa.Column("edi_experience", sa.Text(), nullable=True),
        sa.Column("data_format", sa.String(100), nullable=True),
        sa.Column("transactions", JSONB, nullable=False, server_default=_EMPTY_LIST),
        sa.Column("locations", JSONB, nullable=False, server_default=_EMPTY_LIST),
        sa.Column("protocol", sa.String(100), nullable=True),
        sa.Column("unique_requirements", sa.Text(), nullable=True),
        *_timestamp_columns(),
    )
    op.create_index(
        "idx_intake_extractions_created_at", "intake_extractions", ["created_at"]
    )

    # Tier 2 - attachments, run ledger, enrichment
    op.create_table(
        "intake_attachments",
        _id_column(),
        _intake_fk(),
        sa.Column("file_name", sa.String(500), nullable=False),
        sa.Column("file_type", sa.String(100), nullable=True),
        sa.Column("file_size", sa.Integer(), nullable=True),
        sa.Column("upload_category", sa.String(50), nullable=False, server_default="other"),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("uploaded_by", sa.String(50), nullable=False, server_default="user"),
        *_timestamp_columns(),
    )
    _index_latest("intake_attachments")

    op.create_table(
        "ai_runs",
        _id_column(),
        _intake_fk(),
        sa.Column("run_type", sa.String(50), nullable=False),
        sa.Column("model", sa.String(100), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("input_payload", JSONB, nullable=True),
        sa.Column("output_payload", JSONB, nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("failure_kind", sa.String(30), nullable=True),
        sa.Column("tokens_used", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamp_columns(),
        sa.CheckConstraint(
            "status IN ('pending', 'succeeded', 'failed')", name="ck_ai_runs_status"
        ),
        sa.CheckConstraint("tokens_used >= 0", name="ck_ai_runs_tokens_nonneg"),
    )
    _index_latest("ai_runs")
    # Reconciliation sweep scans pending runs
    op.create_index("idx_ai_runs_status", "ai_runs", ["status"])

    op.create_table(
        "customer_enrichment",
        _id_column(),
        _intake_fk(),
        sa.Column("provider_type", sa.String(50), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="running"),
        sa.Column("input_context", JSONB, nullable=True),
        sa.Column("output", JSONB, nullable=True),
        sa.Column("merged_updates", JSONB, nullable=True),
        *_timestamp_columns(),
        sa.CheckConstraint(
            "status IN ('running', 'completed', 'failed')",
            name="ck_customer_enrichment_status",
        ),
    )
    _index_latest("customer_enrichment")

    # Tier 3 - stage artifacts and interview sessions
    op.create_table(
        "ai_analysis",
        _id_column(),
        _intake_fk(),
        _run_fk(),
        sa.Column("readiness_score", sa.Integer(), nullable=False),
        sa.Column("complexity_level", sa.String(10), nullable=False),
        sa.Column("identified_risks", JSONB, nullable=False, server_default=_EMPTY_LIST),
        sa.Column("missing_information", JSONB, nullable=False, server_default=_EMPTY_LIST),
        sa.Column("recommendations", JSONB, nullable=False, server_default=_EMPTY_LIST),
        sa.Column("locations", JSONB, nullable=False),
        sa.Column("estimated_timeline", sa.String(20), nullable=False),
        sa.Column("go_live_date", sa.String(32), nullable=True),
        *_timestamp_columns(),
        sa.CheckConstraint(
            "readiness_score BETWEEN 0 AND 100", name="ck_ai_analysis_score_range"
        ),
    )
    _index_latest("ai_analysis")

    op.create_table(
        "risk_diagnostics",
        _id_column(),
        _intake_fk(),
        _run_fk(),
        sa.Column("diagnostics_version", sa.String(20), nullable=False, server_default="1.0"),
        sa.Column("overall_risk_level", sa.String(10), nullable=False),
        sa.Column("items", JSONB, nullable=False, server_default=_EMPTY_LIST),
        *_timestamp_columns(),
    )
    _index_latest("risk_diagnostics")

    op.create_table(
        "action_item_sets",
        _id_column(),
        _intake_fk(),
        _run_fk(),
        sa.Column("items", JSONB, nullable=False, server_default=_EMPTY_LIST),
        sa.Column("interview_summary", sa.Text(), nullable=True),
        *_timestamp_columns(),
    )
    _index_latest("action_item_sets")

    op.create_table(
        "workflow_recommendations",
        _id_column(),
        _intake_fk(),
        _run_fk(),
        sa.Column("workflows", JSONB, nullable=False, server_default=_EMPTY_LIST),
        sa.Column("model", sa.String(100), nullable=True),
        *_timestamp_columns(),
    )
    _index_latest("workflow_recommendations")

    op.create_table(
        "interview_sessions",
        _id_column(),
        _intake_fk(),
        sa.Column("session_id", sa.String(100), nullable=False),
        sa.Column("messages", JSONB, nullable=False, server_default=_EMPTY_LIST),
        sa.Column("updated_fields", JSONB, nullable=False, server_default=_EMPTY_OBJECT),
        sa.Column("missing_fields_before", JSONB, nullable=False, server_default=_EMPTY_LIST),
        sa.Column("missing_fields_after", JSONB, nullable=False, server_default=_EMPTY_LIST),
        sa.Column("resolved_fields", JSONB, nullable=False, server_default=_EMPTY_LIST),
        sa.Column("validated_assumptions", JSONB, nullable=False, server_default=_EMPTY_LIST),
        sa.Column("status", sa.String(20), nullable=False, server_default="active"),
        _run_fk(nullable=True),
        *_timestamp_columns(),
        sa.UniqueConstraint(
            "intake_id", "session_id", name="uq_interview_sessions_intake_session"
        ),
    )
    _index_latest("interview_sessions")


def downgrade() -> None:
    for table in (
        "interview_sessions",
        "workflow_recommendations",
        "action_item_sets",
        "risk_diagnostics",
        "ai_analysis",
        "customer_enrichment",
        "ai_runs",
        "intake_attachments",
        "intake_extractions",
        "uploaded_documents",
    ):
        op.drop_table(table)
