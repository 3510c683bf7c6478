"""Stage artifact models - append-only outputs of the pipeline stages.

Each artifact row carries the succeeded run that produced it (``ai_run_id``).
Consumers read the most recent row per intake (``created_at`` descending).
"""

from sqlalchemy import (
    CheckConstraint,
    ForeignKey,
    Integer,
    String,
    Text,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from intake_pilot.models.base import DEFAULT_UUID, Base, TimestampMixin

_EMPTY_LIST = text("'[]'::jsonb")
_EMPTY_OBJECT = text("'{}'::jsonb")


class _ArtifactColumns:
    """Columns shared by every run-produced artifact."""

    id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        primary_key=True,
        server_default=DEFAULT_UUID,
    )
    intake_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("intake_extractions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    ai_run_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("ai_runs.id", ondelete="RESTRICT"),
        nullable=False,
    )


class AnalysisArtifact(_ArtifactColumns, Base, TimestampMixin):
    """Readiness analysis produced by the Analyze stage."""

    __tablename__ = "ai_analysis"
    __table_args__ = (
        CheckConstraint(
            "readiness_score BETWEEN 0 AND 100",
            name="ck_ai_analysis_score_range",
        ),
    )

    readiness_score: Mapped[int] = mapped_column(Integer, nullable=False)
    complexity_level: Mapped[str] = mapped_column(String(10), nullable=False)
    identified_risks: Mapped[list] = mapped_column(
        JSONB, server_default=_EMPTY_LIST, nullable=False
    )
    missing_information: Mapped[list] = mapped_column(
        JSONB, server_default=_EMPTY_LIST, nullable=False
    )
    recommendations: Mapped[list] = mapped_column(
        JSONB, server_default=_EMPTY_LIST, nullable=False
    )
    locations: Mapped[list] = mapped_column(JSONB, nullable=False)
    estimated_timeline: Mapped[str] = mapped_column(String(20), nullable=False)
    go_live_date: Mapped[str | None] = mapped_column(String(32), nullable=True)


class RiskDiagnosticsArtifact(_ArtifactColumns, Base, TimestampMixin):
    """Risk and mapping-issue diagnostics produced by Diagnose Risk."""

    __tablename__ = "risk_diagnostics"

    diagnostics_version: Mapped[str] = mapped_column(
        String(20), server_default=text("'1.0'"), nullable=False
    )
    overall_risk_level: Mapped[str] = mapped_column(String(10), nullable=False)
    items: Mapped[list] = mapped_column(
        JSONB, server_default=_EMPTY_LIST, nullable=False
    )


class ActionItemSet(_ArtifactColumns, Base, TimestampMixin):
    """Prioritized action plan produced by Plan Actions."""

    __tablename__ = "action_item_sets"

    items: Mapped[list] = mapped_column(
        JSONB, server_default=_EMPTY_LIST, nullable=False
    )
    interview_summary: Mapped[str | None] = mapped_column(Text, nullable=True)


class WorkflowRecommendationSet(_ArtifactColumns, Base, TimestampMixin):
    """Operational workflow recommendations produced by Recommend Workflows."""

    __tablename__ = "workflow_recommendations"

    workflows: Mapped[list] = mapped_column(
        JSONB, server_default=_EMPTY_LIST, nullable=False
    )
    model: Mapped[str | None] = mapped_column(String(100), nullable=True)


class PreflightPack(_ArtifactColumns, Base, TimestampMixin):
    """Go-live readiness checklist produced by Build Preflight Pack."""

    __tablename__ = "preflight_packs"

    pack_version: Mapped[str] = mapped_column(
        String(20), server_default=text("'1.0'"), nullable=False
    )
    sections: Mapped[dict] = mapped_column(
        JSONB, server_default=_EMPTY_OBJECT, nullable=False
    )
    critical_path_items: Mapped[list] = mapped_column(
        JSONB, server_default=_EMPTY_LIST, nullable=False
    )
    estimated_completion_date: Mapped[str | None] = mapped_column(
        String(32), nullable=True
    )


class CustomerEnrichment(Base, TimestampMixin):
    """Account profile pulled from an enrichment provider.

    Not produced by a model call, so it has no ``ai_run_id``. Suggested
    IntakeCase updates are stored for review and never applied here.
    """

    __tablename__ = "customer_enrichment"
    __table_args__ = (
        CheckConstraint(
            "status IN ('running', 'completed', 'failed')",
            name="ck_customer_enrichment_status",
        ),
    )

    id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        primary_key=True,
        server_default=DEFAULT_UUID,
    )
    intake_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("intake_extractions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    provider_type: Mapped[str] = mapped_column(String(50), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), server_default=text("'running'"), nullable=False
    )
    input_context: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
    output: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
    merged_updates: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
