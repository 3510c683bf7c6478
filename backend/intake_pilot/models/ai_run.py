"""Run ledger model - one row per model invocation.

A run is inserted as ``pending`` before the model call and transitions
exactly once to ``succeeded`` or ``failed``.
"""

from datetime import datetime

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from intake_pilot.models.base import DEFAULT_UUID, Base, TimestampMixin


class AIRun(Base, TimestampMixin):
    """Lifecycle and cost of a single pipeline stage invocation.

    Attributes:
        run_type: Stage that issued the call (analyze, risk_diagnostics, ...).
        model: Model the request was routed to.
        status: pending, succeeded or failed.
        input_payload: Provenance (request summary, dependency ids).
        output_payload: Post-processed stage output on success.
        error_message: Failure reason on failure.
        failure_kind: FailureKind value on failure.
        tokens_used: Summed token cost (0 while pending).
        completed_at: When the terminal transition happened.
    """

    __tablename__ = "ai_runs"
    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'succeeded', 'failed')",
            name="ck_ai_runs_status",
        ),
        CheckConstraint("tokens_used >= 0", name="ck_ai_runs_tokens_nonneg"),
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
    run_type: Mapped[str] = mapped_column(String(50), nullable=False)
    model: Mapped[str] = mapped_column(String(100), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20),
        server_default=text("'pending'"),
        nullable=False,
    )
    input_payload: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
    output_payload: Mapped[dict | list | None] = mapped_column(JSONB, nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    failure_kind: Mapped[str | None] = mapped_column(String(30), nullable=True)
    tokens_used: Mapped[int] = mapped_column(
        Integer,
        server_default=text("0"),
        nullable=False,
    )
    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
