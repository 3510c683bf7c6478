"""Interview session model.

One row per (intake, session). Updated in place on every Interview turn.
"""

from sqlalchemy import ForeignKey, String, UniqueConstraint, text
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from intake_pilot.models.base import DEFAULT_UUID, Base, TimestampMixin

_EMPTY_LIST = text("'[]'::jsonb")
_EMPTY_OBJECT = text("'{}'::jsonb")


class InterviewSession(Base, TimestampMixin):
    """Accumulated state of a clarification interview.

    Attributes:
        session_id: Client-chosen session key.
        messages: Ordered transcript; only ever grows.
        updated_fields: Field name -> latest patched value.
        missing_fields_before: Gap list from the analysis at session start.
        missing_fields_after: Fields still unresolved.
        resolved_fields: Fields resolved during the session.
        validated_assumptions: Assumptions confirmed so far; only ever grows.
        ai_run_id: Run that produced the most recent turn.
    """

    __tablename__ = "interview_sessions"
    __table_args__ = (
        UniqueConstraint(
            "intake_id", "session_id", name="uq_interview_sessions_intake_session"
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
    session_id: Mapped[str] = mapped_column(String(100), nullable=False)
    messages: Mapped[list] = mapped_column(
        JSONB, server_default=_EMPTY_LIST, nullable=False
    )
    updated_fields: Mapped[dict] = mapped_column(
        JSONB, server_default=_EMPTY_OBJECT, nullable=False
    )
    missing_fields_before: Mapped[list] = mapped_column(
        JSONB, server_default=_EMPTY_LIST, nullable=False
    )
    missing_fields_after: Mapped[list] = mapped_column(
        JSONB, server_default=_EMPTY_LIST, nullable=False
    )
    resolved_fields: Mapped[list] = mapped_column(
        JSONB, server_default=_EMPTY_LIST, nullable=False
    )
    validated_assumptions: Mapped[list] = mapped_column(
        JSONB, server_default=_EMPTY_LIST, nullable=False
    )
    status: Mapped[str] = mapped_column(
        String(20), server_default=text("'active'"), nullable=False
    )
    ai_run_id: Mapped[str | None] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("ai_runs.id", ondelete="SET NULL"),
        nullable=True,
    )
