"""Intake models - source documents, the intake case, and its attachments.

UploadedDocument and IntakeCase exist before any pipeline run; every run and
artifact references an IntakeCase.
"""

from sqlalchemy import CheckConstraint, ForeignKey, Integer, String, Text, text
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from intake_pilot.models.base import DEFAULT_UUID, Base, TimestampMixin

_EMPTY_LIST = text("'[]'::jsonb")


class UploadedDocument(Base, TimestampMixin):
    """Raw onboarding document submitted for analysis.

    Status moves processing -> completed on a successful Analyze run, or
    processing -> failed otherwise.
    """

    __tablename__ = "uploaded_documents"
    __table_args__ = (
        CheckConstraint(
            "status IN ('processing', 'completed', 'failed')",
            name="ck_uploaded_documents_status",
        ),
    )

    id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        primary_key=True,
        server_default=DEFAULT_UUID,
    )
    file_name: Mapped[str] = mapped_column(String(500), nullable=False)
    file_type: Mapped[str | None] = mapped_column(String(100), nullable=True)
    file_size: Mapped[int | None] = mapped_column(Integer, nullable=True)
    status: Mapped[str] = mapped_column(
        String(20),
        server_default=text("'processing'"),
        nullable=False,
    )
    metadata_: Mapped[dict | None] = mapped_column(
        "metadata",
        JSONB,
        nullable=True,
    )


class IntakeCase(Base, TimestampMixin):
    """The onboarding case a pipeline run pertains to.

    Fields are filled by Analyze and patched additively by Interview turns.
    Never deleted by the pipeline.
    """

    __tablename__ = "intake_extractions"

    id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        primary_key=True,
        server_default=DEFAULT_UUID,
    )
    document_id: Mapped[str | None] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("uploaded_documents.id", ondelete="SET NULL"),
        nullable=True,
    )
    company_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    customer_contacts: Mapped[list] = mapped_column(
        JSONB, server_default=_EMPTY_LIST, nullable=False
    )
    vendor_contacts: Mapped[list] = mapped_column(
        JSONB, server_default=_EMPTY_LIST, nullable=False
    )
    # Kept as text: the model and interview answers supply free-form dates
    go_live_date: Mapped[str | None] = mapped_column(String(32), nullable=True)
    edi_experience: Mapped[str | None] = mapped_column(Text, nullable=True)
    data_format: Mapped[str | None] = mapped_column(String(100), nullable=True)
    transactions: Mapped[list] = mapped_column(
        JSONB, server_default=_EMPTY_LIST, nullable=False
    )
    locations: Mapped[list] = mapped_column(
        JSONB, server_default=_EMPTY_LIST, nullable=False
    )
    protocol: Mapped[str | None] = mapped_column(String(100), nullable=True)
    unique_requirements: Mapped[str | None] = mapped_column(Text, nullable=True)


class IntakeAttachment(Base, TimestampMixin):
    """Supporting document analyzed alongside the main intake document."""

    __tablename__ = "intake_attachments"

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
    file_name: Mapped[str] = mapped_column(String(500), nullable=False)
    file_type: Mapped[str | None] = mapped_column(String(100), nullable=True)
    file_size: Mapped[int | None] = mapped_column(Integer, nullable=True)
    upload_category: Mapped[str] = mapped_column(
        String(50), server_default=text("'other'"), nullable=False
    )
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    uploaded_by: Mapped[str] = mapped_column(
        String(50), server_default=text("'user'"), nullable=False
    )
