"""Pipeline API request/response schemas.

Bodies are camelCase on the wire (``intakeId``, ``documentText``) and
snake_case in Python. Request models reject unexpected fields and convert
themselves into the frozen stage request dataclasses, so the services never
see pydantic.

Artifact payloads (analysis, diagnostics, workflows, ...) are passed through
as the stages stored them; only the envelope keys are camelCased.
"""

from datetime import datetime
from typing import Any, Literal

from pydantic import ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from intake_pilot.core.responses import CamelModel, SuccessEnvelope
from intake_pilot.schemas.stage_requests import (
    ActionPlanRequest,
    AnalyzeRequest,
    AttachmentInput,
    InterviewRequest,
    PreflightPackRequest,
    RiskDiagnosticsRequest,
    TranscriptEntry,
    WorkflowRequest,
)

_MAX_ID_LENGTH = 100
_MAX_FILE_NAME_LENGTH = 500
_MAX_DOCUMENT_LENGTH = 1_000_000
_MAX_MESSAGE_LENGTH = 10_000
_MAX_ATTACHMENTS = 20
_MAX_HISTORY = 200


class _RequestBody(CamelModel):
    """camelCase request body that rejects unknown fields."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="forbid"
    )


def _require_text(value: str) -> str:
    if not value.strip():
        raise ValueError("must not be blank")
    return value


# =============================================================================
# Requests
# =============================================================================


class AttachmentBody(_RequestBody):
    text: str = Field(max_length=_MAX_DOCUMENT_LENGTH)
    file_name: str = Field(min_length=1, max_length=_MAX_FILE_NAME_LENGTH)
    category: str | None = Field(default=None, max_length=50)
    file_type: str | None = Field(default=None, max_length=100)
    description: str | None = None


class AnalyzeBody(_RequestBody):
    """Body of POST /pipeline/analyze."""

    document_text: str = Field(min_length=1, max_length=_MAX_DOCUMENT_LENGTH)
    file_name: str = Field(min_length=1, max_length=_MAX_FILE_NAME_LENGTH)
    file_type: str | None = Field(default=None, max_length=100)
    file_size: int | None = Field(default=None, ge=0)
    intake_id: str | None = Field(default=None, max_length=_MAX_ID_LENGTH)
    attachments: list[AttachmentBody] = Field(
        default_factory=list, max_length=_MAX_ATTACHMENTS
    )

    @field_validator("document_text")
    @classmethod
    def document_not_blank(cls, value: str) -> str:
        return _require_text(value)

    def to_request(self) -> AnalyzeRequest:
        return AnalyzeRequest(
            document_text=self.document_text,
            file_name=self.file_name,
            file_type=self.file_type,
            file_size=self.file_size,
            intake_id=self.intake_id,
            attachments=tuple(
                AttachmentInput(
                    text=a.text,
                    file_name=a.file_name,
                    category=a.category,
                    file_type=a.file_type,
                    description=a.description,
                )
                for a in self.attachments
            ),
        )


class IntakeBody(_RequestBody):
    """Body carrying only the intake id (risk diagnostics, workflows, preflight)."""

    intake_id: str = Field(min_length=1, max_length=_MAX_ID_LENGTH)

    def to_risk_request(self) -> RiskDiagnosticsRequest:
        return RiskDiagnosticsRequest(intake_id=self.intake_id)

    def to_workflow_request(self) -> WorkflowRequest:
        return WorkflowRequest(intake_id=self.intake_id)

    def to_preflight_request(self) -> PreflightPackRequest:
        return PreflightPackRequest(intake_id=self.intake_id)


class ActionItemsBody(_RequestBody):
    intake_id: str = Field(min_length=1, max_length=_MAX_ID_LENGTH)
    interview_summary: str | None = Field(default=None, max_length=_MAX_MESSAGE_LENGTH)

    def to_request(self) -> ActionPlanRequest:
        return ActionPlanRequest(
            intake_id=self.intake_id, interview_summary=self.interview_summary
        )


class TranscriptEntryBody(_RequestBody):
    role: Literal["user", "assistant"]
    content: str = Field(max_length=_MAX_MESSAGE_LENGTH)
    timestamp: str | None = None


class InterviewBody(_RequestBody):
    """Body of POST /pipeline/interview."""

    intake_id: str = Field(min_length=1, max_length=_MAX_ID_LENGTH)
    session_id: str = Field(min_length=1, max_length=_MAX_ID_LENGTH)
    user_message: str = Field(min_length=1, max_length=_MAX_MESSAGE_LENGTH)
    conversation_history: list[TranscriptEntryBody] = Field(
        default_factory=list, max_length=_MAX_HISTORY
    )

    @field_validator("user_message")
    @classmethod
    def message_not_blank(cls, value: str) -> str:
        return _require_text(value)

    def to_request(self) -> InterviewRequest:
        return InterviewRequest(
            intake_id=self.intake_id,
            session_id=self.session_id,
            user_message=self.user_message,
            conversation_history=tuple(
                TranscriptEntry(role=e.role, content=e.content, timestamp=e.timestamp)
                for e in self.conversation_history
            ),
        )


class EnrichmentBody(_RequestBody):
    intake_id: str = Field(min_length=1, max_length=_MAX_ID_LENGTH)
    provider_type: str = Field(default="salesforce_mock", max_length=50)


# =============================================================================
# Responses
# =============================================================================


class AnalyzeResponse(SuccessEnvelope):
    intake_id: str
    run_id: str
    analysis: dict[str, Any]
    token_usage: int


class RiskDiagnosticsResponse(SuccessEnvelope):
    run_id: str
    diagnostics: dict[str, Any]
    token_usage: int


class ActionItemsResponse(SuccessEnvelope):
    run_id: str
    action_items: list[dict[str, Any]]
    token_usage: int


class WorkflowRecommendationsResponse(SuccessEnvelope):
    run_id: str
    recommendation_id: str
    workflows: list[dict[str, Any]]
    token_usage: int


class PreflightPackResponse(SuccessEnvelope):
    run_id: str
    pack_id: str
    pack: dict[str, Any]
    token_usage: int


class InterviewResponse(SuccessEnvelope):
    run_id: str
    result: dict[str, Any]
    token_usage: int


class EnrichmentResponse(SuccessEnvelope):
    enrichment_id: str
    data: dict[str, Any]
    suggested_updates: dict[str, Any]


class RunSummary(CamelModel):
    """One run ledger entry as exposed by the runs endpoints."""

    id: str
    intake_id: str
    run_type: str
    model: str | None = None
    status: str
    failure_kind: str | None = None
    error_message: str | None = None
    tokens_used: int = 0
    created_at: datetime
    completed_at: datetime | None = None


class RunListResponse(SuccessEnvelope):
    runs: list[RunSummary]


class RunResponse(SuccessEnvelope):
    run: RunSummary
