"""Request/response schemas and stage parameter objects."""

from intake_pilot.schemas.pipeline import (
    ActionItemsBody,
    ActionItemsResponse,
    AnalyzeBody,
    AnalyzeResponse,
    EnrichmentBody,
    EnrichmentResponse,
    IntakeBody,
    InterviewBody,
    InterviewResponse,
    RiskDiagnosticsResponse,
    RunListResponse,
    RunResponse,
    RunSummary,
    WorkflowRecommendationsResponse,
)
from intake_pilot.schemas.stage_requests import (
    ActionPlanRequest,
    AnalyzeRequest,
    AttachmentInput,
    InterviewRequest,
    RiskDiagnosticsRequest,
    TranscriptEntry,
    WorkflowRequest,
)

__all__ = [
    # HTTP bodies
    "ActionItemsBody",
    "AnalyzeBody",
    "EnrichmentBody",
    "IntakeBody",
    "InterviewBody",
    # HTTP responses
    "ActionItemsResponse",
    "AnalyzeResponse",
    "EnrichmentResponse",
    "InterviewResponse",
    "RiskDiagnosticsResponse",
    "RunListResponse",
    "RunResponse",
    "RunSummary",
    "WorkflowRecommendationsResponse",
    # Stage requests
    "ActionPlanRequest",
    "AnalyzeRequest",
    "AttachmentInput",
    "InterviewRequest",
    "RiskDiagnosticsRequest",
    "TranscriptEntry",
    "WorkflowRequest",
]
