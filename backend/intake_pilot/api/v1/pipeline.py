"""Pipeline stage endpoints.

One POST per stage, plus customer enrichment. Each endpoint converts its
body into a stage request, runs the stage and maps the outcome:

- success                          -> 200 with the stage payload
- missing intake                   -> 404 NOT_FOUND
- missing prior artifact           -> 422 PRECONDITION_FAILED (no run recorded)
- model failure / unusable output  -> 502 UPSTREAM_MODEL_ERROR (run recorded)
- provider not configured          -> 503 SERVICE_UNAVAILABLE

Model-calling endpoints are rate limited (settings.rate_limit_llm).
"""

from typing import TypeVar

import structlog
from fastapi import APIRouter, Request

from intake_pilot.api.deps import Caller, Store
from intake_pilot.core.config import settings
from intake_pilot.core.errors import (
    NotFoundError,
    PreconditionFailedError,
    UpstreamModelError,
)
from intake_pilot.core.rate_limiting import limiter
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
    PreflightPackResponse,
    RiskDiagnosticsResponse,
    WorkflowRecommendationsResponse,
)
from intake_pilot.services.action_plan import ActionPlanStage
from intake_pilot.services.customer_enrichment import run_customer_enrichment
from intake_pilot.services.errors import PreconditionError
from intake_pilot.services.intake_analysis import IntakeAnalysisStage
from intake_pilot.services.interview import InterviewStage
from intake_pilot.services.preflight_pack import PreflightPackStage
from intake_pilot.services.risk_diagnostics import RiskDiagnosticsStage
from intake_pilot.services.stage_pipeline import PipelineStage, StageOutcome
from intake_pilot.services.workflow_recommendation import WorkflowRecommendationStage

logger = structlog.get_logger()

router = APIRouter()

RequestT = TypeVar("RequestT")


async def _run_stage(stage: PipelineStage[RequestT], request: RequestT) -> StageOutcome:
    """Run a stage and translate its failures into API errors.

    Raises:
        NotFoundError: The intake case does not exist.
        PreconditionFailedError: A required prior artifact does not exist.
        UpstreamModelError: The model call failed or its output was unusable.
    """
    try:
        outcome = await stage.run(request)
    except PreconditionError as e:
        if e.is_missing_subject:
            raise NotFoundError("Intake", e.subject_id) from e
        raise PreconditionFailedError(str(e)) from e

    if not outcome.success:
        raise UpstreamModelError(
            outcome.error or "Model backend call failed",
            failure_kind=outcome.failure_kind.value if outcome.failure_kind else None,
            run_id=outcome.run_id,
        )
    return outcome


@router.post("/analyze")
@limiter.limit(settings.rate_limit_llm)
async def analyze(
    request: Request,  # noqa: ARG001
    body: AnalyzeBody,
    store: Store,
    caller: Caller,
) -> AnalyzeResponse:
    """Analyze an onboarding document (creates the intake case if needed).

    Args:
        request: HTTP request (required by rate limiter).
        body: Document text, file name, optional attachments and intake id.
        store: Record store (injected).
        caller: Guarded model caller (injected).

    Returns:
        AnalyzeResponse with the intake id, run id and analysis.
    """
    outcome = await _run_stage(IntakeAnalysisStage(store, caller), body.to_request())
    return AnalyzeResponse(
        intake_id=outcome.subject_id,
        run_id=outcome.run_id,
        analysis=outcome.payload,
        token_usage=outcome.tokens_used,
    )


@router.post("/risk-diagnostics")
@limiter.limit(settings.rate_limit_llm)
async def risk_diagnostics(
    request: Request,  # noqa: ARG001
    body: IntakeBody,
    store: Store,
    caller: Caller,
) -> RiskDiagnosticsResponse:
    """Diagnose onboarding risks for an analyzed intake."""
    outcome = await _run_stage(
        RiskDiagnosticsStage(store, caller), body.to_risk_request()
    )
    return RiskDiagnosticsResponse(
        run_id=outcome.run_id,
        diagnostics=outcome.payload,
        token_usage=outcome.tokens_used,
    )


@router.post("/action-items")
@limiter.limit(settings.rate_limit_llm)
async def action_items(
    request: Request,  # noqa: ARG001
    body: ActionItemsBody,
    store: Store,
    caller: Caller,
) -> ActionItemsResponse:
    """Generate the action plan for an analyzed intake."""
    outcome = await _run_stage(ActionPlanStage(store, caller), body.to_request())
    return ActionItemsResponse(
        run_id=outcome.run_id,
        action_items=outcome.payload["items"],
        token_usage=outcome.tokens_used,
    )


@router.post("/workflow-recommendations")
@limiter.limit(settings.rate_limit_llm)
async def workflow_recommendations(
    request: Request,  # noqa: ARG001
    body: IntakeBody,
    store: Store,
    caller: Caller,
) -> WorkflowRecommendationsResponse:
    """Recommend operational workflows for an analyzed intake."""
    outcome = await _run_stage(
        WorkflowRecommendationStage(store, caller), body.to_workflow_request()
    )
    return WorkflowRecommendationsResponse(
        run_id=outcome.run_id,
        recommendation_id=outcome.extras["recommendation_id"],
        workflows=outcome.payload,
        token_usage=outcome.tokens_used,
    )


@router.post("/preflight-pack")
@limiter.limit(settings.rate_limit_llm)
async def preflight_pack(
    request: Request,  # noqa: ARG001
    body: IntakeBody,
    store: Store,
    caller: Caller,
) -> PreflightPackResponse:
    """Build the go-live preflight pack for an analyzed intake."""
    outcome = await _run_stage(
        PreflightPackStage(store, caller), body.to_preflight_request()
    )
    return PreflightPackResponse(
        run_id=outcome.run_id,
        pack_id=outcome.extras["pack_id"],
        pack=outcome.payload,
        token_usage=outcome.tokens_used,
    )


@router.post("/interview")
@limiter.limit(settings.rate_limit_llm)
async def interview(
    request: Request,  # noqa: ARG001
    body: InterviewBody,
    store: Store,
    caller: Caller,
) -> InterviewResponse:
    """Run one interview turn.

    Returns:
        InterviewResponse whose ``result`` is the turn plus the full
        session transcript under ``messages``.
    """
    outcome = await _run_stage(InterviewStage(store, caller), body.to_request())
    return InterviewResponse(
        run_id=outcome.run_id,
        result={**outcome.payload, "messages": outcome.extras["messages"]},
        token_usage=outcome.tokens_used,
    )


@router.post("/enrichment")
async def enrichment(body: EnrichmentBody, store: Store) -> EnrichmentResponse:
    """Enrich an intake with account context (no model call).

    Raises:
        ValidationError: Unknown provider type.
        NotFoundError: Intake case does not exist.
    """
    result = await run_customer_enrichment(store, body.intake_id, body.provider_type)
    return EnrichmentResponse(
        enrichment_id=result.enrichment_id,
        data=result.data,
        suggested_updates=result.suggested_updates,
    )
