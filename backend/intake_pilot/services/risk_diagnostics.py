"""Diagnose Risk stage - onboarding challenges and mapping issues.

Confidence labels are derived from the numeric confidence after parsing,
overriding whatever label the model proposed:

    confidence >= LIKELY_RISK_THRESHOLD  -> "Likely Risk"
    otherwise                            -> "Needs Validation"
"""

import math
from typing import Any, ClassVar

from intake_pilot.prompts.risk_diagnostics import RISK_SYSTEM_PROMPT, build_risk_prompt
from intake_pilot.providers.llm.base import TaskType
from intake_pilot.repositories.record_store import Collection
from intake_pilot.schemas.stage_requests import RiskDiagnosticsRequest
from intake_pilot.services.errors import OutputContractError
from intake_pilot.services.stage_pipeline import (
    PipelineStage,
    StageContext,
    require_intake,
    require_latest,
)

LIKELY_RISK_THRESHOLD = 0.6
LIKELY_RISK = "Likely Risk"
NEEDS_VALIDATION = "Needs Validation"

RISK_LEVELS = ("Low", "Medium", "High")
DEFAULT_RISK_LEVEL = "Medium"
DEFAULT_DIAGNOSTICS_VERSION = "1.0"


def coerce_confidence(value: Any) -> float:
    """Coerce a model-supplied confidence to a float in [0, 1].

    Unparseable values become 0.0, which labels the item for validation.
    """
    if isinstance(value, bool):
        return 0.0
    try:
        confidence = float(value)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(confidence):
        return 0.0
    return min(1.0, max(0.0, confidence))


def confidence_label(confidence: float) -> str:
    """Label for a numeric confidence."""
    return LIKELY_RISK if confidence >= LIKELY_RISK_THRESHOLD else NEEDS_VALIDATION


def normalize_risk_level(value: Any) -> str:
    """Map an overall risk level onto Low | Medium | High."""
    if isinstance(value, str):
        for level in RISK_LEVELS:
            if value.strip().lower() == level.lower():
                return level
    return DEFAULT_RISK_LEVEL


def label_risk_items(items: list[Any]) -> list[dict[str, Any]]:
    """Clamp confidences and recompute labels. Non-object items are dropped."""
    labelled = []
    for item in items:
        if not isinstance(item, dict):
            continue
        confidence = coerce_confidence(item.get("confidence"))
        labelled.append(
            {
                **item,
                "confidence": confidence,
                "confidence_label": confidence_label(confidence),
            }
        )
    return labelled


class RiskDiagnosticsStage(PipelineStage[RiskDiagnosticsRequest]):
    """Diagnose onboarding risks for an analyzed intake."""

    stage_type: ClassVar[str] = "risk_diagnostics"
    task: ClassVar[TaskType] = TaskType.RISK_DIAGNOSTICS
    temperature: ClassVar[float] = 0.7
    max_output_tokens: ClassVar[int] = 3000
    default_instructions: ClassVar[str] = RISK_SYSTEM_PROMPT

    async def gather(self, request: RiskDiagnosticsRequest) -> StageContext:
        intake = await require_intake(self.store, request.intake_id)
        analysis = await require_latest(
            self.store, Collection.ANALYSES, request.intake_id, "Analysis"
        )
        document = None
        if intake.get("document_id"):
            document = await self.store.get(
                Collection.UPLOADED_DOCUMENTS, intake["document_id"]
            )
        return StageContext(
            subject_id=request.intake_id,
            intake=intake,
            dependencies={"analysis": analysis, "document": document},
        )

    def describe_request(self, request: RiskDiagnosticsRequest) -> dict[str, Any]:
        return {"intake_id": request.intake_id}

    def build_user_prompt(
        self, request: RiskDiagnosticsRequest, context: StageContext
    ) -> str:
        document = context.dependencies["document"]
        metadata = None
        if document is not None:
            metadata = {
                "file_name": document.get("file_name"),
                "file_type": document.get("file_type"),
                "file_size": document.get("file_size"),
                **(document.get("metadata") or {}),
            }
        return build_risk_prompt(
            intake=context.intake,
            analysis=context.dependencies["analysis"],
            document_metadata=metadata,
        )

    def post_process(
        self, data: Any, request: RiskDiagnosticsRequest, context: StageContext
    ) -> dict[str, Any]:
        if not isinstance(data, dict):
            raise OutputContractError("diagnostics must be a JSON object")
        items = data.get("items")
        if not isinstance(items, list):
            raise OutputContractError("diagnostics 'items' must be a list")
        return {
            "diagnostics_version": str(
                data.get("diagnostics_version") or DEFAULT_DIAGNOSTICS_VERSION
            ),
            "overall_risk_level": normalize_risk_level(data.get("overall_risk_level")),
            "items": label_risk_items(items),
        }

    async def persist(
        self,
        payload: dict[str, Any],
        request: RiskDiagnosticsRequest,
        context: StageContext,
        run_id: str,
    ) -> dict[str, Any]:
        diagnostics_id = await self.store.insert(
            Collection.RISK_DIAGNOSTICS,
            {"intake_id": context.subject_id, "ai_run_id": run_id, **payload},
        )
        return {"diagnostics_id": diagnostics_id}
