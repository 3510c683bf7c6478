"""Analyze stage - intake document to readiness analysis.

Creates the intake case (or re-analyzes an existing one), asks the model to
extract intake fields and score readiness, then writes:

- the extracted fields onto the intake case
- an AnalysisArtifact
- one intake_attachments row per supporting document
- the uploaded document's final status

Post-validation is programmatic, not left to the prompt:
- readiness score clamped to [0, 100] (non-numeric -> 0)
- locations never empty (LOCATION_SENTINEL substituted)
- timeline is one of TIMELINE_BUCKETS (else derived from complexity)
"""

import json
import math
from datetime import timedelta
from typing import Any, ClassVar

import structlog

from intake_pilot.core.llm_sanitization import truncate_text
from intake_pilot.prompts.intake_analysis import (
    ANALYSIS_SYSTEM_PROMPT,
    ATTACHMENT_TRUNCATION_NOTICE,
    TRUNCATION_NOTICE,
    build_analysis_prompt,
)
from intake_pilot.providers.llm.base import TaskType
from intake_pilot.repositories.record_store import Collection, utcnow
from intake_pilot.schemas.stage_requests import AnalyzeRequest, AttachmentInput
from intake_pilot.services.errors import OutputContractError
from intake_pilot.services.stage_pipeline import (
    PipelineStage,
    StageContext,
    require_intake,
)

logger = structlog.get_logger()

# =============================================================================
# Constants
# =============================================================================

MAX_DOCUMENT_CHARS = 15000
MAX_ATTACHMENT_CHARS = 5000

LOCATION_SENTINEL = "Main facility - location TBD"

COMPLEXITY_LEVELS = ("low", "medium", "high")
DEFAULT_COMPLEXITY = "medium"

TIMELINE_BY_COMPLEXITY = {
    "low": "2-4 weeks",
    "medium": "3-5 weeks",
    "high": "4-6 weeks",
}
TIMELINE_BUCKETS = frozenset(TIMELINE_BY_COMPLEXITY.values())

DEFAULT_GO_LIVE_OFFSET = timedelta(days=35)

DOCUMENT_PROCESSING = "processing"
DOCUMENT_COMPLETED = "completed"
DOCUMENT_FAILED = "failed"

# Intake columns the model extracts; written back onto the case.
EXTRACTED_INTAKE_FIELDS = (
    "company_name",
    "customer_contacts",
    "go_live_date",
    "edi_experience",
    "data_format",
    "transactions",
    "protocol",
    "unique_requirements",
)

_LIST_FIELDS = ("identified_risks", "missing_information", "recommendations")

# intake_extractions text columns; None means unbounded Text.
INTAKE_COLUMN_WIDTHS: dict[str, int | None] = {
    "company_name": 255,
    "go_live_date": 32,
    "data_format": 100,
    "protocol": 100,
    "edi_experience": None,
    "unique_requirements": None,
}

# intake_extractions JSONB list columns (NOT NULL).
INTAKE_LIST_COLUMNS = frozenset(
    {"customer_contacts", "vendor_contacts", "transactions", "locations"}
)


# =============================================================================
# Post-validation helpers
# =============================================================================


def clamp_readiness_score(value: Any) -> int:
    """Coerce a model-supplied score to an int in [0, 100].

    Non-numeric values (including booleans and NaN) become 0.
    """
    if isinstance(value, bool):
        return 0
    if isinstance(value, str):
        try:
            value = float(value.strip().rstrip("%"))
        except ValueError:
            return 0
    if not isinstance(value, int | float) or math.isnan(value):
        return 0
    return int(round(min(100.0, max(0.0, float(value)))))


def normalize_complexity(value: Any) -> str:
    """Map a complexity label onto low | medium | high."""
    if isinstance(value, str) and value.strip().lower() in COMPLEXITY_LEVELS:
        return value.strip().lower()
    return DEFAULT_COMPLEXITY


def normalize_timeline(value: Any, complexity: str) -> str:
    """Keep a valid timeline bucket, otherwise derive one from complexity."""
    if isinstance(value, str) and value.strip() in TIMELINE_BUCKETS:
        return value.strip()
    return TIMELINE_BY_COMPLEXITY.get(complexity, TIMELINE_BY_COMPLEXITY[DEFAULT_COMPLEXITY])


def normalize_locations(value: Any) -> list[Any]:
    """Non-empty location list; the sentinel stands in for "none found"."""
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, list):
        return [LOCATION_SENTINEL]
    locations = [
        loc for loc in value if loc and not (isinstance(loc, str) and not loc.strip())
    ]
    return locations or [LOCATION_SENTINEL]


def default_go_live_date() -> str:
    """Go-live date assumed when the document names none."""
    return (utcnow().date() + DEFAULT_GO_LIVE_OFFSET).isoformat()


def _as_column_text(value: Any) -> str:
    if isinstance(value, list):
        return ", ".join(
            item if isinstance(item, str) else json.dumps(item, default=str)
            for item in value
            if item not in (None, "")
        )
    if isinstance(value, dict):
        return json.dumps(value, sort_keys=True, default=str)
    return str(value)


def fit_intake_columns(patch: dict[str, Any]) -> dict[str, Any]:
    """Coerce patch values to the type and width of their intake column.

    Text columns take lists joined with ", " and dicts as JSON; None stays
    None. List columns drop None (the column is NOT NULL) and wrap any
    non-list value. Other keys pass through unchanged.
    """
    fitted = dict(patch)
    for key, width in INTAKE_COLUMN_WIDTHS.items():
        value = fitted.get(key)
        if value is None:
            continue
        text = _as_column_text(value)
        fitted[key] = text if width is None else text[:width]
    for key in INTAKE_LIST_COLUMNS & fitted.keys():
        value = fitted[key]
        if value is None:
            del fitted[key]
        elif not isinstance(value, list):
            fitted[key] = [value]
    return fitted


def _truncate(text: str, limit: int, notice: str) -> str:
    if len(text) <= limit:
        return text
    return truncate_text(text, limit) + notice


# =============================================================================
# Stage
# =============================================================================


class IntakeAnalysisStage(PipelineStage[AnalyzeRequest]):
    """Analyze an onboarding document into an AnalysisArtifact."""

    stage_type: ClassVar[str] = "analyze"
    task: ClassVar[TaskType] = TaskType.INTAKE_ANALYSIS
    temperature: ClassVar[float] = 0.3
    max_output_tokens: ClassVar[int] = 3000
    default_instructions: ClassVar[str] = ANALYSIS_SYSTEM_PROMPT

    async def gather(self, request: AnalyzeRequest) -> StageContext:
        if request.intake_id is not None:
            intake = await require_intake(self.store, request.intake_id)

        document_id = await self.store.insert(
            Collection.UPLOADED_DOCUMENTS,
            {
                "file_name": request.file_name,
                "file_type": request.file_type,
                "file_size": request.file_size,
                "status": DOCUMENT_PROCESSING,
                "metadata": {
                    "document_chars": len(request.document_text),
                    "attachment_count": len(request.attachments),
                },
            },
        )
        document = await self.store.get(Collection.UPLOADED_DOCUMENTS, document_id)

        if request.intake_id is None:
            intake_id = await self.store.insert(
                Collection.INTAKE_CASES,
                {
                    "document_id": document_id,
                    "customer_contacts": [],
                    "vendor_contacts": [],
                    "transactions": [],
                    "locations": [],
                },
            )
            intake = await require_intake(self.store, intake_id)

        return StageContext(
            subject_id=intake["id"],
            intake=intake,
            dependencies={"document": document},
        )

    def describe_request(self, request: AnalyzeRequest) -> dict[str, Any]:
        return {
            "file_name": request.file_name,
            "file_type": request.file_type,
            "document_chars": len(request.document_text),
            "document_truncated": len(request.document_text) > MAX_DOCUMENT_CHARS,
            "attachments": [a.file_name for a in request.attachments],
        }

    def build_user_prompt(self, request: AnalyzeRequest, context: StageContext) -> str:
        attachments: list[tuple[AttachmentInput, str]] = [
            (
                attachment,
                _truncate(attachment.text, MAX_ATTACHMENT_CHARS, ATTACHMENT_TRUNCATION_NOTICE),
            )
            for attachment in request.attachments
        ]
        return build_analysis_prompt(
            document_text=_truncate(
                request.document_text, MAX_DOCUMENT_CHARS, TRUNCATION_NOTICE
            ),
            file_name=request.file_name,
            attachments=attachments,
            default_go_live_date=default_go_live_date(),
        )

    def post_process(
        self, data: Any, request: AnalyzeRequest, context: StageContext
    ) -> dict[str, Any]:
        if not isinstance(data, dict):
            raise OutputContractError("analysis must be a JSON object")

        analysis = dict(data)
        complexity = normalize_complexity(data.get("complexity_level"))
        analysis["readiness_score"] = clamp_readiness_score(data.get("readiness_score"))
        analysis["complexity_level"] = complexity
        analysis["estimated_timeline"] = normalize_timeline(
            data.get("estimated_timeline"), complexity
        )
        analysis["locations"] = normalize_locations(data.get("locations"))
        analysis["go_live_date"] = _as_column_text(
            data.get("go_live_date") or default_go_live_date()
        )[: INTAKE_COLUMN_WIDTHS["go_live_date"]]
        for key in _LIST_FIELDS:
            if not isinstance(analysis.get(key), list):
                analysis[key] = []
        return analysis

    async def persist(
        self,
        payload: dict[str, Any],
        request: AnalyzeRequest,
        context: StageContext,
        run_id: str,
    ) -> dict[str, Any]:
        document = context.dependencies["document"]

        intake_patch: dict[str, Any] = {
            key: payload[key]
            for key in EXTRACTED_INTAKE_FIELDS
            if payload.get(key) is not None
        }
        intake_patch["locations"] = payload["locations"]
        intake_patch["document_id"] = document["id"]
        await self.store.update(
            Collection.INTAKE_CASES, context.subject_id, fit_intake_columns(intake_patch)
        )

        analysis_id = await self.store.insert(
            Collection.ANALYSES,
            {
                "intake_id": context.subject_id,
                "ai_run_id": run_id,
                "readiness_score": payload["readiness_score"],
                "complexity_level": payload["complexity_level"],
                "identified_risks": payload["identified_risks"],
                "missing_information": payload["missing_information"],
                "recommendations": payload["recommendations"],
                "locations": payload["locations"],
                "estimated_timeline": payload["estimated_timeline"],
                "go_live_date": payload["go_live_date"],
            },
        )

        for attachment in request.attachments:
            await self.store.insert(
                Collection.INTAKE_ATTACHMENTS,
                {
                    "intake_id": context.subject_id,
                    "file_name": attachment.file_name,
                    "file_type": attachment.file_type,
                    "file_size": len(attachment.text),
                    "upload_category": attachment.category or "other",
                    "description": attachment.description,
                    "uploaded_by": "user",
                },
            )

        await self.store.update(
            Collection.UPLOADED_DOCUMENTS, document["id"], {"status": DOCUMENT_COMPLETED}
        )
        logger.info(
            "intake_analyzed",
            intake_id=context.subject_id,
            readiness_score=payload["readiness_score"],
            attachments=len(request.attachments),
        )
        return {
            "intake_id": context.subject_id,
            "analysis_id": analysis_id,
            "document_id": document["id"],
        }

    async def on_failure(
        self, request: AnalyzeRequest, context: StageContext, run_id: str
    ) -> None:
        document = context.dependencies.get("document")
        if document is not None:
            await self.store.update(
                Collection.UPLOADED_DOCUMENTS, document["id"], {"status": DOCUMENT_FAILED}
            )
