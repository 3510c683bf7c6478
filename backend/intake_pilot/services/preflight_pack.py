"""Build Preflight Pack stage - go-live readiness checklist for an intake.

The pack always carries the six PACK_SECTIONS, in that order. Sections the
model omitted come back empty with their default title; unknown sections
are dropped. Each checklist item is normalized after parsing:

    status    -> not_started | in_progress | completed | blocked
    priority  -> P1 | P2 | P3

Items without an ``item`` description are dropped.
"""

from typing import Any, ClassVar

import structlog

from intake_pilot.prompts.preflight_pack import (
    PREFLIGHT_SYSTEM_PROMPT,
    build_preflight_prompt,
)
from intake_pilot.providers.llm.base import TaskType
from intake_pilot.repositories.record_store import Collection
from intake_pilot.schemas.stage_requests import PreflightPackRequest
from intake_pilot.services.action_plan import normalize_priority
from intake_pilot.services.errors import OutputContractError
from intake_pilot.services.stage_pipeline import (
    PipelineStage,
    StageContext,
    require_intake,
    require_latest,
)

logger = structlog.get_logger()

PACK_SECTIONS: dict[str, str] = {
    "connectivity": "Connectivity Checklist",
    "security": "Security & Certificate Checklist",
    "test_plan": "Test Plan Outline",
    "implementation_variance": "Implementation Guide Variance Checklist",
    "master_data": "Master Data Alignment Checklist",
    "go_live_gates": "Go-Live Gating Criteria",
}
"""Section key -> default title."""

ITEM_STATUSES = ("not_started", "in_progress", "completed", "blocked")
DEFAULT_ITEM_STATUS = "not_started"
DEFAULT_PACK_VERSION = "1.0"
_VERSION_WIDTH = 20
_DATE_WIDTH = 32


def normalize_item_status(value: Any) -> str:
    """Map a checklist status onto ITEM_STATUSES (default not_started)."""
    if isinstance(value, str):
        status = value.strip().lower().replace(" ", "_").replace("-", "_")
        if status in ITEM_STATUSES:
            return status
    return DEFAULT_ITEM_STATUS


def normalize_checklist_item(item: Any) -> dict[str, Any] | None:
    """Normalize one checklist item, or None when it has no description."""
    if not isinstance(item, dict):
        return None
    description = item.get("item")
    if not isinstance(description, str) or not description.strip():
        return None
    return {
        **item,
        "item": description.strip(),
        "status": normalize_item_status(item.get("status")),
        "priority": normalize_priority(item.get("priority")),
        "owner": str(item["owner"]) if item.get("owner") else None,
        "details": str(item["details"]) if item.get("details") else None,
    }


def normalize_sections(raw: dict[str, Any]) -> dict[str, dict[str, Any]]:
    """Keep the known sections in order, filling in any that are missing."""
    sections: dict[str, dict[str, Any]] = {}
    for key, default_title in PACK_SECTIONS.items():
        section = raw.get(key)
        if not isinstance(section, dict):
            section = {}
        title = section.get("title")
        if not isinstance(title, str) or not title.strip():
            title = default_title
        items = section.get("items")
        if not isinstance(items, list):
            items = []
        sections[key] = {
            "title": title.strip(),
            "items": [
                normalized
                for normalized in map(normalize_checklist_item, items)
                if normalized is not None
            ],
        }
    return sections


class PreflightPackStage(PipelineStage[PreflightPackRequest]):
    """Build the go-live preflight pack for an analyzed intake."""

    stage_type: ClassVar[str] = "preflight"
    task: ClassVar[TaskType] = TaskType.PREFLIGHT_PACK
    temperature: ClassVar[float] = 0.6
    max_output_tokens: ClassVar[int] = 3000
    default_instructions: ClassVar[str] = PREFLIGHT_SYSTEM_PROMPT

    async def gather(self, request: PreflightPackRequest) -> StageContext:
        intake = await require_intake(self.store, request.intake_id)
        analysis = await require_latest(
            self.store, Collection.ANALYSES, request.intake_id, "Analysis"
        )
        diagnostics = await self.store.get_latest(
            Collection.RISK_DIAGNOSTICS, intake_id=request.intake_id
        )
        return StageContext(
            subject_id=request.intake_id,
            intake=intake,
            dependencies={"analysis": analysis, "diagnostics": diagnostics},
        )

    def describe_request(self, request: PreflightPackRequest) -> dict[str, Any]:
        return {"intake_id": request.intake_id}

    def build_user_prompt(
        self, request: PreflightPackRequest, context: StageContext
    ) -> str:
        return build_preflight_prompt(
            intake=context.intake,
            analysis=context.dependencies["analysis"],
            diagnostics=context.dependencies["diagnostics"],
        )

    def post_process(
        self, data: Any, request: PreflightPackRequest, context: StageContext
    ) -> dict[str, Any]:
        if not isinstance(data, dict):
            raise OutputContractError("preflight pack must be a JSON object")
        raw_sections = data.get("sections")
        if not isinstance(raw_sections, dict):
            raise OutputContractError("preflight pack 'sections' must be an object")

        missing = [key for key in PACK_SECTIONS if key not in raw_sections]
        if missing:
            logger.warning(
                "preflight_sections_missing",
                intake_id=context.subject_id,
                sections=missing,
            )

        critical_path = data.get("critical_path_items")
        if not isinstance(critical_path, list):
            critical_path = []
        completion = data.get("estimated_completion_date")
        version = data.get("pack_version") or DEFAULT_PACK_VERSION
        return {
            "pack_version": str(version)[:_VERSION_WIDTH],
            "sections": normalize_sections(raw_sections),
            "critical_path_items": [
                str(entry) for entry in critical_path if entry not in (None, "")
            ],
            "estimated_completion_date": (
                str(completion)[:_DATE_WIDTH] if completion else None
            ),
        }

    async def persist(
        self,
        payload: dict[str, Any],
        request: PreflightPackRequest,
        context: StageContext,
        run_id: str,
    ) -> dict[str, Any]:
        pack_id = await self.store.insert(
            Collection.PREFLIGHT_PACKS,
            {"intake_id": context.subject_id, "ai_run_id": run_id, **payload},
        )
        return {"pack_id": pack_id}
