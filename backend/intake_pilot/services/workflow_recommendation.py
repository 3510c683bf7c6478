"""Recommend Workflows stage - operational workflows for an intake.

Each workflow should point back at what triggered it through
``trigger_source`` ("risk:<title>", "action_item:<id>", "missing_field:<name>").
The link is advisory: unlinked workflows are kept, flagged with
``is_linked=False`` and counted in the log.
"""

from typing import Any, ClassVar

import structlog

from intake_pilot.prompts.workflow_recommendation import (
    WORKFLOW_SYSTEM_PROMPT,
    build_workflow_prompt,
)
from intake_pilot.providers.llm.base import TaskType
from intake_pilot.repositories.record_store import Collection
from intake_pilot.schemas.stage_requests import WorkflowRequest
from intake_pilot.services.action_plan import normalize_priority
from intake_pilot.services.errors import OutputContractError
from intake_pilot.services.stage_pipeline import (
    PipelineStage,
    StageContext,
    require_intake,
    require_latest,
)

logger = structlog.get_logger()

MAX_WORKFLOWS = 8
TRIGGER_PREFIXES = ("risk:", "action_item:", "missing_field:")
ENRICHMENT_COMPLETED = "completed"


def is_linked_trigger(trigger_source: Any) -> bool:
    """Whether a trigger names a risk, action item or missing field."""
    if not isinstance(trigger_source, str):
        return False
    trigger = trigger_source.strip()
    return any(
        trigger.startswith(prefix) and trigger[len(prefix):].strip()
        for prefix in TRIGGER_PREFIXES
    )


def _string_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [str(item) for item in value if item not in (None, "")]


def _hours(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    try:
        hours = float(value)
    except (TypeError, ValueError):
        return None
    return max(0.0, hours)


def normalize_workflow(workflow: dict[str, Any]) -> dict[str, Any]:
    """Bring one model-proposed workflow into shape."""
    ticket_required = bool(workflow.get("servicenow_ticket_required"))
    template = workflow.get("ticket_payload_template")
    return {
        "workflow_type": workflow.get("workflow_type") or "implementation_variance",
        "title": str(workflow.get("title") or "Untitled workflow"),
        "reason": str(workflow.get("reason") or ""),
        "trigger_source": workflow.get("trigger_source") or None,
        "is_linked": is_linked_trigger(workflow.get("trigger_source")),
        "priority": normalize_priority(workflow.get("priority")),
        "owner_role": workflow.get("owner_role") or None,
        "required_approvals": _string_list(workflow.get("required_approvals")),
        "steps": _string_list(workflow.get("steps")),
        "required_data": _string_list(workflow.get("required_data")),
        "servicenow_ticket_required": ticket_required,
        "ticket_payload_template": (
            template if ticket_required and isinstance(template, dict) else None
        ),
        "estimated_time_saved_hours": _hours(workflow.get("estimated_time_saved_hours")),
    }


class WorkflowRecommendationStage(PipelineStage[WorkflowRequest]):
    """Recommend operational workflows for an analyzed intake."""

    stage_type: ClassVar[str] = "workflow_recommendations"
    task: ClassVar[TaskType] = TaskType.WORKFLOW_RECOMMENDATION
    temperature: ClassVar[float] = 0.6
    max_output_tokens: ClassVar[int] = 3000
    default_instructions: ClassVar[str] = WORKFLOW_SYSTEM_PROMPT

    async def gather(self, request: WorkflowRequest) -> StageContext:
        intake = await require_intake(self.store, request.intake_id)
        analysis = await require_latest(
            self.store, Collection.ANALYSES, request.intake_id, "Analysis"
        )
        return StageContext(
            subject_id=request.intake_id,
            intake=intake,
            dependencies={
                "analysis": analysis,
                "risk_diagnostics": await self.store.get_latest(
                    Collection.RISK_DIAGNOSTICS, intake_id=request.intake_id
                ),
                "action_items": await self.store.get_latest(
                    Collection.ACTION_ITEM_SETS, intake_id=request.intake_id
                ),
                "enrichment": await self.store.get_latest(
                    Collection.CUSTOMER_ENRICHMENT,
                    intake_id=request.intake_id,
                    status=ENRICHMENT_COMPLETED,
                ),
            },
        )

    def describe_request(self, request: WorkflowRequest) -> dict[str, Any]:
        return {"intake_id": request.intake_id}

    def build_user_prompt(self, request: WorkflowRequest, context: StageContext) -> str:
        deps = context.dependencies
        return build_workflow_prompt(
            intake=context.intake,
            analysis=deps["analysis"],
            risk_diagnostics=deps["risk_diagnostics"],
            action_items=deps["action_items"],
            enrichment=deps["enrichment"],
        )

    def post_process(
        self, data: Any, request: WorkflowRequest, context: StageContext
    ) -> list[dict[str, Any]]:
        raw = data.get("workflows") if isinstance(data, dict) else data
        if not isinstance(raw, list):
            raise OutputContractError("recommendations must contain a 'workflows' list")

        workflows = [normalize_workflow(w) for w in raw if isinstance(w, dict)]
        if len(workflows) > MAX_WORKFLOWS:
            logger.warning(
                "workflows_truncated",
                intake_id=context.subject_id,
                proposed=len(workflows),
                kept=MAX_WORKFLOWS,
            )
            workflows = workflows[:MAX_WORKFLOWS]

        unlinked = sum(1 for w in workflows if not w["is_linked"])
        if unlinked:
            logger.info(
                "workflows_unlinked",
                intake_id=context.subject_id,
                unlinked=unlinked,
                total=len(workflows),
            )
        return workflows

    async def persist(
        self,
        payload: list[dict[str, Any]],
        request: WorkflowRequest,
        context: StageContext,
        run_id: str,
    ) -> dict[str, Any]:
        recommendation_id = await self.store.insert(
            Collection.WORKFLOW_RECOMMENDATIONS,
            {
                "intake_id": context.subject_id,
                "ai_run_id": run_id,
                "workflows": payload,
                "model": self.caller.model_for(self.task),
            },
        )
        return {"recommendation_id": recommendation_id}
