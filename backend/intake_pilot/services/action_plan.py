"""Plan Actions stage - prioritized action items for an intake.

Bounds the prompt asks for are enforced after parsing:
- at most MAX_ACTION_ITEMS items (extras dropped)
- priority P1 | P2 | P3, effort S | M | L, story points 1..8
- due dates no earlier than today; unparseable dates become None

Fewer than MIN_ACTION_ITEMS items is logged, not rejected.
"""

from datetime import date
from typing import Any, ClassVar

import structlog

from intake_pilot.prompts.action_planning import (
    ACTION_PLAN_SYSTEM_PROMPT,
    build_action_plan_prompt,
)
from intake_pilot.providers.llm.base import TaskType
from intake_pilot.repositories.record_store import Collection, utcnow
from intake_pilot.schemas.stage_requests import ActionPlanRequest
from intake_pilot.services.errors import OutputContractError
from intake_pilot.services.interview_session import summarize_session
from intake_pilot.services.stage_pipeline import (
    PipelineStage,
    StageContext,
    require_intake,
    require_latest,
)

logger = structlog.get_logger()

MIN_ACTION_ITEMS = 8
MAX_ACTION_ITEMS = 15

PRIORITIES = ("P1", "P2", "P3")
DEFAULT_PRIORITY = "P2"
EFFORT_SIZES = ("S", "M", "L")
DEFAULT_EFFORT = "M"
MIN_STORY_POINTS = 1
MAX_STORY_POINTS = 8
DEFAULT_STORY_POINTS = 3


def normalize_priority(value: Any) -> str:
    """Map a priority onto P1 | P2 | P3 (default P2)."""
    if isinstance(value, str) and value.strip().upper() in PRIORITIES:
        return value.strip().upper()
    return DEFAULT_PRIORITY


def normalize_effort(value: Any) -> str:
    if isinstance(value, str) and value.strip().upper() in EFFORT_SIZES:
        return value.strip().upper()
    return DEFAULT_EFFORT


def clamp_story_points(value: Any) -> int:
    if isinstance(value, bool):
        return DEFAULT_STORY_POINTS
    try:
        points = int(value)
    except (TypeError, ValueError, OverflowError):
        return DEFAULT_STORY_POINTS
    return min(MAX_STORY_POINTS, max(MIN_STORY_POINTS, points))


def normalize_due_date(value: Any, today: date) -> str | None:
    """ISO due date no earlier than ``today``; None if unparseable."""
    if not isinstance(value, str):
        return None
    try:
        due = date.fromisoformat(value.strip()[:10])
    except ValueError:
        return None
    return max(due, today).isoformat()


def _string_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [str(item) for item in value if item not in (None, "")]


def normalize_action_item(item: dict[str, Any], today: date) -> dict[str, Any]:
    """Bring one model-proposed action item into range."""
    return {
        "title": str(item.get("title") or "Untitled action"),
        "description": str(item.get("description") or ""),
        "priority": normalize_priority(item.get("priority")),
        "assigned_to": item.get("assigned_to") or None,
        "category": item.get("category") or None,
        "effort_size": normalize_effort(item.get("effort_size")),
        "story_points": clamp_story_points(item.get("story_points")),
        "due_date": normalize_due_date(item.get("due_date"), today),
        "dependencies": _string_list(item.get("dependencies")),
        "acceptance_criteria": _string_list(item.get("acceptance_criteria")),
        "why_exists": item.get("why_exists") or None,
        "status": "pending",
    }


class ActionPlanStage(PipelineStage[ActionPlanRequest]):
    """Generate the action plan for an analyzed intake."""

    stage_type: ClassVar[str] = "action_items"
    task: ClassVar[TaskType] = TaskType.ACTION_PLANNING
    temperature: ClassVar[float] = 0.7
    max_output_tokens: ClassVar[int] = 2500
    default_instructions: ClassVar[str] = ACTION_PLAN_SYSTEM_PROMPT

    async def gather(self, request: ActionPlanRequest) -> StageContext:
        intake = await require_intake(self.store, request.intake_id)
        analysis = await require_latest(
            self.store, Collection.ANALYSES, request.intake_id, "Analysis"
        )
        risk = await self.store.get_latest(
            Collection.RISK_DIAGNOSTICS, intake_id=request.intake_id
        )
        session = None
        if request.interview_summary is None:
            session = await self.store.get_latest(
                Collection.INTERVIEW_SESSIONS, intake_id=request.intake_id
            )
        return StageContext(
            subject_id=request.intake_id,
            intake=intake,
            dependencies={
                "analysis": analysis,
                "risk_diagnostics": risk,
                "interview_session": session,
            },
        )

    def describe_request(self, request: ActionPlanRequest) -> dict[str, Any]:
        return {
            "intake_id": request.intake_id,
            "interview_summary_supplied": request.interview_summary is not None,
        }

    def _interview_summary(
        self, request: ActionPlanRequest, context: StageContext
    ) -> str | None:
        if request.interview_summary is not None:
            return request.interview_summary or None
        return summarize_session(context.dependencies["interview_session"])

    def build_user_prompt(self, request: ActionPlanRequest, context: StageContext) -> str:
        return build_action_plan_prompt(
            intake=context.intake,
            analysis=context.dependencies["analysis"],
            risk_diagnostics=context.dependencies["risk_diagnostics"],
            interview_summary=self._interview_summary(request, context),
            today=utcnow().date().isoformat(),
        )

    def post_process(
        self, data: Any, request: ActionPlanRequest, context: StageContext
    ) -> dict[str, Any]:
        if isinstance(data, list):
            raw_items = data
        elif isinstance(data, dict):
            raw_items = data.get("actionItems", data.get("action_items"))
        else:
            raw_items = None
        if not isinstance(raw_items, list):
            raise OutputContractError("action plan must contain an 'actionItems' list")

        items = [item for item in raw_items if isinstance(item, dict)]
        if len(items) > MAX_ACTION_ITEMS:
            logger.warning(
                "action_items_truncated",
                intake_id=context.subject_id,
                proposed=len(items),
                kept=MAX_ACTION_ITEMS,
            )
            items = items[:MAX_ACTION_ITEMS]
        elif len(items) < MIN_ACTION_ITEMS:
            logger.warning(
                "action_items_below_minimum",
                intake_id=context.subject_id,
                proposed=len(items),
                minimum=MIN_ACTION_ITEMS,
            )

        today = utcnow().date()
        return {
            "items": [normalize_action_item(item, today) for item in items],
            "interview_summary": self._interview_summary(request, context),
        }

    async def persist(
        self,
        payload: dict[str, Any],
        request: ActionPlanRequest,
        context: StageContext,
        run_id: str,
    ) -> dict[str, Any]:
        action_set_id = await self.store.insert(
            Collection.ACTION_ITEM_SETS,
            {
                "intake_id": context.subject_id,
                "ai_run_id": run_id,
                "items": payload["items"],
                "interview_summary": payload["interview_summary"],
            },
        )
        return {"action_set_id": action_set_id}
