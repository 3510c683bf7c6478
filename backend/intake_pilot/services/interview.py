"""Interview stage - one conversational turn that fills intake gaps.

A turn reads the stored session (or seeds a new one from the caller's
history), asks the model for the next question and any field values the
user supplied, then writes:

- the patched fields onto the intake case (PATCHABLE_INTAKE_FIELDS only)
- the session, inserted on the first turn and updated afterwards

Keys outside PATCHABLE_INTAKE_FIELDS stay in the session's
``updated_fields`` and never reach the intake case.
"""

from typing import Any, ClassVar

import structlog

from intake_pilot.prompts.interview import INTERVIEW_SYSTEM_PROMPT, build_interview_prompt
from intake_pilot.providers.llm.base import TaskType
from intake_pilot.repositories.record_store import Collection, utcnow
from intake_pilot.schemas.stage_requests import InterviewRequest
from intake_pilot.services.errors import OutputContractError
from intake_pilot.services.intake_analysis import fit_intake_columns
from intake_pilot.services.interview_session import apply_turn, start_session
from intake_pilot.services.stage_pipeline import (
    PipelineStage,
    StageContext,
    require_intake,
    require_latest,
)

logger = structlog.get_logger()

PATCHABLE_INTAKE_FIELDS = frozenset(
    {
        "company_name",
        "customer_contacts",
        "vendor_contacts",
        "go_live_date",
        "edi_experience",
        "data_format",
        "transactions",
        "locations",
        "protocol",
        "unique_requirements",
    }
)

_SESSION_STATE_FIELDS = (
    "messages",
    "updated_fields",
    "missing_fields_after",
    "resolved_fields",
    "validated_assumptions",
    "status",
)


def _optional_list(value: Any) -> list[Any] | None:
    return value if isinstance(value, list) else None


class InterviewStage(PipelineStage[InterviewRequest]):
    """Run one interview turn for an analyzed intake."""

    stage_type: ClassVar[str] = "interview"
    task: ClassVar[TaskType] = TaskType.INTERVIEW
    temperature: ClassVar[float] = 0.7
    max_output_tokens: ClassVar[int] = 1500
    default_instructions: ClassVar[str] = INTERVIEW_SYSTEM_PROMPT

    async def gather(self, request: InterviewRequest) -> StageContext:
        intake = await require_intake(self.store, request.intake_id)
        analysis = await require_latest(
            self.store, Collection.ANALYSES, request.intake_id, "Analysis"
        )
        session = await self.store.get_latest(
            Collection.INTERVIEW_SESSIONS,
            intake_id=request.intake_id,
            session_id=request.session_id,
        )
        return StageContext(
            subject_id=request.intake_id,
            intake=intake,
            dependencies={"analysis": analysis, "session": session},
        )

    def describe_request(self, request: InterviewRequest) -> dict[str, Any]:
        return {
            "intake_id": request.intake_id,
            "session_id": request.session_id,
            "seeded_history": len(request.conversation_history),
        }

    def _transcript(
        self, request: InterviewRequest, context: StageContext
    ) -> list[dict[str, Any]]:
        session = context.dependencies["session"]
        if session is not None:
            return list(session.get("messages") or [])
        return [entry.to_record() for entry in request.conversation_history]

    def build_user_prompt(self, request: InterviewRequest, context: StageContext) -> str:
        return build_interview_prompt(
            intake=context.intake,
            analysis=context.dependencies["analysis"],
            session=context.dependencies["session"],
            transcript=self._transcript(request, context),
            user_message=request.user_message,
        )

    def post_process(
        self, data: Any, request: InterviewRequest, context: StageContext
    ) -> dict[str, Any]:
        if not isinstance(data, dict):
            raise OutputContractError("interview turn must be a JSON object")
        question = data.get("assistant_question")
        if not isinstance(question, str) or not question.strip():
            raise OutputContractError("interview turn lacks 'assistant_question'")

        updated_fields = data.get("updated_fields")
        return {
            "assistant_question": question.strip(),
            "reason_for_question": data.get("reason_for_question"),
            "expected_answer_type": data.get("expected_answer_type") or "text",
            "field_to_update": data.get("field_to_update"),
            "suggested_choices": _optional_list(data.get("suggested_choices")),
            "updated_fields": updated_fields if isinstance(updated_fields, dict) else {},
            "new_missing_fields": _optional_list(data.get("new_missing_fields")),
            "reopened_fields": _optional_list(data.get("reopened_fields")) or [],
            "validated_assumptions": _optional_list(data.get("validated_assumptions")) or [],
        }

    async def persist(
        self,
        payload: dict[str, Any],
        request: InterviewRequest,
        context: StageContext,
        run_id: str,
    ) -> dict[str, Any]:
        session = context.dependencies["session"]
        if session is None:
            analysis = context.dependencies["analysis"]
            current = start_session(
                intake_id=request.intake_id,
                session_id=request.session_id,
                missing_fields=analysis.get("missing_information") or [],
                seed_history=self._transcript(request, context),
            )
        else:
            current = session

        state = apply_turn(
            current,
            user_message=request.user_message,
            turn=payload,
            timestamp=utcnow().isoformat(),
        )

        intake_patch = fit_intake_columns(
            {
                key: value
                for key, value in payload["updated_fields"].items()
                if key in PATCHABLE_INTAKE_FIELDS
            }
        )
        if intake_patch:
            await self.store.update(
                Collection.INTAKE_CASES, context.subject_id, intake_patch
            )

        if session is None:
            session_record_id = await self.store.insert(
                Collection.INTERVIEW_SESSIONS, {**state, "ai_run_id": run_id}
            )
        else:
            session_record_id = session["id"]
            await self.store.update(
                Collection.INTERVIEW_SESSIONS,
                session_record_id,
                {
                    **{key: state[key] for key in _SESSION_STATE_FIELDS},
                    "ai_run_id": run_id,
                },
            )

        logger.info(
            "interview_turn_recorded",
            intake_id=context.subject_id,
            session_id=request.session_id,
            patched_fields=sorted(intake_patch),
            unresolved=len(state["missing_fields_after"]),
        )
        return {
            "session_record_id": session_record_id,
            "messages": state["messages"],
            "patched_fields": sorted(intake_patch),
        }
