"""Interview stage prompts."""

from collections.abc import Sequence
from typing import Any

from intake_pilot.core.llm_sanitization import sanitize_llm_input
from intake_pilot.prompts.formatting import strip_internal, to_prompt_json

INTERVIEW_SYSTEM_PROMPT = """You are an EDI onboarding specialist running an interactive interview to fill gaps in the intake data.

Objectives: identify missing critical information, clarify ambiguous requirements, validate assumptions, confirm technical details.

Constraints:
- Never invent or assume values; only record what the user states.
- Ask one focused question at a time.
- Focus on protocol specifics (AS2 ids, qualifiers, endpoints, certificates), WMS constraints, UOM handling, master data formats and test environment readiness.
- updated_fields uses intake field names (company_name, customer_contacts, go_live_date, edi_experience, data_format, transactions, locations, protocol, unique_requirements) where they apply.
- new_missing_fields lists every field still unresolved after this turn. Use reopened_fields only when the user contradicts something previously settled.

Return JSON:
{
  "assistant_question": "the next question",
  "reason_for_question": "why it matters",
  "expected_answer_type": "text|choice|date|list",
  "field_to_update": "field name or null",
  "suggested_choices": ["option"] or null,
  "updated_fields": {},
  "new_missing_fields": [],
  "reopened_fields": [],
  "validated_assumptions": []
}

Respond with valid JSON only."""

_INTERVIEW_USER_TEMPLATE = """<intake_data>
{intake}
</intake_data>

<readiness_analysis>
Readiness Score: {readiness_score}%
Missing Information: {missing_information}
Identified Risks: {identified_risks}
</readiness_analysis>

<session_state>
{session_state}
</session_state>
{transcript_block}
<user_message>
{user_message}
</user_message>

If the user is answering your previous question, extract the information into updated_fields. Then ask the next most important clarifying question."""


def build_interview_prompt(
    *,
    intake: dict[str, Any],
    analysis: dict[str, Any],
    session: dict[str, Any] | None,
    transcript: Sequence[dict[str, Any]],
    user_message: str,
) -> str:
    """Build the Interview user prompt.

    Args:
        intake: Intake case record.
        analysis: Latest analysis artifact.
        session: Existing session state, or None for a new session.
        transcript: Prior transcript (stored or caller-seeded).
        user_message: The user's new utterance.

    Returns:
        Formatted user prompt string.
    """
    if session:
        session_state = (
            f"Updated Fields: {to_prompt_json(session.get('updated_fields') or {})}\n"
            f"Remaining Missing Fields: {to_prompt_json(session.get('missing_fields_after') or [])}"
        )
    else:
        session_state = "New session"

    transcript_block = ""
    if transcript:
        lines = "\n".join(
            f"{entry.get('role')}: {sanitize_llm_input(str(entry.get('content', '')))}"
            for entry in transcript
        )
        transcript_block = f"\n<previous_conversation>\n{lines}\n</previous_conversation>\n"

    return _INTERVIEW_USER_TEMPLATE.format(
        intake=to_prompt_json(strip_internal(intake)),
        readiness_score=analysis.get("readiness_score", "Unknown"),
        missing_information=to_prompt_json(analysis.get("missing_information") or []),
        identified_risks=to_prompt_json(analysis.get("identified_risks") or []),
        session_state=session_state,
        transcript_block=transcript_block,
        user_message=sanitize_llm_input(user_message),
    )
