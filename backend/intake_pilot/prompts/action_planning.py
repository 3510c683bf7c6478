"""Plan Actions stage prompts."""

from typing import Any

from intake_pilot.core.llm_sanitization import sanitize_llm_input
from intake_pilot.prompts.formatting import text_or, to_prompt_json

ACTION_PLAN_SYSTEM_PROMPT = """You are an EDI onboarding project planner. Produce a prioritized, executable action plan.

Rules:
1. Generate 8-15 action items.
2. Each item is specific, realistic and linked to a risk, gap or requirement (why_exists).
3. Owner roles: Integration Engineer, EDI Ops, WMS SME, Partner, PM.
4. Priority: P1 (critical), P2 (high), P3 (medium).
5. Effort: S (1-2 days), M (3-5 days), L (1-2 weeks). Story points 1-8.
6. Due dates fall between today and the go-live date, spread evenly.
7. 2-4 acceptance criteria per item.

Categories: technical_setup, data_alignment, security_connectivity, testing_validation, governance_approval.

Return JSON:
{
  "actionItems": [
    {
      "title": "imperative title",
      "description": "what needs to be done and why",
      "priority": "P1|P2|P3",
      "assigned_to": "role",
      "category": "category_name",
      "effort_size": "S|M|L",
      "story_points": 1,
      "due_date": "YYYY-MM-DD",
      "dependencies": [],
      "acceptance_criteria": [""],
      "why_exists": "linked risk or gap"
    }
  ]
}

Respond with valid JSON only."""

_ACTION_PLAN_USER_TEMPLATE = """Generate action items for this EDI onboarding. Today is {today}; no due date may be earlier.

<intake_data>
Company: {company_name}
Go-Live Date: {go_live_date}
EDI Experience: {edi_experience}
Protocol: {protocol}
Data Format: {data_format}
Transactions: {transactions}
Locations: {location_count} location(s)
Unique Requirements: {unique_requirements}
</intake_data>

<readiness_analysis>
Score: {readiness_score}%
Complexity: {complexity_level}
Identified Risks: {risk_count}
Missing Information: {missing_information}
Timeline Estimate: {estimated_timeline}
</readiness_analysis>
{risk_block}{interview_block}
Generate a realistic, executable action plan."""


def _count_severity(items: list[dict[str, Any]], severity: str) -> int:
    return sum(1 for item in items if item.get("severity") == severity)


def build_action_plan_prompt(
    *,
    intake: dict[str, Any],
    analysis: dict[str, Any],
    risk_diagnostics: dict[str, Any] | None,
    interview_summary: str | None,
    today: str,
) -> str:
    """Build the Plan Actions user prompt.

    Args:
        intake: Intake case record.
        analysis: Latest analysis artifact.
        risk_diagnostics: Latest risk diagnostics, if any.
        interview_summary: Interview summary text, if any.
        today: Current date (ISO) used as the earliest due date.

    Returns:
        Formatted user prompt string.
    """
    risk_block = ""
    if risk_diagnostics:
        items = risk_diagnostics.get("items") or []
        risk_block = (
            "\n<risk_diagnostics>\n"
            f"Overall Risk Level: {text_or(risk_diagnostics.get('overall_risk_level'), 'Unknown')}\n"
            f"Critical Issues: {_count_severity(items, 'Critical')}\n"
            f"High Severity: {_count_severity(items, 'High')}\n"
            "</risk_diagnostics>\n"
        )

    interview_block = ""
    if interview_summary:
        interview_block = (
            "\n<interview_summary>\n"
            f"{sanitize_llm_input(interview_summary)}\n"
            "</interview_summary>\n"
        )

    return _ACTION_PLAN_USER_TEMPLATE.format(
        today=today,
        company_name=text_or(intake.get("company_name"), "Not specified"),
        go_live_date=text_or(intake.get("go_live_date"), "Not specified"),
        edi_experience=text_or(intake.get("edi_experience"), "Not specified"),
        protocol=text_or(intake.get("protocol"), "Not specified"),
        data_format=text_or(intake.get("data_format"), "Not specified"),
        transactions=to_prompt_json(intake.get("transactions") or []),
        location_count=len(intake.get("locations") or []) or 1,
        unique_requirements=text_or(intake.get("unique_requirements"), "None specified"),
        readiness_score=analysis.get("readiness_score", 0),
        complexity_level=text_or(analysis.get("complexity_level"), "unknown"),
        risk_count=len(analysis.get("identified_risks") or []),
        missing_information=to_prompt_json(analysis.get("missing_information") or []),
        estimated_timeline=text_or(analysis.get("estimated_timeline"), "unknown"),
        risk_block=risk_block,
        interview_block=interview_block,
    )
