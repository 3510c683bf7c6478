"""Build Preflight Pack stage prompts."""

from typing import Any

from intake_pilot.prompts.formatting import strip_internal, text_or, to_prompt_json

PREFLIGHT_SYSTEM_PROMPT = """You are an EDI onboarding readiness expert building a Pre-Flight Pack: a go-live checklist the onboarding team can work from immediately.

Sections:
1. connectivity: protocol-specific details (AS2 IDs, SFTP endpoints), IP whitelisting, port configuration, connection testing steps.
2. security: certificate exchange and expiry, encryption requirements, authentication setup.
3. test_plan: happy path scenarios, messy data edge cases, error handling validation, performance testing.
4. implementation_variance: non-standard requirements, custom segment usage, partner-specific deviations from standard EDI.
5. master_data: item ID mappings, UOM conversions, location codes and qualifiers, carrier codes, address field length limits.
6. go_live_gates: required sign-offs, testing completion, documentation deliverables, support readiness.

Return JSON:
{
  "pack_version": "1.0",
  "generated_for": "Company Name",
  "go_live_date": "YYYY-MM-DD",
  "sections": {
    "connectivity": {
      "title": "Connectivity Checklist",
      "items": [
        {
          "item": "Checklist item description",
          "status": "not_started|in_progress|completed|blocked",
          "owner": "Role",
          "priority": "P1|P2|P3",
          "details": "Additional context or requirements"
        }
      ]
    },
    "security": {"title": "...", "items": []},
    "test_plan": {"title": "...", "items": []},
    "implementation_variance": {"title": "...", "items": []},
    "master_data": {"title": "...", "items": []},
    "go_live_gates": {"title": "...", "items": []}
  },
  "critical_path_items": ["Item 1", "Item 2"],
  "estimated_completion_date": "YYYY-MM-DD"
}

Respond with valid JSON only."""

_PREFLIGHT_USER_TEMPLATE = """Build the Pre-Flight Pack for this EDI onboarding.

<intake_data>
{intake}
</intake_data>

<readiness_analysis>
{analysis}
</readiness_analysis>

<risk_diagnostics>
{diagnostics}
</risk_diagnostics>

Write 6-8 actionable items per section. Be specific to the protocol ({protocol}), the data format ({data_format}) and the partner requirements. Focus on what must be done before go-live on {go_live_date}."""


def build_preflight_prompt(
    *,
    intake: dict[str, Any],
    analysis: dict[str, Any],
    diagnostics: dict[str, Any] | None,
) -> str:
    """Build the Build Preflight Pack user prompt.

    Only the overall level and item count of the diagnostics are sent; the
    full risk items belong to the action plan.

    Args:
        intake: Intake case record.
        analysis: Latest analysis artifact.
        diagnostics: Latest risk diagnostics artifact, if any.

    Returns:
        Formatted user prompt string.
    """
    diagnostics_summary = "No diagnostics available"
    if diagnostics is not None:
        diagnostics_summary = to_prompt_json(
            {
                "overall_risk_level": diagnostics.get("overall_risk_level"),
                "items_count": len(diagnostics.get("items") or []),
            }
        )
    return _PREFLIGHT_USER_TEMPLATE.format(
        intake=to_prompt_json(strip_internal(intake)),
        analysis=to_prompt_json(strip_internal(analysis)),
        diagnostics=diagnostics_summary,
        protocol=text_or(intake.get("protocol"), "unspecified"),
        data_format=text_or(intake.get("data_format"), "unspecified"),
        go_live_date=text_or(intake.get("go_live_date"), "the target date"),
    )
