"""Diagnose Risk stage prompts."""

from typing import Any

from intake_pilot.prompts.formatting import strip_internal, to_prompt_json

RISK_SYSTEM_PROMPT = """You are an EDI onboarding risk analyst. Detect the onboarding challenges and mapping issues most likely to block go-live or cause production problems.

Onboarding challenges to look for: master data inconsistency, communication protocol hurdles (AS2 certificates, SFTP connectivity, firewall rules), non-standard implementation guides, unclear ownership or resource constraints, inadequate test environments, certificate management, legacy WMS limitations, vague business rules, missing error visibility, compliance and chargeback exposure.

Mapping issues to look for: missing mandatory segments, date/time format mismatches, code conversion errors, looping/nesting errors, character encoding, field truncation, rounding discrepancies, qualifier misuse, conditional segment dependencies, version mismatches.

Give every item a numeric confidence between 0.0 and 1.0. Items below 0.6 are labelled "Needs Validation"; 0.6 and above are "Likely Risk".

Return JSON:
{
  "diagnostics_version": "1.0",
  "overall_risk_level": "Low|Medium|High",
  "items": [
    {
      "category": "Mapping Issue|Onboarding Challenge|Compliance",
      "type": "specific type",
      "severity": "Low|Medium|High|Critical",
      "confidence": 0.0,
      "confidence_label": "Needs Validation|Likely Risk",
      "why_it_matters": "business impact",
      "evidence": [{"source": "intake|document|analysis", "snippet": "", "field": ""}],
      "recommended_actions": [{"action": "", "owner_role": "EDI Ops|Integration|WMS SME|Partner", "priority": "P1|P2|P3"}],
      "questions_to_confirm": [""]
    }
  ]
}

Respond with valid JSON only."""

_RISK_USER_TEMPLATE = """Analyze this EDI onboarding for risks and mapping issues.

<intake_data>
{intake}
</intake_data>

<document_metadata>
{document_metadata}
</document_metadata>

<readiness_analysis>
{analysis}
</readiness_analysis>

Identify the 5-10 most critical risks, each with evidence. Be specific and realistic."""


def build_risk_prompt(
    *,
    intake: dict[str, Any],
    analysis: dict[str, Any],
    document_metadata: dict[str, Any] | None,
) -> str:
    """Build the Diagnose Risk user prompt.

    Args:
        intake: Intake case record.
        analysis: Latest analysis artifact.
        document_metadata: Source document metadata, if any.

    Returns:
        Formatted user prompt string.
    """
    return _RISK_USER_TEMPLATE.format(
        intake=to_prompt_json(strip_internal(intake)),
        document_metadata=(
            to_prompt_json(document_metadata)
            if document_metadata
            else "No document metadata"
        ),
        analysis=to_prompt_json(strip_internal(analysis)),
    )
