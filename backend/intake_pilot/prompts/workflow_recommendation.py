"""Recommend Workflows stage prompts."""

from typing import Any

from intake_pilot.prompts.formatting import text_or, to_prompt_json

WORKFLOW_SYSTEM_PROMPT = """You are an EDI onboarding automation expert. Recommend operational workflows that address the identified risks, gaps and action items.

Workflow types:
- network_whitelist: AS2/SFTP/API endpoints need firewall rules (Network Operations, ServiceNow ticket)
- certificate_exchange: AS2 certificate exchange and expiration tracking (Security / EDI Ops)
- wms_config: WMS configuration or master data alignment (WMS SME)
- endpoint_validation: protocol or endpoint details incomplete (Integration Engineer)
- master_data: UOM, item id or carrier code mapping (Data Steward + WMS SME)
- test_plan: medium/high complexity or multiple locations (QA Lead + Integration Engineer)
- implementation_variance: unique requirements or special handling (PM + Integration Engineer)

Rules:
1. 3-8 workflows.
2. Each workflow references its trigger as "risk:<title>", "action_item:<id or title>" or "missing_field:<field>".
3. Require a ServiceNow ticket only when an external operations team must act; otherwise ticket_payload_template is null.
4. 3-5 concrete steps per workflow, with required data and approvals.

Return JSON:
{
  "workflows": [
    {
      "workflow_type": "network_whitelist|certificate_exchange|wms_config|endpoint_validation|master_data|test_plan|implementation_variance",
      "title": "",
      "reason": "",
      "trigger_source": "risk:...|action_item:...|missing_field:...",
      "priority": "P1|P2|P3",
      "owner_role": "",
      "required_approvals": [""],
      "steps": [""],
      "required_data": [""],
      "servicenow_ticket_required": false,
      "ticket_payload_template": {"category": "", "short_description": "", "description": "", "priority": "P1|P2|P3", "assignment_group": ""},
      "estimated_time_saved_hours": 4
    }
  ]
}

Respond with valid JSON only."""

_WORKFLOW_USER_TEMPLATE = """Generate workflow recommendations for this EDI onboarding.

<intake_data>
Company: {company_name}
Go-Live Date: {go_live_date}
Protocol: {protocol}
Data Format: {data_format}
Transactions: {transactions}
Locations: {location_count} location(s)
EDI Experience: {edi_experience}
</intake_data>

<readiness_analysis>
Readiness Score: {readiness_score}%
Complexity: {complexity_level}
Timeline: {estimated_timeline}
Identified Risks: {identified_risks}
Missing Information: {missing_information}
</readiness_analysis>
{risk_block}{action_block}{enrichment_block}
Recommend high-value workflows that save time and reduce risk."""

_MAX_PROMPT_RISKS = 5
_MAX_PROMPT_ACTIONS = 5


def build_workflow_prompt(
    *,
    intake: dict[str, Any],
    analysis: dict[str, Any],
    risk_diagnostics: dict[str, Any] | None,
    action_items: dict[str, Any] | None,
    enrichment: dict[str, Any] | None,
) -> str:
    """Build the Recommend Workflows user prompt.

    Args:
        intake: Intake case record.
        analysis: Latest analysis artifact.
        risk_diagnostics: Latest risk diagnostics, if any.
        action_items: Latest action item set, if any.
        enrichment: Latest completed customer enrichment, if any.

    Returns:
        Formatted user prompt string.
    """
    risk_block = ""
    if risk_diagnostics:
        risk_block = (
            "\n<risk_diagnostics>\n"
            f"Overall Risk Level: {text_or(risk_diagnostics.get('overall_risk_level'), 'Unknown')}\n"
            "Top Issues: "
            f"{to_prompt_json((risk_diagnostics.get('items') or [])[:_MAX_PROMPT_RISKS])}\n"
            "</risk_diagnostics>\n"
        )

    action_block = ""
    items = (action_items or {}).get("items") or []
    if items:
        high_priority = sum(1 for item in items if item.get("priority") == "P1")
        lines = "\n".join(
            f"- {text_or(item.get('title'), 'Untitled')} ({item.get('priority', 'P2')})"
            for item in items[:_MAX_PROMPT_ACTIONS]
        )
        action_block = (
            "\n<action_items>\n"
            f"Total: {len(items)}\nHigh Priority: {high_priority}\n{lines}\n"
            "</action_items>\n"
        )

    enrichment_block = ""
    if enrichment and enrichment.get("output"):
        output = enrichment["output"]
        maturity = output.get("edi_maturity") or {}
        warehouse = output.get("wra_attributes") or {}
        enrichment_block = (
            "\n<customer_enrichment>\n"
            f"EDI Maturity: {to_prompt_json(maturity)}\n"
            f"Known Pain Points: {to_prompt_json(maturity.get('known_pain_points') or [])}\n"
            f"Special Handling: {to_prompt_json(warehouse.get('special_handling') or [])}\n"
            "</customer_enrichment>\n"
        )

    return _WORKFLOW_USER_TEMPLATE.format(
        company_name=text_or(intake.get("company_name"), "Not specified"),
        go_live_date=text_or(intake.get("go_live_date"), "Not specified"),
        protocol=text_or(intake.get("protocol"), "Not specified"),
        data_format=text_or(intake.get("data_format"), "Not specified"),
        transactions=to_prompt_json(intake.get("transactions") or []),
        location_count=len(intake.get("locations") or []) or 1,
        edi_experience=text_or(intake.get("edi_experience"), "Not specified"),
        readiness_score=analysis.get("readiness_score", 0),
        complexity_level=text_or(analysis.get("complexity_level"), "unknown"),
        estimated_timeline=text_or(analysis.get("estimated_timeline"), "unknown"),
        identified_risks=to_prompt_json(analysis.get("identified_risks") or []),
        missing_information=to_prompt_json(analysis.get("missing_information") or []),
        risk_block=risk_block,
        action_block=action_block,
        enrichment_block=enrichment_block,
    )
