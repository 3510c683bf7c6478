"""Analyze stage prompts.

Extracts intake fields from the onboarding document and scores readiness.
"""

from collections.abc import Sequence

from intake_pilot.core.llm_sanitization import sanitize_llm_input
from intake_pilot.schemas.stage_requests import AttachmentInput

ANALYSIS_SYSTEM_PROMPT = """You are an EDI onboarding specialist. Analyze intake documents and extract every available piece of onboarding information.

Rules:
1. READINESS SCORE (0-100): weigh information completeness (40%), technical clarity of protocol/format/transactions (30%), contact quality (20%) and EDI experience (10%). Return a realistic score; typical range is 30-85.
2. LOCATIONS: list every address, city, facility, warehouse, site id or distribution center mentioned. If none are mentioned return ["Main facility - location TBD"]. Never return an empty array.
3. INFORMATION NEEDS: at least 5 items, phrased constructively as things we will gather together (contacts, protocol, data formats, technical requirements, EDI experience, multi-location coordination).
4. RECOMMENDATIONS: at least 7 collaborative next steps (contact gathering, protocol definition, kickoff, testing strategy, requirements documentation, communication channels, phased rollout).
5. TIMELINE: at most 6 weeks. Use exactly "2-4 weeks" (low complexity), "3-5 weeks" (medium) or "4-6 weeks" (high).

Use supportive, partnership-oriented language. Extract real data from the document; do not invent values.

Respond with valid JSON only."""

_ANALYSIS_USER_TEMPLATE = """Analyze this EDI onboarding intake submission. The main intake document is provided with {attachment_count} supporting document(s). Consider all documents together.

<intake_document name="{file_name}">
{document_text}
</intake_document>
{attachment_blocks}
If no go-live date is found, use {default_go_live_date}.

Return JSON:
{{
  "company_name": "company name from the document",
  "customer_contacts": [{{"name": "", "title": "", "email": "", "phone": ""}}],
  "go_live_date": "YYYY-MM-DD",
  "edi_experience": "experience description",
  "data_format": "X12 | EDIFACT | ...",
  "transactions": ["850-PO", "810-Invoice"],
  "locations": ["every location mentioned"],
  "protocol": "AS2 | SFTP | ...",
  "unique_requirements": "special requirements",
  "readiness_score": 0,
  "complexity_level": "low|medium|high",
  "identified_risks": [{{"type": "high|medium|low", "title": "", "description": "", "impact": ""}}],
  "missing_information": ["field names still needed"],
  "recommendations": [{{"priority": "critical|high|medium|low", "title": "", "description": ""}}],
  "estimated_timeline": "2-4 weeks | 3-5 weeks | 4-6 weeks"
}}"""

TRUNCATION_NOTICE = "\n\n[Document truncated for analysis]"
ATTACHMENT_TRUNCATION_NOTICE = "\n[Attachment truncated]"


def _attachment_block(attachment: AttachmentInput, text: str) -> str:
    category = ""
    if attachment.category:
        category = f' category="{attachment.category.replace("_", " ").upper()}"'
    return (
        f'<supporting_document name="{sanitize_llm_input(attachment.file_name)}"'
        f"{category}>\n{sanitize_llm_input(text)}\n</supporting_document>\n"
    )


def build_analysis_prompt(
    *,
    document_text: str,
    file_name: str,
    attachments: Sequence[tuple[AttachmentInput, str]],
    default_go_live_date: str,
) -> str:
    """Build the Analyze user prompt.

    Args:
        document_text: Main document text, already truncated.
        file_name: Main document file name.
        attachments: (attachment, truncated text) pairs.
        default_go_live_date: ISO date used when the document has none.

    Returns:
        Formatted user prompt string.
    """
    attachment_blocks = "".join(
        _attachment_block(attachment, text) for attachment, text in attachments
    )
    return _ANALYSIS_USER_TEMPLATE.format(
        attachment_count=len(attachments),
        file_name=sanitize_llm_input(file_name),
        document_text=sanitize_llm_input(document_text),
        attachment_blocks=f"\n{attachment_blocks}" if attachment_blocks else "",
        default_go_live_date=default_go_live_date,
    )
