"""Customer enrichment - account context from CRM-style providers.

Enrichment runs outside the model pipeline: no model call, no run record.
It stores the provider output and a set of *suggested* intake updates
(only for intake fields that are still empty). Applying them is left to a
reviewer.

Recommend Workflows reads the latest ``completed`` enrichment.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

from intake_pilot.core.errors import NotFoundError, ValidationError
from intake_pilot.repositories.record_store import Collection, RecordStore

logger = logging.getLogger(__name__)

DEFAULT_PROVIDER_TYPE = "salesforce_mock"
ENRICHMENT_RUNNING = "running"
ENRICHMENT_COMPLETED = "completed"
ENRICHMENT_FAILED = "failed"

SUGGESTION_CONFIDENCE = 85


class EnrichmentProvider(ABC):
    """Source of account context for an intake case."""

    @abstractmethod
    async def enrich(self, intake: dict[str, Any]) -> dict[str, Any]:
        """Return the account profile for ``intake``."""
        ...


class MockEnrichmentProvider(EnrichmentProvider):
    """Deterministic account profile derived from the intake case.

    Stands in for the CRM and warehouse-requirements integrations in demos
    and tests.
    """

    async def enrich(self, intake: dict[str, Any]) -> dict[str, Any]:
        company = intake.get("company_name") or "Unknown Company"
        contacts = intake.get("customer_contacts") or []
        first = contacts[0] if contacts and isinstance(contacts[0], dict) else {}

        return {
            "account_summary": {
                "account_name": company,
                "parent_account": f"{company} Corporation",
                "industry": "Food & Beverage Distribution",
                "region": "North America",
                "account_type": "Strategic Partner",
            },
            "edi_maturity": {
                "level": "Intermediate",
                "notes": (
                    "Currently using EDI with 3 other trading partners. "
                    "Familiar with X12 850/810 transactions."
                ),
                "existing_integrations": [
                    {"partner": "Sysco", "protocol": "AS2", "transactions": ["850", "810", "856"]},
                    {"partner": "US Foods", "protocol": "SFTP", "transactions": ["850", "810"]},
                    {
                        "partner": "Gordon Food Service",
                        "protocol": "AS2",
                        "transactions": ["850", "810", "856", "997"],
                    },
                ],
                "known_pain_points": [
                    "Manual intervention required for UOM mismatches",
                    "Frequent item master data sync issues",
                    "Certificate renewal process is error-prone",
                ],
            },
            "contact_hierarchy": {
                "primary_contact": {
                    "name": first.get("name") or "John Mitchell",
                    "title": "IT Director",
                    "email": first.get("email") or "john.mitchell@example.com",
                    "phone": first.get("phone") or "+1 (555) 123-4567",
                },
                "escalation_path": [
                    {"name": "Sarah Chen", "title": "VP of Operations", "email": "sarah.chen@example.com"},
                    {"name": "Robert Williams", "title": "CTO", "email": "robert.williams@example.com"},
                ],
                "technical_sme": {
                    "name": "David Kumar",
                    "title": "EDI Specialist",
                    "email": "david.kumar@example.com",
                    "phone": "+1 (555) 123-4568",
                },
            },
            "wra_attributes": {
                "warehouse_count": len(intake.get("locations") or []) or 2,
                "primary_wms": "Manhattan WMS",
                "integration_complexity": "Medium",
                "special_handling": ["Temperature-controlled storage", "Lot tracking required"],
                "business_hours": "24/7 operations",
                "peak_season": "Q4 (October - December)",
            },
            "contractual_details": {
                "go_live_target": intake.get("go_live_date"),
                "priority_level": "High",
                "sla_requirements": "99.5% uptime",
                "success_criteria": [
                    "Zero data loss during cutover",
                    "< 2% transaction error rate",
                    "All locations live within timeline",
                ],
            },
            "recommended_actions": [
                "Schedule technical deep-dive with the EDI specialist",
                "Request item master data file for validation",
                "Align on UOM mapping strategy early (known pain point)",
                "Plan certificate exchange 2 weeks before go-live",
            ],
        }


ENRICHMENT_PROVIDERS: dict[str, type[EnrichmentProvider]] = {
    "salesforce_mock": MockEnrichmentProvider,
    "wra_mock": MockEnrichmentProvider,
}


@dataclass
class EnrichmentResult:
    """Outcome of one enrichment."""

    enrichment_id: str
    data: dict[str, Any]
    suggested_updates: dict[str, Any]


def suggest_intake_updates(
    intake: dict[str, Any], enrichment: dict[str, Any]
) -> dict[str, Any]:
    """Intake updates the enrichment supports, for empty intake fields only."""
    updates: dict[str, Any] = {}
    hierarchy = enrichment.get("contact_hierarchy") or {}
    maturity = enrichment.get("edi_maturity") or {}
    warehouse = enrichment.get("wra_attributes") or {}
    contract = enrichment.get("contractual_details") or {}

    if not intake.get("customer_contacts") and hierarchy:
        updates["customer_contacts"] = [
            contact
            for contact in (hierarchy.get("primary_contact"), hierarchy.get("technical_sme"))
            if contact
        ]

    integrations = maturity.get("existing_integrations") or []
    if integrations and not intake.get("edi_experience"):
        updates["edi_experience"] = (
            f"{maturity.get('level', 'Unknown')} - Active EDI with "
            f"{len(integrations)} partners. Known experience: {maturity.get('notes', '')}"
        )

    if not intake.get("unique_requirements"):
        handling = warehouse.get("special_handling") or []
        criteria = contract.get("success_criteria") or []
        if handling or criteria:
            updates["unique_requirements"] = (
                ", ".join(handling) + ". " + "; ".join(criteria)
            ).strip(". ")

    return {
        "has_updates": bool(updates),
        "fields_to_update": updates,
        "review_required": True,
        "confidence_score": SUGGESTION_CONFIDENCE,
    }


async def run_customer_enrichment(
    store: RecordStore,
    intake_id: str,
    provider_type: str = DEFAULT_PROVIDER_TYPE,
) -> EnrichmentResult:
    """Enrich an intake case and record the result.

    Args:
        store: Record store.
        intake_id: Intake case to enrich.
        provider_type: Key into ENRICHMENT_PROVIDERS.

    Returns:
        EnrichmentResult with the provider output and suggested updates.

    Raises:
        ValidationError: Unknown provider type.
        NotFoundError: Intake case does not exist.
    """
    provider_cls = ENRICHMENT_PROVIDERS.get(provider_type)
    if provider_cls is None:
        raise ValidationError(
            f"Unknown enrichment provider: {provider_type}",
            details=[{"field": "providerType", "allowed": sorted(ENRICHMENT_PROVIDERS)}],
        )

    intake = await store.get(Collection.INTAKE_CASES, intake_id)
    if intake is None:
        raise NotFoundError("Intake", intake_id)

    enrichment_id = await store.insert(
        Collection.CUSTOMER_ENRICHMENT,
        {
            "intake_id": intake_id,
            "provider_type": provider_type,
            "status": ENRICHMENT_RUNNING,
            "input_context": {
                "company_name": intake.get("company_name"),
                "protocol": intake.get("protocol"),
                "data_format": intake.get("data_format"),
                "locations": intake.get("locations") or [],
            },
        },
    )

    try:
        data = await provider_cls().enrich(intake)
    except Exception:
        logger.exception("Enrichment %s failed (%s)", enrichment_id, provider_type)
        await store.update(
            Collection.CUSTOMER_ENRICHMENT, enrichment_id, {"status": ENRICHMENT_FAILED}
        )
        raise

    suggested = suggest_intake_updates(intake, data)
    await store.update(
        Collection.CUSTOMER_ENRICHMENT,
        enrichment_id,
        {"status": ENRICHMENT_COMPLETED, "output": data, "merged_updates": suggested},
    )
    logger.info(
        "Enrichment %s completed for intake %s (%d suggested field(s))",
        enrichment_id,
        intake_id,
        len(suggested["fields_to_update"]),
    )
    return EnrichmentResult(
        enrichment_id=enrichment_id, data=data, suggested_updates=suggested
    )
