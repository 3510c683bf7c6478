"""Tests for the Recommend Workflows stage."""

import json

import pytest

from intake_pilot.providers.guarded_caller import FailureKind
from intake_pilot.repositories.record_store import Collection
from intake_pilot.schemas.stage_requests import WorkflowRequest
from intake_pilot.services.workflow_recommendation import (
    MAX_WORKFLOWS,
    WorkflowRecommendationStage,
    is_linked_trigger,
    normalize_workflow,
)


class TestNormalizeWorkflow:
    @pytest.mark.parametrize(
        ("trigger", "linked"),
        [
            ("risk:UOM mismatch", True),
            ("action_item:3", True),
            ("missing_field:protocol", True),
            ("risk:", False),
            ("customer said so", False),
            (None, False),
        ],
    )
    def test_trigger_linkage(self, trigger, linked):
        assert is_linked_trigger(trigger) is linked

    def test_template_dropped_without_ticket(self):
        workflow = normalize_workflow(
            {"servicenow_ticket_required": False, "ticket_payload_template": {"a": 1}}
        )

        assert workflow["ticket_payload_template"] is None

    def test_template_kept_with_ticket(self):
        workflow = normalize_workflow(
            {"servicenow_ticket_required": True, "ticket_payload_template": {"a": 1}}
        )

        assert workflow["ticket_payload_template"] == {"a": 1}

    def test_negative_hours_clamped(self):
        assert normalize_workflow({"estimated_time_saved_hours": -3})[
            "estimated_time_saved_hours"
        ] == 0.0
        assert normalize_workflow({"estimated_time_saved_hours": "lots"})[
            "estimated_time_saved_hours"
        ] is None


class TestWorkflowRecommendationStage:
    async def test_workflows_stored_with_model(
        self, store, caller, mock_llm, analyzed_intake_id
    ):
        mock_llm.queue(
            json.dumps(
                {
                    "workflows": [
                        {"title": "Cert renewal", "trigger_source": "risk:Cert expiry"},
                        {"title": "Kickoff", "trigger_source": "gut feeling"},
                    ]
                }
            )
        )

        outcome = await WorkflowRecommendationStage(store, caller).run(
            WorkflowRequest(intake_id=analyzed_intake_id)
        )

        assert outcome.success
        assert [w["is_linked"] for w in outcome.payload] == [True, False]
        stored = await store.get(
            Collection.WORKFLOW_RECOMMENDATIONS, outcome.extras["recommendation_id"]
        )
        assert stored["model"] == "mock-model"
        assert len(stored["workflows"]) == 2

    async def test_workflows_capped(self, store, caller, mock_llm, analyzed_intake_id):
        mock_llm.queue(json.dumps([{"title": f"W{n}"} for n in range(12)]))

        outcome = await WorkflowRecommendationStage(store, caller).run(
            WorkflowRequest(intake_id=analyzed_intake_id)
        )

        assert len(outcome.payload) == MAX_WORKFLOWS

    async def test_non_list_is_invalid_output(
        self, store, caller, mock_llm, analyzed_intake_id
    ):
        mock_llm.queue(json.dumps({"workflows": "none"}))

        outcome = await WorkflowRecommendationStage(store, caller).run(
            WorkflowRequest(intake_id=analyzed_intake_id)
        )

        assert outcome.failure_kind is FailureKind.INVALID_OUTPUT

    async def test_only_completed_enrichment_is_used(
        self, store, caller, mock_llm, analyzed_intake_id
    ):
        completed = await store.insert(
            Collection.CUSTOMER_ENRICHMENT,
            {
                "intake_id": analyzed_intake_id,
                "status": "completed",
                "output": {"edi_maturity": {"level": "Intermediate"}},
            },
        )
        await store.insert(
            Collection.CUSTOMER_ENRICHMENT,
            {"intake_id": analyzed_intake_id, "status": "running"},
        )
        mock_llm.queue(json.dumps({"workflows": []}))

        outcome = await WorkflowRecommendationStage(store, caller).run(
            WorkflowRequest(intake_id=analyzed_intake_id)
        )

        run = await store.get(Collection.AI_RUNS, outcome.run_id)
        assert run["input_payload"]["dependencies"]["enrichment"] == completed
