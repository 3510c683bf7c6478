"""Tests for the Build Preflight Pack stage and checklist normalization."""

import json

import pytest

from intake_pilot.providers.guarded_caller import FailureKind
from intake_pilot.repositories.record_store import Collection
from intake_pilot.schemas.stage_requests import PreflightPackRequest
from intake_pilot.services.errors import PreconditionError
from intake_pilot.services.preflight_pack import (
    PACK_SECTIONS,
    PreflightPackStage,
    normalize_checklist_item,
    normalize_item_status,
    normalize_sections,
)

_PACK = {
    "pack_version": "1.0",
    "generated_for": "Acme Foods",
    "sections": {
        "connectivity": {
            "title": "Connectivity",
            "items": [
                {
                    "item": "Exchange AS2 IDs",
                    "status": "in progress",
                    "owner": "Integration",
                    "priority": "p1",
                    "details": "Both directions",
                },
                {"item": "  "},
            ],
        },
        "security": {"title": "Certificates", "items": "none yet"},
        "marketing": {"title": "Launch party", "items": [{"item": "Cake"}]},
    },
    "critical_path_items": ["Exchange AS2 IDs", None, ""],
    "estimated_completion_date": "2031-02-15",
}


class TestChecklistNormalization:
    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            ("completed", "completed"),
            ("In Progress", "in_progress"),
            ("not-started", "not_started"),
            ("BLOCKED", "blocked"),
            ("done", "not_started"),
            (None, "not_started"),
        ],
    )
    def test_item_status(self, value, expected):
        assert normalize_item_status(value) == expected

    def test_item_without_description_dropped(self):
        assert normalize_checklist_item({"status": "completed"}) is None
        assert normalize_checklist_item("Exchange AS2 IDs") is None

    def test_item_defaults(self):
        assert normalize_checklist_item({"item": "Confirm UOM codes"}) == {
            "item": "Confirm UOM codes",
            "status": "not_started",
            "priority": "P2",
            "owner": None,
            "details": None,
        }

    def test_sections_are_complete_and_ordered(self):
        sections = normalize_sections(_PACK["sections"])

        assert list(sections) == list(PACK_SECTIONS)
        assert sections["connectivity"]["title"] == "Connectivity"
        assert sections["security"] == {"title": "Certificates", "items": []}
        assert sections["go_live_gates"] == {
            "title": PACK_SECTIONS["go_live_gates"],
            "items": [],
        }


class TestPreflightPackStage:
    async def test_pack_is_normalized_and_stored(
        self, store, caller, mock_llm, analyzed_intake_id
    ):
        mock_llm.queue(json.dumps(_PACK))

        outcome = await PreflightPackStage(store, caller).run(
            PreflightPackRequest(intake_id=analyzed_intake_id)
        )

        assert outcome.success
        [item] = outcome.payload["sections"]["connectivity"]["items"]
        assert item["status"] == "in_progress"
        assert item["priority"] == "P1"
        assert outcome.payload["critical_path_items"] == ["Exchange AS2 IDs"]
        assert outcome.payload["estimated_completion_date"] == "2031-02-15"

        stored = await store.get(Collection.PREFLIGHT_PACKS, outcome.extras["pack_id"])
        assert stored["ai_run_id"] == outcome.run_id
        assert stored["sections"] == outcome.payload["sections"]
        assert "marketing" not in stored["sections"]
        run = await store.get(Collection.AI_RUNS, outcome.run_id)
        assert run["run_type"] == "preflight"
        assert run["status"] == "succeeded"

    async def test_prompt_summarizes_diagnostics(
        self, store, caller, mock_llm, analyzed_intake_id, seed_artifact
    ):
        await seed_artifact(
            Collection.RISK_DIAGNOSTICS,
            analyzed_intake_id,
            {
                "overall_risk_level": "High",
                "items": [{"title": "Cert expiry"}, {"title": "UOM"}],
            },
        )
        mock_llm.queue(json.dumps({"sections": {}}))

        await PreflightPackStage(store, caller).run(
            PreflightPackRequest(intake_id=analyzed_intake_id)
        )

        prompt = mock_llm.calls[0]["messages"][1].content
        assert '"items_count": 2' in prompt
        assert "Cert expiry" not in prompt
        assert "protocol (AS2)" in prompt
        assert "go-live on 2031-03-01" in prompt

    async def test_runs_without_diagnostics(
        self, store, caller, mock_llm, analyzed_intake_id
    ):
        mock_llm.queue(json.dumps({"sections": {}}))

        outcome = await PreflightPackStage(store, caller).run(
            PreflightPackRequest(intake_id=analyzed_intake_id)
        )

        assert outcome.success
        assert "No diagnostics available" in mock_llm.calls[0]["messages"][1].content
        run = await store.get(Collection.AI_RUNS, outcome.run_id)
        assert run["input_payload"]["dependencies"]["diagnostics"] is None

    async def test_requires_analysis(self, store, caller, mock_llm, intake_id):
        with pytest.raises(PreconditionError, match="Analysis is required"):
            await PreflightPackStage(store, caller).run(
                PreflightPackRequest(intake_id=intake_id)
            )

        assert mock_llm.calls == []
        assert await store.list_records(Collection.AI_RUNS, intake_id=intake_id) == []

    async def test_sections_not_an_object_fails_run(
        self, store, caller, mock_llm, analyzed_intake_id
    ):
        mock_llm.queue(json.dumps({"sections": ["connectivity"]}))

        outcome = await PreflightPackStage(store, caller).run(
            PreflightPackRequest(intake_id=analyzed_intake_id)
        )

        assert not outcome.success
        assert outcome.failure_kind is FailureKind.INVALID_OUTPUT
        assert await store.list_records(
            Collection.PREFLIGHT_PACKS, intake_id=analyzed_intake_id
        ) == []
        run = await store.get(Collection.AI_RUNS, outcome.run_id)
        assert run["status"] == "failed"
