"""Tests for the Analyze stage: intake creation and output normalization."""

import json

import pytest
from hypothesis import given
from hypothesis import strategies as st

from intake_pilot.providers.guarded_caller import FailureKind
from intake_pilot.repositories.record_store import Collection
from intake_pilot.schemas.stage_requests import AnalyzeRequest, AttachmentInput
from intake_pilot.services.errors import PreconditionError
from intake_pilot.services.intake_analysis import (
    LOCATION_SENTINEL,
    MAX_DOCUMENT_CHARS,
    IntakeAnalysisStage,
    clamp_readiness_score,
    fit_intake_columns,
    normalize_complexity,
    normalize_locations,
    normalize_timeline,
)

_REPLY = {
    "company_name": "Northwind Grocers",
    "customer_contacts": [{"name": "Ana", "email": "ana@northwind.test"}],
    "go_live_date": "2031-06-01",
    "edi_experience": "None",
    "data_format": "X12",
    "transactions": ["850"],
    "protocol": "SFTP",
    "unique_requirements": None,
    "readiness_score": 71,
    "complexity_level": "high",
    "identified_risks": [{"type": "high", "title": "No test partner"}],
    "missing_information": ["vendor_contacts"],
    "recommendations": [{"priority": "high", "action": "Book kickoff"}],
    "locations": ["Tacoma DC"],
    "estimated_timeline": "4-6 weeks",
}


def _request(**overrides) -> AnalyzeRequest:
    fields = {"document_text": "Northwind onboarding form", "file_name": "form.txt"}
    fields.update(overrides)
    return AnalyzeRequest(**fields)


# =============================================================================
# Normalization helpers
# =============================================================================


class TestClampReadinessScore:
    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            (62, 62),
            (-5, 0),
            (140, 100),
            (72.6, 73),
            ("85%", 85),
            ("high", 0),
            (None, 0),
            (True, 0),
            (float("nan"), 0),
        ],
    )
    def test_values(self, value, expected):
        assert clamp_readiness_score(value) == expected

    @given(st.one_of(st.floats(), st.integers(), st.text(), st.none()))
    def test_always_in_range(self, value):
        assert 0 <= clamp_readiness_score(value) <= 100


class TestNormalizers:
    def test_unknown_complexity_defaults_to_medium(self):
        assert normalize_complexity("extreme") == "medium"
        assert normalize_complexity(" HIGH ") == "high"

    def test_timeline_kept_when_in_bucket(self):
        assert normalize_timeline("2-4 weeks", "high") == "2-4 weeks"

    def test_timeline_derived_from_complexity(self):
        assert normalize_timeline("soon", "low") == "2-4 weeks"
        assert normalize_timeline(None, "high") == "4-6 weeks"

    @pytest.mark.parametrize("value", [[], None, ["", "  "], 7])
    def test_empty_locations_become_sentinel(self, value):
        assert normalize_locations(value) == [LOCATION_SENTINEL]

    def test_single_location_string_is_wrapped(self):
        assert normalize_locations("Reno DC") == ["Reno DC"]

    def test_fit_intake_columns_truncates_and_stringifies(self):
        fitted = fit_intake_columns(
            {"company_name": "x" * 300, "go_live_date": 20310601, "locations": ["A"]}
        )

        assert len(fitted["company_name"]) == 255
        assert fitted["go_live_date"] == "20310601"
        assert fitted["locations"] == ["A"]

    def test_fit_intake_columns_joins_lists_for_text_columns(self):
        fitted = fit_intake_columns(
            {"protocol": ["AS2", "SFTP", None], "data_format": ["X12", {"v": 4010}]}
        )

        assert fitted["protocol"] == "AS2, SFTP"
        assert fitted["data_format"] == 'X12, {"v": 4010}'

    def test_fit_intake_columns_serializes_dicts(self):
        fitted = fit_intake_columns(
            {"edi_experience": {"years": 3, "standard": "X12"}, "unique_requirements": 7}
        )

        assert fitted["edi_experience"] == '{"standard": "X12", "years": 3}'
        assert fitted["unique_requirements"] == "7"

    def test_fit_intake_columns_list_columns(self):
        fitted = fit_intake_columns(
            {
                "transactions": None,
                "customer_contacts": {"name": "Ana"},
                "locations": "Reno DC",
                "vendor_contacts": [],
                "go_live_date": None,
            }
        )

        assert "transactions" not in fitted
        assert fitted["customer_contacts"] == [{"name": "Ana"}]
        assert fitted["locations"] == ["Reno DC"]
        assert fitted["vendor_contacts"] == []
        assert fitted["go_live_date"] is None


# =============================================================================
# Stage
# =============================================================================


class TestIntakeAnalysisStage:
    async def test_new_intake_is_created_and_filled(self, store, caller, mock_llm):
        mock_llm.queue(json.dumps(_REPLY))

        outcome = await IntakeAnalysisStage(store, caller).run(_request())

        assert outcome.success
        intake = await store.get(Collection.INTAKE_CASES, outcome.extras["intake_id"])
        assert intake["company_name"] == "Northwind Grocers"
        assert intake["protocol"] == "SFTP"
        assert intake["locations"] == ["Tacoma DC"]
        assert intake["document_id"] == outcome.extras["document_id"]
        analysis = await store.get(Collection.ANALYSES, outcome.extras["analysis_id"])
        assert analysis["readiness_score"] == 71
        assert analysis["ai_run_id"] == outcome.run_id

    async def test_document_marked_completed(self, store, caller, mock_llm):
        mock_llm.queue(json.dumps(_REPLY))

        outcome = await IntakeAnalysisStage(store, caller).run(
            _request(file_type="text/plain", file_size=25)
        )

        document = await store.get(
            Collection.UPLOADED_DOCUMENTS, outcome.extras["document_id"]
        )
        assert document["status"] == "completed"
        assert document["metadata"] == {"document_chars": 25, "attachment_count": 0}

    async def test_document_marked_failed_on_model_failure(
        self, store, caller, mock_llm
    ):
        mock_llm.queue("nope", "nope")

        outcome = await IntakeAnalysisStage(store, caller).run(_request())

        assert outcome.failure_kind is FailureKind.INVALID_AFTER_RETRY
        [document] = await store.list_records(Collection.UPLOADED_DOCUMENTS)
        assert document["status"] == "failed"
        assert await store.list_records(Collection.ANALYSES) == []

    async def test_empty_locations_get_sentinel_on_intake_and_analysis(
        self, store, caller, mock_llm
    ):
        mock_llm.queue(json.dumps({**_REPLY, "locations": []}))

        outcome = await IntakeAnalysisStage(store, caller).run(_request())

        assert outcome.payload["locations"] == [LOCATION_SENTINEL]
        intake = await store.get(Collection.INTAKE_CASES, outcome.subject_id)
        assert intake["locations"] == [LOCATION_SENTINEL]

    async def test_out_of_range_output_is_normalized(self, store, caller, mock_llm):
        mock_llm.queue(
            json.dumps(
                {
                    **_REPLY,
                    "readiness_score": 250,
                    "complexity_level": "low",
                    "estimated_timeline": "eventually",
                    "recommendations": "call them",
                }
            )
        )

        outcome = await IntakeAnalysisStage(store, caller).run(_request())

        assert outcome.payload["readiness_score"] == 100
        assert outcome.payload["estimated_timeline"] == "2-4 weeks"
        assert outcome.payload["recommendations"] == []

    async def test_reanalysis_keeps_intake_id(self, store, caller, mock_llm, intake_id):
        mock_llm.queue(json.dumps({**_REPLY, "company_name": None}))

        outcome = await IntakeAnalysisStage(store, caller).run(
            _request(intake_id=intake_id)
        )

        assert outcome.subject_id == intake_id
        intake = await store.get(Collection.INTAKE_CASES, intake_id)
        # None values from the model do not erase existing fields
        assert intake["company_name"] == "Acme Foods"

    async def test_unknown_intake_raises_without_side_effects(
        self, store, caller, mock_llm
    ):
        with pytest.raises(PreconditionError):
            await IntakeAnalysisStage(store, caller).run(_request(intake_id="missing"))

        assert mock_llm.calls == []
        assert await store.list_records(Collection.UPLOADED_DOCUMENTS) == []

    async def test_attachments_are_recorded(self, store, caller, mock_llm):
        mock_llm.queue(json.dumps(_REPLY))
        attachment = AttachmentInput(
            text="Item master", file_name="items.csv", category="item_master"
        )

        outcome = await IntakeAnalysisStage(store, caller).run(
            _request(attachments=(attachment,))
        )

        [row] = await store.list_records(
            Collection.INTAKE_ATTACHMENTS, intake_id=outcome.subject_id
        )
        assert row["file_name"] == "items.csv"
        assert row["upload_category"] == "item_master"
        assert row["file_size"] == len("Item master")
        assert "items.csv" in mock_llm.calls[0]["messages"][1].content

    async def test_long_document_is_truncated_in_prompt(self, store, caller, mock_llm):
        mock_llm.queue(json.dumps(_REPLY))
        text = "A" * (MAX_DOCUMENT_CHARS + 500)

        outcome = await IntakeAnalysisStage(store, caller).run(
            _request(document_text=text)
        )

        prompt = mock_llm.calls[0]["messages"][1].content
        assert "A" * (MAX_DOCUMENT_CHARS + 1) not in prompt
        run = await store.get(Collection.AI_RUNS, outcome.run_id)
        assert run["input_payload"]["request"]["document_truncated"] is True
