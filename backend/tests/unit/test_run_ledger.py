"""Tests for the run ledger lifecycle: pending -> succeeded | failed, once."""

from datetime import timedelta

import pytest

from intake_pilot.providers.guarded_caller import FailureKind, ModelFailure, ModelSuccess
from intake_pilot.repositories.record_store import Collection, utcnow
from intake_pilot.services.errors import PreconditionError
from intake_pilot.services.run_ledger import (
    RUN_FAILED,
    RUN_PENDING,
    RUN_SUCCEEDED,
    RunLedger,
)

_SUCCESS = ModelSuccess(data={"a": 1}, tokens_used=42, model="mock-model")
_FAILURE = ModelFailure(reason="down", kind=FailureKind.TRANSPORT, tokens_used=7)


@pytest.fixture
def ledger(store) -> RunLedger:
    return RunLedger(store)


class TestBegin:
    async def test_creates_pending_run_with_provenance(self, ledger, intake_id):
        run_id = await ledger.begin(
            intake_id, "analyze", model="m", inputs={"request": {"x": 1}}
        )

        run = await ledger.get_run(run_id)
        assert run["status"] == RUN_PENDING
        assert run["intake_id"] == intake_id
        assert run["run_type"] == "analyze"
        assert run["model"] == "m"
        assert run["tokens_used"] == 0
        assert run["input_payload"] == {"request": {"x": 1}}

    async def test_missing_intake_raises_precondition(self, ledger, store):
        with pytest.raises(PreconditionError) as exc_info:
            await ledger.begin("no-such-intake", "analyze", model="m")

        assert exc_info.value.is_missing_subject
        assert await store.list_records(Collection.AI_RUNS) == []


class TestComplete:
    async def test_success_stores_output_and_tokens(self, ledger, intake_id):
        run_id = await ledger.begin(intake_id, "analyze", model="m")

        assert await ledger.complete(run_id, _SUCCESS) is True

        run = await ledger.get_run(run_id)
        assert run["status"] == RUN_SUCCEEDED
        assert run["output_payload"] == {"a": 1}
        assert run["tokens_used"] == 42
        assert run["model"] == "mock-model"
        assert run["completed_at"] is not None

    async def test_failure_stores_reason_and_kind(self, ledger, intake_id):
        run_id = await ledger.begin(intake_id, "analyze", model="m")

        await ledger.complete(run_id, _FAILURE)

        run = await ledger.get_run(run_id)
        assert run["status"] == RUN_FAILED
        assert run["error_message"] == "down"
        assert run["failure_kind"] == "transport"
        assert run["tokens_used"] == 7

    async def test_extra_overrides_output_payload(self, ledger, intake_id):
        run_id = await ledger.begin(intake_id, "analyze", model="m")

        await ledger.complete(run_id, _SUCCESS, extra={"output_payload": {"clean": True}})

        assert (await ledger.get_run(run_id))["output_payload"] == {"clean": True}

    @pytest.mark.parametrize(
        "extra",
        [
            {"status": RUN_SUCCEEDED},
            {"tokens_used": 0},
            {"failure_kind": None, "output_payload": {}},
        ],
    )
    async def test_extra_cannot_set_lifecycle_fields(self, ledger, intake_id, extra):
        run_id = await ledger.begin(intake_id, "analyze", model="m")

        with pytest.raises(ValueError, match="cannot set"):
            await ledger.complete(run_id, _FAILURE, extra=extra)

        run = await ledger.get_run(run_id)
        assert run["status"] == RUN_PENDING
        assert run["tokens_used"] == 0

    async def test_second_complete_is_a_no_op(self, ledger, intake_id):
        run_id = await ledger.begin(intake_id, "analyze", model="m")
        await ledger.complete(run_id, _SUCCESS)

        assert await ledger.complete(run_id, _FAILURE) is False

        run = await ledger.get_run(run_id)
        assert run["status"] == RUN_SUCCEEDED
        assert run["error_message"] is None
        assert run["tokens_used"] == 42

    async def test_failed_run_never_becomes_succeeded(self, ledger, intake_id):
        run_id = await ledger.begin(intake_id, "analyze", model="m")
        await ledger.complete(run_id, _FAILURE)

        await ledger.complete(run_id, _SUCCESS)

        assert (await ledger.get_run(run_id))["status"] == RUN_FAILED

    async def test_unknown_run_returns_false(self, ledger):
        assert await ledger.complete("missing", _SUCCESS) is False

    async def test_fail_records_non_model_failure(self, ledger, intake_id):
        run_id = await ledger.begin(intake_id, "analyze", model="m")

        await ledger.fail(run_id, "write failed", FailureKind.PERSISTENCE, tokens_used=9)

        run = await ledger.get_run(run_id)
        assert run["failure_kind"] == "persistence"
        assert run["tokens_used"] == 9


class TestListRuns:
    async def test_newest_first_and_limited(self, ledger, intake_id):
        ids = [await ledger.begin(intake_id, f"stage{i}", model="m") for i in range(3)]

        runs = await ledger.list_runs(intake_id, limit=2)

        assert [r["id"] for r in runs] == [ids[2], ids[1]]


class TestReconciliation:
    async def test_stale_pending_runs_are_failed_with_timeout(self, ledger, intake_id):
        stale = await ledger.begin(intake_id, "analyze", model="m")
        done = await ledger.begin(intake_id, "analyze", model="m")
        await ledger.complete(done, _SUCCESS)

        swept = await ledger.reconcile_stale(
            timedelta(minutes=15), now=utcnow() + timedelta(hours=1)
        )

        assert swept == [stale]
        run = await ledger.get_run(stale)
        assert run["status"] == RUN_FAILED
        assert run["failure_kind"] == FailureKind.TIMEOUT.value
        assert (await ledger.get_run(done))["status"] == RUN_SUCCEEDED

    async def test_recent_pending_runs_are_left_alone(self, ledger, intake_id):
        run_id = await ledger.begin(intake_id, "analyze", model="m")

        assert await ledger.reconcile_stale(timedelta(minutes=15)) == []
        assert (await ledger.get_run(run_id))["status"] == RUN_PENDING

    async def test_late_completion_after_sweep_does_not_overwrite(
        self, ledger, intake_id
    ):
        run_id = await ledger.begin(intake_id, "analyze", model="m")
        await ledger.reconcile_stale(timedelta(0), now=utcnow() + timedelta(seconds=1))

        assert await ledger.complete(run_id, _SUCCESS) is False
        assert (await ledger.get_run(run_id))["failure_kind"] == "timeout"

    async def test_unbacked_artifacts_are_detected(self, ledger, store, intake_id):
        pending = await ledger.begin(intake_id, "analyze", model="m")
        orphan = await store.insert(
            Collection.ANALYSES, {"intake_id": intake_id, "ai_run_id": pending}
        )
        backed_run = await ledger.begin(intake_id, "risk_diagnostics", model="m")
        await store.insert(
            Collection.RISK_DIAGNOSTICS, {"intake_id": intake_id, "ai_run_id": backed_run}
        )
        await ledger.complete(backed_run, _SUCCESS)

        unbacked = await ledger.find_unbacked_artifacts(intake_id)

        assert unbacked == [(Collection.ANALYSES.value, orphan)]
