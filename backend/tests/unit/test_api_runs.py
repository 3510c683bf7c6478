"""Tests for the run ledger endpoints."""

from intake_pilot.providers.guarded_caller import FailureKind, ModelFailure
from intake_pilot.services.run_ledger import RunLedger

_BASE = "/api/v1/runs"


async def test_list_runs_newest_first(client, store, intake_id):
    ledger = RunLedger(store)
    first = await ledger.begin(intake_id, "analyze", model="mock-model")
    second = await ledger.begin(intake_id, "risk_diagnostics", model="mock-model")
    await ledger.complete(
        second, ModelFailure(reason="down", kind=FailureKind.TRANSPORT, tokens_used=0)
    )

    response = await client.get(_BASE, params={"intakeId": intake_id})

    assert response.status_code == 200
    runs = response.json()["runs"]
    assert [r["id"] for r in runs] == [second, first]
    assert runs[0]["failureKind"] == "transport"
    assert runs[0]["runType"] == "risk_diagnostics"
    assert runs[1]["status"] == "pending"
    assert runs[1]["completedAt"] is None


async def test_list_runs_limit(client, store, intake_id):
    ledger = RunLedger(store)
    for _ in range(3):
        await ledger.begin(intake_id, "analyze", model="m")

    response = await client.get(_BASE, params={"intakeId": intake_id, "limit": 2})

    assert len(response.json()["runs"]) == 2


async def test_list_runs_unknown_intake(client):
    response = await client.get(_BASE, params={"intakeId": "missing"})

    assert response.status_code == 404


async def test_list_runs_requires_intake_id(client):
    response = await client.get(_BASE)

    assert response.status_code == 400


async def test_get_run(client, store, intake_id):
    run_id = await RunLedger(store).begin(intake_id, "interview", model="m")

    response = await client.get(f"{_BASE}/{run_id}")

    assert response.status_code == 200
    run = response.json()["run"]
    assert run["intakeId"] == intake_id
    assert run["tokensUsed"] == 0


async def test_get_missing_run(client):
    response = await client.get(f"{_BASE}/missing")

    assert response.status_code == 404
    assert response.json()["error"] == "Run with id 'missing' not found"
