"""Run ledger endpoints (read-only run history)."""

from typing import Annotated

from fastapi import APIRouter, Query

from intake_pilot.api.deps import Ledger, Store
from intake_pilot.core.errors import NotFoundError
from intake_pilot.repositories.record_store import Collection
from intake_pilot.schemas.pipeline import RunListResponse, RunResponse, RunSummary

router = APIRouter()


@router.get("")
async def list_runs(
    store: Store,
    ledger: Ledger,
    intake_id: Annotated[str, Query(alias="intakeId", min_length=1, max_length=100)],
    limit: Annotated[int, Query(ge=1, le=200)] = 50,
) -> RunListResponse:
    """List an intake's runs, newest first.

    Raises:
        NotFoundError: The intake case does not exist.
    """
    if await store.get(Collection.INTAKE_CASES, intake_id) is None:
        raise NotFoundError("Intake", intake_id)
    runs = await ledger.list_runs(intake_id, limit=limit)
    return RunListResponse(runs=[RunSummary.model_validate(run) for run in runs])


@router.get("/{run_id}")
async def get_run(run_id: str, ledger: Ledger) -> RunResponse:
    """Fetch one run.

    Raises:
        NotFoundError: The run does not exist.
    """
    run = await ledger.get_run(run_id)
    if run is None:
        raise NotFoundError("Run", run_id)
    return RunResponse(run=RunSummary.model_validate(run))
