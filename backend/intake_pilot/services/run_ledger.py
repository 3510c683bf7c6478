"""Run ledger - audit trail of every model invocation.

Each stage invocation gets one ``ai_runs`` record:

    begin()     -> pending   (before the model call)
    complete()  -> succeeded | failed   (exactly once)

The terminal transition is a compare-and-set on ``status == "pending"``, so a
second ``complete`` (or a reconciliation sweep racing a late completion)
never overwrites the first terminal write.

A run left ``pending`` (process crash, cancelled request) is swept to
``failed`` by ``reconcile_stale``; scheduling that sweep is the deployment's
concern.
"""

import logging
from datetime import datetime, timedelta
from typing import Any

from intake_pilot.providers.guarded_caller import (
    FailureKind,
    ModelFailure,
    ModelResult,
)
from intake_pilot.repositories.record_store import Collection, RecordStore, utcnow
from intake_pilot.services.errors import PreconditionError

logger = logging.getLogger(__name__)

RUN_PENDING = "pending"
RUN_SUCCEEDED = "succeeded"
RUN_FAILED = "failed"

ARTIFACT_COLLECTIONS: tuple[Collection, ...] = (
    Collection.ANALYSES,
    Collection.RISK_DIAGNOSTICS,
    Collection.ACTION_ITEM_SETS,
    Collection.WORKFLOW_RECOMMENDATIONS,
    Collection.PREFLIGHT_PACKS,
)
"""Collections whose records are produced by exactly one succeeded run."""

_STALE_RUN_MESSAGE = "Run did not complete before the reconciliation timeout"

# Set only from the ModelResult variant; never through ``complete(extra=...)``.
_LIFECYCLE_FIELDS = frozenset(
    {
        "id",
        "intake_id",
        "run_type",
        "status",
        "tokens_used",
        "error_message",
        "failure_kind",
        "completed_at",
        "created_at",
        "updated_at",
    }
)


class RunLedger:
    """Records the lifecycle of pipeline runs in the record store.

    Args:
        store: Record store holding the ``ai_runs`` collection.
    """

    def __init__(self, store: RecordStore) -> None:
        self._store = store

    async def begin(
        self,
        subject_id: str,
        stage_type: str,
        *,
        model: str,
        inputs: dict[str, Any] | None = None,
    ) -> str:
        """Create a pending run before the model call is issued.

        Args:
            subject_id: Intake case the run belongs to.
            stage_type: Stage identifier (analyze, risk_diagnostics, ...).
            model: Model the request is routed to.
            inputs: Provenance payload (request summary, dependency ids).

        Returns:
            The new run id.

        Raises:
            PreconditionError: If the intake case does not exist.
        """
        intake = await self._store.get(Collection.INTAKE_CASES, subject_id)
        if intake is None:
            raise PreconditionError("Intake", subject_id)

        run_id = await self._store.insert(
            Collection.AI_RUNS,
            {
                "intake_id": subject_id,
                "run_type": stage_type,
                "model": model,
                "status": RUN_PENDING,
                "input_payload": inputs or {},
                "tokens_used": 0,
            },
        )
        logger.info("Run %s started (%s) for intake %s", run_id, stage_type, subject_id)
        return run_id

    async def complete(
        self,
        run_id: str,
        result: ModelResult,
        extra: dict[str, Any] | None = None,
    ) -> bool:
        """Move a pending run to its terminal state.

        Args:
            run_id: Run to complete.
            result: The model outcome. ModelSuccess -> succeeded,
                ModelFailure -> failed.
            extra: Optional overrides; ``output_payload`` replaces the raw
                model data with the post-processed payload. Lifecycle
                fields (status, tokens, failure details, timestamps) are
                rejected.

        Returns:
            True if the transition happened, False if the run was already
            terminal (or does not exist).

        Raises:
            ValueError: If ``extra`` names a lifecycle field.
        """
        if extra:
            forbidden = _LIFECYCLE_FIELDS & extra.keys()
            if forbidden:
                raise ValueError(
                    f"complete() extra cannot set: {', '.join(sorted(forbidden))}"
                )

        tokens_used = max(0, result.tokens_used)
        if isinstance(result, ModelFailure):
            changes: dict[str, Any] = {
                "status": RUN_FAILED,
                "error_message": result.reason,
                "failure_kind": result.kind.value,
                "tokens_used": tokens_used,
            }
        else:
            changes = {
                "status": RUN_SUCCEEDED,
                "output_payload": result.data,
                "tokens_used": tokens_used,
                "model": result.model,
            }
        if extra:
            changes.update(extra)
        changes["completed_at"] = utcnow()

        changed = await self._store.update(
            Collection.AI_RUNS,
            run_id,
            changes,
            only_if={"status": RUN_PENDING},
        )
        if not changed:
            logger.warning(
                "Run %s not completed: already terminal or missing", run_id
            )
            return False

        logger.info("Run %s %s (%d tokens)", run_id, changes["status"], tokens_used)
        return True

    async def fail(
        self,
        run_id: str,
        reason: str,
        kind: FailureKind,
        tokens_used: int = 0,
    ) -> bool:
        """Mark a pending run failed for a reason outside the model call.

        Used for output contract violations and persistence failures.
        """
        return await self.complete(
            run_id,
            ModelFailure(reason=reason, kind=kind, tokens_used=tokens_used),
        )

    async def get_run(self, run_id: str) -> dict | None:
        """Fetch a single run record."""
        return await self._store.get(Collection.AI_RUNS, run_id)

    async def list_runs(self, subject_id: str, limit: int = 50) -> list[dict]:
        """List an intake's runs, newest first."""
        return await self._store.list_records(
            Collection.AI_RUNS, limit=limit, intake_id=subject_id
        )

    async def reconcile_stale(
        self,
        older_than: timedelta,
        *,
        now: datetime | None = None,
    ) -> list[str]:
        """Fail pending runs created more than ``older_than`` ago.

        Args:
            older_than: Age threshold.
            now: Reference time (defaults to the current time).

        Returns:
            Ids of the runs that were swept.
        """
        cutoff = (now or utcnow()) - older_than
        pending = await self._store.list_records(Collection.AI_RUNS, status=RUN_PENDING)

        swept: list[str] = []
        for run in pending:
            if run["created_at"] > cutoff:
                continue
            if await self.fail(run["id"], _STALE_RUN_MESSAGE, FailureKind.TIMEOUT):
                swept.append(run["id"])

        if swept:
            logger.warning("Reconciled %d stale run(s) to failed", len(swept))
        return swept

    async def find_unbacked_artifacts(self, subject_id: str) -> list[tuple[str, str]]:
        """Find an intake's artifacts whose producing run is not succeeded.

        Artifacts are written before their run completes, so a crash between
        the two leaves an artifact pointing at a pending (later: timed out)
        run. This is how that window is detected.

        Returns:
            (collection name, artifact id) pairs.
        """
        unbacked: list[tuple[str, str]] = []
        for collection in ARTIFACT_COLLECTIONS:
            for artifact in await self._store.list_records(
                collection, intake_id=subject_id
            ):
                run = await self._store.get(Collection.AI_RUNS, artifact["ai_run_id"])
                if run is None or run["status"] != RUN_SUCCEEDED:
                    unbacked.append((collection.value, artifact["id"]))
        return unbacked
