"""Reconciliation sweep for interrupted pipeline runs.

Standalone script (not part of the API process). Schedule it (cron, k8s
CronJob) at an interval shorter than RUN_TIMEOUT_SECONDS.

Usage:
    cd backend && python -m scripts.reconcile_runs

Steps:
    1. Fail every pending run older than RUN_TIMEOUT_SECONDS (kind TIMEOUT)
    2. For each intake touched, list artifacts whose producing run did not
       succeed (a crash between artifact write and run completion)

Unbacked artifacts are reported, not deleted; readers that need strict
provenance filter on the run status.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from intake_pilot.repositories.record_store import Collection, RecordStore
from intake_pilot.services.run_ledger import RunLedger

logger = logging.getLogger(__name__)


@dataclass
class ReconciliationStats:
    """Result of one sweep."""

    swept_run_ids: list[str] = field(default_factory=list)
    unbacked_artifacts: list[tuple[str, str]] = field(default_factory=list)


async def run_reconciliation(
    store: RecordStore,
    older_than: timedelta,
    *,
    now: datetime | None = None,
) -> ReconciliationStats:
    """Sweep stale runs and collect artifacts they left behind.

    Args:
        store: Record store holding the runs.
        older_than: Age after which a pending run is considered dead.
        now: Reference time (defaults to the current time).

    Returns:
        ReconciliationStats for the sweep.
    """
    ledger = RunLedger(store)
    stats = ReconciliationStats(
        swept_run_ids=await ledger.reconcile_stale(older_than, now=now)
    )

    intake_ids: list[str] = []
    for run_id in stats.swept_run_ids:
        run = await store.get(Collection.AI_RUNS, run_id)
        if run is not None and run["intake_id"] not in intake_ids:
            intake_ids.append(run["intake_id"])

    for intake_id in intake_ids:
        stats.unbacked_artifacts.extend(await ledger.find_unbacked_artifacts(intake_id))

    for collection, artifact_id in stats.unbacked_artifacts:
        logger.warning("Unbacked artifact %s/%s", collection, artifact_id)

    logger.info(
        "Reconciliation complete: %d run(s) swept, %d unbacked artifact(s)",
        len(stats.swept_run_ids),
        len(stats.unbacked_artifacts),
    )
    return stats


async def main() -> None:
    """CLI entry point: sweep the configured database."""
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

    from intake_pilot.core.config import settings
    from intake_pilot.repositories.sql_store import SqlRecordStore

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    engine = create_async_engine(settings.database_url, echo=False)
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await run_reconciliation(
        SqlRecordStore(factory), timedelta(seconds=settings.run_timeout_seconds)
    )

    await engine.dispose()


if __name__ == "__main__":
    import asyncio

    asyncio.run(main())
