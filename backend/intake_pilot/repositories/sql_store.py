"""SQLAlchemy record store (PostgreSQL).

Maps each Collection onto its ORM table and runs Core statements against it.
Every write commits in its own session, so a ``pending`` run is durable
before the model call it guards is issued.
"""

import logging
from typing import Any

from sqlalchemy import Table, insert, select, update
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from intake_pilot.models import (
    ActionItemSet,
    AIRun,
    AnalysisArtifact,
    CustomerEnrichment,
    IntakeAttachment,
    IntakeCase,
    InterviewSession,
    PreflightPack,
    RiskDiagnosticsArtifact,
    UploadedDocument,
    WorkflowRecommendationSet,
)
from intake_pilot.repositories.record_store import (
    Collection,
    RecordStore,
    is_record_id,
    prepare_insert,
    utcnow,
)

logger = logging.getLogger(__name__)

_TABLES: dict[Collection, Table] = {
    Collection.UPLOADED_DOCUMENTS: UploadedDocument.__table__,  # type: ignore[dict-item]
    Collection.INTAKE_CASES: IntakeCase.__table__,  # type: ignore[dict-item]
    Collection.INTAKE_ATTACHMENTS: IntakeAttachment.__table__,  # type: ignore[dict-item]
    Collection.ANALYSES: AnalysisArtifact.__table__,  # type: ignore[dict-item]
    Collection.RISK_DIAGNOSTICS: RiskDiagnosticsArtifact.__table__,  # type: ignore[dict-item]
    Collection.ACTION_ITEM_SETS: ActionItemSet.__table__,  # type: ignore[dict-item]
    Collection.WORKFLOW_RECOMMENDATIONS: WorkflowRecommendationSet.__table__,  # type: ignore[dict-item]
    Collection.PREFLIGHT_PACKS: PreflightPack.__table__,  # type: ignore[dict-item]
    Collection.CUSTOMER_ENRICHMENT: CustomerEnrichment.__table__,  # type: ignore[dict-item]
    Collection.INTERVIEW_SESSIONS: InterviewSession.__table__,  # type: ignore[dict-item]
    Collection.AI_RUNS: AIRun.__table__,  # type: ignore[dict-item]
}


class _InvalidIdFilter(Exception):
    """A UUID column was filtered with a value that cannot match any row."""


def _check_columns(table: Table, values: dict[str, Any]) -> None:
    unknown = set(values) - set(table.c.keys())
    if unknown:
        raise ValueError(
            f"Unknown column(s) for {table.name}: {', '.join(sorted(unknown))}"
        )


def _conditions(table: Table, filters: dict[str, Any]) -> list:
    """Build equality conditions, rejecting malformed ids up front.

    PostgreSQL raises on a malformed UUID literal; a malformed id simply
    matches nothing here.
    """
    _check_columns(table, filters)
    conditions = []
    for key, value in filters.items():
        column = table.c[key]
        if value is None:
            conditions.append(column.is_(None))
            continue
        if isinstance(column.type, UUID) and not is_record_id(value):
            raise _InvalidIdFilter(key)
        conditions.append(column == value)
    return conditions


class SqlRecordStore(RecordStore):
    """RecordStore backed by SQLAlchemy async sessions.

    Args:
        session_factory: Factory producing AsyncSessions bound to the engine.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def _select(
        self,
        collection: Collection,
        filters: dict[str, Any],
        limit: int | None,
    ) -> list[dict]:
        table = _TABLES[collection]
        try:
            conditions = _conditions(table, filters)
        except _InvalidIdFilter:
            return []

        stmt = (
            select(table)
            .where(*conditions)
            .order_by(table.c.created_at.desc(), table.c.id.desc())
        )
        if limit is not None:
            stmt = stmt.limit(limit)

        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return [dict(row) for row in result.mappings().all()]

    async def get(self, collection: Collection, record_id: str) -> dict | None:
        rows = await self._select(collection, {"id": record_id}, limit=1)
        return rows[0] if rows else None

    async def get_latest(self, collection: Collection, **filters: Any) -> dict | None:
        rows = await self._select(collection, filters, limit=1)
        return rows[0] if rows else None

    async def list_records(
        self,
        collection: Collection,
        *,
        limit: int | None = None,
        **filters: Any,
    ) -> list[dict]:
        return await self._select(collection, filters, limit)

    async def insert(self, collection: Collection, record: dict[str, Any]) -> str:
        table = _TABLES[collection]
        prepared = prepare_insert(record)
        _check_columns(table, prepared)

        async with self._session_factory() as session:
            await session.execute(insert(table).values(**prepared))
            await session.commit()

        logger.debug("Inserted %s into %s", prepared["id"], collection.value)
        return prepared["id"]

    async def update(
        self,
        collection: Collection,
        record_id: str,
        changes: dict[str, Any],
        *,
        only_if: dict[str, Any] | None = None,
    ) -> bool:
        table = _TABLES[collection]
        _check_columns(table, changes)
        try:
            conditions = _conditions(table, {"id": record_id, **(only_if or {})})
        except _InvalidIdFilter:
            return False

        stmt = (
            update(table)
            .where(*conditions)
            .values({**changes, "updated_at": utcnow()})
        )
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            await session.commit()
        return result.rowcount > 0
