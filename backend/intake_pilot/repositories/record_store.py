"""Record store contract.

The pipeline persists every entity (intake cases, artifacts, runs, sessions)
through this keyed-record interface. Records are plain dicts keyed by
column name; the store owns identifier and timestamp assignment.

WHY A GENERIC STORE:
- Stages and the run ledger stay independent of SQLAlchemy
- Tests run against the in-memory store without PostgreSQL
- "Most recent artifact" is one explicit, ordered query instead of an
  accident of table scan order
"""

import uuid
from abc import ABC, abstractmethod
from datetime import UTC, datetime
from enum import Enum
from typing import Any


class Collection(str, Enum):
    """Named record collections (table names in the SQL store)."""

    UPLOADED_DOCUMENTS = "uploaded_documents"
    INTAKE_CASES = "intake_extractions"
    INTAKE_ATTACHMENTS = "intake_attachments"
    ANALYSES = "ai_analysis"
    RISK_DIAGNOSTICS = "risk_diagnostics"
    ACTION_ITEM_SETS = "action_item_sets"
    WORKFLOW_RECOMMENDATIONS = "workflow_recommendations"
    PREFLIGHT_PACKS = "preflight_packs"
    CUSTOMER_ENRICHMENT = "customer_enrichment"
    INTERVIEW_SESSIONS = "interview_sessions"
    AI_RUNS = "ai_runs"


def new_record_id() -> str:
    """Generate a globally unique record identifier."""
    return str(uuid.uuid4())


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(UTC)


def is_record_id(value: Any) -> bool:
    """Whether ``value`` is a well-formed record identifier (UUID string)."""
    if not isinstance(value, str):
        return False
    try:
        uuid.UUID(value)
    except ValueError:
        return False
    return True


def prepare_insert(record: dict[str, Any]) -> dict[str, Any]:
    """Copy ``record`` and fill ``id``, ``created_at`` and ``updated_at``.

    Caller-supplied values win, so a stage can pre-allocate an id.
    """
    prepared = dict(record)
    now = utcnow()
    if not prepared.get("id"):
        prepared["id"] = new_record_id()
    prepared.setdefault("created_at", now)
    prepared.setdefault("updated_at", prepared["created_at"])
    return prepared


class RecordStore(ABC):
    """Abstract async keyed-record store.

    Ordering contract: "latest" and list order are ``created_at`` descending,
    ties broken by a store-specific stable key.
    """

    @abstractmethod
    async def get(self, collection: Collection, record_id: str) -> dict | None:
        """Fetch a record by id.

        Returns:
            The record, or None when it does not exist.
        """
        ...

    @abstractmethod
    async def get_latest(self, collection: Collection, **filters: Any) -> dict | None:
        """Fetch the most recently created record matching ``filters``.

        Args:
            collection: Collection to query.
            **filters: Column equality filters (None matches NULL).

        Returns:
            The newest matching record, or None.
        """
        ...

    @abstractmethod
    async def list_records(
        self,
        collection: Collection,
        *,
        limit: int | None = None,
        **filters: Any,
    ) -> list[dict]:
        """List records matching ``filters``, newest first."""
        ...

    @abstractmethod
    async def insert(self, collection: Collection, record: dict[str, Any]) -> str:
        """Insert a record and return its id.

        ``id``, ``created_at`` and ``updated_at`` are assigned when absent.

        Raises:
            ValueError: If the record names a column the collection lacks.
        """
        ...

    @abstractmethod
    async def update(
        self,
        collection: Collection,
        record_id: str,
        changes: dict[str, Any],
        *,
        only_if: dict[str, Any] | None = None,
    ) -> bool:
        """Apply ``changes`` to a record.

        Args:
            collection: Collection holding the record.
            record_id: Record to change.
            changes: Column -> new value.
            only_if: Compare-and-set guard; the update applies only when
                every listed column currently equals the given value.

        Returns:
            True if the record was changed, False if it is missing or the
            guard did not match.
        """
        ...
