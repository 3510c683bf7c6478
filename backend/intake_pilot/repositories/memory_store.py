"""In-memory record store.

Backs the test suite and local demo mode (``RECORD_STORE=memory``). Records
are deep-copied on the way in and out so callers can never mutate stored
state by accident.
"""

import copy
import logging
from collections import defaultdict
from typing import Any

from intake_pilot.repositories.record_store import (
    Collection,
    RecordStore,
    prepare_insert,
    utcnow,
)

logger = logging.getLogger(__name__)


def _matches(record: dict[str, Any], filters: dict[str, Any]) -> bool:
    return all(record.get(key) == value for key, value in filters.items())


class InMemoryRecordStore(RecordStore):
    """Dict-backed RecordStore.

    Ties on ``created_at`` are broken by insertion order (later wins), which
    keeps "latest" well-defined even when the clock does not advance between
    two inserts.
    """

    def __init__(self) -> None:
        self._records: dict[Collection, list[dict[str, Any]]] = defaultdict(list)

    def _find(self, collection: Collection, record_id: str) -> dict[str, Any] | None:
        for record in self._records[collection]:
            if record["id"] == record_id:
                return record
        return None

    def _newest_first(
        self, collection: Collection, filters: dict[str, Any]
    ) -> list[dict[str, Any]]:
        indexed = [
            (index, record)
            for index, record in enumerate(self._records[collection])
            if _matches(record, filters)
        ]
        indexed.sort(key=lambda pair: (pair[1]["created_at"], pair[0]), reverse=True)
        return [record for _, record in indexed]

    async def get(self, collection: Collection, record_id: str) -> dict | None:
        record = self._find(collection, record_id)
        return copy.deepcopy(record) if record is not None else None

    async def get_latest(self, collection: Collection, **filters: Any) -> dict | None:
        matches = self._newest_first(collection, filters)
        return copy.deepcopy(matches[0]) if matches else None

    async def list_records(
        self,
        collection: Collection,
        *,
        limit: int | None = None,
        **filters: Any,
    ) -> list[dict]:
        matches = self._newest_first(collection, filters)
        if limit is not None:
            matches = matches[:limit]
        return copy.deepcopy(matches)

    async def insert(self, collection: Collection, record: dict[str, Any]) -> str:
        prepared = prepare_insert(copy.deepcopy(record))
        if self._find(collection, prepared["id"]) is not None:
            raise ValueError(
                f"Duplicate id {prepared['id']} in collection {collection.value}"
            )
        self._records[collection].append(prepared)
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
        record = self._find(collection, record_id)
        if record is None:
            return False
        if only_if and not _matches(record, only_if):
            return False
        record.update(copy.deepcopy(changes))
        record["updated_at"] = utcnow()
        return True
