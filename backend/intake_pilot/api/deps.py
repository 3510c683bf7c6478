"""Shared dependencies for API endpoints.

WHY DEPENDENCY INJECTION:
- Record store backend is chosen by settings (PostgreSQL or in-memory)
- Tests override ``get_record_store`` / ``get_model_caller`` with fakes
- Missing provider credentials surface as 503 per request, not at import
"""

from typing import Annotated

import structlog
from fastapi import Depends

from intake_pilot.core.config import settings
from intake_pilot.core.database import async_session_factory
from intake_pilot.core.errors import ServiceUnavailableError
from intake_pilot.providers.config import ProviderConfig
from intake_pilot.providers.errors import ConfigurationError
from intake_pilot.providers.guarded_caller import GuardedModelCaller
from intake_pilot.repositories.memory_store import InMemoryRecordStore
from intake_pilot.repositories.record_store import RecordStore
from intake_pilot.repositories.sql_store import SqlRecordStore
from intake_pilot.services.run_ledger import RunLedger

logger = structlog.get_logger()

_memory_store: InMemoryRecordStore | None = None


def get_record_store() -> RecordStore:
    """Record store selected by ``settings.record_store``.

    The in-memory store is a process-wide singleton so records survive
    across requests in demo mode.
    """
    global _memory_store

    if settings.record_store == "memory":
        if _memory_store is None:
            _memory_store = InMemoryRecordStore()
        return _memory_store

    return SqlRecordStore(async_session_factory)


def get_model_caller() -> GuardedModelCaller:
    """Guarded model caller for the configured provider.

    Raises:
        ServiceUnavailableError: If the provider is unknown or lacks its key.
    """
    try:
        return GuardedModelCaller(ProviderConfig.from_env())
    except ConfigurationError as e:
        logger.error("llm_provider_not_configured", error=str(e))
        raise ServiceUnavailableError("Model backend is not configured") from e


def get_run_ledger(
    store: Annotated[RecordStore, Depends(get_record_store)],
) -> RunLedger:
    return RunLedger(store)


Store = Annotated[RecordStore, Depends(get_record_store)]
Caller = Annotated[GuardedModelCaller, Depends(get_model_caller)]
Ledger = Annotated[RunLedger, Depends(get_run_ledger)]
