"""Shared test fixtures.

Most tests run against InMemoryRecordStore and MockLLMProvider, so they need
neither PostgreSQL nor network access. SQL-store tests skip when PostgreSQL
is not reachable.
"""

import socket
from collections.abc import AsyncGenerator, Awaitable, Callable, Iterator
from typing import Any

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine

from intake_pilot.api.deps import get_model_caller, get_record_store
from intake_pilot.core.config import settings
from intake_pilot.main import create_app
from intake_pilot.models import Base
from intake_pilot.providers import factory
from intake_pilot.providers.config import ProviderConfig
from intake_pilot.providers.guarded_caller import GuardedModelCaller
from intake_pilot.providers.llm.mock_adapter import MockLLMProvider
from intake_pilot.repositories.memory_store import InMemoryRecordStore
from intake_pilot.repositories.record_store import Collection
from intake_pilot.services.run_ledger import RUN_SUCCEEDED


def _is_postgres_available() -> bool:
    """Check if PostgreSQL is accepting connections.

    Returns:
        True if PostgreSQL is reachable on port 5432, False otherwise.
    """
    try:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        sock.settimeout(1)
        result = sock.connect_ex(("127.0.0.1", 5432))
        sock.close()
        return result == 0
    except OSError:
        return False

# Check once at module load time
_POSTGRES_AVAILABLE = _is_postgres_available()


def skip_if_no_postgres() -> None:
    """Skip test if PostgreSQL is not available."""
    if not _POSTGRES_AVAILABLE:
        pytest.skip(
            "PostgreSQL not available on port 5432. "
            "Start database with: docker compose up -d"
        )


# =============================================================================
# Database Fixtures
# =============================================================================

TEST_DATABASE_URL = settings.database_url.replace(
    settings.database_name, f"{settings.database_name}_test"
)


@pytest_asyncio.fixture(scope="function")
async def db_engine():
    """Create test database engine.

    Skips test if PostgreSQL is not available (e.g., Docker not running).
    """
    skip_if_no_postgres()

    engine = create_async_engine(TEST_DATABASE_URL, echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


# =============================================================================
# Core Fixtures
# =============================================================================


@pytest.fixture
def store() -> InMemoryRecordStore:
    """Fresh in-memory record store."""
    return InMemoryRecordStore()


@pytest.fixture
def mock_llm() -> Iterator[MockLLMProvider]:
    """Mock LLM provider injected into the factory singleton.

    Yields:
        MockLLMProvider with an empty reply queue.
    """
    mock = MockLLMProvider()
    factory._llm_provider = mock

    yield mock

    factory.reset_providers()


@pytest.fixture
def caller(mock_llm: MockLLMProvider) -> GuardedModelCaller:
    """Guarded caller wired to the mock provider."""
    return GuardedModelCaller(ProviderConfig(llm_provider="mock"), provider=mock_llm)


@pytest.fixture(autouse=True)
def disable_rate_limiting() -> Iterator[None]:
    """Disable rate limiting during tests.

    Rate limiting is tested separately; disable for other tests to avoid
    flaky failures from rate limit triggers.
    """
    from intake_pilot.core.rate_limiting import limiter

    original_enabled = limiter.enabled
    limiter.enabled = False

    yield

    limiter.enabled = original_enabled


# =============================================================================
# Seeded Records
# =============================================================================

SAMPLE_INTAKE = {
    "company_name": "Acme Foods",
    "customer_contacts": [{"name": "Dana Lee", "email": "dana@acme.test"}],
    "vendor_contacts": [],
    "go_live_date": "2031-03-01",
    "edi_experience": "Experienced with X12",
    "data_format": "X12",
    "transactions": ["850", "810"],
    "locations": ["Dallas DC"],
    "protocol": "AS2",
    "unique_requirements": None,
}

SAMPLE_ANALYSIS = {
    "readiness_score": 62,
    "complexity_level": "medium",
    "identified_risks": [{"type": "medium", "title": "AS2 certificates pending"}],
    "missing_information": ["protocol", "vendor_contacts"],
    "recommendations": [],
    "locations": ["Dallas DC"],
    "estimated_timeline": "3-5 weeks",
    "go_live_date": "2031-03-01",
}


@pytest_asyncio.fixture
async def intake_id(store: InMemoryRecordStore) -> str:
    """An intake case with sample fields and no artifacts."""
    return await store.insert(Collection.INTAKE_CASES, dict(SAMPLE_INTAKE))


SeedArtifact = Callable[..., Awaitable[str]]


@pytest.fixture
def seed_artifact(store: InMemoryRecordStore) -> SeedArtifact:
    """Insert an artifact backed by a succeeded run.

    Usage:
        analysis_id = await seed_artifact(Collection.ANALYSES, intake_id, {...})
    """

    async def _seed(
        collection: Collection, subject_id: str, fields: dict[str, Any]
    ) -> str:
        run_id = await store.insert(
            Collection.AI_RUNS,
            {
                "intake_id": subject_id,
                "run_type": "seed",
                "model": "mock-model",
                "status": RUN_SUCCEEDED,
                "tokens_used": 0,
            },
        )
        return await store.insert(
            collection, {"intake_id": subject_id, "ai_run_id": run_id, **fields}
        )

    return _seed


@pytest_asyncio.fixture
async def analyzed_intake_id(intake_id: str, seed_artifact: SeedArtifact) -> str:
    """An intake case with one analysis artifact."""
    await seed_artifact(Collection.ANALYSES, intake_id, dict(SAMPLE_ANALYSIS))
    return intake_id


# =============================================================================
# API Fixtures
# =============================================================================


@pytest.fixture
def app(store: InMemoryRecordStore, caller: GuardedModelCaller):
    """Application with the record store and model caller overridden."""
    application = create_app()
    application.dependency_overrides[get_record_store] = lambda: store
    application.dependency_overrides[get_model_caller] = lambda: caller
    yield application
    application.dependency_overrides.clear()


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client for API tests."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
