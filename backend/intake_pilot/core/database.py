"""Async database engine and session management.

Configures the SQLAlchemy async engine with connection pooling and the
session factory the SQL record store runs on. The engine connects lazily, so
importing this module is harmless when the in-memory record store is used.
"""

from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from intake_pilot.core.config import settings

engine = create_async_engine(
    settings.database_url,
    echo=settings.environment == "development",
    pool_pre_ping=True,
)

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)
