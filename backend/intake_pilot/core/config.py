"""Application configuration loaded from environment variables.

Settings for database, record store selection, API, CORS and rate limiting.
Uses pydantic-settings for validation and .env file support. LLM provider
credentials live in ProviderConfig (intake_pilot.providers.config), which
is handed explicitly to the guarded caller.
"""

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Known insecure default password that must not be used in production
# Security: Runtime check in check_production_security() prevents use in production
_INSECURE_DEFAULT_PASSWORD = "intake_pilot_dev_password"  # nosec B105

_RECORD_STORES = ("postgres", "memory")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Database
    database_host: str = "localhost"
    database_port: int = 5432
    database_name: str = "intake_pilot"
    database_user: str = "intake_pilot_user"
    database_password: str = _INSECURE_DEFAULT_PASSWORD

    # Record store backend: "postgres" (SQLAlchemy) or "memory" (local demo)
    record_store: str = "postgres"

    # API
    # 0.0.0.0 binds to all network interfaces (required for Docker containers)
    api_host: str = "0.0.0.0"  # nosec B104
    api_port: int = 8000

    # CORS
    # Default allows localhost:5173 for the Vite dev server
    # Production: Set ALLOWED_ORIGINS to specific domain(s)
    allowed_origins: list[str] = ["http://localhost:5173"]

    # Application
    environment: str = "development"
    log_level: str = "INFO"

    # Run reconciliation: pending runs older than this are swept to failed
    run_timeout_seconds: int = 900

    # Rate Limiting (Security)
    # Limits LLM-calling endpoints to prevent abuse and cost explosion
    # Format: "count/period" (e.g., "10/minute", "100/hour")
    rate_limit_llm: str = "10/minute"
    rate_limit_enabled: bool = True  # Disable for testing

    @property
    def database_url(self) -> str:
        """Async database URL for SQLAlchemy."""
        return (
            f"postgresql+asyncpg://{self.database_user}:{self.database_password}"
            f"@{self.database_host}:{self.database_port}/{self.database_name}"
        )

    @property
    def database_url_sync(self) -> str:
        """Sync database URL for Alembic."""
        return (
            f"postgresql://{self.database_user}:{self.database_password}"
            f"@{self.database_host}:{self.database_port}/{self.database_name}"
        )

    @model_validator(mode="after")
    def check_production_security(self) -> "Settings":
        """Validate configuration invariants.

        Checks:
        - Record store is a known backend (all environments)
        - Run timeout is positive (all environments)
        - CORS must not use wildcard origin in production
        - Database password must not be the default in production
        """
        if self.record_store not in _RECORD_STORES:
            msg = (
                f"RECORD_STORE must be one of {', '.join(_RECORD_STORES)}. "
                f"Got: {self.record_store}"
            )
            raise ValueError(msg)

        if self.run_timeout_seconds <= 0:
            msg = f"RUN_TIMEOUT_SECONDS must be positive. Got: {self.run_timeout_seconds}"
            raise ValueError(msg)

        if self.environment == "production":
            if "*" in self.allowed_origins:
                msg = (
                    "ALLOWED_ORIGINS must not contain '*' (wildcard) in production. "
                    "List the frontend origin(s) explicitly."
                )
                raise ValueError(msg)

            if (
                self.record_store == "postgres"
                and self.database_password == _INSECURE_DEFAULT_PASSWORD
            ):
                msg = (
                    "Cannot use default database password in production. "
                    "Set DATABASE_PASSWORD environment variable to a secure value."
                )
                raise ValueError(msg)

        return self


settings = Settings()
