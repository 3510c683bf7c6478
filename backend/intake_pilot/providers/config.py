"""Provider configuration management.

Centralized configuration for the LLM backend. Built once (usually from the
environment) and passed explicitly into the guarded caller, so credentials
are never read from global state at call time.
"""

import os
from dataclasses import dataclass

from intake_pilot.providers.errors import ConfigurationError

# Provider name -> attribute holding its API key. "mock" needs no key.
_PROVIDER_KEY_FIELDS: dict[str, str | None] = {
    "openai": "openai_api_key",
    "claude": "anthropic_api_key",
    "gemini": "google_api_key",
    "mock": None,
}


@dataclass(frozen=True)
class ProviderConfig:
    """Centralized provider configuration.

    Attributes:
        llm_provider: Which LLM provider to use ("openai", "claude", "gemini", "mock").
        openai_api_key: OpenAI API key (loaded from environment).
        anthropic_api_key: Anthropic API key (loaded from environment).
        google_api_key: Google AI API key (loaded from environment).
        openai_model_routing: Override model routing for OpenAI.
        claude_model_routing: Override model routing for Claude.
        gemini_model_routing: Override model routing for Gemini.
        default_max_tokens: Default max output tokens.
        default_temperature: Default sampling temperature.
    """

    # Provider selection
    llm_provider: str = "openai"

    # API keys (loaded from environment)
    openai_api_key: str | None = None
    anthropic_api_key: str | None = None
    google_api_key: str | None = None

    # Model routing (can override defaults)
    openai_model_routing: dict[str, str] | None = None
    claude_model_routing: dict[str, str] | None = None
    gemini_model_routing: dict[str, str] | None = None

    # Defaults
    default_max_tokens: int = 2000
    default_temperature: float = 0.7

    @classmethod
    def from_env(cls) -> "ProviderConfig":
        """Load configuration from environment variables.

        Returns:
            ProviderConfig instance with values from environment.
        """
        return cls(
            llm_provider=os.getenv("LLM_PROVIDER", "openai"),
            openai_api_key=os.getenv("OPENAI_API_KEY"),
            anthropic_api_key=os.getenv("ANTHROPIC_API_KEY"),
            google_api_key=os.getenv("GOOGLE_API_KEY"),
            default_max_tokens=int(os.getenv("DEFAULT_MAX_TOKENS", "2000")),
            default_temperature=float(os.getenv("DEFAULT_TEMPERATURE", "0.7")),
        )

    def ensure_credentials(self) -> None:
        """Verify the selected provider is known and has its API key.

        Raises:
            ConfigurationError: If the provider name is unknown or its key
                is missing/blank.
        """
        if self.llm_provider not in _PROVIDER_KEY_FIELDS:
            raise ConfigurationError(f"Unknown LLM provider: {self.llm_provider}")

        key_field = _PROVIDER_KEY_FIELDS[self.llm_provider]
        if key_field is None:
            return
        if not (getattr(self, key_field) or "").strip():
            raise ConfigurationError(
                f"{key_field.upper()} is not configured for provider "
                f"'{self.llm_provider}'"
            )
