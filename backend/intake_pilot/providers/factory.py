"""Provider factory functions.

Singleton pattern for the LLM provider instance.
"""

from intake_pilot.providers.config import ProviderConfig
from intake_pilot.providers.errors import ConfigurationError
from intake_pilot.providers.llm.base import LLMProvider
from intake_pilot.providers.llm.claude_adapter import ClaudeAdapter
from intake_pilot.providers.llm.gemini_adapter import GeminiAdapter
from intake_pilot.providers.llm.mock_adapter import MockLLMProvider
from intake_pilot.providers.llm.openai_adapter import OpenAIAdapter

_llm_provider: LLMProvider | None = None


def get_llm_provider(config: ProviderConfig | None = None) -> LLMProvider:
    """Get or create the LLM provider singleton.

    WHY SINGLETON:
    - Reuses HTTP connections across pipeline runs
    - Consistent configuration across app

    Args:
        config: Optional provider configuration. If None and no provider
            exists, loads from environment.

    Returns:
        LLMProvider instance.

    Raises:
        ConfigurationError: If the configured provider is unknown or its
            credentials are missing.
    """
    global _llm_provider

    if _llm_provider is None:
        if config is None:
            config = ProviderConfig.from_env()
        config.ensure_credentials()

        if config.llm_provider == "claude":
            _llm_provider = ClaudeAdapter(config)
        elif config.llm_provider == "openai":
            _llm_provider = OpenAIAdapter(config)
        elif config.llm_provider == "gemini":
            _llm_provider = GeminiAdapter(config)
        elif config.llm_provider == "mock":
            _llm_provider = MockLLMProvider()
        else:
            raise ConfigurationError(f"Unknown LLM provider: {config.llm_provider}")

    return _llm_provider


def reset_providers() -> None:
    """Reset provider singletons.

    Used in tests to ensure isolation between test cases.
    """
    global _llm_provider
    _llm_provider = None
