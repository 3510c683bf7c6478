"""Tests for provider factory functions.

Singleton pattern for the LLM provider instance.
"""

from unittest.mock import patch

import pytest

from intake_pilot.providers.config import ProviderConfig
from intake_pilot.providers.errors import ConfigurationError
from intake_pilot.providers.factory import get_llm_provider, reset_providers
from intake_pilot.providers.guarded_caller import GuardedModelCaller
from intake_pilot.providers.llm.mock_adapter import MockLLMProvider
from intake_pilot.providers.llm.openai_adapter import OpenAIAdapter


class TestGetLLMProvider:
    def setup_method(self):
        """Reset singletons before each test."""
        reset_providers()

    def teardown_method(self):
        reset_providers()

    def test_mock_provider(self):
        assert isinstance(get_llm_provider(ProviderConfig(llm_provider="mock")), MockLLMProvider)

    def test_singleton_returns_same_instance(self):
        first = get_llm_provider(ProviderConfig(llm_provider="mock"))

        assert get_llm_provider() is first

    def test_openai_provider_built_from_config(self):
        config = ProviderConfig(llm_provider="openai", openai_api_key="sk-test")
        with patch("intake_pilot.providers.llm.openai_adapter.AsyncOpenAI"):
            provider = get_llm_provider(config)

        assert isinstance(provider, OpenAIAdapter)
        assert provider.provider_name == "openai"

    def test_uses_config_from_env_when_none_provided(self):
        with patch("intake_pilot.providers.factory.ProviderConfig.from_env") as mock_from_env:
            mock_from_env.return_value = ProviderConfig(llm_provider="mock")

            provider = get_llm_provider()

        mock_from_env.assert_called_once()
        assert isinstance(provider, MockLLMProvider)

    def test_missing_credentials_raise(self):
        with pytest.raises(ConfigurationError):
            get_llm_provider(ProviderConfig(llm_provider="claude"))


class TestGuardedCallerConstruction:
    def setup_method(self):
        reset_providers()

    def teardown_method(self):
        reset_providers()

    def test_missing_key_fails_at_construction(self):
        with pytest.raises(ConfigurationError):
            GuardedModelCaller(ProviderConfig(llm_provider="openai"))

    def test_defaults_to_factory_provider(self):
        caller = GuardedModelCaller(ProviderConfig(llm_provider="mock"))

        assert caller.provider is get_llm_provider()
