"""Tests for the Claude LLM adapter.

Tests the ClaudeAdapter implementation with a mocked Anthropic client.
"""

from unittest.mock import AsyncMock, MagicMock, patch

import anthropic
import pytest

from intake_pilot.providers.config import ProviderConfig
from intake_pilot.providers.errors import (
    AuthenticationError,
    ContentFilterError,
    ContextLengthError,
    ProviderError,
    RateLimitError,
    TransientError,
)
from intake_pilot.providers.llm.base import LLMMessage, TaskType
from intake_pilot.providers.llm.claude_adapter import ClaudeAdapter

_MESSAGES = [
    LLMMessage(role="system", content="You analyze EDI intake forms."),
    LLMMessage(role="user", content="Analyze this."),
]


@pytest.fixture
def config():
    """Create a test provider config using built-in defaults."""
    return ProviderConfig(
        llm_provider="claude",
        anthropic_api_key="test-api-key",
        default_max_tokens=4096,
        default_temperature=0.7,
    )


@pytest.fixture
def mock_anthropic_response():
    """Create a mock Anthropic API response."""
    response = MagicMock()
    response.content = [MagicMock(type="text", text='{"readiness_score": 70}')]
    response.usage = MagicMock(input_tokens=10, output_tokens=20)
    response.stop_reason = "end_turn"
    return response


def _adapter_raising(config, error: Exception) -> ClaudeAdapter:
    with patch("intake_pilot.providers.llm.claude_adapter.AsyncAnthropic") as mock_cls:
        mock_client = AsyncMock()
        mock_client.messages.create = AsyncMock(side_effect=error)
        mock_cls.return_value = mock_client
        return ClaudeAdapter(config)


class TestClaudeAdapterInit:
    def test_init_disables_sdk_retries(self, config):
        """The guarded caller owns retry policy, so the SDK must not retry."""
        with patch("intake_pilot.providers.llm.claude_adapter.AsyncAnthropic") as mock_cls:
            ClaudeAdapter(config)

        mock_cls.assert_called_once_with(api_key="test-api-key", max_retries=0)

    def test_extraction_stages_use_haiku(self, config):
        with patch("intake_pilot.providers.llm.claude_adapter.AsyncAnthropic"):
            adapter = ClaudeAdapter(config)

        assert "haiku" in adapter.get_model_for_task(TaskType.INTAKE_ANALYSIS)
        assert "sonnet" in adapter.get_model_for_task(TaskType.ACTION_PLANNING)

    def test_config_routing_overrides_defaults(self):
        config = ProviderConfig(
            llm_provider="claude",
            anthropic_api_key="k",
            claude_model_routing={"interview": "my-custom-model"},
        )
        with patch("intake_pilot.providers.llm.claude_adapter.AsyncAnthropic"):
            adapter = ClaudeAdapter(config)

        assert adapter.get_model_for_task(TaskType.INTERVIEW) == "my-custom-model"
        assert "sonnet" in adapter.get_model_for_task(TaskType.RISK_DIAGNOSTICS)


class TestClaudeAdapterComplete:
    async def test_system_message_extracted(self, config, mock_anthropic_response):
        with patch("intake_pilot.providers.llm.claude_adapter.AsyncAnthropic") as mock_cls:
            mock_client = AsyncMock()
            mock_client.messages.create = AsyncMock(return_value=mock_anthropic_response)
            mock_cls.return_value = mock_client
            adapter = ClaudeAdapter(config)

            response = await adapter.complete(
                _MESSAGES, TaskType.INTAKE_ANALYSIS, max_tokens=3000, temperature=0.3
            )

        kwargs = mock_client.messages.create.call_args.kwargs
        assert kwargs["system"] == "You analyze EDI intake forms."
        assert kwargs["messages"] == [{"role": "user", "content": "Analyze this."}]
        assert kwargs["max_tokens"] == 3000
        assert kwargs["temperature"] == 0.3
        assert response.content == '{"readiness_score": 70}'
        assert response.total_tokens == 30

    async def test_json_mode_appends_instruction(self, config, mock_anthropic_response):
        with patch("intake_pilot.providers.llm.claude_adapter.AsyncAnthropic") as mock_cls:
            mock_client = AsyncMock()
            mock_client.messages.create = AsyncMock(return_value=mock_anthropic_response)
            mock_cls.return_value = mock_client
            adapter = ClaudeAdapter(config)

            await adapter.complete(_MESSAGES, TaskType.INTAKE_ANALYSIS, json_mode=True)

        system = mock_client.messages.create.call_args.kwargs["system"]
        assert system.startswith("You analyze EDI intake forms.")
        assert "valid JSON" in system

    async def test_defaults_used_when_not_overridden(self, config, mock_anthropic_response):
        with patch("intake_pilot.providers.llm.claude_adapter.AsyncAnthropic") as mock_cls:
            mock_client = AsyncMock()
            mock_client.messages.create = AsyncMock(return_value=mock_anthropic_response)
            mock_cls.return_value = mock_client
            adapter = ClaudeAdapter(config)

            await adapter.complete(_MESSAGES, TaskType.INTERVIEW)

        kwargs = mock_client.messages.create.call_args.kwargs
        assert kwargs["max_tokens"] == 4096
        assert kwargs["temperature"] == 0.7

    async def test_no_text_blocks_gives_none_content(self, config):
        response = MagicMock()
        response.content = []
        response.usage = MagicMock(input_tokens=5, output_tokens=0)
        response.stop_reason = None
        with patch("intake_pilot.providers.llm.claude_adapter.AsyncAnthropic") as mock_cls:
            mock_client = AsyncMock()
            mock_client.messages.create = AsyncMock(return_value=response)
            mock_cls.return_value = mock_client
            adapter = ClaudeAdapter(config)

            result = await adapter.complete(_MESSAGES, TaskType.INTERVIEW)

        assert result.content is None
        assert result.finish_reason == "unknown"


class TestClaudeAdapterErrorMapping:
    async def test_rate_limit_error_includes_retry_after(self, config):
        mock_response = MagicMock(status_code=429)
        mock_response.headers = {"retry-after": "30"}
        error = anthropic.RateLimitError(
            message="Rate limit exceeded", response=mock_response, body=None
        )
        adapter = _adapter_raising(config, error)

        with pytest.raises(RateLimitError) as exc_info:
            await adapter.complete(_MESSAGES, TaskType.INTERVIEW)

        assert exc_info.value.retry_after_seconds == 30.0

    async def test_authentication_error_mapped(self, config):
        error = anthropic.AuthenticationError(
            message="Invalid API key", response=MagicMock(status_code=401), body=None
        )
        adapter = _adapter_raising(config, error)

        with pytest.raises(AuthenticationError, match="Invalid API key"):
            await adapter.complete(_MESSAGES, TaskType.INTERVIEW)

    @pytest.mark.parametrize(
        ("message", "expected"),
        [
            ("prompt is too long: 250000 tokens", ContextLengthError),
            ("Blocked due to content_policy violation", ContentFilterError),
            ("Invalid request parameters", ProviderError),
        ],
    )
    async def test_bad_request_classified(self, config, message, expected):
        error = anthropic.BadRequestError(
            message=message, response=MagicMock(status_code=400), body=None
        )
        adapter = _adapter_raising(config, error)

        with pytest.raises(expected):
            await adapter.complete(_MESSAGES, TaskType.INTERVIEW)

    async def test_connection_error_is_transient(self, config):
        error = anthropic.APIConnectionError(message="Connection failed", request=MagicMock())
        adapter = _adapter_raising(config, error)

        with pytest.raises(TransientError, match="Connection failed"):
            await adapter.complete(_MESSAGES, TaskType.INTERVIEW)
