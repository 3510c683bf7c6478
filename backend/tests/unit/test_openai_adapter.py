"""Tests for the OpenAI LLM adapter.

Tests the OpenAIAdapter implementation with a mocked OpenAI client.
"""

from unittest.mock import AsyncMock, MagicMock, patch

import openai
import pytest

from intake_pilot.providers.config import ProviderConfig
from intake_pilot.providers.errors import (
    AuthenticationError,
    ContextLengthError,
    ModelNotFoundError,
    RateLimitError,
    TransientError,
)
from intake_pilot.providers.llm.base import LLMMessage, TaskType
from intake_pilot.providers.llm.openai_adapter import OpenAIAdapter

_MESSAGES = [
    LLMMessage(role="system", content="You plan onboarding actions."),
    LLMMessage(role="user", content="Plan it."),
]


@pytest.fixture
def config():
    return ProviderConfig(llm_provider="openai", openai_api_key="test-api-key")


@pytest.fixture
def mock_openai_response():
    """Create a mock OpenAI chat completion."""
    response = MagicMock()
    choice = MagicMock()
    choice.message.content = '{"actionItems": []}'
    choice.finish_reason = "stop"
    response.choices = [choice]
    response.usage = MagicMock(prompt_tokens=12, completion_tokens=8)
    return response


def _patched_adapter(config, **create_kwargs):
    patcher = patch("intake_pilot.providers.llm.openai_adapter.AsyncOpenAI")
    mock_cls = patcher.start()
    mock_client = MagicMock()
    mock_client.chat.completions.create = AsyncMock(**create_kwargs)
    mock_cls.return_value = mock_client
    adapter = OpenAIAdapter(config)
    patcher.stop()
    return adapter, mock_client, mock_cls


class TestOpenAIAdapter:
    def test_init_disables_sdk_retries(self, config):
        _, _, mock_cls = _patched_adapter(config)

        mock_cls.assert_called_once_with(api_key="test-api-key", max_retries=0)

    def test_every_stage_routes_to_mini(self, config):
        adapter, _, _ = _patched_adapter(config)

        for task in TaskType:
            assert adapter.get_model_for_task(task) == "gpt-4o-mini"

    async def test_json_mode_sets_response_format(self, config, mock_openai_response):
        adapter, client, _ = _patched_adapter(config, return_value=mock_openai_response)

        response = await adapter.complete(
            _MESSAGES, TaskType.ACTION_PLANNING, max_tokens=2500, temperature=0.7, json_mode=True
        )

        kwargs = client.chat.completions.create.call_args.kwargs
        assert kwargs["response_format"] == {"type": "json_object"}
        assert kwargs["messages"][0] == {
            "role": "system",
            "content": "You plan onboarding actions.",
        }
        assert kwargs["max_tokens"] == 2500
        assert response.content == '{"actionItems": []}'
        assert response.input_tokens == 12
        assert response.output_tokens == 8

    async def test_plain_mode_has_no_response_format(self, config, mock_openai_response):
        adapter, client, _ = _patched_adapter(config, return_value=mock_openai_response)

        await adapter.complete(_MESSAGES, TaskType.ACTION_PLANNING)

        assert client.chat.completions.create.call_args.kwargs["response_format"] is None

    async def test_empty_choices_give_none_content(self, config):
        response = MagicMock()
        response.choices = []
        response.usage = None
        adapter, _, _ = _patched_adapter(config, return_value=response)

        result = await adapter.complete(_MESSAGES, TaskType.ACTION_PLANNING)

        assert result.content is None
        assert result.total_tokens == 0
        assert result.finish_reason == "unknown"


class TestOpenAIAdapterErrorMapping:
    async def test_rate_limit(self, config):
        mock_response = MagicMock(status_code=429)
        mock_response.headers = {"retry-after": "2.5"}
        error = openai.RateLimitError(
            message="Rate limit exceeded", response=mock_response, body=None
        )
        adapter, _, _ = _patched_adapter(config, side_effect=error)

        with pytest.raises(RateLimitError) as exc_info:
            await adapter.complete(_MESSAGES, TaskType.INTERVIEW)

        assert exc_info.value.retry_after_seconds == 2.5

    async def test_authentication(self, config):
        error = openai.AuthenticationError(
            message="bad key", response=MagicMock(status_code=401), body=None
        )
        adapter, _, _ = _patched_adapter(config, side_effect=error)

        with pytest.raises(AuthenticationError):
            await adapter.complete(_MESSAGES, TaskType.INTERVIEW)

    async def test_model_not_found(self, config):
        error = openai.NotFoundError(
            message="model gpt-x does not exist",
            response=MagicMock(status_code=404),
            body=None,
        )
        adapter, _, _ = _patched_adapter(config, side_effect=error)

        with pytest.raises(ModelNotFoundError):
            await adapter.complete(_MESSAGES, TaskType.INTERVIEW)

    async def test_context_length(self, config):
        error = openai.BadRequestError(
            message="maximum context_length exceeded",
            response=MagicMock(status_code=400),
            body=None,
        )
        adapter, _, _ = _patched_adapter(config, side_effect=error)

        with pytest.raises(ContextLengthError):
            await adapter.complete(_MESSAGES, TaskType.INTERVIEW)

    async def test_connection_error_is_transient(self, config):
        error = openai.APIConnectionError(message="Connection failed", request=MagicMock())
        adapter, _, _ = _patched_adapter(config, side_effect=error)

        with pytest.raises(TransientError):
            await adapter.complete(_MESSAGES, TaskType.INTERVIEW)
