"""Claude/Anthropic LLM adapter.

Provider-specific adapter for Claude. Anthropic has no native JSON mode,
so JSON output is requested through the system prompt.
"""

import contextlib
import time
from collections.abc import Sequence
from typing import TYPE_CHECKING

import anthropic
import structlog
from anthropic import AsyncAnthropic

from intake_pilot.providers.errors import (
    AuthenticationError,
    ContentFilterError,
    ContextLengthError,
    ModelNotFoundError,
    ProviderError,
    RateLimitError,
    TransientError,
)
from intake_pilot.providers.llm.base import (
    LLMMessage,
    LLMProvider,
    LLMResponse,
    TaskType,
)

if TYPE_CHECKING:
    from intake_pilot.providers.config import ProviderConfig

logger = structlog.get_logger()


# Default model routing table.
# Extraction-heavy stages use Haiku; the planning stages that reason over
# several prior artifacts use Sonnet.
DEFAULT_CLAUDE_ROUTING: dict[str, str] = {
    "intake_analysis": "claude-3-5-haiku-20241022",
    "interview": "claude-3-5-haiku-20241022",
    "risk_diagnostics": "claude-3-5-sonnet-20241022",
    "action_planning": "claude-3-5-sonnet-20241022",
    "workflow_recommendation": "claude-3-5-sonnet-20241022",
    "preflight_pack": "claude-3-5-sonnet-20241022",
}

# Fallback if task type not in routing table
DEFAULT_CLAUDE_MODEL = "claude-3-5-sonnet-20241022"

_JSON_ONLY_INSTRUCTION = (
    "Respond ONLY with valid JSON. No explanations, no markdown, just the JSON object."
)


def _classify_claude_error(error: Exception) -> ProviderError:
    """Map Claude/Anthropic exceptions to internal error taxonomy.

    Returns a ProviderError subclass instance (does not raise).
    The caller is responsible for raising via ``raise _classify_claude_error(e) from e``.
    """
    if isinstance(error, anthropic.RateLimitError):
        retry_after = None
        if hasattr(error, "response") and error.response is not None:
            retry_header = error.response.headers.get("retry-after")
            if retry_header is not None:
                with contextlib.suppress(ValueError):
                    retry_after = float(retry_header)
        return RateLimitError(str(error), retry_after_seconds=retry_after)

    if isinstance(error, anthropic.AuthenticationError):
        return AuthenticationError(str(error))

    if isinstance(error, anthropic.NotFoundError):
        return ModelNotFoundError(str(error))

    if isinstance(error, anthropic.BadRequestError):
        error_msg = str(error).lower()
        if "context_length" in error_msg or "prompt is too long" in error_msg:
            return ContextLengthError(str(error))
        if "content_policy" in error_msg:
            return ContentFilterError(str(error))
        return ProviderError(str(error))

    if isinstance(error, anthropic.APIConnectionError | anthropic.InternalServerError):
        return TransientError(str(error))

    return ProviderError(str(error))


def _convert_claude_messages(
    messages: Sequence[LLMMessage],
) -> tuple[str | None, list[dict]]:
    """Convert LLMMessages to Anthropic format, extracting system messages.

    Returns:
        Tuple of (system_message, api_messages). Multiple system messages are
        joined in order.
    """
    system_parts: list[str] = []
    api_messages: list[dict] = []

    for msg in messages:
        if msg.role == "system":
            system_parts.append(msg.content)
        else:
            api_messages.append({"role": msg.role, "content": msg.content})

    system_msg = "\n\n".join(system_parts) if system_parts else None
    return system_msg, api_messages


class ClaudeAdapter(LLMProvider):
    """Claude adapter using the Anthropic SDK."""

    @property
    def provider_name(self) -> str:
        """Return 'claude' for run provenance."""
        return "claude"

    def __init__(self, config: "ProviderConfig") -> None:
        """Initialize Claude adapter.

        Args:
            config: Provider configuration with Anthropic API key.
        """
        super().__init__(config)
        self.client = AsyncAnthropic(api_key=config.anthropic_api_key, max_retries=0)
        self.model_routing = {**DEFAULT_CLAUDE_ROUTING}
        if config.claude_model_routing:
            self.model_routing.update(config.claude_model_routing)

    async def complete(
        self,
        messages: Sequence[LLMMessage],
        task: TaskType,
        max_tokens: int | None = None,
        temperature: float | None = None,
        json_mode: bool = False,
    ) -> LLMResponse:
        """Generate completion using Claude.

        Args:
            messages: Conversation history as a sequence of LLMMessage.
            task: Task type for model routing.
            max_tokens: Override default max tokens.
            temperature: Override default temperature.
            json_mode: If True, instruct the model to return only JSON.

        Returns:
            LLMResponse with content and token usage.
        """
        model = self.get_model_for_task(task)
        system_msg, api_messages = _convert_claude_messages(messages)

        if json_mode:
            system_msg = (
                f"{system_msg}\n\nIMPORTANT: {_JSON_ONLY_INSTRUCTION}"
                if system_msg
                else _JSON_ONLY_INSTRUCTION
            )

        logger.info(
            "llm_request_start",
            provider="claude",
            model=model,
            task=task.value,
            message_count=len(messages),
        )

        start_time = time.monotonic()

        try:
            response = await self.client.messages.create(
                model=model,
                max_tokens=max_tokens
                if max_tokens is not None
                else self.config.default_max_tokens,
                temperature=temperature
                if temperature is not None
                else self.config.default_temperature,
                system=system_msg or anthropic.NOT_GIVEN,
                messages=api_messages,  # type: ignore[arg-type]
            )
        except anthropic.APIError as e:
            logger.error(
                "llm_request_failed",
                provider="claude",
                model=model,
                task=task.value,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise _classify_claude_error(e) from e

        latency_ms = (time.monotonic() - start_time) * 1000
        text_blocks = [block.text for block in response.content if block.type == "text"]
        content = "".join(text_blocks) if text_blocks else None

        logger.info(
            "llm_request_complete",
            provider="claude",
            model=model,
            task=task.value,
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
            latency_ms=latency_ms,
        )

        return LLMResponse(
            content=content,
            model=model,
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
            finish_reason=response.stop_reason or "unknown",
            latency_ms=latency_ms,
        )

    def get_model_for_task(self, task: TaskType) -> str:
        """Get model for task using routing table."""
        return self.model_routing.get(task.value, DEFAULT_CLAUDE_MODEL)
