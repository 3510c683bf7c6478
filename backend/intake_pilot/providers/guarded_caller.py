"""Guarded model caller.

Wraps an LLMProvider with the structured-output contract every pipeline
stage relies on: the reply must parse as a single JSON document, and a
malformed reply gets exactly one repair attempt before the call is reported
as failed.

WHY RESULT OBJECTS INSTEAD OF EXCEPTIONS:
- Stages must record every failure in the run ledger, so a failure is data
  the stage consumes, not control flow it has to catch
- The failure kind separates "model unreachable" from "model produced
  garbage twice" for operators reading the ledger

No retry with backoff happens here. Transport failures surface immediately
to keep latency bounded and cost predictable.
"""

import json
import re
from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any

import structlog

from intake_pilot.providers.config import ProviderConfig
from intake_pilot.providers.errors import ProviderError
from intake_pilot.providers.factory import get_llm_provider
from intake_pilot.providers.llm.base import (
    LLMMessage,
    LLMProvider,
    LLMResponse,
    TaskType,
)

__all__ = [
    "REPAIR_INSTRUCTION",
    "REPAIR_TEMPERATURE",
    "FailureKind",
    "GuardedModelCaller",
    "ModelFailure",
    "ModelRequest",
    "ModelResult",
    "ModelSuccess",
    "parse_structured",
]

logger = structlog.get_logger()

REPAIR_TEMPERATURE: float = 0.3
"""Sampling temperature for the repair call (fixed, never inherited)."""

REPAIR_INSTRUCTION = (
    "The previous response was not valid JSON. Please fix it and return "
    "only valid JSON with no additional text."
)

_MAX_TEMPERATURE = 2.0

_FENCE_PATTERN = re.compile(r"^```[a-zA-Z0-9_-]*\s*\n?(.*?)\n?\s*```$", re.DOTALL)


# =============================================================================
# Request / Result Types
# =============================================================================


class FailureKind(str, Enum):
    """Why a model invocation (or the run that wrapped it) failed.

    Values:
        TRANSPORT: The first backend call failed.
        RETRY_TRANSPORT: The first reply was malformed and the repair call failed.
        INVALID_AFTER_RETRY: Both replies failed to parse as structured output.
        INVALID_OUTPUT: Output parsed but violated the stage's output contract.
        TIMEOUT: Run never completed and was swept by reconciliation.
        PERSISTENCE: Output was valid but storing the artifact failed.
    """

    TRANSPORT = "transport"
    RETRY_TRANSPORT = "retry_transport"
    INVALID_AFTER_RETRY = "invalid_after_retry"
    INVALID_OUTPUT = "invalid_output"
    TIMEOUT = "timeout"
    PERSISTENCE = "persistence"


@dataclass(frozen=True)
class ModelRequest:
    """Immutable request to the model backend.

    Attributes:
        messages: Role-tagged conversation, in order. Must be non-empty.
        task: Task type used for model routing.
        temperature: Sampling temperature, 0 <= t <= 2.
        max_output_tokens: Positive output budget.
        require_structured: Whether the reply must be a JSON document.
    """

    messages: tuple[LLMMessage, ...]
    task: TaskType
    temperature: float
    max_output_tokens: int
    require_structured: bool = True

    def __post_init__(self) -> None:
        # Accept any sequence from callers but store a tuple
        if not isinstance(self.messages, tuple):
            object.__setattr__(self, "messages", tuple(self.messages))
        if not self.messages:
            raise ValueError("ModelRequest requires at least one message")
        if not 0 <= self.temperature <= _MAX_TEMPERATURE:
            raise ValueError(
                f"temperature must be between 0 and {_MAX_TEMPERATURE}, "
                f"got {self.temperature}"
            )
        if self.max_output_tokens <= 0:
            raise ValueError(
                f"max_output_tokens must be positive, got {self.max_output_tokens}"
            )


@dataclass(frozen=True)
class ModelSuccess:
    """Successful invocation.

    Attributes:
        data: Parsed JSON value, or raw text when structure was not required.
        tokens_used: Summed token cost of every backend call made.
        model: Model that produced the accepted reply.
    """

    data: Any
    tokens_used: int
    model: str

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class ModelFailure:
    """Failed invocation.

    Attributes:
        reason: Human-readable failure description.
        kind: Failure classification.
        tokens_used: Tokens spent before the failure (0 if nothing came back).
    """

    reason: str
    kind: FailureKind
    tokens_used: int = 0

    @property
    def ok(self) -> bool:
        return False


ModelResult = ModelSuccess | ModelFailure


# =============================================================================
# Structured Output Parsing
# =============================================================================


def parse_structured(text: str | None) -> dict | list | None:
    """Parse model text as a single JSON object or array.

    Surrounding whitespace and at most one enclosing markdown code fence are
    stripped first. Scalars (numbers, strings, null) do not count as
    structured output.

    Args:
        text: Raw model reply.

    Returns:
        The parsed dict or list, or None if the text is not structured output.
    """
    if text is None:
        return None

    candidate = text.strip()
    fence = _FENCE_PATTERN.match(candidate)
    if fence:
        candidate = fence.group(1).strip()

    try:
        parsed = json.loads(candidate)
    except (json.JSONDecodeError, ValueError):
        return None

    if isinstance(parsed, dict | list):
        return parsed
    return None


# =============================================================================
# Caller
# =============================================================================


class GuardedModelCaller:
    """Sends ModelRequests and enforces the structured-output contract.

    Args:
        config: Provider configuration. Credentials are checked here, so a
            missing key raises ConfigurationError at construction.
        provider: Explicit provider instance (tests). Defaults to the
            factory singleton for ``config``.

    Raises:
        ConfigurationError: If the configured provider is unknown or lacks
            its API key.
    """

    def __init__(
        self, config: ProviderConfig, provider: LLMProvider | None = None
    ) -> None:
        config.ensure_credentials()
        self.config = config
        self.provider = provider if provider is not None else get_llm_provider(config)

    def model_for(self, task: TaskType) -> str:
        """Model identifier the backend will route ``task`` to."""
        return self.provider.get_model_for_task(task)

    async def _call(
        self,
        messages: Sequence[LLMMessage],
        request: ModelRequest,
        temperature: float,
    ) -> LLMResponse:
        return await self.provider.complete(
            messages,
            request.task,
            max_tokens=request.max_output_tokens,
            temperature=temperature,
            json_mode=request.require_structured,
        )

    async def invoke(self, request: ModelRequest) -> ModelResult:
        """Invoke the backend with at most one structured-output repair.

        Args:
            request: The model request.

        Returns:
            ModelSuccess with the parsed value and summed token cost, or
            ModelFailure describing why no usable value was produced.
        """
        try:
            first = await self._call(request.messages, request, request.temperature)
        except ProviderError as e:
            logger.warning(
                "model_call_failed",
                task=request.task.value,
                error_type=type(e).__name__,
            )
            return ModelFailure(
                reason=f"Model backend call failed: {e}",
                kind=FailureKind.TRANSPORT,
            )

        tokens_used = first.total_tokens

        if not request.require_structured:
            if first.content is None:
                return ModelFailure(
                    reason="No response from model backend",
                    kind=FailureKind.INVALID_OUTPUT,
                    tokens_used=tokens_used,
                )
            return ModelSuccess(
                data=first.content, tokens_used=tokens_used, model=first.model
            )

        parsed = parse_structured(first.content)
        if parsed is not None:
            return ModelSuccess(data=parsed, tokens_used=tokens_used, model=first.model)

        logger.warning(
            "structured_output_repair",
            task=request.task.value,
            model=first.model,
            reply_length=len(first.content or ""),
        )

        repair_messages = (
            *request.messages,
            LLMMessage(role="assistant", content=first.content or ""),
            LLMMessage(role="user", content=REPAIR_INSTRUCTION),
        )
        try:
            second = await self._call(repair_messages, request, REPAIR_TEMPERATURE)
        except ProviderError as e:
            logger.warning(
                "structured_output_repair_failed",
                task=request.task.value,
                error_type=type(e).__name__,
            )
            return ModelFailure(
                reason=f"Retry transport failure: {e}",
                kind=FailureKind.RETRY_TRANSPORT,
                tokens_used=tokens_used,
            )

        tokens_used += second.total_tokens
        parsed = parse_structured(second.content)
        if parsed is None:
            return ModelFailure(
                reason="Model output was not valid JSON after repair",
                kind=FailureKind.INVALID_AFTER_RETRY,
                tokens_used=tokens_used,
            )

        return ModelSuccess(data=parsed, tokens_used=tokens_used, model=second.model)
