"""Abstract base class and types for LLM providers.

LLMProvider interface with a TaskType enum for model routing, a
provider-agnostic message type, and JSON mode.
"""

from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from intake_pilot.providers.config import ProviderConfig


class TaskType(Enum):
    """Task types for model routing.

    One per pipeline stage. The adapters' routing tables map these to
    specific models.
    """

    INTAKE_ANALYSIS = "intake_analysis"
    RISK_DIAGNOSTICS = "risk_diagnostics"
    ACTION_PLANNING = "action_planning"
    WORKFLOW_RECOMMENDATION = "workflow_recommendation"
    PREFLIGHT_PACK = "preflight_pack"
    INTERVIEW = "interview"


MESSAGE_ROLES = frozenset({"system", "user", "assistant"})


@dataclass(frozen=True)
class LLMMessage:
    """Provider-agnostic message format.

    WHY CUSTOM CLASS: Decouples from provider-specific message formats.
    Anthropic and Gemini take the system prompt separately while OpenAI keeps
    it in the message list. This normalizes all three.

    Attributes:
        role: Message role ("system", "user", "assistant").
        content: Text content.
    """

    role: str
    content: str

    def __post_init__(self) -> None:
        if self.role not in MESSAGE_ROLES:
            raise ValueError(f"Unsupported message role: {self.role!r}")


@dataclass
class LLMResponse:
    """Provider-agnostic response format.

    Attributes:
        content: Text response (None if the provider returned nothing).
        model: Actual model used (for logging and run provenance).
        input_tokens: Number of input tokens used.
        output_tokens: Number of output tokens generated.
        finish_reason: Why generation stopped ("stop", "max_tokens", ...).
        latency_ms: Response time in milliseconds.
    """

    content: str | None
    model: str
    input_tokens: int
    output_tokens: int
    finish_reason: str
    latency_ms: float

    @property
    def total_tokens(self) -> int:
        """Token cost of this call (never negative)."""
        return max(0, self.input_tokens) + max(0, self.output_tokens)


class LLMProvider(ABC):
    """Abstract base class for LLM providers.

    WHY ABSTRACT CLASS:
    - Enforces consistent interface across providers
    - Makes testing via mock implementations trivial
    """

    def __init__(self, config: "ProviderConfig") -> None:
        """Initialize with provider configuration.

        Args:
            config: Provider configuration including API keys and defaults.
        """
        self.config = config

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Return the provider identifier (e.g., 'openai', 'claude', 'gemini')."""
        ...

    @abstractmethod
    async def complete(
        self,
        messages: Sequence[LLMMessage],
        task: TaskType,
        max_tokens: int | None = None,
        temperature: float | None = None,
        json_mode: bool = False,
    ) -> LLMResponse:
        """Generate a completion.

        Makes exactly one request to the backend. Retrying is the caller's
        decision, never the adapter's.

        Args:
            messages: Conversation history as a sequence of LLMMessage.
            task: Task type for model routing.
            max_tokens: Override default max tokens.
            temperature: Override default temperature.
            json_mode: If True, ask the backend for a JSON document.
                - OpenAI: response_format={"type": "json_object"}
                - Anthropic: JSON-only instruction appended to the system prompt
                - Gemini: response_mime_type="application/json"

        Returns:
            LLMResponse with content and token usage.

        Raises:
            ProviderError: On any backend/transport failure.
        """
        ...

    @abstractmethod
    def get_model_for_task(self, task: TaskType) -> str:
        """Return the model identifier for a given task.

        Args:
            task: The task type to get the model for.

        Returns:
            Model identifier string (e.g., "gpt-4o-mini").
        """
        ...
