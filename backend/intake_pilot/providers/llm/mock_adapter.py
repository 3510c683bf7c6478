"""Mock LLM provider for testing.

MockLLMProvider enables unit testing of the guarded caller and every stage
without hitting real LLM APIs.
"""

from collections import deque
from collections.abc import Sequence
from typing import Any

from intake_pilot.providers.llm.base import (
    LLMMessage,
    LLMProvider,
    LLMResponse,
    TaskType,
)


class MockLLMProvider(LLMProvider):
    """Mock provider for testing.

    WHY SCRIPTED QUEUE:
    - The repair path needs a different reply on the second call
    - Exceptions can be queued to simulate transport failures mid-sequence

    Replies are consumed first from the scripted queue; once it is empty the
    per-task default (or a generic string) is returned.

    Attributes:
        responses: Pre-configured responses keyed by TaskType.
        calls: Record of all method invocations for test assertions.
        last_task: The most recent TaskType used in a call.
    """

    @property
    def provider_name(self) -> str:
        """Return 'mock' for testing."""
        return "mock"

    def __init__(
        self,
        responses: dict[TaskType, str] | None = None,
        input_tokens: int = 100,
        output_tokens: int = 50,
    ) -> None:
        """Initialize mock provider with optional pre-configured responses.

        Args:
            responses: Dict mapping TaskType to response content.
            input_tokens: Input tokens reported per call.
            output_tokens: Output tokens reported per call.
        """
        # Don't call super().__init__() - we don't need a config for mock
        self.responses: dict[TaskType, str] = dict(responses) if responses else {}
        self.input_tokens = input_tokens
        self.output_tokens = output_tokens
        self.calls: list[dict[str, Any]] = []
        self.last_task: TaskType | None = None
        self._queue: deque[str | None | BaseException] = deque()

    def set_response(self, task: TaskType, content: str) -> None:
        """Set or update the default response for a specific task type."""
        self.responses[task] = content

    def queue(self, *replies: str | None | BaseException) -> None:
        """Script the next replies in order.

        Args:
            replies: Content strings (None for an empty reply) or exceptions
                to raise instead of replying.
        """
        self._queue.extend(replies)

    async def complete(
        self,
        messages: Sequence[LLMMessage],
        task: TaskType,
        max_tokens: int | None = None,
        temperature: float | None = None,
        json_mode: bool = False,
    ) -> LLMResponse:
        """Generate a mock completion.

        Records the call for test assertions and returns the next scripted
        reply, the task default, or a generic string.

        Raises:
            BaseException: Whatever exception was queued for this call.
        """
        self.calls.append(
            {
                "method": "complete",
                "messages": list(messages),
                "task": task,
                "kwargs": {
                    "max_tokens": max_tokens,
                    "temperature": temperature,
                    "json_mode": json_mode,
                },
            }
        )
        self.last_task = task

        if self._queue:
            reply = self._queue.popleft()
            if isinstance(reply, BaseException):
                raise reply
            content = reply
        else:
            content = self.responses.get(task, f"Mock response for {task.value}")

        return LLMResponse(
            content=content,
            model="mock-model",
            input_tokens=self.input_tokens,
            output_tokens=self.output_tokens,
            finish_reason="stop",
            latency_ms=10,
        )

    def get_model_for_task(self, _task: TaskType) -> str:
        """Return 'mock-model' for any task."""
        return "mock-model"

    def assert_called_with_task(self, task: TaskType) -> None:
        """Test helper to verify a task was called.

        Raises:
            AssertionError: If the task was not called.
        """
        tasks_called = [c["task"] for c in self.calls]
        assert task in tasks_called, f"Expected {task}, got {tasks_called}"
