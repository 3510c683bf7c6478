"""LLM provider module.

LLM provider interface and adapters.
"""

from intake_pilot.providers.llm.base import (
    LLMMessage,
    LLMProvider,
    LLMResponse,
    TaskType,
)
from intake_pilot.providers.llm.claude_adapter import ClaudeAdapter
from intake_pilot.providers.llm.gemini_adapter import GeminiAdapter
from intake_pilot.providers.llm.mock_adapter import MockLLMProvider
from intake_pilot.providers.llm.openai_adapter import OpenAIAdapter

__all__ = [
    # Base types
    "LLMMessage",
    "LLMProvider",
    "LLMResponse",
    "TaskType",
    # Adapters
    "ClaudeAdapter",
    "GeminiAdapter",
    "MockLLMProvider",
    "OpenAIAdapter",
]
