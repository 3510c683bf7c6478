"""Tests for the provider-agnostic LLM interface.

Covers the TaskType routing enum, LLMMessage role checking, token
accounting on LLMResponse, and the LLMProvider abstract base class.
"""

import pytest

from intake_pilot.providers.config import ProviderConfig
from intake_pilot.providers.llm.base import (
    LLMMessage,
    LLMProvider,
    LLMResponse,
    TaskType,
)


class TestTaskType:
    def test_one_task_per_stage(self):
        assert {t.value for t in TaskType} == {
            "intake_analysis",
            "risk_diagnostics",
            "action_planning",
            "workflow_recommendation",
            "preflight_pack",
            "interview",
        }


class TestLLMMessage:
    @pytest.mark.parametrize("role", ["system", "user", "assistant"])
    def test_accepts_known_roles(self, role):
        assert LLMMessage(role=role, content="hi").role == role

    def test_rejects_unknown_role(self):
        with pytest.raises(ValueError, match="Unsupported message role"):
            LLMMessage(role="tool", content="hi")

    def test_is_immutable(self):
        message = LLMMessage(role="user", content="hi")
        with pytest.raises(AttributeError):
            message.content = "changed"  # type: ignore[misc]


class TestLLMResponse:
    def _response(self, input_tokens: int, output_tokens: int) -> LLMResponse:
        return LLMResponse(
            content="{}",
            model="m",
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            finish_reason="stop",
            latency_ms=1.0,
        )

    def test_total_tokens_sums_both_directions(self):
        assert self._response(120, 30).total_tokens == 150

    def test_negative_counts_never_reduce_cost(self):
        assert self._response(-5, 10).total_tokens == 10


class TestLLMProvider:
    def test_cannot_instantiate_abstract_class(self):
        with pytest.raises(TypeError):
            LLMProvider(ProviderConfig())  # type: ignore[abstract]

    def test_concrete_subclass_keeps_config(self):
        class EchoProvider(LLMProvider):
            @property
            def provider_name(self) -> str:
                return "echo"

            async def complete(self, messages, task, **kwargs):
                raise NotImplementedError

            def get_model_for_task(self, task: TaskType) -> str:
                return "echo-1"

        config = ProviderConfig(llm_provider="mock")
        provider = EchoProvider(config)

        assert provider.config is config
        assert provider.get_model_for_task(TaskType.INTERVIEW) == "echo-1"
