"""Tests for the prompt enhancer agent."""

from __future__ import annotations

import pytest

from conftest import FakeModelClient, progress_of
from core.agents.base import AgentContext
from core.agents.prompt_enhancer import PromptEnhancerAgent
from core.constants import Settings
from core.exceptions import MissingApiKeyError, MissingUserMessageError, ModelInvocationError
from core.prompts import PROMPT_ENHANCER_SYSTEM_PROMPT
from integrations.event_sink import MemoryEventSink
from integrations.model_clients import ModelResponse
from models.agent_models import Message, Usage


class TestPromptEnhancerAgent:
    """Tests for PromptEnhancerAgent.execute."""

    @pytest.mark.asyncio
    async def test_enhances_last_user_message(
        self,
        settings: Settings,
        context: AgentContext,
        sink: MemoryEventSink,
        sample_messages: list[Message],
        usage_10: Usage,
    ) -> None:
        """The model sees the stripped text wrapped in the template."""
        client = FakeModelClient(
            ModelResponse(text="  Write a function fib(n) returning the nth number.  ", usage=usage_10)
        )
        agent = PromptEnhancerAgent(client, settings)

        result = await agent.execute(sample_messages, context)

        assert result.output == "Write a function fib(n) returning the nth number."
        assert result.usage == usage_10
        assert result.progress_counter == 1

        call = client.calls[0]
        assert call.options.system == PROMPT_ENHANCER_SYSTEM_PROMPT
        assert call.options.temperature == settings.enhancer_temperature
        assert len(call.messages) == 1
        prompt = str(call.messages[0].content)
        assert "<original_prompt>" in prompt
        assert "write a fibonacci function" in prompt
        assert "[Model:" not in prompt
        assert call.target.provider == "OpenAI"
        assert call.target.model == "gpt-4o"

    @pytest.mark.asyncio
    async def test_progress_events(self, settings: Settings, context: AgentContext, sink: MemoryEventSink) -> None:
        client = FakeModelClient("better prompt")
        agent = PromptEnhancerAgent(client, settings)

        await agent.execute([Message(role="user", content="hi")], context.with_progress(4))

        assert progress_of(sink) == [
            ("enhance", "in-progress", 5, False),
            ("enhance", "complete", 5, False),
        ]
        assert sink.progress_events[0]["message"] == "Enhancing prompt..."
        assert sink.progress_events[1]["message"] == "Prompt enhanced successfully"

    @pytest.mark.asyncio
    async def test_estimates_usage_when_unreported(self, settings: Settings, context: AgentContext) -> None:
        client = FakeModelClient("x" * 40)
        agent = PromptEnhancerAgent(client, settings)

        result = await agent.execute([Message(role="user", content="hi")], context)

        assert result.usage is not None
        assert result.usage.completion_tokens == 10
        assert result.usage.prompt_tokens > 0
        assert result.usage.total_tokens >= result.usage.prompt_tokens

    @pytest.mark.asyncio
    async def test_model_from_last_message_of_any_role(self, settings: Settings, context: AgentContext) -> None:
        """Selection tags are read from messages[-1] even if it is not a user message."""
        client = FakeModelClient("ok")
        context.api_keys["Groq"] = "gsk-1"
        messages = [
            Message(role="user", content="build a todo app"),
            Message(role="assistant", content="[Model: llama3-70b]\n\n[Provider: Groq]\n\nsure"),
        ]

        await PromptEnhancerAgent(client, settings).execute(messages, context)

        assert client.calls[0].target.provider == "Groq"
        assert "build a todo app" in str(client.calls[0].messages[0].content)

    @pytest.mark.asyncio
    async def test_no_user_message(self, settings: Settings, context: AgentContext, sink: MemoryEventSink) -> None:
        """Validation fails before any progress is reported."""
        client = FakeModelClient()
        agent = PromptEnhancerAgent(client, settings)

        with pytest.raises(MissingUserMessageError, match="No user message found to enhance"):
            await agent.execute([Message(role="system", content="s")], context)

        assert sink.progress_events == []
        assert client.calls == []

    @pytest.mark.asyncio
    async def test_missing_key_reports_error(self, settings: Settings, sink: MemoryEventSink) -> None:
        agent = PromptEnhancerAgent(FakeModelClient(), settings)
        context = AgentContext(event_sink=sink)

        with pytest.raises(MissingApiKeyError):
            await agent.execute([Message(role="user", content="hi")], context)

        assert progress_of(sink) == [
            ("enhance", "in-progress", 1, False),
            ("enhance", "complete", 1, True),
        ]
        assert sink.progress_events[1]["message"] == "Failed to enhance prompt"

    @pytest.mark.asyncio
    async def test_model_failure_propagates(self, settings: Settings, context: AgentContext) -> None:
        client = FakeModelClient(ModelInvocationError("OpenAI", "gpt-4o", "rate limited"))

        with pytest.raises(ModelInvocationError, match="rate limited"):
            await PromptEnhancerAgent(client, settings).execute([Message(role="user", content="hi")], context)
