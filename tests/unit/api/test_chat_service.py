"""Tests for ChatService request processing and streaming."""

from __future__ import annotations

import json

from unittest.mock import Mock

import pytest

from api.services.chat_service import TEXT_CHUNK_SIZE, ChatService, ProgressReporter
from conftest import FakeModelClient, progress_of
from core.constants import PIPELINE_ERROR_PREFIX, Settings
from core.exceptions import ModelInvocationError
from integrations.event_sink import MemoryEventSink
from integrations.model_clients import ModelResponse
from models.agent_models import ChatRequest, FileEntry, Message, Usage
from models.event_models import create_progress_annotation


def make_service(client: FakeModelClient, settings: Settings, implementation: str = "standard") -> ChatService:
    return ChatService(settings=settings, client=client, implementation=implementation)


class TestProgressReporter:
    """Tests for ProgressReporter order tracking."""

    def test_report_uses_next_order(self, sink: MemoryEventSink) -> None:
        progress = ProgressReporter(sink)

        progress.report("response", "Starting", "in-progress")
        progress.report("response", "Done", "complete")

        assert progress_of(sink) == [("response", "in-progress", 1, False), ("response", "complete", 2, False)]

    def test_tracks_orders_written_by_agents(self, sink: MemoryEventSink) -> None:
        progress = ProgressReporter(sink)

        progress.write_data(create_progress_annotation("enhance", "Enhancing", "in-progress", 5))
        progress.write_data({"type": "progress", "label": "code-gen", "status": "complete", "order": 7})
        progress.write_data({"type": "prompt-comparison", "original": "a", "enhanced": "b"})
        progress.report("response", "Failed", "error")

        assert progress.counter == 8
        assert progress_of(sink)[-1] == ("response", "complete", 8, True)

    def test_forwards_text_and_annotations(self, sink: MemoryEventSink) -> None:
        progress = ProgressReporter(sink)

        progress.write("hello")
        progress.write_message_annotation({"type": "usage", "value": {}})

        assert sink.text == "hello"
        assert sink.annotations == [{"type": "usage", "value": {}}]
        assert progress.counter == 0


class TestProcessChat:
    """Tests for ChatService.process_chat."""

    @pytest.mark.asyncio
    async def test_without_files(
        self,
        settings: Settings,
        sink: MemoryEventSink,
        openai_keys: dict[str, str],
        sample_messages: list[Message],
    ) -> None:
        client = FakeModelClient(
            ModelResponse(text="Write fib(n).", usage=Usage(prompt_tokens=10, completion_tokens=5, total_tokens=15)),
            ModelResponse(text="def fib(n): ...", usage=Usage(prompt_tokens=30, completion_tokens=20, total_tokens=50)),
        )
        request = ChatRequest(messages=sample_messages, prompt_id="p-1")

        usage = await make_service(client, settings).process_chat(request, sink, openai_keys)

        assert usage == Usage(prompt_tokens=40, completion_tokens=25, total_tokens=65)
        assert progress_of(sink) == [
            ("response", "in-progress", 1, False),
            ("enhance", "in-progress", 2, False),
            ("enhance", "complete", 2, False),
            ("code-gen", "in-progress", 3, False),
            ("code-gen", "complete", 3, False),
            ("response", "complete", 4, False),
        ]
        assert sink.text == "def fib(n): ..."
        assert sink.annotations == [
            {"type": "usage", "value": {"completionTokens": 25, "promptTokens": 40, "totalTokens": 65}}
        ]

    @pytest.mark.asyncio
    async def test_context_selection_runs_once_on_host(
        self,
        mock_tiktoken: Mock,
        settings: Settings,
        sink: MemoryEventSink,
        openai_keys: dict[str, str],
        sample_messages: list[Message],
        sample_files: dict[str, FileEntry | None],
        usage_10: Usage,
    ) -> None:
        client = FakeModelClient(
            ModelResponse(text="User wants a fibonacci function.", usage=usage_10),
            ModelResponse(text='<includeFile path="src/App.tsx"/>', usage=usage_10),
            ModelResponse(text="Improve App.", usage=usage_10),
            ModelResponse(text="export default function App() { return null }", usage=usage_10),
        )
        request = ChatRequest(messages=sample_messages, files=sample_files, context_optimization=True)

        usage = await make_service(client, settings).process_chat(request, sink, openai_keys)

        assert len(client.calls) == 4
        assert "User wants a fibonacci function." in str(client.calls[1].messages[0].content)
        generator_prompt = "".join(str(message.content) for message in client.calls[3].messages)
        assert 'filePath="src/App.tsx"' in generator_prompt
        assert "src/utils.ts" not in generator_prompt

        assert progress_of(sink) == [
            ("summary", "in-progress", 1, False),
            ("summary", "complete", 2, False),
            ("context", "in-progress", 3, False),
            ("context", "complete", 4, False),
            ("response", "in-progress", 5, False),
            ("enhance", "in-progress", 6, False),
            ("enhance", "complete", 6, False),
            ("code-gen", "in-progress", 7, False),
            ("code-gen", "complete", 7, False),
            ("response", "complete", 8, False),
        ]
        assert [annotation["type"] for annotation in sink.annotations] == ["chatSummary", "codeContext", "usage"]
        assert sink.annotations[0] == {
            "type": "chatSummary",
            "summary": "User wants a fibonacci function.",
            "chatId": sample_messages[-1].id,
        }
        assert sink.annotations[1]["files"] == ["src/App.tsx"]
        assert usage is not None
        assert usage.total_tokens == 40
        assert sink.annotations[2]["value"]["totalTokens"] == 40

    @pytest.mark.asyncio
    async def test_summary_reaches_selector_and_usage_total(
        self,
        mock_tiktoken: Mock,
        settings: Settings,
        sink: MemoryEventSink,
        openai_keys: dict[str, str],
        sample_messages: list[Message],
        sample_files: dict[str, FileEntry | None],
        usage_10: Usage,
    ) -> None:
        summary_usage = Usage(prompt_tokens=100, completion_tokens=20, total_tokens=120)
        client = FakeModelClient(
            ModelResponse(text="Building a demo React app.", usage=summary_usage),
            ModelResponse(text='<includeFile path="src/utils.ts"/>', usage=usage_10),
            ModelResponse(text="Improve utils.", usage=usage_10),
            ModelResponse(text="export const add = (a, b) => a + b", usage=usage_10),
        )
        request = ChatRequest(messages=sample_messages, files=sample_files, context_optimization=True)

        usage = await make_service(client, settings).process_chat(request, sink, openai_keys)

        assert client.calls[0].options.temperature == 0.0
        assert "Building a demo React app." in str(client.calls[1].messages[0].content)
        assert usage == Usage(prompt_tokens=118, completion_tokens=32, total_tokens=150)

    @pytest.mark.asyncio
    async def test_previous_summary_is_carried_forward(
        self,
        mock_tiktoken: Mock,
        settings: Settings,
        sink: MemoryEventSink,
        openai_keys: dict[str, str],
        sample_files: dict[str, FileEntry | None],
    ) -> None:
        first = Message(role="user", content="[Model: gpt-4o]\n\n[Provider: OpenAI]\n\nstart a todo app")
        messages = [
            first,
            Message(
                role="assistant",
                content="Done.",
                annotations=[{"type": "chatSummary", "summary": "Todo app in React.", "chatId": first.id}],
            ),
            Message(role="user", content="[Model: gpt-4o]\n\n[Provider: OpenAI]\n\nadd dark mode"),
        ]
        client = FakeModelClient("Todo app in React, adding dark mode.", '<includeFile path="src/App.tsx"/>', "b", "c")

        await make_service(client, settings).process_chat(
            ChatRequest(messages=messages, files=sample_files), sink, openai_keys
        )

        summary_prompt = str(client.calls[0].messages[0].content)
        assert "Todo app in React." in summary_prompt
        assert "add dark mode" in summary_prompt
        assert "start a todo app" not in summary_prompt
        assert sink.annotations[0]["chatId"] == messages[-1].id

    @pytest.mark.asyncio
    async def test_selection_uses_settings_defaults_for_untagged_messages(
        self,
        mock_tiktoken: Mock,
        sink: MemoryEventSink,
        usage_10: Usage,
    ) -> None:
        settings = Settings(_env_file=None, default_provider="Anthropic", default_model="claude-3-5-sonnet")
        client = FakeModelClient(
            ModelResponse(text="User wants an App component.", usage=usage_10),
            ModelResponse(text='<includeFile path="src/App.tsx"/>', usage=usage_10),
            ModelResponse(text="Improve App.", usage=usage_10),
            ModelResponse(text="export default function App() { return null }", usage=usage_10),
        )
        request = ChatRequest(
            messages=[Message(role="user", content="write an App component")],
            files={"/home/project/src/App.tsx": FileEntry(type="file", content="export default function App() {}")},
            context_optimization=True,
        )

        usage = await make_service(client, settings).process_chat(request, sink, {"Anthropic": "sk-ant"})

        assert usage is not None
        assert [(call.target.provider, call.target.model) for call in client.calls] == [
            ("Anthropic", "claude-3-5-sonnet")
        ] * 4
        assert "No API key available" not in sink.text
        assert sink.text == "export default function App() { return null }"

    @pytest.mark.asyncio
    async def test_files_without_optimization_skip_selection(
        self,
        mock_tiktoken: Mock,
        settings: Settings,
        sink: MemoryEventSink,
        openai_keys: dict[str, str],
        sample_messages: list[Message],
        sample_files: dict[str, FileEntry | None],
    ) -> None:
        client = FakeModelClient("better", "code")
        request = ChatRequest(messages=sample_messages, files=sample_files, context_optimization=False)

        await make_service(client, settings).process_chat(request, sink, openai_keys)

        assert len(client.calls) == 2
        assert "src/utils.ts" in "".join(str(message.content) for message in client.calls[1].messages)
        labels = [label for label, *_ in progress_of(sink)]
        assert "context" not in labels
        assert "summary" not in labels

    @pytest.mark.asyncio
    async def test_optimization_defaults_to_setting(
        self,
        mock_tiktoken: Mock,
        settings: Settings,
        sink: MemoryEventSink,
        openai_keys: dict[str, str],
        sample_messages: list[Message],
        sample_files: dict[str, FileEntry | None],
    ) -> None:
        client = FakeModelClient("summary", '<includeFile path="src/App.tsx"/>', "better", "code")
        request = ChatRequest(messages=sample_messages, files=sample_files)

        await make_service(client, settings).process_chat(request, sink, openai_keys)

        assert request.context_optimization is None
        assert len(client.calls) == 4
        assert [label for label, *_ in progress_of(sink)][:4] == ["summary", "summary", "context", "context"]

    @pytest.mark.asyncio
    async def test_optimization_disabled_by_setting(
        self,
        mock_tiktoken: Mock,
        sink: MemoryEventSink,
        openai_keys: dict[str, str],
        sample_messages: list[Message],
        sample_files: dict[str, FileEntry | None],
    ) -> None:
        settings = Settings(_env_file=None, context_optimization=False)
        client = FakeModelClient("better", "code")

        await make_service(client, settings).process_chat(
            ChatRequest(messages=sample_messages, files=sample_files), sink, openai_keys
        )

        assert len(client.calls) == 2
        assert progress_of(sink)[0][0] == "response"

    @pytest.mark.asyncio
    async def test_long_text_is_chunked(
        self,
        settings: Settings,
        sink: MemoryEventSink,
        openai_keys: dict[str, str],
        sample_messages: list[Message],
    ) -> None:
        code = "x" * (TEXT_CHUNK_SIZE * 2 + 22)
        client = FakeModelClient("better", code)

        await make_service(client, settings).process_chat(ChatRequest(messages=sample_messages), sink, openai_keys)

        assert [len(chunk) for chunk in sink.text_chunks] == [TEXT_CHUNK_SIZE, TEXT_CHUNK_SIZE, 22]
        assert sink.text == code

    @pytest.mark.asyncio
    async def test_stage_failure_is_reported_in_stream(
        self,
        settings: Settings,
        sink: MemoryEventSink,
        openai_keys: dict[str, str],
        sample_messages: list[Message],
    ) -> None:
        client = FakeModelClient("better", ModelInvocationError("OpenAI", "gpt-4o", "timeout"))

        usage = await make_service(client, settings).process_chat(ChatRequest(messages=sample_messages), sink, openai_keys)

        assert usage is None
        assert progress_of(sink) == [
            ("response", "in-progress", 1, False),
            ("enhance", "in-progress", 2, False),
            ("enhance", "complete", 2, False),
            ("code-gen", "in-progress", 3, False),
            ("code-gen", "complete", 3, True),
            ("response", "complete", 4, True),
        ]
        assert sink.text == f"{PIPELINE_ERROR_PREFIX}timeout"
        assert sink.annotations == []

    @pytest.mark.asyncio
    async def test_missing_key_fails_closed(
        self,
        settings: Settings,
        sink: MemoryEventSink,
        sample_messages: list[Message],
    ) -> None:
        client = FakeModelClient()

        usage = await make_service(client, settings).process_chat(ChatRequest(messages=sample_messages), sink, {})

        assert usage is None
        assert client.calls == []
        assert "No API key available for provider: OpenAI" in sink.text
        assert progress_of(sink)[-1][3] is True

    @pytest.mark.asyncio
    async def test_langchain_implementation(
        self,
        settings: Settings,
        sink: MemoryEventSink,
        openai_keys: dict[str, str],
        sample_messages: list[Message],
    ) -> None:
        client = FakeModelClient("better", "  templated code  ")

        usage = await make_service(client, settings, "langchain").process_chat(
            ChatRequest(messages=sample_messages), sink, openai_keys
        )

        assert len(client.calls[1].messages) == 1
        assert sink.text == "templated code"
        assert usage is not None
        assert usage.total_tokens > 0


class TestStreamChat:
    """Tests for ChatService.stream_chat."""

    @pytest.mark.asyncio
    async def test_yields_encoded_lines(
        self,
        settings: Settings,
        openai_keys: dict[str, str],
        sample_messages: list[Message],
    ) -> None:
        client = FakeModelClient("better", "code")
        service = make_service(client, settings)

        lines = [line async for line in service.stream_chat(ChatRequest(messages=sample_messages), openai_keys)]

        assert all(line.endswith("\n") for line in lines)
        assert lines[0].startswith("2:[")
        assert json.loads(lines[0][2:])[0]["label"] == "response"
        assert '0:"code"\n' in lines
        assert any(line.startswith("8:[") and '"usage"' in line for line in lines)
        assert json.loads(lines[-1][2:])[0]["status"] == "complete"

    @pytest.mark.asyncio
    async def test_failure_still_closes_stream(self, settings: Settings, sample_messages: list[Message]) -> None:
        service = make_service(FakeModelClient(), settings)

        lines = [line async for line in service.stream_chat(ChatRequest(messages=sample_messages))]

        assert lines[-1].startswith("0:")
        assert "No API key available" in json.loads(lines[-1][2:])

    @pytest.mark.asyncio
    async def test_aclose_ignores_clients_without_it(self, settings: Settings) -> None:
        await make_service(FakeModelClient(), settings).aclose()
