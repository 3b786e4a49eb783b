"""Shared test fixtures for the Code Forge test suite.

This module provides common fixtures used across all test modules,
including a scripted model client so no test reaches a real provider.
"""

from __future__ import annotations

from collections.abc import Generator, Sequence
from dataclasses import dataclass
from unittest.mock import Mock

import pytest

from core.agents.base import AgentContext
from core.constants import Settings
from core.providers import ModelTarget
from integrations.event_sink import MemoryEventSink
from integrations.model_clients import InvokeOptions, ModelResponse
from models.agent_models import FileEntry, Message, Usage

# ============================================================================
# Test Isolation: Cache Management
# ============================================================================


@pytest.fixture(autouse=True)
def clear_token_cache() -> Generator[None, None, None]:
    """Clear token count caches between tests to ensure isolation.

    This prevents cache pollution when one test exercises real token
    counting and another mocks tiktoken.
    """
    from utils import token_utils

    token_utils._count_tokens_cached.cache_clear()
    token_utils._encoder_cache.clear()

    yield  # Run test

    token_utils._count_tokens_cached.cache_clear()
    token_utils._encoder_cache.clear()


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    """Remove provider keys from the process environment.

    Key resolution falls back to os.environ, so a developer's real keys
    would otherwise change which provider a test resolves.
    """
    for name in (
        "OPENAI_API_KEY",
        "ANTHROPIC_API_KEY",
        "GROQ_API_KEY",
        "MISTRAL_API_KEY",
        "GOOGLE_GENERATIVE_AI_API_KEY",
        "OPEN_ROUTER_API_KEY",
        "OLLAMA_API_KEY",
    ):
        monkeypatch.delenv(name, raising=False)
    yield


# ============================================================================
# Scripted Model Client
# ============================================================================


@dataclass
class ModelCall:
    """One recorded ``invoke`` call."""

    messages: list[Message]
    target: ModelTarget
    options: InvokeOptions


class FakeModelClient:
    """ModelClient that replays scripted responses in call order.

    Script entries are ``ModelResponse`` objects, plain strings (no usage),
    or exceptions to raise.
    """

    def __init__(self, *script: ModelResponse | str | Exception):
        self.script: list[ModelResponse | str | Exception] = list(script)
        self.calls: list[ModelCall] = []

    async def invoke(
        self,
        messages: Sequence[Message],
        target: ModelTarget,
        options: InvokeOptions,
    ) -> ModelResponse:
        self.calls.append(ModelCall(list(messages), target, options))
        if not self.script:
            raise AssertionError("FakeModelClient called more times than scripted")
        entry = self.script.pop(0)
        if isinstance(entry, Exception):
            raise entry
        if isinstance(entry, str):
            return ModelResponse(text=entry)
        return entry


@pytest.fixture
def fake_client() -> FakeModelClient:
    """Empty scripted client; tests push responses onto ``script``."""
    return FakeModelClient()


# ============================================================================
# Settings, Sinks and Contexts
# ============================================================================


@pytest.fixture
def settings() -> Settings:
    """Settings isolated from any .env file on the developer's machine."""
    return Settings(_env_file=None)


@pytest.fixture
def sink() -> MemoryEventSink:
    return MemoryEventSink()


@pytest.fixture
def openai_keys() -> dict[str, str]:
    return {"OpenAI": "sk-test-openai"}


@pytest.fixture
def context(sink: MemoryEventSink, openai_keys: dict[str, str]) -> AgentContext:
    """Request context with an OpenAI key and no project files."""
    return AgentContext(event_sink=sink, api_keys=dict(openai_keys), prompt_id="prompt-1")


# ============================================================================
# Sample Data
# ============================================================================


@pytest.fixture
def tagged_user_message() -> Message:
    return Message(role="user", content="[Model: gpt-4o]\n\n[Provider: OpenAI]\n\nwrite a fibonacci function")


@pytest.fixture
def sample_messages(tagged_user_message: Message) -> list[Message]:
    return [
        Message(role="system", content="You are a coding assistant."),
        Message(role="user", content="[Model: gpt-4o]\n\n[Provider: OpenAI]\n\nhello"),
        Message(role="assistant", content="Hi! What should we build?"),
        tagged_user_message,
    ]


@pytest.fixture
def sample_files() -> dict[str, FileEntry | None]:
    return {
        "/home/project/src/App.tsx": FileEntry(type="file", content="export default function App() {}"),
        "/home/project/src/utils.ts": FileEntry(type="file", content="export const add = (a, b) => a + b;"),
        "/home/project/package.json": FileEntry(type="file", content='{"name": "demo"}'),
        "/home/project/node_modules/react/index.js": FileEntry(type="file", content="module.exports = {}"),
        "/home/project/public/logo.png": FileEntry(type="file", content="", is_binary=True),
        "/home/project/src": FileEntry(type="folder"),
        "/home/project/deleted.ts": None,
    }


@pytest.fixture
def usage_10() -> Usage:
    return Usage(prompt_tokens=6, completion_tokens=4, total_tokens=10)


@pytest.fixture
def mock_tiktoken(monkeypatch: pytest.MonkeyPatch) -> Generator[Mock, None, None]:
    """Mock tiktoken for token counting tests."""
    mock_encoding = Mock()
    mock_encoding.encode.return_value = [1, 2, 3, 4, 5]  # 5 tokens

    mock_tiktoken_module = Mock()
    mock_tiktoken_module.encoding_for_model.return_value = mock_encoding
    mock_tiktoken_module.get_encoding.return_value = mock_encoding

    monkeypatch.setattr("tiktoken.encoding_for_model", mock_tiktoken_module.encoding_for_model)
    monkeypatch.setattr("tiktoken.get_encoding", mock_tiktoken_module.get_encoding)

    yield mock_tiktoken_module


def progress_of(sink: MemoryEventSink) -> list[tuple[str, str, int, bool]]:
    """(label, status, order, error) for each progress event, in write order."""
    return [(event["label"], event["status"], event["order"], event.get("error", False)) for event in sink.progress_events]

