"""Tests for the HTTP routes, exercised through the FastAPI test client."""

from __future__ import annotations

import json
import logging

from collections.abc import Callable, Generator
from typing import Any
from urllib.parse import quote

import pytest

from fastapi.testclient import TestClient

from api.main import app
from api.services.chat_service import ChatService
from conftest import FakeModelClient
from core.constants import Settings
from utils.log_viewer import agent_log_buffer, install_agent_log_buffer

TAGGED_BODY = {
    "messages": [{"role": "user", "content": "[Model: gpt-4o]\n\n[Provider: OpenAI]\n\nmake a counter"}],
}


def cookie(value: Any) -> str:
    return quote(json.dumps(value))


@pytest.fixture
def make_client(settings: Settings) -> Generator[Callable[..., TestClient], None, None]:
    """Build a test client whose chat service replays the given script.

    The lifespan is not run, so no real model client is created.
    """

    def build(*script: Any) -> TestClient:
        app.state.chat_service = ChatService(settings=settings, client=FakeModelClient(*script))
        return TestClient(app, raise_server_exceptions=False)

    yield build
    if hasattr(app.state, "chat_service"):
        del app.state.chat_service


def stream_parts(body: str) -> list[tuple[str, Any]]:
    return [(line[0], json.loads(line[2:])) for line in body.splitlines() if line]


class TestChatRoute:
    """Tests for POST /api/chat."""

    def test_streams_pipeline_output(self, make_client: Callable[..., TestClient]) -> None:
        client = make_client("Make a counter component with + and - buttons", "export const Counter = () => null")
        client.cookies.set("apiKeys", cookie({"OpenAI": "sk-test"}))

        response = client.post("/api/chat", json=TAGGED_BODY)

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/plain")
        assert response.headers["x-vercel-ai-data-stream"] == "v1"
        parts = stream_parts(response.text)
        text = "".join(value for prefix, value in parts if prefix == "0")
        assert text == "export const Counter = () => null"
        labels = [value[0]["label"] for prefix, value in parts if prefix == "2" and value[0]["type"] == "progress"]
        assert labels == ["response", "enhance", "enhance", "code-gen", "code-gen", "response"]
        assert any(prefix == "8" and value[0]["type"] == "usage" for prefix, value in parts)

    def test_pipeline_error_is_streamed(self, make_client: Callable[..., TestClient]) -> None:
        client = make_client()

        response = client.post("/api/chat", json=TAGGED_BODY)

        assert response.status_code == 200
        prefix, value = stream_parts(response.text)[-1]
        assert prefix == "0"
        assert "No API key available for provider: OpenAI" in value

    def test_provider_settings_cookie(self, make_client: Callable[..., TestClient]) -> None:
        client = make_client("better", "code")
        client.cookies.set("apiKeys", cookie({"Ollama": ""}))
        client.cookies.set(
            "providers",
            cookie({"Ollama": {"baseUrl": "http://gpu-box:11434/v1", "models": [{"id": "llama3", "maxOutputTokens": 256}]}}),
        )
        body = {"messages": [{"role": "user", "content": "[Model: llama3]\n\n[Provider: Ollama]\n\nhi"}]}

        response = client.post("/api/chat", json=body)

        assert response.status_code == 200
        fake = app.state.chat_service.client
        assert fake.calls[0].target.base_url == "http://gpu-box:11434/v1"
        assert fake.calls[0].target.max_tokens == 256

    def test_invalid_cookie_json(self, make_client: Callable[..., TestClient]) -> None:
        client = make_client()
        client.cookies.set("apiKeys", "not-json")

        response = client.post("/api/chat", json=TAGGED_BODY)

        assert response.status_code == 400
        error = response.json()["error"]
        assert error["code"] == "VAL_2003"
        assert "apiKeys" in error["message"]

    def test_cookie_must_be_object(self, make_client: Callable[..., TestClient]) -> None:
        client = make_client()
        client.cookies.set("providers", cookie(["OpenAI"]))

        response = client.post("/api/chat", json=TAGGED_BODY)

        assert response.status_code == 400

    def test_missing_messages(self, make_client: Callable[..., TestClient]) -> None:
        response = make_client().post("/api/chat", json={"files": {}})

        assert response.status_code == 422
        error = response.json()["error"]
        assert error["code"] == "VAL_2001"
        assert error["details"]["errors"][0]["field"].endswith("messages")


class TestHealthRoutes:
    """Tests for the health probes."""

    def test_health(self, make_client: Callable[..., TestClient], monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("GROQ_API_KEY", "gsk-env")

        data = make_client().get("/api/health").json()

        assert data["status"] == "healthy"
        assert data["implementation"] == "standard"
        configured = {provider["name"]: provider["configured"] for provider in data["providers"]}
        assert configured["Groq"] is True
        assert configured["Ollama"] is True
        assert configured["OpenAI"] is False

    def test_degraded_without_service(self) -> None:
        client = TestClient(app)

        assert client.get("/api/health").json()["status"] == "degraded"
        assert client.get("/api/health/ready").json() == {"ready": False, "error": "Chat service not initialized"}

    def test_ready_and_live(self, make_client: Callable[..., TestClient]) -> None:
        client = make_client()

        assert client.get("/api/health/ready").json()["ready"] is True
        assert client.get("/api/health/live").json() == {"alive": True}


class TestDebugRoutes:
    """Tests for the agent test and agent log endpoints."""

    def test_agent_test(self, make_client: Callable[..., TestClient]) -> None:
        client = make_client("A counter component prompt", "export const Counter = () => <div>0</div>")
        client.cookies.set("apiKeys", cookie({"OpenAI": "sk-test"}))

        response = client.post("/api/debug/agent-test", json={"provider": "OpenAI", "model": "gpt-4o"})

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["message"] == "Agent test completed successfully"
        checks = {check["provider"]: check["success"] for check in data["details"]["apiTests"]}
        assert checks == {"OpenAI": True, "Anthropic": False, "Groq": False}
        assert data["details"]["agentTest"]["model"] == "gpt-4o"
        assert data["logs"][0].startswith("Starting agent system test")

    def test_agent_test_without_body_uses_defaults(self, make_client: Callable[..., TestClient]) -> None:
        response = make_client().post("/api/debug/agent-test")

        data = response.json()
        assert data["success"] is False
        assert data["details"]["agentTest"]["provider"] == "Anthropic"
        assert "No API key available for provider: Anthropic" in data["message"]

    def test_single_agent(self, make_client: Callable[..., TestClient]) -> None:
        client = make_client("A detailed counter component prompt")
        client.cookies.set("apiKeys", cookie({"Anthropic": "sk-ant"}))

        data = client.post("/api/debug/agent-test", json={"agent": "prompt_enhancer"}).json()

        assert data["success"] is True
        assert data["details"]["agentTest"]["agent"] == "prompt_enhancer"

    def test_agent_logs(self, make_client: Callable[..., TestClient]) -> None:
        install_agent_log_buffer()
        agent_log_buffer.clear()
        logging.getLogger("code-forge.agent.orchestrator").info("Orchestrator started")
        logging.getLogger("code-forge.agent.code-generator").error("Generation failed")
        client = make_client()

        everything = client.get("/api/debug/agent-logs").json()
        errors = client.get("/api/debug/agent-logs", params={"mode": "errors"}).json()

        assert everything["mode"] == "all"
        assert everything["count"] == 2
        assert errors["count"] == 1
        assert errors["logs"][0]["message"] == "Generation failed"

        assert client.delete("/api/debug/agent-logs").json() == {"cleared": True}
        assert client.get("/api/debug/agent-logs").json()["count"] == 0

    def test_invalid_log_mode(self, make_client: Callable[..., TestClient]) -> None:
        response = make_client().get("/api/debug/agent-logs", params={"mode": "verbose"})

        assert response.status_code == 422
