"""
Agent tester: runs the pipeline, or one agent, against a sample prompt and
reports what happened. Backs ``POST /api/debug/agent-test``.
"""

from __future__ import annotations

import time

from collections.abc import Mapping
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any

from core.agents.base import Agent, AgentContext
from core.agents.factory import AgentImplementation, create_pipeline
from core.constants import AGENT_TEST_MIN_OUTPUT_CHARS, FALLBACK_MODEL, Settings, get_settings
from core.messages import embed_model_info
from core.providers import get_api_key, get_provider_config
from integrations.event_sink import MemoryEventSink
from integrations.model_clients import ModelClient
from models.agent_models import Message, ModelSetting, ProviderSetting, Usage, generate_id
from utils.logger import get_logger

logger = get_logger("agent.tester")

DEFAULT_TEST_PROVIDER = "Anthropic"
DEFAULT_TEST_PROMPT = "Create a simple React component"
TEST_SYSTEM_MESSAGE = "You are a helpful AI coding assistant. You're running in test mode."
TEST_CONTEXT_WINDOW = 16000
TEST_MAX_OUTPUT_TOKENS = 4000


class AgentRole(str, Enum):
    PROMPT_ENHANCER = "prompt_enhancer"
    CODE_GENERATOR = "code_generator"


@dataclass
class AgentTestReport:
    """Outcome of one tester run."""

    success: bool
    prompt: str
    provider: str
    model: str
    duration_ms: float
    output: str | None = None
    usage: Usage | None = None
    error: str | None = None
    agent: str | None = None
    logs: list[str] = field(default_factory=list)
    events: list[dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["usage"] = self.usage.model_dump(by_alias=True) if self.usage else None
        return data


@dataclass
class ConnectionCheck:
    """Result of checking that a provider is usable with the available keys."""

    success: bool
    provider: str
    model: str
    error: str | None = None
    latency_ms: float | None = None


class AgentTester:
    """Runs agents against a ``MemoryEventSink`` and collects a report."""

    def __init__(
        self,
        client: ModelClient | None = None,
        implementation: AgentImplementation | str | None = None,
        settings: Settings | None = None,
    ):
        self.settings = settings or get_settings()
        self.implementation = AgentImplementation(implementation or self.settings.agent_implementation)
        self.client = client

    def _build_inputs(
        self,
        provider: str,
        model: str,
        test_prompt: str,
        api_keys: dict[str, str],
        env: Mapping[str, str] | None,
        sink: MemoryEventSink,
    ) -> tuple[list[Message], AgentContext]:
        messages = [
            Message(role="system", content=TEST_SYSTEM_MESSAGE),
            Message(role="user", content=embed_model_info(model, provider, test_prompt)),
        ]
        provider_settings = {
            provider: ProviderSetting(
                models=[
                    ModelSetting(
                        id=model,
                        name=model,
                        context_window=TEST_CONTEXT_WINDOW,
                        max_output_tokens=TEST_MAX_OUTPUT_TOKENS,
                    )
                ]
            )
        }
        context = AgentContext(
            event_sink=sink,
            api_keys=api_keys,
            provider_settings=provider_settings,
            env=dict(env or {}),
            context_optimization=True,
            prompt_id=generate_id(),
        )
        return messages, context

    def _agent_for(self, role: AgentRole) -> Agent:
        pipeline = create_pipeline(self.implementation, self.client, self.settings)
        if role is AgentRole.PROMPT_ENHANCER:
            return pipeline.enhancer
        return pipeline.generator

    async def test_agent_system(
        self,
        api_keys: dict[str, str] | None = None,
        env: Mapping[str, str] | None = None,
        provider: str = DEFAULT_TEST_PROVIDER,
        model: str = FALLBACK_MODEL,
        test_prompt: str = DEFAULT_TEST_PROMPT,
    ) -> AgentTestReport:
        """Run the full two-stage pipeline."""
        return await self._run(None, api_keys or {}, env, provider, model, test_prompt)

    async def test_agent(
        self,
        role: AgentRole | str,
        api_keys: dict[str, str] | None = None,
        env: Mapping[str, str] | None = None,
        provider: str = DEFAULT_TEST_PROVIDER,
        model: str = FALLBACK_MODEL,
        test_prompt: str = DEFAULT_TEST_PROMPT,
    ) -> AgentTestReport:
        """Run a single agent."""
        return await self._run(AgentRole(role), api_keys or {}, env, provider, model, test_prompt)

    async def _run(
        self,
        role: AgentRole | None,
        api_keys: dict[str, str],
        env: Mapping[str, str] | None,
        provider: str,
        model: str,
        test_prompt: str,
    ) -> AgentTestReport:
        logs: list[str] = []

        def add_log(message: str) -> None:
            logs.append(message)
            logger.debug(message)

        sink = MemoryEventSink()
        start_time = time.perf_counter()
        agent_name = role.value if role else None
        subject = f"agent {agent_name}" if agent_name else "agent system"
        add_log(f"Starting {subject} test with provider: {provider}, model: {model}")
        add_log(f'Test prompt: "{test_prompt}"')

        report = AgentTestReport(
            success=False,
            prompt=test_prompt,
            provider=provider,
            model=model,
            duration_ms=0.0,
            agent=agent_name,
        )

        try:
            messages, context = self._build_inputs(provider, model, test_prompt, api_keys, env, sink)
            if role is None:
                result = await create_pipeline(self.implementation, self.client, self.settings).run(messages, context)
                output, usage = result.text, result.usage
            else:
                agent_result = await self._agent_for(role).execute(messages, context)
                output, usage = str(agent_result.output), agent_result.usage

            report.duration_ms = (time.perf_counter() - start_time) * 1000
            add_log(f"Execution completed in {report.duration_ms:.0f}ms")
            if usage is not None:
                add_log(f"Total tokens: {usage.total_tokens}")

            report.success = len(output) > AGENT_TEST_MIN_OUTPUT_CHARS
            report.output = output
            report.usage = usage
            add_log("Test completed successfully" if report.success else "Test failed: Output is too short or empty")
        except Exception as e:
            report.duration_ms = (time.perf_counter() - start_time) * 1000
            report.error = str(e)
            add_log(f"Agent test failed with error: {e}")

        report.logs = logs + sink.logs
        report.events = sink.data + sink.annotations
        return report


def check_provider_connection(
    context: AgentContext,
    provider: str,
    model: str | None = None,
) -> ConnectionCheck:
    """Check that ``provider`` is registered and has a usable key.

    No request is sent; this only validates local configuration.
    """
    start_time = time.perf_counter()
    config = get_provider_config(provider)
    model = model or (config.default_model if config else "unknown")

    if config is None:
        return ConnectionCheck(success=False, provider=provider, model=model, error=f"Unknown provider: {provider}")

    if config.requires_key and not get_api_key(context, config.name):
        return ConnectionCheck(
            success=False,
            provider=config.name,
            model=model,
            error=f"Missing or invalid API key for {config.name}",
        )

    return ConnectionCheck(
        success=True,
        provider=config.name,
        model=model,
        latency_ms=(time.perf_counter() - start_time) * 1000,
    )
