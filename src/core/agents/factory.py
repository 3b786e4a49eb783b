"""
Pipeline factory.

Two variants implement the same orchestration contract and differ only in
their model client and prompt style:
- standard: AsyncOpenAI Chat Completions, full conversation sent to the
  generator, LLM context selection when enabled
- langchain: ChatOpenAI via LangChain, single templated generator prompt,
  usage estimated from character counts
"""

from __future__ import annotations

from collections.abc import Sequence
from enum import Enum

from core.agents.base import AgentContext
from core.agents.code_generator import CodeGeneratorAgent, TemplateCodeGeneratorAgent
from core.agents.orchestrator import Orchestrator, OrchestratorResult
from core.agents.prompt_enhancer import PromptEnhancerAgent
from core.constants import Settings, get_settings
from integrations.context_selector import LLMContextSelector
from integrations.model_clients import LangChainChatClient, ModelClient, OpenAIChatClient
from models.agent_models import Message
from utils.logger import get_logger

logger = get_logger("agent.factory")


class AgentImplementation(str, Enum):
    STANDARD = "standard"
    LANGCHAIN = "langchain"


def create_model_client(implementation: AgentImplementation) -> ModelClient:
    if implementation is AgentImplementation.LANGCHAIN:
        return LangChainChatClient()
    return OpenAIChatClient()


def create_pipeline(
    implementation: AgentImplementation | str | None = None,
    client: ModelClient | None = None,
    settings: Settings | None = None,
) -> Orchestrator:
    """Build the orchestrator for ``implementation`` (default from settings).

    Args:
        implementation: Pipeline variant
        client: Model client override (tests inject fakes here)
        settings: Settings override

    Returns:
        Orchestrator wired with both agents
    """
    settings = settings or get_settings()
    implementation = AgentImplementation(implementation or settings.agent_implementation)
    client = client or create_model_client(implementation)

    enhancer = PromptEnhancerAgent(client, settings)
    generator: CodeGeneratorAgent
    if implementation is AgentImplementation.LANGCHAIN:
        generator = TemplateCodeGeneratorAgent(client, settings)
    else:
        generator = CodeGeneratorAgent(client, settings, context_selector=LLMContextSelector(client, settings))

    logger.debug(f"Created {implementation.value} agent pipeline")
    return Orchestrator(enhancer, generator, settings)


async def execute_agents(
    messages: Sequence[Message],
    context: AgentContext,
    implementation: AgentImplementation | str | None = None,
    client: ModelClient | None = None,
    settings: Settings | None = None,
) -> OrchestratorResult:
    """Create the configured pipeline and run it once."""
    settings = settings or get_settings()
    pipeline = create_pipeline(implementation, client, settings)
    label = implementation.value if isinstance(implementation, AgentImplementation) else implementation
    label = label or settings.agent_implementation
    logger.debug(f"Executing agent implementation: {label}")

    try:
        return await pipeline.run(messages, context)
    except Exception as e:
        logger.error(f"Error executing {label} agent implementation: {e}")
        raise
