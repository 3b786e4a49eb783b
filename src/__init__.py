"""
Code Forge - Two-stage prompt enhancement and code generation service
=====================================================================

Every chat turn runs through two LLM stages: a prompt enhancer rewrites the
user's request into a precise engineering prompt, then a code generator
answers it with optional project file context.

Key Features:
    - **Two-Stage Pipeline**: Enhancer and generator share one orchestration contract
    - **Provider Resolution**: Model and provider chosen per message via embedded tags
    - **Context Selection**: LLM-driven reduction of project files to the relevant subset
    - **Streaming**: Progress, comparison and usage events in the data-stream line protocol
    - **Two Variants**: AsyncOpenAI Chat Completions or LangChain ChatOpenAI
    - **Enterprise Logging**: Structured JSON logs with rotation and request correlation

Modules:
    api: FastAPI app, chat/health/debug routes, chat service
    core: Agents, orchestrator, provider registry, prompts, configuration
    models: Pydantic models for messages, events, errors and API schemas
    integrations: Model clients, event sinks, files context, context selector
    utils: Logging, agent log viewer, token counting, client factory

Example:
    Running the pipeline directly::

        from core.agents.base import AgentContext
        from core.agents.factory import execute_agents
        from integrations.event_sink import MemoryEventSink
        from models.agent_models import Message

        sink = MemoryEventSink()
        context = AgentContext(event_sink=sink, api_keys={"OpenAI": "sk-..."})
        result = await execute_agents(
            [Message(role="user", content="[Model: gpt-4o]\\n\\n[Provider: OpenAI]\\n\\nwrite fib")],
            context,
        )
        print(result.text, result.usage.total_tokens)
"""
