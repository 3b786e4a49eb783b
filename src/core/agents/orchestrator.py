"""
Two-stage orchestration: enhance the prompt, then generate code.

ENHANCING -> GENERATING -> DONE. Either stage failing aborts the request;
there is no retry and no fallback to the unenhanced prompt.
"""

from __future__ import annotations

import json
import time

from collections.abc import Sequence
from dataclasses import dataclass, field

from core.agents.base import Agent, AgentContext
from core.constants import Settings, get_settings
from core.messages import (
    embed_model_info,
    find_last_user_index,
    find_last_user_message,
    parse_model_info,
    replace_last_user_message,
)
from models.agent_models import Message, Usage
from models.event_models import PromptComparisonEvent
from utils.logger import get_logger
from utils.text_utils import ensure_string

logger = get_logger("agent.orchestrator")


@dataclass
class OrchestratorResult:
    """Generated text and usage summed over both stages."""

    text: str
    usage: Usage = field(default_factory=Usage)
    progress_counter: int = 0


def _raw_content(message: Message | None) -> str:
    """Original user content for display: text as-is, structured parts as JSON."""
    if message is None:
        return ""
    if isinstance(message.content, str):
        return message.content
    return json.dumps([part.model_dump(exclude_none=True) for part in message.content])


class Orchestrator:
    """Runs a prompt enhancer and a code generator in sequence."""

    def __init__(self, enhancer: Agent, generator: Agent, settings: Settings | None = None):
        self.enhancer = enhancer
        self.generator = generator
        self.settings = settings or get_settings()

    async def run(self, messages: Sequence[Message], context: AgentContext) -> OrchestratorResult:
        logger.debug(f"Orchestration started for prompt {context.prompt_id or 'none'}", messages=len(messages))
        logger.debug(f"Files provided: {len(context.files) if context.files else 0}")
        logger.debug(f"API keys provided: {', '.join(context.api_keys) or 'none'}")

        try:
            return await self._run(messages, context)
        except Exception as e:
            logger.error(f"Agent orchestration failed: {e}", exc_info=True)
            raise

    async def _run(self, messages: Sequence[Message], context: AgentContext) -> OrchestratorResult:
        original_message = find_last_user_message(messages)
        original_prompt = _raw_content(original_message)
        model_info = parse_model_info(
            messages[-1] if messages else None,
            default_model=self.settings.default_model,
            default_provider=self.settings.default_provider,
        )
        logger.debug(f"User selected model: {model_info.model}, provider: {model_info.provider_name}")

        # Enhance
        enhancer_start = time.perf_counter()
        enhancer_result = await self.enhancer.execute(messages, context)
        enhancer_ms = (time.perf_counter() - enhancer_start) * 1000
        enhanced_prompt = await ensure_string(enhancer_result.output)
        logger.debug(f"Prompt enhancer completed in {enhancer_ms:.0f}ms", ms=int(enhancer_ms))

        context.event_sink.write_data(PromptComparisonEvent(original=original_prompt, enhanced=enhanced_prompt))

        enhanced_message = Message(
            role="user",
            content=embed_model_info(model_info.model, model_info.provider_name, enhanced_prompt),
        )
        updated_messages = replace_last_user_message(messages, enhanced_message)
        index = find_last_user_index(messages)
        if index is None:
            logger.debug("No user message found, appended enhanced prompt as new message")
        else:
            logger.debug(f"Replaced user message at index {index} with enhanced prompt")

        # Generate
        generator_context = context.with_progress(enhancer_result.progress_counter)
        generator_start = time.perf_counter()
        generator_result = await self.generator.execute(updated_messages, generator_context)
        generator_ms = (time.perf_counter() - generator_start) * 1000
        generated = await ensure_string(generator_result.output)
        logger.debug(f"Code generator completed in {generator_ms:.0f}ms", ms=int(generator_ms))

        usage = Usage.combine(enhancer_result.usage, generator_result.usage)
        logger.log_pipeline_run(
            original_prompt=original_prompt,
            enhanced_prompt=enhanced_prompt,
            output=generated,
            duration_ms=enhancer_ms + generator_ms,
            tokens_used=usage.total_tokens,
            model=model_info.model,
            provider=model_info.provider_name,
        )

        return OrchestratorResult(text=generated, usage=usage, progress_counter=generator_result.progress_counter)
