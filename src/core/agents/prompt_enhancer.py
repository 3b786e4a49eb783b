"""
Prompt enhancer stage: rewrites the latest user request into an explicit,
self-contained prompt before code generation.
"""

from __future__ import annotations

from collections.abc import Sequence

from core.agents.base import Agent, AgentContext
from core.constants import PROGRESS_LABEL_ENHANCE, Settings, get_settings
from core.exceptions import MissingUserMessageError
from core.messages import extract_text, find_last_user_message, parse_model_info, strip_model_info
from core.prompts import PROMPT_ENHANCER_SYSTEM_PROMPT, build_enhancer_prompt
from core.providers import resolve_target
from integrations.model_clients import InvokeOptions, ModelClient
from models.agent_models import Message, Usage
from utils.logger import get_logger
from utils.token_utils import estimate_usage


class PromptEnhancerAgent(Agent):
    """Enhances the most recent user message.

    The text comes from the newest *user* message while the model selection
    comes from the newest message of any role. They usually coincide.
    """

    label = PROGRESS_LABEL_ENHANCE
    in_progress_message = "Enhancing prompt..."
    complete_message = "Prompt enhanced successfully"
    error_message = "Failed to enhance prompt"

    def __init__(self, client: ModelClient, settings: Settings | None = None):
        super().__init__(get_logger("agent.prompt-enhancer"))
        self.client = client
        self.settings = settings or get_settings()

    def validate(self, messages: Sequence[Message]) -> None:
        if find_last_user_message(messages) is None:
            self.logger.error("No user message found in messages array")
            raise MissingUserMessageError()

    async def run(self, messages: Sequence[Message], context: AgentContext) -> tuple[str, Usage | None]:
        last_user_message = find_last_user_message(messages)
        if last_user_message is None:
            raise MissingUserMessageError()

        original = strip_model_info(extract_text(last_user_message.content))
        self.logger.debug(f"Original prompt length: {len(original)} characters")
        self.logger.debug(f"Original prompt: {self.logger.preview(original)}")

        model_info = parse_model_info(
            messages[-1],
            default_model=self.settings.default_model,
            default_provider=self.settings.default_provider,
        )
        target = resolve_target(model_info, context, self.settings)
        self.logger.debug(f"Using model: {target.model}, provider: {target.provider}")

        prompt = build_enhancer_prompt(original)
        response = await self.client.invoke(
            [Message(role="user", content=prompt)],
            target,
            InvokeOptions(system=PROMPT_ENHANCER_SYSTEM_PROMPT, temperature=self.settings.enhancer_temperature),
        )

        enhanced = response.text.strip()
        self.logger.debug(f"Enhanced prompt length: {len(enhanced)} characters")
        self.logger.debug(f"Enhanced prompt: {self.logger.preview(enhanced)}")

        usage = response.usage or estimate_usage(prompt, enhanced)
        return enhanced, usage
