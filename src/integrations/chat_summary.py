"""
Running chat summary used to guide context selection.

The previous summary travels on the last assistant message as a
``chatSummary`` annotation; only the messages after the one it covers are
summarized again.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING

from core.constants import CHAT_SUMMARY_HISTORY, Settings, get_settings
from core.messages import extract_current_context, extract_text, parse_model_info, strip_model_info
from core.prompts import CHAT_SUMMARY_SYSTEM_PROMPT, CHAT_SUMMARY_TEMPLATE, NO_PREVIOUS_SUMMARY
from core.providers import resolve_target
from integrations.model_clients import InvokeOptions, ModelClient
from models.agent_models import Message, Usage
from utils.logger import get_logger
from utils.token_utils import estimate_usage

if TYPE_CHECKING:
    from core.agents.base import AgentContext

logger = get_logger("llm.create-summary")


@dataclass
class ChatSummary:
    text: str
    usage: Usage | None = None


def messages_to_summarize(messages: Sequence[Message]) -> tuple[str | None, list[Message]]:
    """Previous summary plus the messages it does not cover yet."""
    current = extract_current_context(messages)
    if current.summary and current.chat_id:
        for index, message in enumerate(messages):
            if message.id == current.chat_id:
                return current.summary, list(messages[index + 1 :])
    if current.summary:
        return current.summary, list(messages[-CHAT_SUMMARY_HISTORY:])
    return None, list(messages[-CHAT_SUMMARY_HISTORY:])


class ChatSummarizer:
    """Asks the selected model for an updated summary of the conversation."""

    def __init__(self, client: ModelClient, settings: Settings | None = None):
        self.client = client
        self.settings = settings or get_settings()

    async def summarize(self, messages: Sequence[Message], context: AgentContext) -> ChatSummary:
        previous, pending = messages_to_summarize(messages)
        logger.debug(
            f"Summarizing {len(pending)} of {len(messages)} messages",
            previous_summary=previous is not None,
        )

        model_info = parse_model_info(
            messages[-1] if messages else None,
            default_model=self.settings.default_model,
            default_provider=self.settings.default_provider,
        )
        target = resolve_target(model_info, context, self.settings)

        conversation = "\n".join(
            f"[{message.role}] {strip_model_info(extract_text(message.content))}" for message in pending
        )
        prompt = CHAT_SUMMARY_TEMPLATE.format(
            previous_summary=previous or NO_PREVIOUS_SUMMARY,
            conversation=conversation,
        )

        response = await self.client.invoke(
            [Message(role="user", content=prompt)],
            target,
            InvokeOptions(system=CHAT_SUMMARY_SYSTEM_PROMPT, temperature=0.0),
        )
        summary = response.text.strip()
        logger.debug(f"Chat summary length: {len(summary)} characters")

        usage = response.usage or estimate_usage(CHAT_SUMMARY_SYSTEM_PROMPT + prompt, summary)
        return ChatSummary(text=summary, usage=usage)
