"""
Message helpers: text extraction, model/provider tags, last-user lookup.

The client encodes its model selection at the start of the message text:

    [Model: gpt-4o]

    [Provider: OpenAI]

    write a fibonacci function
"""

from __future__ import annotations

import re

from collections.abc import Sequence
from dataclasses import dataclass, field

from core.constants import (
    ANNOTATION_TYPE_CHAT_SUMMARY,
    ANNOTATION_TYPE_CODE_CONTEXT,
    DEFAULT_MODEL,
    DEFAULT_PROVIDER,
    MODEL_REGEX,
    PROVIDER_REGEX,
)
from models.agent_models import ContentPart, Message, ModelInfo

_MODEL_PATTERN = re.compile(MODEL_REGEX)
_PROVIDER_PATTERN = re.compile(PROVIDER_REGEX)


def extract_text(content: str | Sequence[ContentPart] | None) -> str:
    """Plain text of a message: the string itself, or the first text part."""
    if content is None:
        return ""
    if isinstance(content, str):
        return content
    for part in content:
        if part.type == "text":
            return part.text or ""
    return ""


def parse_model_info(
    message: Message | None,
    default_model: str = DEFAULT_MODEL,
    default_provider: str = DEFAULT_PROVIDER,
) -> ModelInfo:
    """Read the [Model: ...] / [Provider: ...] tags, falling back to defaults."""
    text = extract_text(message.content) if message is not None else ""
    model_match = _MODEL_PATTERN.search(text)
    provider_match = _PROVIDER_PATTERN.search(text)
    return ModelInfo(
        model=model_match.group(1) if model_match else default_model,
        provider_name=provider_match.group(1) if provider_match else default_provider,
    )


def embed_model_info(model: str, provider: str, text: str) -> str:
    return f"[Model: {model}]\n\n[Provider: {provider}]\n\n{text}"


def strip_model_info(text: str) -> str:
    """Remove the selection tags so they never reach a prompt template."""
    return _PROVIDER_PATTERN.sub("", _MODEL_PATTERN.sub("", text)).strip()


def without_model_info(message: Message) -> Message:
    """Copy of ``message`` with the selection tags stripped from its text."""
    if isinstance(message.content, str):
        return message.model_copy(update={"content": strip_model_info(message.content)})
    parts = [
        part.model_copy(update={"text": strip_model_info(part.text)}) if part.type == "text" and part.text else part
        for part in message.content
    ]
    return message.model_copy(update={"content": parts})


def find_last_user_index(messages: Sequence[Message]) -> int | None:
    for index in range(len(messages) - 1, -1, -1):
        if messages[index].role == "user":
            return index
    return None


def find_last_user_message(messages: Sequence[Message]) -> Message | None:
    index = find_last_user_index(messages)
    return messages[index] if index is not None else None


def replace_last_user_message(messages: Sequence[Message], replacement: Message) -> list[Message]:
    """New list with the last user message swapped for ``replacement``.

    Appends instead when the history has no user message.
    """
    updated = list(messages)
    index = find_last_user_index(updated)
    if index is None:
        updated.append(replacement)
    else:
        updated[index] = replacement
    return updated


@dataclass
class CurrentContext:
    """Summary and code context carried on the last assistant message."""

    summary: str | None = None
    chat_id: str | None = None
    code_context: list[str] = field(default_factory=list)


def extract_current_context(messages: Sequence[Message]) -> CurrentContext:
    """Read the ``chatSummary`` and ``codeContext`` annotations of the last assistant message."""
    current = CurrentContext()
    assistant = next((message for message in reversed(messages) if message.role == "assistant"), None)
    if assistant is None or not assistant.annotations:
        return current

    for annotation in assistant.annotations:
        if not isinstance(annotation, dict):
            continue
        if annotation.get("type") == ANNOTATION_TYPE_CHAT_SUMMARY:
            current.summary = annotation.get("summary") or None
            current.chat_id = annotation.get("chatId")
        elif annotation.get("type") == ANNOTATION_TYPE_CODE_CONTEXT:
            current.code_context = list(annotation.get("files") or [])
    return current
