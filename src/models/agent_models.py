"""
Pipeline data models for Code Forge.

Messages, token usage, model selection and project files as they flow
between the chat request, the two agents and the model client.
"""

from __future__ import annotations

import uuid

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

MessageRole = Literal["system", "user", "assistant"]


def generate_id() -> str:
    """Short random message ID."""
    return uuid.uuid4().hex[:16]


class CamelModel(BaseModel):
    """Base for models exchanged with the browser (camelCase on the wire)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ContentPart(BaseModel):
    """One part of structured message content (text, image, ...)."""

    model_config = ConfigDict(extra="allow", frozen=True)

    type: str
    text: str | None = None


class Message(BaseModel):
    """A single chat message. Never mutated; the pipeline builds new lists."""

    model_config = ConfigDict(frozen=True)

    role: MessageRole
    content: str | list[ContentPart] = ""
    id: str = Field(default_factory=generate_id)
    #: Annotations the client echoes back on earlier assistant messages
    annotations: list[dict[str, Any]] | None = None


class Usage(CamelModel):
    """Token counts attributable to one or more model invocations."""

    completion_tokens: int = 0
    prompt_tokens: int = 0
    total_tokens: int = 0

    def __add__(self, other: Usage | None) -> Usage:
        if other is None:
            return self
        return Usage(
            completion_tokens=self.completion_tokens + other.completion_tokens,
            prompt_tokens=self.prompt_tokens + other.prompt_tokens,
            total_tokens=self.total_tokens + other.total_tokens,
        )

    @classmethod
    def combine(cls, *usages: Usage | None) -> Usage:
        """Sum field by field; missing usage counts as zero."""
        total = cls()
        for usage in usages:
            total = total + usage
        return total


class ModelInfo(CamelModel):
    """Model and provider selected by the user for this request."""

    model: str
    provider_name: str


class ModelSetting(CamelModel):
    """A model offered by a provider."""

    id: str
    name: str | None = None
    context_window: int | None = None
    max_output_tokens: int | None = None


class ProviderSetting(CamelModel):
    """Per-provider settings sent by the client."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    enabled: bool = True
    base_url: str | None = None
    models: list[ModelSetting] = Field(default_factory=list)

    def max_tokens_for(self, model: str) -> int | None:
        """Output token cap for ``model`` if the provider declares one."""
        for entry in self.models:
            if entry.id == model or entry.name == model:
                return entry.max_output_tokens
        return None


class FileEntry(CamelModel):
    """A file or folder in the user's project."""

    type: Literal["file", "folder"] = "file"
    content: str = ""
    is_binary: bool = False


#: Absolute path -> entry. Folders and deleted files may map to None.
FileMap = dict[str, FileEntry | None]


class ChatRequest(CamelModel):
    """Body of ``POST /api/chat``."""

    messages: list[Message]
    files: FileMap | None = None
    prompt_id: str | None = None
    #: None means the server's CONTEXT_OPTIMIZATION setting applies
    context_optimization: bool | None = None
