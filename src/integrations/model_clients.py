"""
Model invocation clients.

Both pipeline variants talk to providers through a ``ModelClient``:
``invoke(messages, target, options) -> ModelResponse``. The standard client
calls Chat Completions with ``AsyncOpenAI`` and reports exact usage. The
LangChain client goes through ``ChatOpenAI`` and reports none, leaving the
agents to estimate it.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any, Protocol

import httpx
import openai

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage

from core.constants import get_settings
from core.exceptions import ModelInvocationError
from core.providers import ModelTarget
from models.agent_models import Message, Usage
from utils.client_factory import create_http_client, create_langchain_chat_model, create_openai_client
from utils.logger import get_logger

logger = get_logger("llm.client")


@dataclass(frozen=True, slots=True)
class InvokeOptions:
    """Per-call generation options."""

    system: str | None = None
    temperature: float = 0.0
    max_tokens: int | None = None


@dataclass(frozen=True, slots=True)
class ModelResponse:
    """Text returned by a model call; ``usage`` is None when not reported."""

    text: str
    usage: Usage | None = None


class ModelClient(Protocol):
    """Opaque "invoke model M of provider P" collaborator."""

    async def invoke(
        self,
        messages: Sequence[Message],
        target: ModelTarget,
        options: InvokeOptions,
    ) -> ModelResponse: ...


def _content_payload(message: Message) -> str | list[dict[str, Any]]:
    if isinstance(message.content, str):
        return message.content
    return [part.model_dump(exclude_none=True) for part in message.content]


def _max_tokens(target: ModelTarget, options: InvokeOptions) -> int | None:
    return options.max_tokens or target.max_tokens


class _HttpClientOwner:
    """Lazily creates, then owns, the shared httpx client for provider calls."""

    def __init__(self, http_client: httpx.AsyncClient | None = None):
        self._http_client = http_client

    def _get_http_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = create_http_client(enable_logging=get_settings().http_request_logging)
        return self._http_client

    async def aclose(self) -> None:
        if self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None


class OpenAIChatClient(_HttpClientOwner):
    """Chat Completions against the provider's OpenAI-compatible endpoint."""

    def _build_messages(self, messages: Sequence[Message], system: str | None) -> list[dict[str, Any]]:
        payload: list[dict[str, Any]] = []
        if system:
            payload.append({"role": "system", "content": system})
        payload.extend({"role": message.role, "content": _content_payload(message)} for message in messages)
        return payload

    async def invoke(
        self,
        messages: Sequence[Message],
        target: ModelTarget,
        options: InvokeOptions,
    ) -> ModelResponse:
        client = create_openai_client(
            api_key=target.api_key,
            base_url=target.base_url,
            http_client=self._get_http_client(),
        )

        request: dict[str, Any] = {
            "model": target.model,
            "messages": self._build_messages(messages, options.system),
            "temperature": options.temperature,
        }
        if max_tokens := _max_tokens(target, options):
            request["max_tokens"] = max_tokens

        logger.debug(f"Invoking {target.provider}/{target.model}", messages=len(request["messages"]))
        try:
            response = await client.chat.completions.create(**request)
        except openai.OpenAIError as e:
            raise ModelInvocationError(target.provider, target.model, str(e)) from e

        if not response.choices:
            raise ModelInvocationError(target.provider, target.model, "Model returned no choices")

        text = response.choices[0].message.content or ""
        usage = None
        if response.usage is not None:
            usage = Usage(
                completion_tokens=response.usage.completion_tokens or 0,
                prompt_tokens=response.usage.prompt_tokens or 0,
                total_tokens=response.usage.total_tokens or 0,
            )
        return ModelResponse(text=text, usage=usage)


def to_langchain_messages(messages: Sequence[Message], system: str | None = None) -> list[BaseMessage]:
    """Convert chat messages to LangChain message objects."""
    converted: list[BaseMessage] = [SystemMessage(content=system)] if system else []
    for message in messages:
        content = _content_payload(message)
        if message.role == "system":
            converted.append(SystemMessage(content=content))
        elif message.role == "assistant":
            converted.append(AIMessage(content=content))
        else:
            converted.append(HumanMessage(content=content))
    return converted


def _langchain_text(content: str | list[Any]) -> str:
    if isinstance(content, str):
        return content
    parts = []
    for part in content:
        if isinstance(part, str):
            parts.append(part)
        elif isinstance(part, dict) and part.get("type") == "text":
            parts.append(part.get("text", ""))
    return "".join(parts)


class LangChainChatClient(_HttpClientOwner):
    """LangChain ``ChatOpenAI`` bound per call to the resolved target."""

    async def invoke(
        self,
        messages: Sequence[Message],
        target: ModelTarget,
        options: InvokeOptions,
    ) -> ModelResponse:
        logger.debug(f"Creating LangChain model: {target.model} ({target.provider})")
        llm = create_langchain_chat_model(
            api_key=target.api_key,
            model=target.model,
            temperature=options.temperature,
            base_url=target.base_url,
            max_tokens=_max_tokens(target, options),
            http_client=self._get_http_client(),
        )

        try:
            response = await llm.ainvoke(to_langchain_messages(messages, options.system))
        except openai.OpenAIError as e:
            raise ModelInvocationError(target.provider, target.model, str(e)) from e

        return ModelResponse(text=_langchain_text(response.content))
