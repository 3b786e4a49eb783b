"""
LLM client factory utilities.
Centralizes AsyncOpenAI and LangChain chat model creation with consistent
configuration. Every registered provider exposes an OpenAI-compatible
endpoint, so both variants only differ in base URL and key.
"""

from __future__ import annotations

from typing import Any

import httpx

from langchain_openai import ChatOpenAI
from openai import AsyncOpenAI

from utils.http_logger import create_logging_client

DEFAULT_CONNECT_TIMEOUT = 30.0  # Time to establish connection
DEFAULT_READ_TIMEOUT = 300.0  # Long generations can stall between chunks
DEFAULT_WRITE_TIMEOUT = 30.0  # Time to send request
DEFAULT_POOL_TIMEOUT = 30.0  # Time to acquire connection from pool


def _default_timeout(read_timeout: float | None = None) -> httpx.Timeout:
    return httpx.Timeout(
        connect=DEFAULT_CONNECT_TIMEOUT,
        read=read_timeout if read_timeout is not None else DEFAULT_READ_TIMEOUT,
        write=DEFAULT_WRITE_TIMEOUT,
        pool=DEFAULT_POOL_TIMEOUT,
    )


def create_http_client(
    enable_logging: bool = False,
    read_timeout: float | None = None,
) -> httpx.AsyncClient:
    """Create HTTP client with provider-friendly timeouts.

    Args:
        enable_logging: Enable HTTP request/response logging
        read_timeout: Read timeout in seconds (default: 300s)

    Returns:
        Configured httpx.AsyncClient
    """
    timeout = _default_timeout(read_timeout)

    if enable_logging:
        return create_logging_client(enabled=True, timeout=timeout)

    return httpx.AsyncClient(timeout=timeout)


def create_openai_client(
    api_key: str,
    base_url: str | None = None,
    http_client: httpx.AsyncClient | None = None,
) -> AsyncOpenAI:
    """Create AsyncOpenAI client with consistent configuration.

    Args:
        api_key: Provider API key
        base_url: OpenAI-compatible endpoint for non-OpenAI providers
        http_client: Optional httpx client for request logging

    Returns:
        Configured AsyncOpenAI client
    """
    kwargs: dict[str, Any] = {"api_key": api_key, "http_client": http_client}
    if base_url:
        kwargs["base_url"] = base_url
    return AsyncOpenAI(**kwargs)


def create_langchain_chat_model(
    api_key: str,
    model: str,
    temperature: float = 0.0,
    base_url: str | None = None,
    max_tokens: int | None = None,
    http_client: httpx.AsyncClient | None = None,
) -> ChatOpenAI:
    """Create a LangChain chat model bound to one provider and model.

    Args:
        api_key: Provider API key
        model: Model name
        temperature: Sampling temperature
        base_url: OpenAI-compatible endpoint for non-OpenAI providers
        max_tokens: Optional output token cap
        http_client: Optional httpx client for request logging

    Returns:
        Configured ChatOpenAI instance
    """
    kwargs: dict[str, Any] = {
        "api_key": api_key,
        "model": model,
        "temperature": temperature,
        "timeout": DEFAULT_READ_TIMEOUT,
    }
    if base_url:
        kwargs["base_url"] = base_url
    if max_tokens:
        kwargs["max_tokens"] = max_tokens
    if http_client is not None:
        kwargs["http_async_client"] = http_client
    return ChatOpenAI(**kwargs)
