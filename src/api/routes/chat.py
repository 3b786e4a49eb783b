"""
Chat endpoint.

``POST /api/chat`` runs the agent pipeline and streams the result in the
data-stream line protocol. API keys and provider settings arrive as
URI-encoded JSON cookies.
"""

from __future__ import annotations

import json

from typing import Any
from urllib.parse import unquote

from fastapi import APIRouter, Request
from fastapi.responses import StreamingResponse
from pydantic import ValidationError

from api.dependencies import ChatServiceDep
from core.constants import API_KEYS_COOKIE, PROVIDERS_COOKIE
from core.exceptions import AgentError
from models.agent_models import ChatRequest, ProviderSetting
from models.error_models import ErrorCode
from utils.logger import logger

router = APIRouter()

#: Marks the response body as a data stream for the client SDK
DATA_STREAM_HEADERS = {"X-Vercel-AI-Data-Stream": "v1"}


def parse_json_cookie(request: Request, name: str) -> dict[str, Any]:
    """Decode a URI-encoded JSON object cookie. A missing cookie is empty."""
    raw = request.cookies.get(name)
    if not raw:
        return {}

    try:
        value = json.loads(unquote(raw))
    except json.JSONDecodeError as e:
        raise AgentError(
            code=ErrorCode.VALIDATION_INVALID_FORMAT,
            message=f"Invalid {name} cookie: not valid JSON",
            details={"cookie": name},
        ) from e

    if not isinstance(value, dict):
        raise AgentError(
            code=ErrorCode.VALIDATION_INVALID_FORMAT,
            message=f"Invalid {name} cookie: expected a JSON object",
            details={"cookie": name},
        )
    return value


def parse_api_keys(request: Request) -> dict[str, str]:
    keys = parse_json_cookie(request, API_KEYS_COOKIE)
    return {str(provider): str(key) for provider, key in keys.items() if key}


def parse_provider_settings(request: Request) -> dict[str, ProviderSetting]:
    raw = parse_json_cookie(request, PROVIDERS_COOKIE)
    try:
        return {name: ProviderSetting.model_validate(value) for name, value in raw.items()}
    except ValidationError as e:
        raise AgentError(
            code=ErrorCode.VALIDATION_INVALID_FORMAT,
            message=f"Invalid {PROVIDERS_COOKIE} cookie: {e.error_count()} invalid field(s)",
            details={"cookie": PROVIDERS_COOKIE},
        ) from e


@router.post("/chat")
async def chat(body: ChatRequest, request: Request, chat_service: ChatServiceDep) -> StreamingResponse:
    """Stream a pipeline response for the conversation in ``body``."""
    api_keys = parse_api_keys(request)
    provider_settings = parse_provider_settings(request)

    logger.info(
        "Chat request received",
        messages=len(body.messages),
        files=len(body.files or {}),
        providers_with_keys=sorted(api_keys),
    )

    return StreamingResponse(
        chat_service.stream_chat(body, api_keys, provider_settings),
        media_type="text/plain; charset=utf-8",
        headers=DATA_STREAM_HEADERS,
    )
