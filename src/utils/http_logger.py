"""
HTTP request/response logging for debugging provider API calls.

Captures request metadata (and payloads when content logging is enabled)
using httpx event hooks.
"""

from __future__ import annotations

import json

from typing import Any

import httpx

from core.constants import get_settings
from utils.logger import get_logger

logger = get_logger("llm.http")

SENSITIVE_HEADERS = ("authorization", "api-key", "x-api-key")


class HTTPLogger:
    """Logs HTTP requests and responses for debugging."""

    def __init__(self, enabled: bool = True):
        self.enabled = enabled
        self._request_data: dict[int, dict[str, Any]] = {}

    async def log_request(self, request: httpx.Request) -> None:
        if not self.enabled:
            return

        try:
            self._request_data[id(request)] = {"method": request.method, "url": str(request.url)}
            logger.info(
                f"HTTP Request: {request.method} {request.url}",
                http_request=True,
                headers=self._sanitize_headers(dict(request.headers)),
            )

            if get_settings().enable_content_logging and request.content:
                body_json = json.loads(request.content.decode("utf-8"))
                logger.debug(f"Request Payload:\n{json.dumps(body_json, indent=2)}")
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            logger.warning(f"Could not decode HTTP request body: {e}")

    async def log_response(self, response: httpx.Response) -> None:
        if not self.enabled:
            return

        request_data = self._request_data.pop(id(response.request), {})
        logger.info(
            f"HTTP Response: {response.status_code} "
            f"{request_data.get('method', 'UNKNOWN')} {request_data.get('url', 'UNKNOWN')}",
            http_response=True,
            status_code=response.status_code,
        )

    def _sanitize_headers(self, headers: dict[str, str]) -> dict[str, str]:
        """Redact credentials, keeping the last 4 characters for correlation."""
        sanitized = headers.copy()
        for key, value in headers.items():
            if key.lower() in SENSITIVE_HEADERS:
                sanitized[key] = f"***{value[-4:]}" if len(value) > 4 else "***"
        return sanitized


def create_logging_client(
    enabled: bool = True,
    timeout: httpx.Timeout | None = None,
) -> httpx.AsyncClient:
    """Create an httpx client with request/response logging hooks."""
    http_logger = HTTPLogger(enabled=enabled)

    event_hooks: dict[str, list[Any]] = {
        "request": [http_logger.log_request],
        "response": [http_logger.log_response],
    }

    return httpx.AsyncClient(event_hooks=event_hooks, timeout=timeout)
