"""
Standardized error models for Code Forge.

Provides consistent error formatting for the HTTP layer and error
categorization for pipeline failures.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class ErrorCode(str, Enum):
    """Application-specific error codes for categorization."""

    # Validation errors (2xxx)
    VALIDATION_ERROR = "VAL_2001"
    VALIDATION_INVALID_FORMAT = "VAL_2003"

    # Pipeline input errors (3xxx)
    NO_USER_MESSAGE = "AGT_3001"
    CONTEXT_PREPARATION_FAILED = "AGT_3002"

    # Credential errors (4xxx)
    MISSING_API_KEY = "KEY_4001"

    # External service errors (7xxx)
    MODEL_INVOCATION_FAILED = "EXT_7001"
    EXTERNAL_RATE_LIMITED = "EXT_7003"

    # Internal errors (9xxx)
    INTERNAL_ERROR = "INT_9001"
    INTERNAL_CONFIGURATION_ERROR = "INT_9002"


class ErrorResponse(BaseModel):
    """Standardized error body for request-level failures.

    Example response:
    {
        "error": {
            "code": "INT_9001",
            "message": "There was an error processing your request",
            "request_id": "req_abc123",
            "timestamp": "2025-01-15T10:30:00Z"
        }
    }
    """

    code: ErrorCode
    message: str
    request_id: str | None = None
    timestamp: str = Field(default_factory=lambda: datetime.now(UTC).isoformat())
    details: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        """Wrap in the ``{"error": {...}}`` envelope clients expect."""
        return {"error": self.model_dump(mode="json", exclude_none=True)}


#: HTTP status for each error code when surfaced outside a stream
ERROR_STATUS_CODES: dict[ErrorCode, int] = {
    ErrorCode.VALIDATION_ERROR: 422,
    ErrorCode.VALIDATION_INVALID_FORMAT: 400,
    ErrorCode.NO_USER_MESSAGE: 400,
    ErrorCode.CONTEXT_PREPARATION_FAILED: 500,
    ErrorCode.MISSING_API_KEY: 401,
    ErrorCode.MODEL_INVOCATION_FAILED: 502,
    ErrorCode.EXTERNAL_RATE_LIMITED: 429,
    ErrorCode.INTERNAL_ERROR: 500,
    ErrorCode.INTERNAL_CONFIGURATION_ERROR: 500,
}


def get_status_code(code: ErrorCode) -> int:
    return ERROR_STATUS_CODES.get(code, 500)
