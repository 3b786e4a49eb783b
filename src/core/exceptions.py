"""
Pipeline exceptions for Code Forge.

Every fatal stage failure is one of these. The orchestrator never catches
them: they abort the whole request and the host layer turns the message
into a user-visible notice.
"""

from __future__ import annotations

from typing import Any

from models.error_models import ErrorCode


class AgentError(Exception):
    """Base pipeline exception with error code support.

    Example:
        raise AgentError(
            code=ErrorCode.MODEL_INVOCATION_FAILED,
            message="Model call failed",
            details={"provider": "OpenAI"},
        )
    """

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        details: dict[str, Any] | None = None,
    ):
        self.code = code
        self.message = message
        self.details = details
        super().__init__(message)


class MissingUserMessageError(AgentError):
    """No user message exists in the history handed to a stage."""

    def __init__(self, message: str = "No user message found to enhance"):
        super().__init__(code=ErrorCode.NO_USER_MESSAGE, message=message)


class MissingApiKeyError(AgentError):
    """No API key could be resolved for the target provider."""

    def __init__(self, provider: str):
        self.provider = provider
        super().__init__(
            code=ErrorCode.MISSING_API_KEY,
            message=f"No API key available for provider: {provider}",
            details={"provider": provider},
        )


class ModelInvocationError(AgentError):
    """The model call itself failed (network, provider error, bad response)."""

    def __init__(self, provider: str, model: str, message: str):
        self.provider = provider
        self.model = model
        super().__init__(
            code=ErrorCode.MODEL_INVOCATION_FAILED,
            message=message,
            details={"provider": provider, "model": model},
        )


class ContextPreparationError(AgentError):
    """Project files could not be turned into a context block."""

    def __init__(self, message: str):
        super().__init__(code=ErrorCode.CONTEXT_PREPARATION_FAILED, message=message)
