"""
Global exception handlers for Code Forge API.

Request-level failures (bad cookies, invalid bodies, pipeline errors raised
outside a stream) become an ``ErrorResponse`` JSON body. Failures inside a
streamed chat response never reach these handlers; they are reported in the
stream itself.
"""

from __future__ import annotations

import traceback

from typing import Any

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from api.middleware.request_context import get_request_context, get_request_id
from core.constants import get_settings
from core.exceptions import AgentError
from models.error_models import ErrorCode, ErrorResponse, get_status_code
from utils.logger import logger

#: Message for unexpected failures; internals stay in the logs
GENERIC_ERROR_MESSAGE = "There was an error processing your request"


def _create_error_response(
    code: ErrorCode,
    message: str,
    details: dict[str, Any] | None = None,
) -> ErrorResponse:
    return ErrorResponse(
        code=code,
        message=message,
        request_id=get_request_id(),
        details=details,
    )


def _log_error(error: Exception, code: ErrorCode, status_code: int) -> None:
    """Log error with appropriate level and context."""
    ctx = get_request_context()
    log_context = ctx.to_log_context() if ctx else {}
    log_context["error_code"] = code.value
    log_context["status_code"] = status_code

    if status_code >= 500:
        logger.error(f"Server error: {code.value} - {error}", exc_info=True, **log_context)
    elif status_code >= 400:
        logger.warning(f"Client error: {code.value} - {error}", **log_context)


async def agent_exception_handler(request: Request, exc: AgentError) -> JSONResponse:
    """Handle pipeline exceptions raised before a response starts streaming."""
    status_code = get_status_code(exc.code)
    error_response = _create_error_response(code=exc.code, message=exc.message, details=exc.details)
    _log_error(exc, exc.code, status_code)
    return JSONResponse(status_code=status_code, content=error_response.to_dict())


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handle FastAPI HTTPException with consistent formatting."""
    status_to_code = {
        400: ErrorCode.VALIDATION_INVALID_FORMAT,
        401: ErrorCode.MISSING_API_KEY,
        422: ErrorCode.VALIDATION_ERROR,
        429: ErrorCode.EXTERNAL_RATE_LIMITED,
        502: ErrorCode.MODEL_INVOCATION_FAILED,
    }

    code = status_to_code.get(exc.status_code, ErrorCode.INTERNAL_ERROR)
    message = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
    error_response = _create_error_response(code=code, message=message)
    _log_error(exc, code, exc.status_code)
    return JSONResponse(status_code=exc.status_code, content=error_response.to_dict())


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handle Pydantic validation errors from request parsing."""
    errors = [
        {"field": ".".join(str(loc) for loc in error["loc"]), "message": error["msg"], "code": error["type"]}
        for error in exc.errors()
    ]
    error_response = _create_error_response(
        code=ErrorCode.VALIDATION_ERROR,
        message="Request validation failed",
        details={"errors": errors},
    )
    _log_error(exc, ErrorCode.VALIDATION_ERROR, 422)
    return JSONResponse(status_code=422, content=error_response.to_dict())


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions with graceful degradation."""
    logger.error(
        f"Unhandled exception: {type(exc).__name__}: {exc}",
        exc_info=True,
        request_id=get_request_id(),
        path=request.url.path,
    )

    details = None
    if get_settings().debug:
        details = {
            "exception_type": type(exc).__name__,
            "exception_message": str(exc),
            "traceback": traceback.format_exc(),
        }

    error_response = _create_error_response(code=ErrorCode.INTERNAL_ERROR, message=GENERIC_ERROR_MESSAGE, details=details)
    return JSONResponse(status_code=500, content=error_response.to_dict())


def register_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers with the FastAPI application."""
    # Covariant exception types in handlers are safe at runtime
    app.add_exception_handler(AgentError, agent_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(HTTPException, http_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, validation_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, generic_exception_handler)


__all__ = [
    "agent_exception_handler",
    "generic_exception_handler",
    "http_exception_handler",
    "register_exception_handlers",
    "validation_exception_handler",
]
