"""
Logging setup for Code Forge using Python's standard logging
with JSON formatting for structured logs.

Log destinations:
- Console (stderr): Human-readable format for debugging
- logs/conversations.jsonl: JSON format for pipeline runs
- logs/errors.jsonl: JSON format for error tracking

Every module asks for a scoped logger (``get_logger("agent.orchestrator")``).
Scoped loggers are children of the ``code-forge`` root so the handlers are
installed once and every scope shares them.
"""

from __future__ import annotations

import logging
import logging.handlers
import os
import re
import sys
import uuid

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from pythonjsonlogger import json as jsonlogger

from api.middleware.request_context import get_request_context
from core.constants import (
    INSTANCE_ID_LENGTH,
    LOG_BACKUP_COUNT_CONVERSATIONS,
    LOG_BACKUP_COUNT_ERRORS,
    LOG_MAX_SIZE,
    LOG_PREVIEW_LENGTH,
    PROJECT_ROOT,
    get_settings,
)

#: Root logger name; scoped loggers hang below it.
ROOT_LOGGER_NAME = "code-forge"

# PII Redaction patterns
REDACTION_PATTERNS = [
    (r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Z|a-z]{2,}\b", "[EMAIL]"),
    (r"\b(?:\d{4}[- ]?){3}\d{4}\b", "[CARD]"),
    (r"\b(sk-|pk-|api[-_]?key[-_]?)[A-Za-z0-9]{20,}\b", "[API_KEY]"),
    (r"\b(password|secret|token)\s*[:=]\s*\S+", "[REDACTED]"),
]


@dataclass
class PipelineRun:
    """Structured representation of one enhance + generate run for logging."""

    original_prompt: str
    enhanced_prompt: str
    output: str
    duration_ms: float | None = None
    tokens_used: int | None = None
    model: str = ""
    provider: str = ""
    timestamp: str = field(default_factory=lambda: datetime.now(UTC).isoformat())


class ConversationFilter(logging.Filter):
    """Filter to allow all INFO level logs for conversations"""

    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno >= logging.INFO


class ErrorFilter(logging.Filter):
    """Filter to only allow ERROR and CRITICAL logs"""

    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno >= logging.ERROR


class ColoredConsoleFormatter(logging.Formatter):
    """
    Custom formatter that adds colors to log levels and standardizes format.
    Format: HH:MM:SS [LEVEL] logger_name - message
    """

    GREY = "\x1b[38;20m"
    GREEN = "\x1b[32;20m"
    YELLOW = "\x1b[33;20m"
    RED = "\x1b[31;20m"
    BOLD_RED = "\x1b[31;1m"
    RESET = "\x1b[0m"

    LEVEL_COLORS = {
        logging.DEBUG: GREY,
        logging.INFO: GREEN,
        logging.WARNING: YELLOW,
        logging.ERROR: RED,
        logging.CRITICAL: BOLD_RED,
    }

    def format(self, record: logging.LogRecord) -> str:
        level_fmt = f"[{record.levelname}]"
        color = self.LEVEL_COLORS.get(record.levelno)
        if color:
            level_fmt = f"{color}{level_fmt}{self.RESET}"

        record.asctime = self.formatTime(record, "%H:%M:%S")
        name = record.name.removeprefix(f"{ROOT_LOGGER_NAME}.")
        message = f"{record.asctime} {level_fmt} {name} - {record.getMessage()}"
        if record.exc_info:
            message = f"{message}\n{self.formatException(record.exc_info)}"
        return message


def setup_logging(name: str = ROOT_LOGGER_NAME, debug: bool | None = None) -> logging.Logger:
    """
    Set up logging with console and rotating JSON file handlers.

    Args:
        name: Logger name
        debug: Enable debug logging (overrides DEBUG env var)

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)
    logger.setLevel(logging.DEBUG)  # Capture all, filter at handler level
    logger.handlers = []
    logger.propagate = False

    if debug is None:
        debug = os.getenv("DEBUG", "false").lower() in ("true", "1", "yes")

    # --- Console Handler (Human-readable) ---
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(logging.DEBUG if debug else logging.INFO)
    console_handler.setFormatter(ColoredConsoleFormatter())
    logger.addHandler(console_handler)

    log_dir = PROJECT_ROOT / "logs"
    log_dir.mkdir(exist_ok=True)

    # --- Conversation Log Handler (JSON) ---
    conv_handler = logging.handlers.RotatingFileHandler(
        log_dir / "conversations.jsonl",
        maxBytes=LOG_MAX_SIZE,
        backupCount=LOG_BACKUP_COUNT_CONVERSATIONS,
        encoding="utf-8",
    )
    conv_handler.setLevel(logging.INFO)
    conv_handler.addFilter(ConversationFilter())
    conv_handler.setFormatter(
        jsonlogger.JsonFormatter(
            "%(timestamp)s %(levelname)s %(name)s %(message)s %(request_id)s %(prompt_id)s %(tokens)s %(ms)s",
            timestamp=True,
        )
    )
    logger.addHandler(conv_handler)

    # --- Error Log Handler (JSON) ---
    error_handler = logging.handlers.RotatingFileHandler(
        log_dir / "errors.jsonl",
        maxBytes=LOG_MAX_SIZE,
        backupCount=LOG_BACKUP_COUNT_ERRORS,
        encoding="utf-8",
    )
    error_handler.setLevel(logging.ERROR)
    error_handler.addFilter(ErrorFilter())
    error_handler.setFormatter(
        jsonlogger.JsonFormatter(
            "%(timestamp)s %(levelname)s %(name)s %(message)s",
            timestamp=True,
        )
    )
    logger.addHandler(error_handler)

    return logger


class ChatLogger:
    """
    High-level logging interface for Code Forge.
    Wraps standard Python logging with convenience methods.
    """

    def __init__(self, scope: str | None = None):
        name = f"{ROOT_LOGGER_NAME}.{scope}" if scope else ROOT_LOGGER_NAME
        self.scope = scope or ""
        self.logger = logging.getLogger(name)
        self.instance_id = str(uuid.uuid4())[:INSTANCE_ID_LENGTH]

    def _enrich_context(self, kwargs: dict[str, Any]) -> dict[str, Any]:
        """Enrich log arguments with request context and the logger scope."""
        kwargs.setdefault("scope", self.scope)
        kwargs.setdefault("instance_id", self.instance_id)

        if ctx := get_request_context():
            kwargs.update(ctx.to_log_context())

        return kwargs

    def debug(self, message: str, **kwargs: Any) -> None:
        """Debug level logging"""
        self.logger.debug(message, extra=self._enrich_context(kwargs))

    def info(self, message: str, **kwargs: Any) -> None:
        """Info level logging"""
        self.logger.info(message, extra=self._enrich_context(kwargs))

    def warning(self, message: str, **kwargs: Any) -> None:
        """Warning level logging"""
        self.logger.warning(message, extra=self._enrich_context(kwargs))

    def error(self, message: str, exc_info: bool = False, **kwargs: Any) -> None:
        """Error level logging with optional exception info"""
        self.logger.error(message, extra=self._enrich_context(kwargs), exc_info=exc_info)

    def _should_log_content(self) -> bool:
        """Check if content logging is enabled via settings."""
        return bool(get_settings().enable_content_logging)

    def _redact_content(self, text: str) -> str:
        """Redact PII from text using defined patterns."""
        if not text:
            return text

        redacted = text
        for pattern, replacement in REDACTION_PATTERNS:
            redacted = re.sub(pattern, replacement, redacted)
        return redacted

    def preview(self, text: str) -> str:
        """Short redacted preview of prompt text, or a placeholder when content logging is off."""
        if not self._should_log_content():
            return "[HIDDEN]"
        snippet = self._redact_content(text[:LOG_PREVIEW_LENGTH].replace("\n", " "))
        if len(text) > LOG_PREVIEW_LENGTH:
            snippet += "..."
        return snippet

    def log_pipeline_run(
        self,
        original_prompt: str,
        enhanced_prompt: str,
        output: str,
        duration_ms: float | None = None,
        tokens_used: int | None = None,
        model: str = "",
        provider: str = "",
    ) -> None:
        """Log a completed enhance + generate run securely."""
        run = PipelineRun(
            original_prompt=original_prompt,
            enhanced_prompt=enhanced_prompt,
            output=output,
            duration_ms=duration_ms,
            tokens_used=tokens_used,
            model=model,
            provider=provider,
        )

        msg_parts = [f"Prompt: {self.preview(run.original_prompt)} → Output: {self.preview(run.output)}"]
        if run.model:
            msg_parts.append(f"[{run.provider}/{run.model}]")
        if run.duration_ms:
            msg_parts.append(f"[{run.duration_ms:.0f}ms]")
        if run.tokens_used:
            msg_parts.append(f"[{run.tokens_used} tokens]")

        extra_data: dict[str, Any] = {
            "pipeline_run": True,
            "timestamp": run.timestamp,
            "chars_input": len(run.original_prompt),
            "chars_enhanced": len(run.enhanced_prompt),
            "chars_output": len(run.output),
            "content_logging": self._should_log_content(),
        }
        if run.duration_ms is not None:
            extra_data["ms"] = int(run.duration_ms)
        if run.tokens_used is not None:
            extra_data["tokens"] = run.tokens_used

        self.logger.info(" ".join(msg_parts), extra=self._enrich_context(extra_data))


def get_logger(scope: str) -> ChatLogger:
    """Scoped logger, e.g. ``get_logger("agent.prompt-enhancer")``."""
    return ChatLogger(scope)


# Install handlers once for the whole process
setup_logging(debug=get_settings().debug or None)

# Global logger instance
logger = ChatLogger()
