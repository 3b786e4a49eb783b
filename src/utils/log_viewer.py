"""
In-memory agent log capture for the debug endpoints.

A bounded logging handler on the ``code-forge`` logger keeps the most
recent records; ``view_agent_logs`` filters them by pipeline component.
"""

from __future__ import annotations

import logging
import threading

from collections import deque
from dataclasses import asdict, dataclass
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from core.constants import AGENT_LOG_BUFFER_SIZE
from utils.logger import ROOT_LOGGER_NAME, get_logger

logger = get_logger("log-viewer")


class LogFilterMode(str, Enum):
    ALL = "all"
    ORCHESTRATOR = "orchestrator"
    PROMPT_ENHANCER = "prompt-enhancer"
    CODE_GENERATOR = "code-generator"
    ERRORS = "errors"


@dataclass(frozen=True)
class LogEntry:
    timestamp: str
    level: str
    levelno: int
    logger: str
    message: str

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data.pop("levelno")
        return data

    def __str__(self) -> str:
        return f"{self.timestamp} [{self.level}] {self.logger} - {self.message}"


class AgentLogBuffer(logging.Handler):
    """Keeps the last ``capacity`` records in memory."""

    def __init__(self, capacity: int = AGENT_LOG_BUFFER_SIZE):
        super().__init__(level=logging.DEBUG)
        self._entries: deque[LogEntry] = deque(maxlen=capacity)
        self._entries_lock = threading.Lock()

    def emit(self, record: logging.LogRecord) -> None:
        entry = LogEntry(
            timestamp=datetime.fromtimestamp(record.created, UTC).isoformat(),
            level=record.levelname,
            levelno=record.levelno,
            logger=record.name.removeprefix(f"{ROOT_LOGGER_NAME}."),
            message=record.getMessage(),
        )
        with self._entries_lock:
            self._entries.append(entry)

    def entries(self) -> list[LogEntry]:
        with self._entries_lock:
            return list(self._entries)

    def clear(self) -> None:
        with self._entries_lock:
            self._entries.clear()


_MODE_SCOPES = {
    LogFilterMode.ORCHESTRATOR: "agent.orchestrator",
    LogFilterMode.PROMPT_ENHANCER: "agent.prompt-enhancer",
    LogFilterMode.CODE_GENERATOR: "agent.code-generator",
}

agent_log_buffer = AgentLogBuffer()


def install_agent_log_buffer(buffer: AgentLogBuffer = agent_log_buffer) -> AgentLogBuffer:
    """Attach ``buffer`` to the application logger (idempotent)."""
    root = logging.getLogger(ROOT_LOGGER_NAME)
    if buffer not in root.handlers:
        root.addHandler(buffer)
    return buffer


def _matches(entry: LogEntry, mode: LogFilterMode) -> bool:
    if mode is LogFilterMode.ERRORS:
        return entry.levelno >= logging.ERROR
    if mode is LogFilterMode.ALL:
        return entry.logger.startswith("agent.")
    return entry.logger == _MODE_SCOPES[mode]


def view_agent_logs(
    mode: LogFilterMode | str = LogFilterMode.ALL,
    buffer: AgentLogBuffer = agent_log_buffer,
) -> list[LogEntry]:
    """Captured records for ``mode``, oldest first."""
    mode = LogFilterMode(mode)
    entries = [entry for entry in buffer.entries() if _matches(entry, mode)]
    logger.info(f"Viewing agent logs with filter: {mode.value}", count=len(entries))
    return entries


def clear_agent_logs(buffer: AgentLogBuffer = agent_log_buffer) -> None:
    buffer.clear()
