"""
Agent contract shared by both pipeline stages.

An agent takes the message history and the request context and returns an
``AgentResult``. Around the actual work it writes exactly two progress
events to the context's sink: ``in-progress`` when it starts and
``complete`` (``error=True`` on failure) when it ends, both ordered with
the context counter plus one. Callers carry ``AgentResult.progress_counter``
forward so the next stage continues the sequence.
"""

from __future__ import annotations

import os
import time

from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field, replace
from typing import Any

from integrations.event_sink import EventSink
from models.agent_models import FileMap, Message, ProviderSetting, Usage
from models.event_models import create_progress_annotation
from utils.logger import ChatLogger


@dataclass
class AgentContext:
    """Credentials, settings, project files and output sink for one request.

    Shared by both stages; only ``progress_counter`` changes between them,
    via ``with_progress``.
    """

    event_sink: EventSink
    api_keys: dict[str, str] = field(default_factory=dict)
    provider_settings: dict[str, ProviderSetting] = field(default_factory=dict)
    env: Mapping[str, str] = field(default_factory=dict)
    files: FileMap | None = None
    prompt_id: str | None = None
    context_optimization: bool = False
    progress_counter: int = 0

    def with_progress(self, progress_counter: int) -> AgentContext:
        """Copy of this context continuing from ``progress_counter``."""
        return replace(self, progress_counter=progress_counter)

    def lookup_env(self, key: str) -> str | None:
        """Request-scoped env first, then the process environment."""
        return self.env.get(key) or os.environ.get(key) or None


@dataclass
class AgentResult:
    """Output of one stage.

    ``output`` is normally text, but callers coerce it with
    ``ensure_string`` before use.
    """

    output: Any
    progress_counter: int
    usage: Usage | None = None


class Agent(ABC):
    """One pipeline stage."""

    #: Progress label ("enhance", "code-gen")
    label: str = ""
    in_progress_message: str = ""
    complete_message: str = ""
    error_message: str = ""

    def __init__(self, logger: ChatLogger):
        self.logger = logger

    def validate(self, messages: Sequence[Message]) -> None:
        """Raise before any progress is reported if the input is unusable."""
        return None

    @abstractmethod
    async def run(self, messages: Sequence[Message], context: AgentContext) -> tuple[Any, Usage | None]:
        """Do the stage's work; return ``(output, usage)``."""

    async def execute(self, messages: Sequence[Message], context: AgentContext) -> AgentResult:
        self.validate(messages)

        sink = context.event_sink
        progress_counter = context.progress_counter + 1
        sink.write_data(
            create_progress_annotation(self.label, self.in_progress_message, "in-progress", progress_counter)
        )

        self.logger.debug(f"{self.label} started", messages=len(messages))
        self.logger.debug(f"Progress counter: {context.progress_counter} -> {progress_counter}")

        start_time = time.perf_counter()
        try:
            output, usage = await self.run(messages, context)
        except Exception as e:
            self.logger.error(f"{self.label} failed: {e}", exc_info=True)
            sink.write_data(create_progress_annotation(self.label, self.error_message, "error", progress_counter))
            raise

        duration_ms = (time.perf_counter() - start_time) * 1000
        sink.write_data(create_progress_annotation(self.label, self.complete_message, "complete", progress_counter))

        if usage is not None:
            self.logger.debug(f"{self.label} usage: {usage.model_dump()}", tokens=usage.total_tokens)
        else:
            self.logger.debug(f"No token usage data available for {self.label}")
        self.logger.debug(f"{self.label} completed in {duration_ms:.0f}ms", ms=int(duration_ms))

        return AgentResult(output=output, progress_counter=progress_counter, usage=usage)
