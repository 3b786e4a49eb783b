"""
Stream event models for Code Forge.
Data events and message annotations written to the output sink while a
chat request runs.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import Field

from core.constants import (
    ANNOTATION_TYPE_CHAT_SUMMARY,
    ANNOTATION_TYPE_CODE_CONTEXT,
    ANNOTATION_TYPE_USAGE,
    EVENT_TYPE_PROGRESS,
    EVENT_TYPE_PROMPT_COMPARISON,
)
from models.agent_models import CamelModel, Usage

ProgressStatus = Literal["in-progress", "complete"]


class StreamEvent(CamelModel):
    """Base for everything written to the sink as a data event or annotation."""

    def to_dict(self) -> dict[str, Any]:
        """Convert to the JSON-ready dict the sink writes."""
        data: dict[str, Any] = self.model_dump(by_alias=True, exclude_none=True)
        return data


class ProgressAnnotation(StreamEvent):
    """Stage status, ordered by a per-request monotonic counter.

    A failed stage reports ``status="complete"`` with ``error=True`` so that
    clients keyed on status still see the stage finish, while the failure
    stays visible.
    """

    type: Literal["progress"] = EVENT_TYPE_PROGRESS
    label: str
    status: ProgressStatus
    order: int
    message: str
    error: bool = False


class PromptComparisonEvent(StreamEvent):
    """Original vs. enhanced prompt, for UI display only."""

    type: Literal["prompt-comparison"] = EVENT_TYPE_PROMPT_COMPARISON
    original: str
    enhanced: str


class UsageAnnotation(StreamEvent):
    """Cumulative token usage for the response."""

    type: Literal["usage"] = ANNOTATION_TYPE_USAGE
    value: Usage


class CodeContextAnnotation(StreamEvent):
    """Files (relative paths) selected as code context."""

    type: Literal["codeContext"] = ANNOTATION_TYPE_CODE_CONTEXT
    files: list[str] = Field(default_factory=list)


class ChatSummaryAnnotation(StreamEvent):
    """Running summary of the conversation, keyed to the message it covers up to.

    The client echoes it back on the assistant message, so the next request
    only summarizes what came after.
    """

    type: Literal["chatSummary"] = ANNOTATION_TYPE_CHAT_SUMMARY
    summary: str
    chat_id: str | None = None


def create_progress_annotation(
    label: str,
    message: str,
    status: Literal["in-progress", "complete", "error"],
    order: int,
) -> ProgressAnnotation:
    """Build a progress event; ``"error"`` becomes complete + ``error=True``."""
    if status == "error":
        return ProgressAnnotation(label=label, status="complete", order=order, message=message, error=True)
    return ProgressAnnotation(label=label, status=status, order=order, message=message)
