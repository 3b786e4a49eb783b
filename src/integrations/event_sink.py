"""
Output sinks for pipeline events.

Agents never touch the HTTP response. They write progress events, usage
annotations and text to an ``EventSink`` carried in their context, which
keeps them testable with ``MemoryEventSink`` and streamable with
``QueueEventSink``.

Stream encoding (one event per line):
    0:<json string>   text part
    2:[<json>]        data part (progress, prompt comparison)
    8:[<json>]        message annotation (usage, code context)
"""

from __future__ import annotations

import asyncio
import json

from collections.abc import AsyncIterator
from typing import Any, Protocol, runtime_checkable

from core.constants import (
    EVENT_TYPE_PROGRESS,
    STREAM_PREFIX_ANNOTATION,
    STREAM_PREFIX_DATA,
    STREAM_PREFIX_TEXT,
)
from models.event_models import StreamEvent

EventPayload = StreamEvent | dict[str, Any]


def _to_payload(event: EventPayload) -> dict[str, Any]:
    if isinstance(event, StreamEvent):
        return event.to_dict()
    return dict(event)


def encode_part(prefix: str, value: Any) -> str:
    """Encode one stream part as a protocol line."""
    return f"{prefix}:{json.dumps(value, separators=(',', ':'))}\n"


@runtime_checkable
class EventSink(Protocol):
    """Ordered destination for everything a request reports."""

    def write(self, text: str) -> None: ...

    def write_data(self, event: EventPayload) -> None: ...

    def write_message_annotation(self, annotation: EventPayload) -> None: ...


class MemoryEventSink:
    """Records events in memory. Used by tests and the agent tester."""

    def __init__(self) -> None:
        self.text_chunks: list[str] = []
        self.data: list[dict[str, Any]] = []
        self.annotations: list[dict[str, Any]] = []
        self.logs: list[str] = []

    def write(self, text: str) -> None:
        self.text_chunks.append(text)

    def write_data(self, event: EventPayload) -> None:
        payload = _to_payload(event)
        self.data.append(payload)
        self.logs.append(f"[DataStream] {json.dumps(payload)}")

    def write_message_annotation(self, annotation: EventPayload) -> None:
        payload = _to_payload(annotation)
        self.annotations.append(payload)
        self.logs.append(f"[Annotation] {json.dumps(payload)}")

    @property
    def text(self) -> str:
        return "".join(self.text_chunks)

    def events_of_type(self, event_type: str) -> list[dict[str, Any]]:
        return [item for item in self.data if item.get("type") == event_type]

    @property
    def progress_events(self) -> list[dict[str, Any]]:
        return self.events_of_type(EVENT_TYPE_PROGRESS)


class QueueEventSink:
    """Encodes events into protocol lines on an asyncio queue.

    The producer (the chat pipeline) writes synchronously; ``stream()``
    drains the queue for a streaming HTTP response until ``close()``.
    """

    def __init__(self) -> None:
        self._queue: asyncio.Queue[str | None] = asyncio.Queue()
        self._closed = False

    def _put(self, line: str) -> None:
        if self._closed:
            raise RuntimeError("Event sink is closed")
        self._queue.put_nowait(line)

    def write(self, text: str) -> None:
        self._put(encode_part(STREAM_PREFIX_TEXT, text))

    def write_data(self, event: EventPayload) -> None:
        self._put(encode_part(STREAM_PREFIX_DATA, [_to_payload(event)]))

    def write_message_annotation(self, annotation: EventPayload) -> None:
        self._put(encode_part(STREAM_PREFIX_ANNOTATION, [_to_payload(annotation)]))

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            self._queue.put_nowait(None)

    @property
    def closed(self) -> bool:
        return self._closed

    async def stream(self) -> AsyncIterator[str]:
        """Yield encoded lines in write order until the sink is closed."""
        while True:
            line = await self._queue.get()
            if line is None:
                return
            yield line
