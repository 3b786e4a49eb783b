"""
Chat service: runs one chat request through the agent pipeline and reports
everything to an event sink.

Event order for a request with project files and optimization enabled:
    summary in-progress, summary complete, chatSummary annotation,
    context in-progress, codeContext annotation, context complete,
    response in-progress, <pipeline events>, text, usage annotation,
    response complete
"""

from __future__ import annotations

import asyncio
import contextlib

from collections.abc import AsyncIterator, Mapping
from typing import Literal

from api.middleware.request_context import update_request_context
from core.agents.base import AgentContext
from core.agents.factory import AgentImplementation, create_model_client, execute_agents
from core.constants import (
    EVENT_TYPE_PROGRESS,
    PIPELINE_ERROR_PREFIX,
    PROGRESS_LABEL_CONTEXT,
    PROGRESS_LABEL_RESPONSE,
    PROGRESS_LABEL_SUMMARY,
    Settings,
    get_settings,
)
from integrations.chat_summary import ChatSummarizer, ChatSummary
from integrations.context_selector import LLMContextSelector
from integrations.event_sink import EventPayload, EventSink, QueueEventSink
from integrations.file_context import get_file_paths
from integrations.model_clients import ModelClient
from models.agent_models import ChatRequest, FileMap, ProviderSetting, Usage
from models.event_models import (
    ChatSummaryAnnotation,
    CodeContextAnnotation,
    ProgressAnnotation,
    UsageAnnotation,
    create_progress_annotation,
)
from utils.logger import logger
from utils.text_utils import ensure_string

#: Characters per streamed text part
TEXT_CHUNK_SIZE = 64


class ProgressReporter:
    """Event sink wrapper that also writes host-level progress events.

    Every progress order written through it, by the host or by an agent, is
    tracked so host events continue after the highest order seen, including
    after a stage failed midway.
    """

    def __init__(self, sink: EventSink, start: int = 0):
        self.sink = sink
        self.counter = start

    def _track(self, event: EventPayload) -> None:
        if isinstance(event, ProgressAnnotation):
            self.counter = max(self.counter, event.order)
        elif isinstance(event, dict) and event.get("type") == EVENT_TYPE_PROGRESS:
            self.counter = max(self.counter, int(event.get("order", 0)))

    def write(self, text: str) -> None:
        self.sink.write(text)

    def write_data(self, event: EventPayload) -> None:
        self._track(event)
        self.sink.write_data(event)

    def write_message_annotation(self, annotation: EventPayload) -> None:
        self.sink.write_message_annotation(annotation)

    def report(self, label: str, message: str, status: Literal["in-progress", "complete", "error"]) -> None:
        self.write_data(create_progress_annotation(label, message, status, self.counter + 1))


class ChatService:
    """Host-side flow for ``POST /api/chat``."""

    def __init__(
        self,
        settings: Settings | None = None,
        client: ModelClient | None = None,
        implementation: AgentImplementation | str | None = None,
    ):
        self.settings = settings or get_settings()
        self.implementation = AgentImplementation(implementation or self.settings.agent_implementation)
        self.client = client or create_model_client(self.implementation)

    async def aclose(self) -> None:
        """Release the model client's HTTP resources."""
        close = getattr(self.client, "aclose", None)
        if close is not None:
            await close()

    def _build_context(
        self,
        request: ChatRequest,
        sink: EventSink,
        api_keys: dict[str, str],
        provider_settings: dict[str, ProviderSetting],
        env: Mapping[str, str] | None,
    ) -> AgentContext:
        return AgentContext(
            event_sink=sink,
            api_keys=api_keys,
            provider_settings=provider_settings,
            env=dict(env or {}),
            files=request.files,
            prompt_id=request.prompt_id,
            context_optimization=self._optimization_enabled(request),
        )

    def _optimization_enabled(self, request: ChatRequest) -> bool:
        if request.context_optimization is None:
            return self.settings.context_optimization
        return request.context_optimization

    async def _summarize(
        self,
        request: ChatRequest,
        context: AgentContext,
        progress: ProgressReporter,
    ) -> ChatSummary:
        """Update the running chat summary and attach it to the response message."""
        progress.report(PROGRESS_LABEL_SUMMARY, "Analysing Request", "in-progress")

        summarizer = ChatSummarizer(self.client, self.settings)
        summary = await summarizer.summarize(request.messages, context)

        progress.report(PROGRESS_LABEL_SUMMARY, "Analysis Complete", "complete")
        chat_id = request.messages[-1].id if request.messages else None
        context.event_sink.write_message_annotation(ChatSummaryAnnotation(summary=summary.text, chat_id=chat_id))
        return summary

    async def _select_files(
        self,
        request: ChatRequest,
        context: AgentContext,
        progress: ProgressReporter,
        summary: str | None = None,
    ) -> tuple[FileMap, Usage | None]:
        """Reduce the project files to those relevant for this turn."""
        files = request.files or {}
        progress.report(PROGRESS_LABEL_CONTEXT, "Determining Files to Read", "in-progress")

        selector = LLMContextSelector(self.client, self.settings)
        selection = await selector.select(request.messages, files, context, summary)
        logger.debug(f"Files in context: {selection.relative_paths}")

        context.event_sink.write_message_annotation(CodeContextAnnotation(files=selection.relative_paths))
        progress.report(PROGRESS_LABEL_CONTEXT, "Code Files Selected", "complete")
        return selection.files, selection.usage

    async def _stream_text(self, sink: EventSink, text: str) -> None:
        for start in range(0, len(text), TEXT_CHUNK_SIZE):
            sink.write(text[start : start + TEXT_CHUNK_SIZE])
            # Let the transport flush between parts
            await asyncio.sleep(0)

    async def process_chat(
        self,
        request: ChatRequest,
        sink: EventSink,
        api_keys: dict[str, str] | None = None,
        provider_settings: dict[str, ProviderSetting] | None = None,
        env: Mapping[str, str] | None = None,
    ) -> Usage | None:
        """Run the request and write every event to ``sink``.

        Never raises for pipeline failures: they are reported in-stream as an
        error progress event plus error text. Returns the cumulative usage on
        success, None on failure.
        """
        if request.prompt_id:
            update_request_context(prompt_id=request.prompt_id)

        progress = ProgressReporter(sink)
        context = self._build_context(request, progress, api_keys or {}, provider_settings or {}, env)
        cumulative = Usage()

        try:
            if get_file_paths(request.files) and context.context_optimization:
                summary = await self._summarize(request, context, progress)
                cumulative = cumulative + summary.usage

                selected_files, selection_usage = await self._select_files(request, context, progress, summary.text)
                cumulative = cumulative + selection_usage
                # Files are already reduced; the generator must not select again
                context.files = selected_files
                context.context_optimization = False

            progress.report(PROGRESS_LABEL_RESPONSE, "Starting multi-agent processing", "in-progress")
            logger.debug(f"Using agent implementation: {self.implementation.value}")

            result = await execute_agents(
                request.messages,
                context.with_progress(progress.counter),
                self.implementation,
                self.client,
                self.settings,
            )
            cumulative = cumulative + result.usage

            await self._stream_text(progress, await ensure_string(result.text))
            progress.write_message_annotation(UsageAnnotation(value=cumulative))
            progress.report(PROGRESS_LABEL_RESPONSE, "Response Generated", "complete")
            logger.info("Chat response generated", tokens=cumulative.total_tokens)
            return cumulative
        except Exception as e:
            logger.error(f"Error in multi-agent execution: {e}", exc_info=True)
            progress.report(PROGRESS_LABEL_RESPONSE, "Error generating response", "error")
            progress.write(f"{PIPELINE_ERROR_PREFIX}{e}")
            return None

    async def stream_chat(
        self,
        request: ChatRequest,
        api_keys: dict[str, str] | None = None,
        provider_settings: dict[str, ProviderSetting] | None = None,
        env: Mapping[str, str] | None = None,
    ) -> AsyncIterator[str]:
        """Run ``process_chat`` in the background and yield encoded stream lines."""
        sink = QueueEventSink()

        async def _produce() -> None:
            try:
                await self.process_chat(request, sink, api_keys, provider_settings, env)
            finally:
                sink.close()

        task = asyncio.create_task(_produce())
        try:
            async for line in sink.stream():
                yield line
            await task
        finally:
            if not task.done():
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task
