"""
LLM-driven selection of the project files relevant to the current turn.
"""

from __future__ import annotations

import re

from collections.abc import Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING

from core.constants import CONTEXT_SELECTION_HISTORY, DEFAULT_CONTEXT_SUMMARY, Settings, get_settings
from core.messages import extract_text, parse_model_info, strip_model_info
from core.prompts import CONTEXT_SELECTOR_MAX_FILES, CONTEXT_SELECTOR_SYSTEM_PROMPT, CONTEXT_SELECTOR_TEMPLATE
from core.providers import resolve_target
from integrations.file_context import get_file_paths, to_relative_path
from integrations.model_clients import InvokeOptions, ModelClient
from models.agent_models import FileMap, Message, Usage
from utils.logger import get_logger
from utils.token_utils import estimate_usage

if TYPE_CHECKING:
    from core.agents.base import AgentContext

logger = get_logger("llm.select-context")

INCLUDE_FILE_PATTERN = re.compile(r'<includeFile\s+path="([^"]+)"\s*/>')


@dataclass
class ContextSelection:
    """Reduced file map plus the usage of the selection call."""

    files: FileMap
    usage: Usage | None = None

    @property
    def relative_paths(self) -> list[str]:
        return [to_relative_path(path) for path in self.files]


def _render_conversation(messages: Sequence[Message]) -> str:
    recent = messages[-CONTEXT_SELECTION_HISTORY:]
    return "\n".join(f"[{message.role}] {strip_model_info(extract_text(message.content))}" for message in recent)


def parse_included_paths(text: str) -> list[str]:
    return [match.strip().lstrip("/") for match in INCLUDE_FILE_PATTERN.findall(text)]


class LLMContextSelector:
    """Asks the selected model which files matter for the last request."""

    def __init__(
        self,
        client: ModelClient,
        settings: Settings | None = None,
        max_files: int = CONTEXT_SELECTOR_MAX_FILES,
    ):
        self.client = client
        self.settings = settings or get_settings()
        self.max_files = max_files

    async def select(
        self,
        messages: Sequence[Message],
        files: FileMap,
        context: AgentContext,
        summary: str | None = None,
    ) -> ContextSelection:
        """Return the subset of ``files`` named by the model.

        Falls back to the full map when the reply names no known file.
        """
        paths = get_file_paths(files)
        if not paths:
            return ContextSelection(files=files)

        by_relative = {to_relative_path(path): path for path in paths}
        model_info = parse_model_info(
            messages[-1] if messages else None,
            default_model=self.settings.default_model,
            default_provider=self.settings.default_provider,
        )
        target = resolve_target(model_info, context, self.settings)

        system = CONTEXT_SELECTOR_SYSTEM_PROMPT.format(max_files=self.max_files)
        prompt = CONTEXT_SELECTOR_TEMPLATE.format(
            summary=summary or DEFAULT_CONTEXT_SUMMARY,
            file_paths="\n".join(by_relative),
            conversation=_render_conversation(messages),
        )

        response = await self.client.invoke(
            [Message(role="user", content=prompt)],
            target,
            InvokeOptions(system=system, temperature=0.0),
        )
        usage = response.usage or estimate_usage(system + prompt, response.text)

        selected: FileMap = {}
        for relative in parse_included_paths(response.text):
            path = by_relative.get(relative)
            if path is None:
                logger.warning(f"Context selector named unknown file: {relative}")
                continue
            selected[path] = files[path]
            if len(selected) >= self.max_files:
                break

        if not selected:
            logger.warning("Context selector named no known files, using full file map")
            return ContextSelection(files=files, usage=usage)

        logger.debug(f"Selected {len(selected)} of {len(paths)} files", files=list(selected))
        return ContextSelection(files=selected, usage=usage)
