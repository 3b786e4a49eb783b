"""
Code generator stage: produces code from the (enhanced) conversation plus
optional project file context.

Two prompt styles share the file handling:
- ``CodeGeneratorAgent`` sends the whole conversation, with project files
  as an extra system message.
- ``TemplateCodeGeneratorAgent`` sends one templated instruction built from
  the last user message, with project files in the system instruction.
"""

from __future__ import annotations

from collections.abc import Sequence

from core.agents.base import Agent, AgentContext
from core.constants import DEFAULT_CONTEXT_SUMMARY, PROGRESS_LABEL_CODE_GEN, Settings, get_settings
from core.exceptions import AgentError, ContextPreparationError, MissingUserMessageError
from core.messages import (
    extract_text,
    find_last_user_message,
    parse_model_info,
    strip_model_info,
    without_model_info,
)
from core.prompts import (
    CODE_GENERATOR_SYSTEM_PROMPT,
    PROJECT_FILES_CONTEXT_MESSAGE,
    build_code_generator_prompt,
    build_code_generator_system_prompt,
)
from core.providers import ModelTarget, resolve_target
from integrations.context_selector import LLMContextSelector
from integrations.file_context import create_files_context
from integrations.model_clients import InvokeOptions, ModelClient
from models.agent_models import Message, Usage
from utils.logger import get_logger
from utils.token_utils import estimate_usage


class CodeGeneratorAgent(Agent):
    """Generates code from the full conversation."""

    label = PROGRESS_LABEL_CODE_GEN
    in_progress_message = "Generating code..."
    complete_message = "Code generated successfully"
    error_message = "Failed to generate code"

    def __init__(
        self,
        client: ModelClient,
        settings: Settings | None = None,
        context_selector: LLMContextSelector | None = None,
    ):
        super().__init__(get_logger("agent.code-generator"))
        self.client = client
        self.settings = settings or get_settings()
        self.context_selector = context_selector

    async def prepare_files_context(
        self,
        messages: Sequence[Message],
        context: AgentContext,
    ) -> tuple[str, Usage | None]:
        """Serialize the context's files, reduced to the relevant subset when enabled.

        Returns the context block ("" without files) and the usage of the
        selection call, if one was made.
        """
        files = context.files
        if not files:
            self.logger.debug("No files provided for context")
            return "", None

        self.logger.debug(f"Processing {len(files)} files for context")
        selection_usage = None
        try:
            if context.context_optimization and self.context_selector is not None:
                self.logger.debug("Starting context optimization...")
                selection = await self.context_selector.select(messages, files, context, DEFAULT_CONTEXT_SUMMARY)
                files = selection.files
                selection_usage = selection.usage
            else:
                self.logger.debug("Using full unoptimized context")
            files_context = create_files_context(files, use_relative_path=True)
        except AgentError:
            raise
        except (KeyError, ValueError, TypeError) as e:
            raise ContextPreparationError(f"Failed to prepare files context: {e}") from e

        self.logger.debug(f"Files context created: {len(files_context)} characters")
        return files_context, selection_usage

    def resolve(self, messages: Sequence[Message], context: AgentContext) -> ModelTarget:
        """Target from the newest user message, which carries the selection tags."""
        source = find_last_user_message(messages) or (messages[-1] if messages else None)
        model_info = parse_model_info(
            source,
            default_model=self.settings.default_model,
            default_provider=self.settings.default_provider,
        )
        target = resolve_target(model_info, context, self.settings)
        self.logger.debug(f"Using model: {target.model}, provider: {target.provider}")
        return target

    async def run(self, messages: Sequence[Message], context: AgentContext) -> tuple[str, Usage | None]:
        self.logger.debug(f"Context optimization: {'enabled' if context.context_optimization else 'disabled'}")
        files_context, selection_usage = await self.prepare_files_context(messages, context)
        target = self.resolve(messages, context)

        outgoing = [without_model_info(message) for message in messages]
        if files_context:
            outgoing.append(
                Message(role="system", content=PROJECT_FILES_CONTEXT_MESSAGE.format(files_context=files_context))
            )
        self.logger.debug(f"Final message count with context: {len(outgoing)}")

        response = await self.client.invoke(
            outgoing,
            target,
            InvokeOptions(system=CODE_GENERATOR_SYSTEM_PROMPT, temperature=self.settings.generator_temperature),
        )
        generated = response.text
        self.logger.debug(f"Generated code length: {len(generated)} characters")

        usage = response.usage
        if usage is None:
            prompt_text = CODE_GENERATOR_SYSTEM_PROMPT + "".join(extract_text(m.content) for m in outgoing)
            usage = estimate_usage(prompt_text, generated)
        return generated, Usage.combine(usage, selection_usage) if selection_usage else usage


class TemplateCodeGeneratorAgent(CodeGeneratorAgent):
    """Generates code from a single templated instruction."""

    async def run(self, messages: Sequence[Message], context: AgentContext) -> tuple[str, Usage | None]:
        last_user_message = find_last_user_message(messages)
        if last_user_message is None:
            self.logger.error("No user message found in messages array")
            raise MissingUserMessageError("No user message found for code generation")

        files_context, selection_usage = await self.prepare_files_context(messages, context)
        target = self.resolve(messages, context)

        system = build_code_generator_system_prompt(files_context)
        prompt = build_code_generator_prompt(strip_model_info(extract_text(last_user_message.content)))

        response = await self.client.invoke(
            [Message(role="user", content=prompt)],
            target,
            InvokeOptions(system=system, temperature=self.settings.generator_temperature),
        )
        generated = response.text.strip()
        self.logger.debug(f"Generated code length: {len(generated)} characters")

        usage = response.usage or estimate_usage(system + prompt, generated)
        return generated, Usage.combine(usage, selection_usage) if selection_usage else usage
