"""
Debug API schemas for agent tests and captured agent logs.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from core.agents.tester import DEFAULT_TEST_PROMPT, DEFAULT_TEST_PROVIDER, AgentRole
from core.constants import FALLBACK_MODEL
from models.agent_models import CamelModel


class AgentTestRequest(CamelModel):
    """Body of ``POST /api/debug/agent-test``. Every field is optional."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "provider": "Anthropic",
                "model": "claude-3-sonnet-20240229",
                "testPrompt": "Create a simple React component",
                "agent": "prompt_enhancer",
            }
        }
    )

    provider: str = DEFAULT_TEST_PROVIDER
    model: str = FALLBACK_MODEL
    test_prompt: str = DEFAULT_TEST_PROMPT
    agent: AgentRole | None = Field(default=None, description="Run a single agent instead of the full pipeline")


class AgentTestResponse(BaseModel):
    """Outcome of a debug agent test."""

    success: bool = Field(..., description="The test produced usable output")
    message: str = Field(..., description="Human-readable summary")
    details: dict[str, Any] = Field(default_factory=dict, description="Connection checks and the agent report")
    logs: list[str] = Field(default_factory=list, description="Test log lines in order")
    duration: float = Field(..., ge=0, description="Wall time in milliseconds")


class AgentLogEntry(BaseModel):
    timestamp: str
    level: str
    logger: str
    message: str


class AgentLogsResponse(BaseModel):
    """Captured agent logs for one filter mode."""

    mode: str = Field(..., description="Filter mode applied")
    count: int = Field(..., ge=0, description="Number of entries returned")
    logs: list[AgentLogEntry] = Field(default_factory=list)
