"""
Centralized API schemas for Code Forge.

Request/response models for the health and debug endpoints. The chat
endpoint streams its response and takes ``models.agent_models.ChatRequest``.
"""

from models.error_models import ErrorResponse
from models.schemas.debug import (
    AgentLogEntry,
    AgentLogsResponse,
    AgentTestRequest,
    AgentTestResponse,
)
from models.schemas.health import (
    HealthResponse,
    LivenessResponse,
    ProviderStatus,
    ReadinessResponse,
)

__all__ = [
    "AgentLogEntry",
    "AgentLogsResponse",
    "AgentTestRequest",
    "AgentTestResponse",
    "ErrorResponse",
    "HealthResponse",
    "LivenessResponse",
    "ProviderStatus",
    "ReadinessResponse",
]
