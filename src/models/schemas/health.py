"""
Health check API schemas.

Response models for the health, readiness, and liveness probes.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class ProviderStatus(BaseModel):
    """Whether a provider has a key available in the server environment."""

    name: str = Field(..., description="Provider display name")
    configured: bool = Field(..., description="An API key or keyless endpoint is available")


class HealthResponse(BaseModel):
    """Comprehensive health check response."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "status": "healthy",
                "version": "0.1.0",
                "implementation": "standard",
                "providers": [{"name": "OpenAI", "configured": True}],
            }
        }
    )

    status: Literal["healthy", "degraded"] = Field(
        ...,
        description="Overall service health status",
        json_schema_extra={"example": "healthy"},
    )
    version: str = Field(..., description="Application version")
    implementation: str = Field(..., description="Active agent pipeline variant")
    providers: list[ProviderStatus] = Field(default_factory=list, description="Provider key availability")


class ReadinessResponse(BaseModel):
    """Kubernetes-style readiness probe response."""

    ready: bool = Field(..., description="Service is ready to accept traffic")
    error: str | None = Field(default=None, description="Error message if not ready")


class LivenessResponse(BaseModel):
    """Kubernetes-style liveness probe response."""

    alive: bool = Field(default=True, description="Process is running")
