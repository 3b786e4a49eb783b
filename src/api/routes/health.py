from __future__ import annotations

from fastapi import APIRouter, Request

from core.agents.base import AgentContext
from core.agents.tester import check_provider_connection
from core.constants import APP_VERSION, PROVIDER_CONFIGS
from integrations.event_sink import MemoryEventSink
from models.schemas.health import HealthResponse, LivenessResponse, ProviderStatus, ReadinessResponse

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request) -> HealthResponse:
    """Health check with provider key availability from the server environment."""
    service = getattr(request.app.state, "chat_service", None)
    context = AgentContext(event_sink=MemoryEventSink())
    providers = [
        ProviderStatus(name=config.name, configured=check_provider_connection(context, config.name).success)
        for config in PROVIDER_CONFIGS
    ]

    # Keys can still arrive per request via cookies, so missing env keys do not degrade health
    return HealthResponse(
        status="healthy" if service is not None else "degraded",
        version=APP_VERSION,
        implementation=service.implementation.value if service is not None else "unknown",
        providers=providers,
    )


@router.get("/health/ready", response_model=ReadinessResponse)
async def readiness_check(request: Request) -> ReadinessResponse:
    """Kubernetes-style readiness probe (lightweight)."""
    if getattr(request.app.state, "chat_service", None) is None:
        return ReadinessResponse(ready=False, error="Chat service not initialized")
    return ReadinessResponse(ready=True)


@router.get("/health/live", response_model=LivenessResponse)
async def liveness_check() -> LivenessResponse:
    """Kubernetes-style liveness probe (just confirms process is running)."""
    return LivenessResponse(alive=True)
