"""
Debug endpoints: run the agents against a sample prompt and inspect the
captured agent logs. Keys come from cookies or the server environment.
"""

from __future__ import annotations

from dataclasses import asdict

from fastapi import APIRouter, Request

from api.dependencies import Tester
from api.routes.chat import parse_api_keys
from core.agents.base import AgentContext
from core.agents.tester import check_provider_connection
from integrations.event_sink import MemoryEventSink
from models.schemas.debug import AgentLogEntry, AgentLogsResponse, AgentTestRequest, AgentTestResponse
from utils.log_viewer import LogFilterMode, clear_agent_logs, view_agent_logs
from utils.logger import logger

router = APIRouter()

#: Providers whose key availability is reported with every agent test
CONNECTION_CHECK_PROVIDERS = ("OpenAI", "Anthropic", "Groq")


@router.post("/agent-test", response_model=AgentTestResponse)
async def agent_test(request: Request, tester: Tester, body: AgentTestRequest | None = None) -> AgentTestResponse:
    """Check provider keys, then run the pipeline (or one agent) once."""
    body = body or AgentTestRequest()
    api_keys = parse_api_keys(request)

    context = AgentContext(event_sink=MemoryEventSink(), api_keys=api_keys)
    connection_checks = [asdict(check_provider_connection(context, provider)) for provider in CONNECTION_CHECK_PROVIDERS]

    if body.agent is None:
        report = await tester.test_agent_system(api_keys, None, body.provider, body.model, body.test_prompt)
    else:
        report = await tester.test_agent(body.agent, api_keys, None, body.provider, body.model, body.test_prompt)

    logger.info("Agent test finished", success=report.success, duration_ms=round(report.duration_ms))
    return AgentTestResponse(
        success=report.success,
        message=(
            "Agent test completed successfully"
            if report.success
            else f"Agent test failed: {report.error or 'output too short'}"
        ),
        details={"apiTests": connection_checks, "agentTest": report.to_dict()},
        logs=report.logs,
        duration=report.duration_ms,
    )


@router.get("/agent-logs", response_model=AgentLogsResponse)
async def agent_logs(mode: LogFilterMode = LogFilterMode.ALL) -> AgentLogsResponse:
    """Captured agent log records, filtered by pipeline component."""
    entries = view_agent_logs(mode)
    return AgentLogsResponse(
        mode=mode.value,
        count=len(entries),
        logs=[AgentLogEntry(**entry.to_dict()) for entry in entries],
    )


@router.delete("/agent-logs")
async def delete_agent_logs() -> dict[str, bool]:
    clear_agent_logs()
    return {"cleared": True}
