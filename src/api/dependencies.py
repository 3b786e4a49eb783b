from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Request

from api.services.chat_service import ChatService
from core.agents.tester import AgentTester


def get_chat_service(request: Request) -> ChatService:
    """Get the shared chat service from application state."""
    return request.app.state.chat_service


def get_agent_tester(chat_service: Annotated[ChatService, Depends(get_chat_service)]) -> AgentTester:
    """Provide an agent tester that reuses the service's model client."""
    return AgentTester(
        client=chat_service.client,
        implementation=chat_service.implementation,
        settings=chat_service.settings,
    )


# Type aliases for cleaner route signatures
ChatServiceDep = Annotated[ChatService, Depends(get_chat_service)]
Tester = Annotated[AgentTester, Depends(get_agent_tester)]
