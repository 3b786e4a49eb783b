from __future__ import annotations

import os

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.middleware.exception_handlers import register_exception_handlers
from api.middleware.request_context import RequestContextMiddleware
from api.routes import chat, debug, health
from api.services.chat_service import ChatService
from core.constants import APP_VERSION, get_settings
from utils.log_viewer import install_agent_log_buffer
from utils.logger import logger

# Load environment variables from src/.env at module load time
env_path = os.path.join(os.path.dirname(os.path.dirname(__file__)), ".env")
load_dotenv(env_path)

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: startup and shutdown."""
    # Capture agent logs for /api/debug/agent-logs
    install_agent_log_buffer()

    app.state.chat_service = ChatService(settings=settings)
    logger.info(f"Chat service ready with {settings.agent_implementation} agent implementation")

    try:
        yield
    finally:
        await app.state.chat_service.aclose()
        logger.info("Chat service shutdown complete")


app = FastAPI(
    title="Code Forge API",
    version=APP_VERSION,
    lifespan=lifespan,
)

# CORS for the browser workspace
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestContextMiddleware)

register_exception_handlers(app)

# Routes
app.include_router(health.router, prefix="/api", tags=["health"])
app.include_router(chat.router, prefix="/api", tags=["chat"])
app.include_router(debug.router, prefix="/api/debug", tags=["debug"])


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "api.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug,
        reload_dirs=["src"],
    )
