"""
Utilities Module - Shared Helper Functions
==========================================

Modules:
    logger: JSON/console logging setup and the ChatLogger wrapper
    log_viewer: In-memory capture of agent logs for the debug endpoints
    http_logger: httpx event hooks for provider request/response logging
    client_factory: AsyncOpenAI, ChatOpenAI and httpx client construction
    token_utils: tiktoken counting and character-based usage estimates
    text_utils: Normalizing stage output to a string
"""
