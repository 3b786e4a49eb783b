"""
Core Application Layer - Agent Pipeline and Configuration
=========================================================

Provides the business logic for Code Forge's two-stage code generation
pipeline: a prompt enhancer rewrites the user's request, then a code
generator answers the rewritten request against the project files.

Modules:
    agents: Agent base class, both pipeline stages, orchestrator, factory and tester
    providers: Resolve (provider, model, key, base URL) for a model call
    messages: [Model: ...]/[Provider: ...] tag parsing and message rewriting
    prompts: System prompts and templates for every model call
    constants: Configuration values, provider registry and Pydantic settings
    exceptions: Pipeline exceptions carrying an ErrorCode

Key Components:

Orchestration (agents/orchestrator.py):
    Runs the enhancer, emits a promptComparison event, embeds the selection
    tags in the enhanced prompt, and runs the generator on the rewritten
    conversation. Usage from both stages is combined.

Provider Resolution (providers.py):
    Keys are looked up in the request's key map first, then in the
    environment. Unknown providers fall back to Anthropic, then OpenAI.

Configuration (constants.py):
    Centralized configuration using Pydantic Settings:
    - Agent implementation (standard or langchain)
    - Sampling temperatures and files context token budget
    - Provider fallback policy
    - Logging switches
"""
