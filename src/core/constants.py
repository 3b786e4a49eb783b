"""
Constants and configuration for Code Forge.
Centralizes all magic numbers and configuration values.
Includes Pydantic validation for environment variables.
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# ============================================================================
# Project Paths
# ============================================================================

#: Project root directory (parent of src/)
PROJECT_ROOT = Path(__file__).parent.parent.parent

#: Root of the user's project inside the browser workspace.
#: File map keys are absolute paths below this directory.
WORK_DIR = "/home/project/"

# ============================================================================
# Model / Provider Selection
# ============================================================================

#: Model used when a message carries no [Model: ...] tag.
DEFAULT_MODEL = "gpt-4o"

#: Provider used when a message carries no [Provider: ...] tag.
DEFAULT_PROVIDER = "OpenAI"

#: Matches the model selector embedded at the start of message text.
MODEL_REGEX = r"\[Model: (.*?)\]"

#: Matches the provider selector embedded at the start of message text.
PROVIDER_REGEX = r"\[Provider: (.*?)\]"

#: Provider tried first when the requested provider is not registered.
FALLBACK_PROVIDER = "Anthropic"

#: Model used with FALLBACK_PROVIDER.
FALLBACK_MODEL = "claude-3-sonnet-20240229"

#: Provider tried when FALLBACK_PROVIDER has no key.
SECONDARY_FALLBACK_PROVIDER = "OpenAI"


@dataclass(frozen=True, slots=True)
class ProviderConfig:
    """Single source of truth for an LLM provider.

    Every provider is reached through its OpenAI-compatible endpoint, so a
    base URL is all that distinguishes one from another at the wire level.

    Attributes:
        name: Display name used in [Provider: ...] tags and API key maps
        env_key: Environment variable holding the provider API key
        base_url: OpenAI-compatible endpoint (None means api.openai.com)
        default_model: Model used when the caller asks for none
        requires_key: False for local providers that accept any key
    """

    name: str
    env_key: str
    base_url: str | None
    default_model: str
    requires_key: bool = True


#: Registered providers. Lookups are case-insensitive on name.
PROVIDER_CONFIGS: tuple[ProviderConfig, ...] = (
    ProviderConfig("OpenAI", "OPENAI_API_KEY", None, "gpt-4o"),
    ProviderConfig("Anthropic", "ANTHROPIC_API_KEY", "https://api.anthropic.com/v1/", FALLBACK_MODEL),
    ProviderConfig("Groq", "GROQ_API_KEY", "https://api.groq.com/openai/v1", "llama-3.3-70b-versatile"),
    ProviderConfig("Mistral", "MISTRAL_API_KEY", "https://api.mistral.ai/v1", "mistral-large-latest"),
    ProviderConfig(
        "Google",
        "GOOGLE_GENERATIVE_AI_API_KEY",
        "https://generativelanguage.googleapis.com/v1beta/openai/",
        "gemini-1.5-pro",
    ),
    ProviderConfig("OpenRouter", "OPEN_ROUTER_API_KEY", "https://openrouter.ai/api/v1", "openai/gpt-4o"),
    ProviderConfig("Ollama", "OLLAMA_API_KEY", "http://127.0.0.1:11434/v1", "llama3", requires_key=False),
)

# ============================================================================
# Agent Configuration
# ============================================================================

#: Pipeline variants selectable through settings.agent_implementation
AGENT_IMPLEMENTATIONS = ("standard", "langchain")

#: Characters per token used when a model call cannot report usage.
CHARS_PER_TOKEN_ESTIMATE = 4

#: Generated output shorter than this is treated as a failed agent test.
AGENT_TEST_MIN_OUTPUT_CHARS = 20

#: Summary handed to the context selector when no chat summary exists.
DEFAULT_CONTEXT_SUMMARY = "Context for code generation"

#: Messages kept from the tail of the history when selecting context.
CONTEXT_SELECTION_HISTORY = 3

#: Messages summarized when no earlier chat summary exists.
CHAT_SUMMARY_HISTORY = 10

# ============================================================================
# Files Context Configuration
# ============================================================================

#: Paths (relative to WORK_DIR) never serialized into the files context.
#: Matched with fnmatch; a trailing "/" marks a directory prefix.
IGNORE_PATTERNS: tuple[str, ...] = (
    "node_modules/",
    ".git/",
    ".github/",
    ".vscode/",
    "dist/",
    "build/",
    ".next/",
    "coverage/",
    ".cache/",
    ".idea/",
    "__pycache__/",
    "*.log",
    "**/npm-debug.log*",
    "**/*.lock",
    "package-lock.json",
    "yarn.lock",
    "pnpm-lock.yaml",
    ".DS_Store",
    ".env*",
    "*.min.js",
    "*.min.css",
)

#: Encoding model used when measuring the files context against its budget.
FILES_CONTEXT_TOKEN_MODEL = "gpt-4o"

# ============================================================================
# Logging Configuration
# ============================================================================

#: Maximum size in bytes for log files before rotation (10MB).
LOG_MAX_SIZE = 10 * 1024 * 1024

#: Number of conversation log backups to retain during rotation.
LOG_BACKUP_COUNT_CONVERSATIONS = 5

#: Number of error log backups to retain during rotation.
LOG_BACKUP_COUNT_ERRORS = 3

#: Maximum characters to show in log previews for prompts and outputs.
LOG_PREVIEW_LENGTH = 50

#: Records kept in memory for the agent log viewer.
AGENT_LOG_BUFFER_SIZE = 2000

#: Length of generated logger instance IDs (hex characters).
INSTANCE_ID_LENGTH = 8

# ============================================================================
# Progress Labels
# ============================================================================

#: Progress label for the prompt enhancer stage.
PROGRESS_LABEL_ENHANCE = "enhance"

#: Progress label for the code generator stage.
PROGRESS_LABEL_CODE_GEN = "code-gen"

#: Progress label for the host-side chat summary.
PROGRESS_LABEL_SUMMARY = "summary"

#: Progress label for host-side file selection.
PROGRESS_LABEL_CONTEXT = "context"

#: Progress label for the whole response.
PROGRESS_LABEL_RESPONSE = "response"

# ============================================================================
# Data Stream Event Types
# ============================================================================

#: Data event reporting stage status.
EVENT_TYPE_PROGRESS = "progress"

#: Data event carrying the original and enhanced prompt for UI display.
EVENT_TYPE_PROMPT_COMPARISON = "prompt-comparison"

#: Message annotation carrying cumulative token usage.
ANNOTATION_TYPE_USAGE = "usage"

#: Message annotation listing files selected for the code context.
ANNOTATION_TYPE_CODE_CONTEXT = "codeContext"

#: Message annotation carrying the running chat summary.
ANNOTATION_TYPE_CHAT_SUMMARY = "chatSummary"

#: Stream prefix for text parts.
STREAM_PREFIX_TEXT = "0"

#: Stream prefix for data parts.
STREAM_PREFIX_DATA = "2"

#: Stream prefix for message annotation parts.
STREAM_PREFIX_ANNOTATION = "8"

#: Text streamed to the client when the pipeline fails.
PIPELINE_ERROR_PREFIX = "An error occurred while processing your request: "

# ============================================================================
# HTTP Configuration
# ============================================================================

#: Application version reported by the API.
APP_VERSION = "0.1.0"

#: Cookie holding the per-request provider API key map (JSON).
API_KEYS_COOKIE = "apiKeys"

#: Cookie holding per-provider settings (JSON).
PROVIDERS_COOKIE = "providers"


class Settings(BaseSettings):
    """Environment settings with validation.

    Loads from environment variables and .env file.
    Validates at startup to fail fast on configuration errors.
    """

    # Pipeline variant
    agent_implementation: str = Field(default="standard", description="Agent pipeline: 'standard' or 'langchain'")
    context_optimization: bool = Field(default=True, description="Reduce file context to the relevant subset")

    # Selection defaults
    default_model: str = Field(default=DEFAULT_MODEL, description="Model used when no tag is present")
    default_provider: str = Field(default=DEFAULT_PROVIDER, description="Provider used when no tag is present")

    # Provider fallback: only try the secondary provider if its key exists
    fallback_requires_key: bool = Field(
        default=True,
        description="Require an API key before falling back to the secondary provider",
    )

    # Sampling
    enhancer_temperature: float = Field(default=0.2, description="Prompt enhancer temperature")
    generator_temperature: float = Field(default=0.0, description="Code generator temperature")

    # Files context budget
    files_context_max_tokens: int = Field(default=60000, description="Token budget for serialized project files")

    # Optional debug setting
    debug: bool = Field(default=False, description="Enable debug logging")

    # HTTP request/response logging for provider calls
    http_request_logging: bool = Field(default=False, description="Enable HTTP request/response logging")

    # Prompt text in logs (redacted)
    enable_content_logging: bool = Field(default=False, description="Log redacted prompt and output previews")

    # API server
    api_port: int = Field(default=8000, description="FastAPI port")
    api_host: str = Field(default="0.0.0.0", description="FastAPI host")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("agent_implementation")
    @classmethod
    def validate_implementation(cls, v: str) -> str:
        """Validate pipeline variant selection."""
        value = v.lower()
        if value not in AGENT_IMPLEMENTATIONS:
            raise ValueError(f"agent_implementation must be one of {list(AGENT_IMPLEMENTATIONS)}")
        return value

    @field_validator("enhancer_temperature", "generator_temperature")
    @classmethod
    def validate_temperature(cls, v: float) -> float:
        """Keep temperatures in the range every provider accepts."""
        if not 0.0 <= v <= 1.0:
            raise ValueError("temperature must be between 0.0 and 1.0")
        return v

    @field_validator("files_context_max_tokens")
    @classmethod
    def validate_budget(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("files_context_max_tokens must be positive")
        return v


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Uses LRU cache to ensure we only load and validate settings once.
    This function will raise validation errors at startup if config is invalid.
    """
    return Settings()
