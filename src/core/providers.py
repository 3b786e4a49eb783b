"""
Provider registry and model target resolution.

Turns the user's ``ModelInfo`` selection into a concrete ``ModelTarget``:
which provider endpoint to call, with which model and API key.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from core.constants import (
    DEFAULT_MODEL,
    FALLBACK_MODEL,
    FALLBACK_PROVIDER,
    PROVIDER_CONFIGS,
    SECONDARY_FALLBACK_PROVIDER,
    ProviderConfig,
    Settings,
    get_settings,
)
from core.exceptions import MissingApiKeyError
from models.agent_models import ModelInfo, ProviderSetting
from utils.logger import get_logger

if TYPE_CHECKING:
    from core.agents.base import AgentContext

logger = get_logger("agent.providers")

#: Placeholder key for providers that accept any key (local runtimes)
LOCAL_PROVIDER_KEY = "not-needed"

_PROVIDERS_BY_NAME: dict[str, ProviderConfig] = {config.name.lower(): config for config in PROVIDER_CONFIGS}


@dataclass(frozen=True, slots=True)
class ModelTarget:
    """Everything a model client needs to reach one model."""

    provider: str
    model: str
    api_key: str
    base_url: str | None = None
    max_tokens: int | None = None


def get_provider_config(provider: str) -> ProviderConfig | None:
    """Case-insensitive registry lookup."""
    return _PROVIDERS_BY_NAME.get(provider.lower())


def env_key_for(provider: str) -> str:
    """Environment variable holding ``provider``'s API key."""
    config = get_provider_config(provider)
    if config is not None:
        return config.env_key
    return f"{provider.upper()}_API_KEY"


def get_api_key(context: AgentContext, provider: str) -> str:
    """Resolve an API key for ``provider``.

    Lookup order: the request's key map (by display name), the
    request-scoped env, then the process environment. Returns "" when
    nothing is found.
    """
    config = get_provider_config(provider)
    display_name = config.name if config is not None else provider

    api_key = (
        context.api_keys.get(display_name)
        or context.api_keys.get(provider)
        or context.lookup_env(env_key_for(provider))
        or ""
    )

    if api_key:
        logger.debug(f"API key found for provider {display_name}")
    else:
        logger.warning(f"No API key found for provider {display_name}")
    return api_key


def get_provider_setting(context: AgentContext, provider: str) -> ProviderSetting | None:
    for name, setting in context.provider_settings.items():
        if name.lower() == provider.lower():
            return setting
    return None


def _build_target(context: AgentContext, config: ProviderConfig, model: str, api_key: str) -> ModelTarget:
    setting = get_provider_setting(context, config.name)
    base_url = config.base_url
    max_tokens = None
    if setting is not None:
        base_url = setting.base_url or base_url
        max_tokens = setting.max_tokens_for(model)

    return ModelTarget(
        provider=config.name,
        model=model,
        api_key=api_key,
        base_url=base_url,
        max_tokens=max_tokens,
    )


def _resolve_fallback(model_info: ModelInfo, context: AgentContext, settings: Settings) -> ModelTarget:
    """Target for a provider missing from the registry."""
    logger.warning(
        f"Unsupported provider: {model_info.provider_name}, attempting to use {FALLBACK_PROVIDER} as fallback"
    )

    fallback = _PROVIDERS_BY_NAME[FALLBACK_PROVIDER.lower()]
    if api_key := get_api_key(context, fallback.name):
        return _build_target(context, fallback, FALLBACK_MODEL, api_key)

    logger.warning(f"No {FALLBACK_PROVIDER} key available, falling back to {SECONDARY_FALLBACK_PROVIDER}")
    secondary = _PROVIDERS_BY_NAME[SECONDARY_FALLBACK_PROVIDER.lower()]
    api_key = get_api_key(context, secondary.name)
    if not api_key:
        if settings.fallback_requires_key:
            raise MissingApiKeyError(secondary.name)
        # Unverified mode: attempt the call anyway with whatever key the request carried
        api_key = get_api_key(context, model_info.provider_name)

    return _build_target(context, secondary, model_info.model or DEFAULT_MODEL, api_key)


def resolve_target(
    model_info: ModelInfo,
    context: AgentContext,
    settings: Settings | None = None,
) -> ModelTarget:
    """Resolve the provider endpoint, model and key for a selection.

    Raises:
        MissingApiKeyError: A registered provider has no key, or the
            fallback chain ends without one.
    """
    settings = settings or get_settings()
    config = get_provider_config(model_info.provider_name)
    if config is None:
        return _resolve_fallback(model_info, context, settings)

    api_key = get_api_key(context, config.name)
    if not api_key:
        if config.requires_key:
            raise MissingApiKeyError(config.name)
        api_key = LOCAL_PROVIDER_KEY

    target = _build_target(context, config, model_info.model or config.default_model, api_key)
    logger.debug(f"Resolved target {target.provider}/{target.model}", max_tokens=target.max_tokens)
    return target
