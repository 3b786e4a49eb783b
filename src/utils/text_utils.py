"""
Best-effort string coercion for stage outputs.

Model clients are expected to hand back plain text, but a stage can leak a
coroutine, a future, a dict or None. ``ensure_string`` turns any of those
into a definite string and never raises.
"""

from __future__ import annotations

import inspect
import json

from typing import Any

from utils.logger import get_logger

logger = get_logger("llm.utils")

PROMISE_PLACEHOLDER = "[Promise object]"


def _json_default(value: Any) -> Any:
    if inspect.isawaitable(value):
        return PROMISE_PLACEHOLDER
    return str(value)


def _close_if_coroutine(value: Any) -> None:
    # Avoid "coroutine was never awaited" warnings for values we render, not await
    if inspect.iscoroutine(value):
        value.close()


def _stringify_container(value: dict[Any, Any] | list[Any] | tuple[Any, ...]) -> str:
    try:
        return json.dumps(value, indent=2, default=_json_default)
    except ValueError:
        # Circular reference
        if isinstance(value, dict):
            return f"[Complex object: {', '.join(str(key) for key in value)}]"
        return f"[Complex object: {len(value)} items]"
    except TypeError as e:
        logger.error(f"Error stringifying object: {e}")
        return "[Object conversion error]"
    finally:
        items = value.values() if isinstance(value, dict) else value
        for item in items:
            _close_if_coroutine(item)


async def ensure_string(value: Any) -> str:
    """Resolve ``value`` (awaiting it if needed) and return it as a string.

    Awaitables are awaited and the result coerced again, so a wrapper that
    resolves to another wrapper still ends up as plain text.
    """
    logger.debug(f"ensure_string: input type={type(value).__name__}, awaitable={inspect.isawaitable(value)}")

    if inspect.isawaitable(value):
        try:
            resolved = await value
        except Exception as e:
            logger.error(f"Error resolving awaitable: {e}", exc_info=True)
            return "[Error resolving promise]"
        return await ensure_string(resolved)

    if value is None:
        return ""

    if isinstance(value, str):
        return value

    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")

    if isinstance(value, (dict, list, tuple)):
        return _stringify_container(value)

    try:
        return str(value)
    except Exception as e:
        logger.error(f"Error ensuring string: {e}")
        return "[ensure_string error]"
