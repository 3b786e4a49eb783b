"""
Utility functions for token counting and usage estimation.
"""

from __future__ import annotations

import math

from functools import lru_cache
from hashlib import blake2b
from typing import Any

import tiktoken

from core.constants import CHARS_PER_TOKEN_ESTIMATE
from models.agent_models import Usage

# Cache for tiktoken encoders to avoid recreation
_encoder_cache: dict[str, Any] = {}

TOKEN_CACHE_SIZE = 512


def _get_encoder(model: str) -> Any:
    """Get cached encoder for model."""
    if model not in _encoder_cache:
        try:
            _encoder_cache[model] = tiktoken.encoding_for_model(model)
        except KeyError:
            # Non-OpenAI models: cl100k_base is a close enough approximation
            _encoder_cache[model] = tiktoken.get_encoding("cl100k_base")
    return _encoder_cache[model]


def _hash_text(text: str) -> str:
    """Fast hash of text for cache keys (Blake2b for speed)."""
    return blake2b(text.encode("utf-8"), digest_size=16).hexdigest()


@lru_cache(maxsize=TOKEN_CACHE_SIZE)
def _count_tokens_cached(text_hash: str, model: str, text: str) -> int:
    return len(_get_encoder(model).encode(text))


def count_tokens(text: str, model: str = "gpt-4o") -> int:
    """Exact token count for ``text`` under ``model``'s tokenizer."""
    if not text:
        return 0
    return _count_tokens_cached(_hash_text(text), model, text)


def estimate_tokens(text: str) -> int:
    """Rough token count: ``ceil(len / 4)``, used when a model call reports none."""
    return math.ceil(len(text) / CHARS_PER_TOKEN_ESTIMATE)


def estimate_usage(prompt: str, completion: str) -> Usage:
    """Usage for a call whose client cannot report exact counts."""
    return Usage(
        prompt_tokens=estimate_tokens(prompt),
        completion_tokens=estimate_tokens(completion),
        total_tokens=math.ceil((len(prompt) + len(completion)) / CHARS_PER_TOKEN_ESTIMATE),
    )
