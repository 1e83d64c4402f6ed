# This project was developed with assistance from AI tools.
"""Thin OpenAI-compatible LLM client.

Wraps the openai Python SDK with configurable base_url so it works
against any OpenAI-compatible endpoint (OpenAI, vLLM, LlamaStack, etc.).
"""

import logging
from typing import Any

from openai import AsyncOpenAI

from ..core.config import settings
from .config import get_model_config

logger = logging.getLogger(__name__)

# Per-tier client cache (avoids re-creating HTTP connections)
_clients: dict[str, AsyncOpenAI] = {}


def _get_client(tier: str) -> AsyncOpenAI:
    """Return a cached AsyncOpenAI client for the given model tier."""
    if tier not in _clients:
        model_cfg = get_model_config(tier)
        _clients[tier] = AsyncOpenAI(
            base_url=model_cfg["endpoint"],
            api_key=model_cfg.get("api_key") or settings.UNDERWRITE_IQ_VISION_KEY or "not-needed",
            timeout=settings.LLM_TIMEOUT_SECONDS,
            max_retries=0,
        )
    return _clients[tier]


def clear_client_cache() -> None:
    """Clear cached clients (useful after config reload)."""
    _clients.clear()


def resolve_model_name(tier: str) -> str:
    """Model for a tier, honouring the PARSE_MODEL override."""
    if settings.PARSE_MODEL:
        return settings.PARSE_MODEL
    return get_model_config(tier)["model_name"]


async def get_completion(
    messages: list[dict[str, Any]],
    tier: str = "capable_large",
    **kwargs: Any,
) -> str:
    """Get a non-streaming completion from the specified model tier."""
    client = _get_client(tier)

    response = await client.chat.completions.create(
        model=resolve_model_name(tier),
        messages=messages,
        **kwargs,
    )
    choice = response.choices[0]
    refusal = getattr(choice.message, "refusal", None)
    if refusal:
        raise LLMRefusalError(refusal)
    return choice.message.content or ""


class LLMRefusalError(Exception):
    """The model declined to answer."""
