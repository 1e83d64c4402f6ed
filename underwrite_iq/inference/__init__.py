# This project was developed with assistance from AI tools.
"""Inference module -- LLM client and model tier config loading."""

from .client import LLMRefusalError, get_completion, resolve_model_name
from .config import get_model_config, get_routing_config, select_tier_for_size

__all__ = [
    "LLMRefusalError",
    "get_completion",
    "get_model_config",
    "get_routing_config",
    "resolve_model_name",
    "select_tier_for_size",
]
