# This project was developed with assistance from AI tools.
"""Model tier configuration loader.

Reads config/models.yaml, substitutes ${ENV_VAR:-default} placeholders,
validates required fields, and supports mtime-based hot-reload so config
changes take effect without restarting the server.
"""

import logging
import os
import re
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

# pydantic-settings reads .env into Settings but doesn't set os.environ;
# the YAML placeholders need actual env vars.
load_dotenv()

logger = logging.getLogger(__name__)

_CONFIG_PATH = Path(__file__).resolve().parents[2] / "config" / "models.yaml"
_cached_config: dict[str, Any] | None = None
_cached_mtime: float = 0.0

_ENV_VAR_PATTERN = re.compile(r"\$\{(\w+)(?::-(.*?))?\}")

REQUIRED_TIER_FIELDS = {"provider", "model_name", "endpoint"}
DEFAULT_TIER = "capable_large"
FAST_TIER = "fast_small"


def _substitute_env_vars(value: str) -> str:
    """Replace ${VAR:-default} patterns with environment values."""

    def _replace(match: re.Match) -> str:
        var_name = match.group(1)
        default = match.group(2) or ""
        return os.environ.get(var_name, default)

    return _ENV_VAR_PATTERN.sub(_replace, value)


def _resolve_env_vars(node: Any) -> Any:
    """Walk the parsed YAML and substitute placeholders in every string leaf."""
    if isinstance(node, dict):
        return {key: _resolve_env_vars(value) for key, value in node.items()}
    if isinstance(node, list):
        return [_resolve_env_vars(item) for item in node]
    if isinstance(node, str):
        return _substitute_env_vars(node)
    return node


def _size_window(routing: dict[str, Any]) -> tuple[int, int] | None:
    """Inclusive byte range routed to the fast tier, or None when unset."""
    rules = routing.get("size_rules") or {}
    lo, hi = rules.get("fast_min_bytes"), rules.get("fast_max_bytes")
    if lo is None or hi is None:
        return None
    return int(lo), int(hi)


def _validate_config(config: Any) -> None:
    if not isinstance(config, dict):
        raise ValueError("models.yaml must be a mapping")

    tiers = config.get("models")
    if not isinstance(tiers, dict) or not tiers:
        raise ValueError("models.yaml needs a non-empty 'models' section")
    for name, tier in tiers.items():
        if not isinstance(tier, dict):
            raise ValueError(f"Tier '{name}' must be a mapping")
        missing = REQUIRED_TIER_FIELDS - tier.keys()
        if missing:
            raise ValueError(f"Tier '{name}' is missing required fields: {sorted(missing)}")

    routing = config.get("routing")
    if not isinstance(routing, dict):
        raise ValueError("models.yaml needs a 'routing' section")
    default_tier = routing.get("default_tier")
    if default_tier is not None and default_tier not in tiers:
        raise ValueError(f"routing.default_tier '{default_tier}' is not a configured tier")

    window = _size_window(routing)
    if window is not None:
        if window[0] > window[1]:
            raise ValueError("routing.size_rules.fast_min_bytes is above fast_max_bytes")
        fast_tier = routing.get("fast_tier", FAST_TIER)
        if fast_tier not in tiers:
            raise ValueError(f"routing.fast_tier '{fast_tier}' is not a configured tier")


def load_config(path: Path | None = None) -> dict[str, Any]:
    """Read, resolve, and validate models.yaml."""
    config_path = path or _CONFIG_PATH
    if not config_path.exists():
        raise FileNotFoundError(f"Model config not found: {config_path}")
    config = _resolve_env_vars(yaml.safe_load(config_path.read_text()))
    _validate_config(config)
    return config


def get_config(path: Path | None = None) -> dict[str, Any]:
    """Cached config, re-read when the file's mtime moves forward."""
    global _cached_config, _cached_mtime  # noqa: PLW0603
    config_path = path or _CONFIG_PATH

    try:
        mtime = config_path.stat().st_mtime
    except FileNotFoundError:
        if _cached_config is None:
            raise
        logger.warning("Model config %s is gone, keeping the cached copy", config_path)
        return _cached_config

    if _cached_config is not None and mtime <= _cached_mtime:
        return _cached_config

    logger.info("Loading model tiers from %s", config_path)
    _cached_config = load_config(config_path)
    _cached_mtime = mtime

    # Cached clients hold the old endpoints/keys
    from .client import clear_client_cache

    clear_client_cache()
    return _cached_config


def get_model_config(tier: str, path: Path | None = None) -> dict[str, Any]:
    """Settings for one tier; KeyError for a tier models.yaml doesn't define."""
    tiers = get_config(path)["models"]
    try:
        return tiers[tier]
    except KeyError:
        raise KeyError(f"Unknown model tier '{tier}'. Available: {sorted(tiers)}") from None


def get_routing_config(path: Path | None = None) -> dict[str, Any]:
    return get_config(path)["routing"]


def select_tier_for_size(size_bytes: int, path: Path | None = None) -> str:
    """Pick the model tier for a PDF of the given size.

    Mid-sized documents go to the fast tier; small ones (often scans) and
    very large ones go to the default tier.
    """
    routing = get_routing_config(path)
    default_tier = routing.get("default_tier", DEFAULT_TIER)
    window = _size_window(routing)
    if window is not None and window[0] <= size_bytes <= window[1]:
        return routing.get("fast_tier", FAST_TIER)
    return default_tier
