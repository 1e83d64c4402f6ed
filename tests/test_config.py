# This project was developed with assistance from AI tools.
"""Tests for settings, the startup status report, and the LLM client wrapper."""

import logging
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from underwrite_iq.core.config import Settings, log_config_status
from underwrite_iq.core.logging import configure_logging
from underwrite_iq.inference import client as client_module
from underwrite_iq.inference.client import LLMRefusalError, get_completion, resolve_model_name


class TestSettings:
    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("PARSE_MODE", raising=False)
        monkeypatch.delenv("IDENTITY_VERIFICATION_ENABLED", raising=False)
        monkeypatch.delenv("DOCUMENT_GATE_ENABLED", raising=False)
        cfg = Settings(_env_file=None)
        assert cfg.PARSE_MODE == "auto"
        assert cfg.IDENTITY_VERIFICATION_ENABLED is True
        assert cfg.DOCUMENT_GATE_ENABLED is True
        assert cfg.AFFILIATE_DASHBOARD_ENABLED is True
        assert cfg.REQUEST_TIMEOUT_SECONDS == 300.0

    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv("IDENTITY_VERIFICATION_ENABLED", "false")
        monkeypatch.setenv("PARSE_CACHE_TTL_SECONDS", "60")
        cfg = Settings(_env_file=None)
        assert cfg.IDENTITY_VERIFICATION_ENABLED is False
        assert cfg.PARSE_CACHE_TTL_SECONDS == 60


class TestConfigStatus:
    def test_reports_missing_collaborators(self, caplog):
        cfg = Settings(
            _env_file=None,
            UNDERWRITE_IQ_VISION_KEY="sk-test",
            BLOB_READ_WRITE_TOKEN=None,
            UPSTASH_REDIS_REST_URL=None,
            GHL_PRIVATE_API_KEY=None,
            IDENTITY_VERIFICATION_ENABLED=False,
        )
        with caplog.at_level(logging.INFO, logger="underwrite_iq.core.config"):
            log_config_status(cfg)
        messages = [r.getMessage() for r in caplog.records]
        assert "extraction: enabled" in messages
        assert "blob storage: not configured, disabled" in messages
        assert "crm: not configured, disabled" in messages
        assert any("Identity verification disabled" in m for m in messages)

    def test_configure_logging_is_idempotent(self):
        root = logging.getLogger()
        level = root.level
        before = len(root.handlers)
        try:
            configure_logging("INFO")
            configure_logging("DEBUG")
            assert len(root.handlers) <= before + 1
            assert root.level == logging.DEBUG
        finally:
            root.setLevel(level)


def _response(content="{}", refusal=None):
    message = SimpleNamespace(content=content, refusal=refusal)
    return SimpleNamespace(choices=[SimpleNamespace(message=message)])


class TestCompletionClient:
    def test_parse_model_override(self, monkeypatch):
        monkeypatch.setattr(client_module.settings, "PARSE_MODEL", "gpt-override")
        assert resolve_model_name("capable_large") == "gpt-override"

    def test_model_from_tier(self, monkeypatch):
        monkeypatch.setattr(client_module.settings, "PARSE_MODEL", None)
        with patch.object(client_module, "get_model_config", return_value={"model_name": "big"}):
            assert resolve_model_name("capable_large") == "big"

    @pytest.mark.asyncio
    async def test_returns_content(self, monkeypatch):
        monkeypatch.setattr(client_module.settings, "PARSE_MODEL", "m")
        fake = MagicMock()
        fake.chat.completions.create = AsyncMock(return_value=_response('{"ok": 1}'))
        with patch.object(client_module, "_get_client", return_value=fake):
            out = await get_completion([{"role": "user", "content": "hi"}], max_tokens=10)
        assert out == '{"ok": 1}'
        kwargs = fake.chat.completions.create.await_args.kwargs
        assert kwargs["model"] == "m"
        assert kwargs["max_tokens"] == 10

    @pytest.mark.asyncio
    async def test_refusal_raises(self, monkeypatch):
        monkeypatch.setattr(client_module.settings, "PARSE_MODEL", "m")
        fake = MagicMock()
        fake.chat.completions.create = AsyncMock(return_value=_response(None, "I can't"))
        with patch.object(client_module, "_get_client", return_value=fake):
            with pytest.raises(LLMRefusalError):
                await get_completion([])

    def test_client_cached_per_tier(self):
        client_module.clear_client_cache()
        with patch.object(
            client_module,
            "get_model_config",
            return_value={"endpoint": "http://localhost:8000/v1", "model_name": "x"},
        ):
            first = client_module._get_client("fast_small")
            assert client_module._get_client("fast_small") is first
        client_module.clear_client_cache()
