# This project was developed with assistance from AI tools.
"""
Application configuration.

All settings read from environment variables with sensible local dev defaults.
Optional collaborators (LLM, storage, dedupe cache, CRM) are switched on by
the presence of their credentials; nothing here aborts startup.
"""

import logging
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

# Resolve project root .env regardless of CWD (matches inference/config.py approach)
_PROJECT_ROOT = Path(__file__).resolve().parents[2]
_ENV_FILE = _PROJECT_ROOT / ".env"


class Settings(BaseSettings):
    """Application settings -- single source of truth for env-driven config."""

    model_config = SettingsConfigDict(
        env_file=str(_ENV_FILE),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # -- App --
    APP_NAME: str = "underwrite-iq"
    LOG_LEVEL: str = "INFO"
    REQUEST_TIMEOUT_SECONDS: float = Field(
        default=300.0,
        description="Hard ceiling for one /switchboard run.",
    )

    # -- LLM extraction --
    UNDERWRITE_IQ_VISION_KEY: str | None = Field(
        default=None,
        description="API key for the extraction model. Extraction is disabled when unset.",
    )
    LLM_BASE_URL: str = Field(
        default="https://api.openai.com/v1",
        description="Base URL for OpenAI-compatible LLM endpoint.",
    )
    PARSE_MODEL: str | None = Field(
        default=None,
        description="Overrides the model name for every extraction call.",
    )
    PARSE_MODE: str = Field(
        default="auto",
        description="Extraction strategy order: auto, ocr or vision.",
    )
    LLM_TIMEOUT_SECONDS: float = 60.0
    LLM_MAX_TOKENS: int = 8000
    OCR_ENABLED: bool = True
    DOCUMENT_GATE_ENABLED: bool = Field(
        default=True,
        description="Classify PDFs with the fast tier before sending them to vision extraction.",
    )
    PARSE_CACHE_TTL_SECONDS: int = 86400

    # -- Storage (S3-compatible blob store for letters) --
    BLOB_READ_WRITE_TOKEN: str | None = Field(
        default=None,
        description="Secret for the letter blob store. Uploads fail safely when unset.",
    )
    BLOB_ACCESS_KEY_ID: str = "underwrite-iq"
    BLOB_ENDPOINT: str | None = None
    BLOB_BUCKET: str = "letters"
    BLOB_REGION: str = "us-east-1"

    # -- Dedupe cache (Upstash REST) --
    UPSTASH_REDIS_REST_URL: str | None = None
    UPSTASH_REDIS_REST_TOKEN: str | None = None
    AFFILIATE_DASHBOARD_ENABLED: bool = Field(
        default=True,
        description="Use the ref key for dedupe lookups and writes.",
    )

    # -- CRM (GoHighLevel) --
    GHL_API_BASE: str = "https://services.leadconnectorhq.com"
    GHL_PRIVATE_API_KEY: str | None = None
    GHL_LOCATION_ID: str | None = None

    # -- Redirects --
    REDIRECT_URL_FUNDABLE: str = "https://fundhub.ai/funding-approved-analyzer-462533"
    REDIRECT_URL_NOT_FUNDABLE: str = "https://fundhub.ai/fix-my-credit-analyzer"
    REDIRECT_BASE_URL: str = "https://fundhub.ai"

    # -- Identity gate --
    IDENTITY_VERIFICATION_ENABLED: bool = True


settings = Settings()


def log_config_status(cfg: Settings | None = None) -> None:
    """Log which optional collaborators are active (called once at startup)."""
    cfg = cfg or settings
    checks = {
        "extraction": bool(cfg.UNDERWRITE_IQ_VISION_KEY),
        "blob storage": bool(cfg.BLOB_READ_WRITE_TOKEN),
        "dedupe cache": bool(cfg.UPSTASH_REDIS_REST_URL and cfg.UPSTASH_REDIS_REST_TOKEN),
        "crm": bool(cfg.GHL_PRIVATE_API_KEY and cfg.GHL_LOCATION_ID),
    }
    for name, enabled in checks.items():
        if enabled:
            logger.info("%s: enabled", name)
        else:
            logger.warning("%s: not configured, disabled", name)
    if not cfg.DOCUMENT_GATE_ENABLED:
        logger.warning("Document classifier disabled by DOCUMENT_GATE_ENABLED")
    if not cfg.IDENTITY_VERIFICATION_ENABLED:
        logger.warning("Identity verification disabled by IDENTITY_VERIFICATION_ENABLED")
    logger.info("Parse mode: %s", cfg.PARSE_MODE)
