# This project was developed with assistance from AI tools.
"""Credit report extraction pipeline.

Three strategies run in the order set by ``PARSE_MODE``: the embedded text
layer (pymupdf), OCR of rendered pages (tesseract), and the PDF itself sent
to a vision-capable model. Text strategies feed the same chunked LLM call;
the model's JSON is repaired and normalized into per-bureau records.
Before a PDF goes to vision, a fast-tier classifier rejects documents that
are not credit reports (``DOCUMENT_GATE_ENABLED``).

``ExtractionService.extract`` never raises. Failures come back as an
``ExtractionResult`` carrying an ``ErrorKind`` and user-safe text.
"""

import asyncio
import base64
import enum
import hashlib
import logging
import re
from typing import Any

from openai import APIConnectionError, APITimeoutError, InternalServerError, RateLimitError
from pydantic import BaseModel, Field

from ..core.config import settings
from ..inference.client import LLMRefusalError, get_completion, resolve_model_name
from ..inference.config import select_tier_for_size
from ..schemas.bureau import BureauRecord
from ..schemas.errors import ErrorKind, user_message
from .dedupe import DedupeStore
from .extraction_prompts import (
    build_document_gate_prompt,
    build_text_extraction_prompt,
    build_vision_extraction_prompt,
)
from .json_repair import JsonRepairError, parse_llm_json
from .normalizer import merge_chunk_outputs, normalize_bureaus
from .ocr import ocr_pdf, ocr_usable
from .pdf_text import extract_text_layer

logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 3
RETRY_BACKOFF_SECONDS = 0.15
CHUNK_CHARS = 15000
MIN_REPORT_CHARS = 3000

# The document classifier only sees the head of the file
GATE_TIER = "fast_small"
GATE_HEAD_CHARS = 200_000
GATE_MAX_TOKENS = 200

_TRANSPORT_ERRORS = (APIConnectionError, APITimeoutError, RateLimitError, InternalServerError)

_BUREAU_TERM_RE = re.compile(r"experian|equifax|trans\s?union", re.IGNORECASE)
_ACCOUNT_TERM_RE = re.compile(
    r"account|tradeline|creditor|balance|payment history", re.IGNORECASE
)
_STRONG_INDICATORS = (
    re.compile(r"credit score|fico|vantage|score", re.IGNORECASE),
    re.compile(r"\b(?:[3-7]\d{2}|8[0-4]\d|850)\b"),
    re.compile(r"inquir", re.IGNORECASE),
    re.compile(r"\b\d{1,2}/\d{1,2}/\d{2,4}\b|\b\d{4}-\d{2}-\d{2}\b"),
    re.compile(r"\$\s?\d[\d,]*"),
)
_MIN_STRONG_INDICATORS = 2


class StrategyName(str, enum.Enum):
    TEXT_LAYER = "text_layer"
    OCR = "ocr"
    VISION = "vision"


STRATEGY_ORDER: dict[str, tuple[StrategyName, ...]] = {
    "auto": (StrategyName.TEXT_LAYER, StrategyName.OCR, StrategyName.VISION),
    "ocr": (StrategyName.OCR, StrategyName.VISION),
    "vision": (StrategyName.VISION,),
}

# Errors that a different strategy on the same document may get past
_FALL_THROUGH = {ErrorKind.JSON_PARSE, ErrorKind.NO_OUTPUT}


class ExtractionError(Exception):
    """A strategy could not produce usable model output."""

    def __init__(self, kind: ErrorKind, attempts: int = 1, detail: str = ""):
        super().__init__(detail or kind.value)
        self.kind = kind
        self.attempts = attempts


class ExtractionContext(BaseModel):
    filename: str
    tier: str
    model: str


class StrategyOutcome(BaseModel):
    """Result of one strategy; ``skipped`` means it did not apply."""

    skipped: bool = False
    raw: dict[str, Any] | None = None
    text: str = ""
    attempts: int = 0
    error: ErrorKind | None = None


class GateVerdict(BaseModel):
    ok: bool
    reason: str | None = None
    suspected_bureaus: list[str] = Field(default_factory=list)


class ExtractionResult(BaseModel):
    ok: bool
    bureaus: dict[str, BureauRecord] = Field(default_factory=dict)
    text: str = ""
    strategy: StrategyName | None = None
    model: str | None = None
    attempts: int = 0
    cached: bool = False
    reason: str | None = None
    error: ErrorKind | None = None

    def meta(self) -> dict[str, Any]:
        return {
            "strategy": self.strategy.value if self.strategy else None,
            "model": self.model,
            "attempts": self.attempts,
            "cached": self.cached,
            "text_chars": len(self.text),
        }


# ---------------------------------------------------------------------------
# Text heuristics
# ---------------------------------------------------------------------------


def looks_like_credit_report(text: str | None) -> bool:
    """Cheap check that a text layer is a real credit report worth sending."""
    if not text or len(text) < MIN_REPORT_CHARS:
        return False
    if not _BUREAU_TERM_RE.search(text) or not _ACCOUNT_TERM_RE.search(text):
        return False
    strong = sum(1 for pattern in _STRONG_INDICATORS if pattern.search(text))
    return strong >= _MIN_STRONG_INDICATORS


def chunk_text(text: str, max_chars: int = CHUNK_CHARS) -> list[str]:
    return [text[i : i + max_chars] for i in range(0, len(text), max_chars)] or [""]


# ---------------------------------------------------------------------------
# LLM call with retry
# ---------------------------------------------------------------------------


async def call_llm_json(messages: list[dict], tier: str) -> tuple[dict[str, Any], int]:
    """Run one completion and parse its JSON, retrying transport errors only.

    Returns the parsed object and the number of attempts used.
    """
    for attempt in range(1, MAX_ATTEMPTS + 1):
        try:
            raw = await get_completion(
                messages,
                tier=tier,
                temperature=0,
                max_tokens=settings.LLM_MAX_TOKENS,
            )
        except _TRANSPORT_ERRORS as exc:
            logger.warning("LLM transport error (attempt %d/%d): %s", attempt, MAX_ATTEMPTS, exc)
            if attempt < MAX_ATTEMPTS:
                await asyncio.sleep(RETRY_BACKOFF_SECONDS * attempt)
                continue
            raise ExtractionError(ErrorKind.LLM_TRANSPORT, attempt, str(exc)) from exc
        except LLMRefusalError as exc:
            logger.warning("LLM refused extraction")
            raise ExtractionError(ErrorKind.LLM_REFUSAL, attempt, str(exc)) from exc

        if not raw or not raw.strip():
            raise ExtractionError(ErrorKind.NO_OUTPUT, attempt)
        try:
            return parse_llm_json(raw), attempt
        except JsonRepairError as exc:
            raise ExtractionError(ErrorKind.JSON_PARSE, attempt, str(exc)) from exc

    raise ExtractionError(ErrorKind.LLM_TRANSPORT, MAX_ATTEMPTS)


async def extract_from_text(text: str, ctx: ExtractionContext) -> StrategyOutcome:
    """Send the text to the model chunk by chunk and merge the outputs."""
    outputs: list[dict[str, Any]] = []
    attempts = 0
    for chunk in chunk_text(text):
        try:
            out, used = await call_llm_json(build_text_extraction_prompt(chunk), ctx.tier)
        except ExtractionError as exc:
            return StrategyOutcome(text=text, attempts=attempts + exc.attempts, error=exc.kind)
        attempts += used
        outputs.append(out)
    merged = outputs[0] if len(outputs) == 1 else merge_chunk_outputs(outputs)
    return StrategyOutcome(raw=merged, text=text, attempts=attempts)


# ---------------------------------------------------------------------------
# Document classifier
# ---------------------------------------------------------------------------


async def classify_document(buffer: bytes, filename: str) -> GateVerdict:
    """Ask the fast tier whether a PDF is a consumer credit report.

    Fails open: when the classifier cannot answer, the document goes on to
    extraction.
    """
    head = base64.b64encode(buffer).decode("ascii")[:GATE_HEAD_CHARS]
    try:
        raw = await get_completion(
            build_document_gate_prompt(filename, head),
            tier=GATE_TIER,
            temperature=0,
            max_tokens=GATE_MAX_TOKENS,
        )
        verdict = parse_llm_json(raw)
    except (*_TRANSPORT_ERRORS, LLMRefusalError, JsonRepairError) as exc:
        logger.warning("%s: document classifier skipped (%s)", filename, type(exc).__name__)
        return GateVerdict(ok=True, reason="classifier unavailable")

    reason = str(verdict.get("reason") or "")
    if not verdict.get("likely_credit_report"):
        logger.info("%s: rejected by document classifier: %s", filename, reason)
        return GateVerdict(ok=False, reason=reason or None)
    bureaus = verdict.get("suspected_bureaus")
    return GateVerdict(
        ok=True,
        reason=reason or None,
        suspected_bureaus=[str(b) for b in bureaus] if isinstance(bureaus, list) else [],
    )


# ---------------------------------------------------------------------------
# Strategies
# ---------------------------------------------------------------------------


class TextLayerStrategy:
    name = StrategyName.TEXT_LAYER

    async def run(self, buffer: bytes, ctx: ExtractionContext) -> StrategyOutcome:
        loop = asyncio.get_running_loop()
        text = await loop.run_in_executor(None, extract_text_layer, buffer)
        if not looks_like_credit_report(text):
            logger.info("%s: text layer missing or not a credit report", ctx.filename)
            return StrategyOutcome(skipped=True)
        return await extract_from_text(text, ctx)


class OcrStrategy:
    name = StrategyName.OCR

    async def run(self, buffer: bytes, ctx: ExtractionContext) -> StrategyOutcome:
        if not settings.OCR_ENABLED:
            return StrategyOutcome(skipped=True)
        loop = asyncio.get_running_loop()
        text = await loop.run_in_executor(None, ocr_pdf, buffer)
        if not ocr_usable(text):
            logger.info("%s: OCR produced %d chars, skipping", ctx.filename, len(text or ""))
            return StrategyOutcome(skipped=True)
        return await extract_from_text(text, ctx)


class VisionStrategy:
    name = StrategyName.VISION

    async def run(self, buffer: bytes, ctx: ExtractionContext) -> StrategyOutcome:
        if settings.DOCUMENT_GATE_ENABLED:
            verdict = await classify_document(buffer, ctx.filename)
            if not verdict.ok:
                return StrategyOutcome(error=ErrorKind.NOT_CREDIT_REPORT)
        b64 = base64.b64encode(buffer).decode("ascii")
        messages = build_vision_extraction_prompt(ctx.filename, b64)
        try:
            out, attempts = await call_llm_json(messages, ctx.tier)
        except ExtractionError as exc:
            return StrategyOutcome(attempts=exc.attempts, error=exc.kind)
        return StrategyOutcome(raw=out, attempts=attempts)


STRATEGIES: dict[StrategyName, Any] = {
    StrategyName.TEXT_LAYER: TextLayerStrategy(),
    StrategyName.OCR: OcrStrategy(),
    StrategyName.VISION: VisionStrategy(),
}


def strategy_order(mode: str | None) -> tuple[StrategyName, ...]:
    key = (mode or "auto").strip().lower()
    if key not in STRATEGY_ORDER:
        logger.warning("Unknown PARSE_MODE %r, using auto", mode)
        key = "auto"
    return STRATEGY_ORDER[key]


def _has_bureaus(bureaus: dict[str, BureauRecord]) -> bool:
    return any(record.available for record in bureaus.values())


def _failure(kind: ErrorKind, **kwargs: Any) -> ExtractionResult:
    return ExtractionResult(ok=False, error=kind, reason=user_message(kind), **kwargs)


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------


class ExtractionService:
    """Runs the strategy chain for one PDF, with an optional parse cache."""

    def __init__(self, store: DedupeStore | None = None):
        self._store = store

    async def extract(self, buffer: bytes, filename: str = "report.pdf") -> ExtractionResult:
        try:
            return await self._extract(buffer, filename)
        except Exception:
            logger.exception("Extraction crashed for %s", filename)
            return _failure(ErrorKind.NO_OUTPUT)

    async def _extract(self, buffer: bytes, filename: str) -> ExtractionResult:
        if not settings.UNDERWRITE_IQ_VISION_KEY:
            logger.error("UNDERWRITE_IQ_VISION_KEY not configured, cannot extract %s", filename)
            return _failure(ErrorKind.EXTRACTION_UNCONFIGURED)

        digest = hashlib.sha256(buffer).hexdigest()
        cached = await self._cached(digest)
        if cached is not None:
            logger.info("Parse cache hit for %s", filename)
            return cached

        tier = select_tier_for_size(len(buffer))
        ctx = ExtractionContext(filename=filename, tier=tier, model=resolve_model_name(tier))

        attempts = 0
        last_error = ErrorKind.NO_OUTPUT
        for name in strategy_order(settings.PARSE_MODE):
            outcome = await STRATEGIES[name].run(buffer, ctx)
            attempts += outcome.attempts
            if outcome.skipped:
                continue
            if outcome.error is not None:
                last_error = outcome.error
                if outcome.error in _FALL_THROUGH:
                    logger.info("%s: %s failed (%s), trying next", filename, name.value,
                                outcome.error.value)
                    continue
                break

            bureaus = normalize_bureaus(outcome.raw)
            if not _has_bureaus(bureaus):
                logger.info("%s: %s returned no bureau data", filename, name.value)
                last_error = ErrorKind.NO_OUTPUT
                continue

            result = ExtractionResult(
                ok=True,
                bureaus=bureaus,
                text=outcome.text,
                strategy=name,
                model=ctx.model,
                attempts=attempts,
            )
            logger.info(
                "Extracted %s via %s (%d bureaus, %d attempts)",
                filename,
                name.value,
                sum(1 for r in bureaus.values() if r.available),
                attempts,
            )
            await self._remember(digest, outcome, result)
            return result

        logger.error("Extraction failed for %s: %s", filename, last_error.value)
        return _failure(last_error, model=ctx.model, attempts=attempts)

    async def _cached(self, digest: str) -> ExtractionResult | None:
        if self._store is None:
            return None
        payload = await self._store.get_parsed(digest)
        if not payload or not isinstance(payload.get("raw"), dict):
            return None
        bureaus = normalize_bureaus(payload["raw"])
        if not _has_bureaus(bureaus):
            return None
        try:
            strategy = StrategyName(payload.get("strategy"))
        except ValueError:
            strategy = None
        return ExtractionResult(
            ok=True,
            bureaus=bureaus,
            text=payload.get("text") or "",
            strategy=strategy,
            model=payload.get("model"),
            cached=True,
        )

    async def _remember(
        self, digest: str, outcome: StrategyOutcome, result: ExtractionResult
    ) -> None:
        if self._store is None:
            return
        payload = {
            "raw": outcome.raw,
            "text": outcome.text,
            "strategy": result.strategy.value if result.strategy else None,
            "model": result.model,
        }
        await self._store.set_parsed(digest, payload, settings.PARSE_CACHE_TTL_SECONDS)


# ---------------------------------------------------------------------------
# Module-level singleton
# ---------------------------------------------------------------------------

_service: ExtractionService | None = None


def init_extraction_service(store: DedupeStore | None = None) -> ExtractionService:
    """Initialise the singleton (called once from app lifespan)."""
    global _service  # noqa: PLW0603
    _service = ExtractionService(store)
    logger.info("ExtractionService initialised (mode=%s)", settings.PARSE_MODE)
    return _service


def get_extraction_service() -> ExtractionService:
    """Return the initialised ExtractionService singleton."""
    if _service is None:
        raise RuntimeError(
            "ExtractionService not initialised -- call init_extraction_service() first"
        )
    return _service
