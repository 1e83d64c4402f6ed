# This project was developed with assistance from AI tools.
"""Switchboard pipeline: upload to redirect in one request.

Stages run in order and each failure ends the run with a typed
``FailureResponse``; degraded collaborators (underwriting or suggestion
crashes, letter storage) set ``fallback`` and the run continues. The CRM
is notified last and its failures are only logged.

    RECEIVED -> VALIDATED -> DEDUPE_CHECKED -> EXTRACTED -> MERGED
      -> IDENTITY_OK -> UNDERWRITTEN -> LETTERS_UPLOADED -> CACHED
      -> NOTIFIED -> DONE          (any stage -> FAILED)
"""

import asyncio
import enum
import logging
from datetime import UTC, datetime
from functools import partial
from urllib.parse import quote

from pydantic import BaseModel, Field

from ..core.config import Settings, settings
from ..schemas.bureau import BUREAU_ORDER, BureauRecord, SlotResult, SourceType
from ..schemas.errors import ErrorKind, FailureResponse, user_message
from ..schemas.switchboard import (
    DedupeHitResponse,
    LetterPath,
    LetterSummary,
    RedirectPayload,
    ResultType,
    Suggestions,
    SwitchboardResult,
)
from ..schemas.underwrite import UnderwriteResult
from .crm import CrmClient, CrmContact, get_crm_client
from .dedupe import DedupeKeys, DedupeStore, build_dedupe_keys, get_dedupe_store
from .extraction import ExtractionService, get_extraction_service
from .identity import check_identity
from .ingestion import enforce_bureau_slots, ingest_report
from .intake_validation import IntakeForm
from .letters import Letter, Recipient, generate_letters, letter_filenames
from .storage import (
    StorageService,
    UploadError,
    UploadSummary,
    get_storage_service,
    map_urls_to_crm_fields,
    upload_all,
)
from .suggestions import build_cards, build_suggestions, empty_suggestions, format_suggestions
from .underwriter import compute_underwrite, fallback_underwrite
from .upload_validation import UploadCandidate, validate_uploads

logger = logging.getLogger(__name__)


class Stage(str, enum.Enum):
    RECEIVED = "received"
    VALIDATED = "validated"
    DEDUPE_CHECKED = "dedupe_checked"
    EXTRACTED = "extracted"
    MERGED = "merged"
    IDENTITY_OK = "identity_ok"
    UNDERWRITTEN = "underwritten"
    LETTERS_UPLOADED = "letters_uploaded"
    CACHED = "cached"
    NOTIFIED = "notified"
    DONE = "done"
    FAILED = "failed"


class PipelineRun(BaseModel):
    """Mutable progress of one request."""

    stage: Stage = Stage.RECEIVED
    fallback: bool = False
    warnings: list[str] = Field(default_factory=list)

    def advance(self, stage: Stage) -> None:
        logger.debug("Switchboard stage %s -> %s", self.stage.value, stage.value)
        self.stage = stage


SwitchboardResponse = SwitchboardResult | DedupeHitResponse | FailureResponse


def _fail(
    run: PipelineRun,
    kind: ErrorKind,
    msg: str | None = None,
    filename: str | None = None,
) -> FailureResponse:
    stage = run.stage
    run.stage = Stage.FAILED
    logger.warning("Switchboard failed after %s: %s", stage.value, kind.value)
    return FailureResponse(
        reason=kind,
        msg=msg or user_message(kind),
        stage=stage.value,
        filename=filename,
    )


def build_redirect(
    uw: UnderwriteResult,
    suggestions: Suggestions,
    ref_id: str | None,
    cfg: Settings | None = None,
    now: datetime | None = None,
) -> RedirectPayload:
    """Result page target plus the whole-dollar query the page renders."""
    cfg = cfg or settings
    m = uw.metrics
    query = {
        "personalTotal": round(uw.totals.total_personal_funding),
        "businessTotal": round(uw.totals.total_business_funding),
        "totalCombined": round(uw.totals.total_combined_funding),
        "score": m.score or 0,
        "util": m.utilization_pct or 0,
        "inqEx": m.inquiries.ex,
        "inqTu": m.inquiries.tu,
        "inqEq": m.inquiries.eq,
        "neg": m.negative_accounts,
        "late": m.late_payment_events,
    }
    affiliate = None
    if ref_id:
        affiliate = f"{cfg.REDIRECT_BASE_URL.rstrip('/')}/credit-analyzer.html?ref={quote(ref_id)}"
    return RedirectPayload(
        result_type=ResultType.FUNDING if uw.fundable else ResultType.REPAIR,
        result_url=cfg.REDIRECT_URL_FUNDABLE if uw.fundable else cfg.REDIRECT_URL_NOT_FUNDABLE,
        query=query,
        suggestions=format_suggestions(suggestions),
        last_upload=(now or datetime.now(UTC)).isoformat(),
        ref_id=ref_id,
        affiliate_link=affiliate,
    )


class Switchboard:
    """Wires the pipeline stages to their collaborators."""

    def __init__(
        self,
        extraction: ExtractionService,
        store: DedupeStore | None = None,
        storage: StorageService | None = None,
        crm: CrmClient | None = None,
        cfg: Settings | None = None,
    ):
        self._extraction = extraction
        self._store = store
        self._storage = storage
        self._crm = crm
        self._cfg = cfg or settings

    async def run(self, form: IntakeForm, files: list[UploadCandidate]) -> SwitchboardResponse:
        """Run the pipeline under the request timeout."""
        run = PipelineRun()
        try:
            return await asyncio.wait_for(
                self._run(run, form, files),
                timeout=self._cfg.REQUEST_TIMEOUT_SECONDS,
            )
        except TimeoutError:
            logger.error(
                "Switchboard timed out after %ss at stage %s",
                self._cfg.REQUEST_TIMEOUT_SECONDS,
                run.stage.value,
            )
            return _fail(run, ErrorKind.REQUEST_TIMEOUT)

    async def _run(
        self,
        run: PipelineRun,
        form: IntakeForm,
        files: list[UploadCandidate],
    ) -> SwitchboardResponse:
        loop = asyncio.get_running_loop()
        logger.info("Switchboard received %d file(s)", len(files))

        # -- Validate uploads (pymupdf sniffing is blocking) --
        validation = await loop.run_in_executor(None, validate_uploads, files)
        if not validation.ok:
            return _fail(run, validation.error, validation.msg, validation.filename)
        run.advance(Stage.VALIDATED)

        # -- Dedupe --
        keys = build_dedupe_keys(
            form.email,
            form.phone,
            form.device_id,
            form.ref_id,
            use_ref_key=self._cfg.AFFILIATE_DASHBOARD_ENABLED,
        )
        if form.force_reprocess:
            logger.info("forceReprocess set, skipping dedupe lookup")
        elif self._store is not None:
            hit = await self._store.check(keys)
            if hit is not None:
                run.advance(Stage.DONE)
                return DedupeHitResponse(source=hit.source, redirect=hit.redirect)
        run.advance(Stage.DEDUPE_CHECKED)

        # -- Extract all files concurrently --
        results = await asyncio.gather(
            *(self._extraction.extract(f.data, f.safe_name) for f in files)
        )
        extracted = []
        first_error = None
        for f, result in zip(files, results, strict=True):
            if result.ok:
                extracted.append((f, result))
                continue
            first_error = first_error or (result.error, f.safe_name)
            run.warnings.append(f"{f.safe_name}: {result.error.value}")
        if not extracted:
            kind, filename = first_error
            return _fail(run, kind, filename=filename)
        run.advance(Stage.EXTRACTED)

        # -- Classify and merge into bureau slots --
        slots: SlotResult | None = None
        for f, result in extracted:
            ingestion = ingest_report(result.text, result.bureaus, f.data)
            if len(files) > 1 and ingestion.source_type == SourceType.TRI_MERGE:
                return _fail(run, ErrorKind.TRI_MERGE_WITH_MULTI_UPLOAD, filename=f.safe_name)
            run.warnings.extend(ingestion.warnings)
            slots = enforce_bureau_slots(slots, ingestion.bureaus, f.safe_name)
        if slots is None or not slots.bureaus:
            return _fail(run, ErrorKind.NO_BUREAUS)
        bureaus: dict[str, BureauRecord] = {
            key: slots.bureaus.get(key) or BureauRecord.unavailable(key) for key in BUREAU_ORDER
        }
        run.advance(Stage.MERGED)

        # -- Identity and freshness --
        if self._cfg.IDENTITY_VERIFICATION_ENABLED:
            identity = check_identity(form.first_name, form.last_name, bureaus)
            if not identity.ok:
                return _fail(run, identity.error, identity.msg)
            run.warnings.extend(identity.warnings)
        run.advance(Stage.IDENTITY_OK)

        # -- Decide --
        try:
            uw = compute_underwrite(bureaus, form.business_age_months)
        except Exception:
            logger.exception("Underwriting crashed, using fallback result")
            uw = fallback_underwrite()
            run.fallback = True
            run.warnings.append(ErrorKind.UNDERWRITE_CRASH.value)
        try:
            suggestions = build_suggestions(bureaus, uw)
        except Exception:
            logger.exception("Suggestion building crashed, using empty suggestions")
            suggestions = empty_suggestions()
            run.fallback = True
            run.warnings.append(ErrorKind.SUGGESTION_CRASH.value)
        run.advance(Stage.UNDERWRITTEN)

        # -- Letters --
        path = LetterPath.FUNDABLE if uw.fundable else LetterPath.REPAIR
        letters, upload = await self._letters(run, path, bureaus, form, keys)
        run.advance(Stage.LETTERS_UPLOADED)

        # -- Cache the redirect --
        redirect = build_redirect(uw, suggestions, keys.ref_id, self._cfg)
        wire_redirect = redirect.to_wire()
        if self._store is not None:
            await self._store.store(keys, wire_redirect)
        run.advance(Stage.CACHED)

        # -- CRM --
        await self._notify(form, uw, redirect, map_urls_to_crm_fields(upload.urls, path))
        run.advance(Stage.NOTIFIED)

        run.advance(Stage.DONE)
        return SwitchboardResult(
            fallback=run.fallback or uw.fallback,
            bureaus={key: record.to_wire() for key, record in bureaus.items()},
            rejected=slots.rejected,
            underwrite=uw,
            suggestions=suggestions,
            cards=build_cards(uw),
            redirect=wire_redirect,
            letters=LetterSummary(
                path=path,
                generated=len(letters),
                uploaded=upload.uploaded_count,
                failed=upload.failed_count,
                urls=upload.urls,
            ),
            warnings=run.warnings,
        )

    async def _letters(
        self,
        run: PipelineRun,
        path: LetterPath,
        bureaus: dict[str, BureauRecord],
        form: IntakeForm,
        keys: DedupeKeys,
    ) -> tuple[list[Letter], UploadSummary]:
        loop = asyncio.get_running_loop()
        recipient = Recipient(name=form.full_name)
        try:
            letters = await loop.run_in_executor(
                None, partial(generate_letters, path, bureaus, recipient)
            )
        except Exception:
            logger.exception("Letter generation failed")
            run.fallback = True
            run.warnings.append(ErrorKind.UPLOAD_FAILED.value)
            names = letter_filenames(path)
            return [], UploadSummary(
                ok=False,
                failed_count=len(names),
                errors=[UploadError(filename=name, error="generation failed") for name in names],
            )

        upload = await upload_all(letters, keys.ref_id or "anonymous", self._storage)
        if not upload.ok:
            run.fallback = True
            kind = ErrorKind.STORAGE_UNCONFIGURED if self._storage is None else ErrorKind.UPLOAD_FAILED
            run.warnings.append(kind.value)
        return letters, upload

    async def _notify(
        self,
        form: IntakeForm,
        uw: UnderwriteResult,
        redirect: RedirectPayload,
        letter_fields: dict[str, str],
    ) -> None:
        if self._crm is None:
            logger.warning("CRM not configured (%s), skipping notification",
                           ErrorKind.CRM_UNCONFIGURED.value)
            return
        contact = CrmContact(
            first_name=form.first_name,
            last_name=form.last_name,
            email=form.email,
            phone=form.phone,
            business_age_months=form.business_age_months,
            result_type=redirect.result_type.value,
            credit_score=uw.metrics.score,
            total_funding=uw.totals.total_combined_funding,
            ref_id=redirect.ref_id,
        )
        try:
            result = await self._crm.upsert_contact(contact, letter_fields)
        except Exception:
            logger.exception("CRM notification crashed (%s)", ErrorKind.CRM_UNREACHABLE.value)
            return
        if not result.ok:
            logger.warning("CRM notification failed: %s", result.detail)


def get_switchboard() -> Switchboard:
    """FastAPI dependency wiring the initialised collaborators together."""
    return Switchboard(
        extraction=get_extraction_service(),
        store=get_dedupe_store(),
        storage=get_storage_service(),
        crm=get_crm_client(),
    )
