# This project was developed with assistance from AI tools.
"""Credit report classification and bureau slot enforcement.

One uploaded PDF is either a single-bureau report, an AnnualCreditReport
disclosure, or a tri-merge carrying all three bureaus. Tri-merge text is
sliced at each bureau's first mention so every bureau gets its own record,
tagged with a content hash of the merged document. Records from all uploads
then compete for the three bureau slots.
"""

import hashlib
import logging
import re

from pydantic import BaseModel, Field

from ..schemas.bureau import (
    BUREAU_ORDER,
    Bureau,
    BureauRecord,
    ScoreDetails,
    SlotRejection,
    SlotResult,
    SourceType,
)
from ..schemas.errors import ErrorKind
from .freshness import is_newer, normalize_report_date
from .normalizer import sanitize_score

logger = logging.getLogger(__name__)

MAX_BUREAU_SLOTS = 3
MIN_SLICE_CHARS = 40

_BUREAU_PATTERNS: dict[str, re.Pattern] = {
    "experian": re.compile(r"experian", re.IGNORECASE),
    "equifax": re.compile(r"equifax", re.IGNORECASE),
    "transunion": re.compile(r"trans\s?union", re.IGNORECASE),
}
_ANNUAL_RE = re.compile(r"annualcreditreport", re.IGNORECASE)
_SCORE_RE = re.compile(r"(?:fico|score)[^0-9]{0,12}([3-8]\d{2})\b", re.IGNORECASE)
_LOOSE_SCORE_RE = re.compile(r"\b([3-8]\d{2})\b")
_REPORT_DATE_RE = re.compile(
    r"(?:report\s*date|date\s*of\s*report|as\s*of)[:\s]+"
    r"([A-Za-z]{3,9}\.?\s+\d{1,2},?\s+\d{4}|[A-Za-z]{3,9}\s+\d{4}|[0-9][0-9/\-]{5,9})",
    re.IGNORECASE,
)
_ANY_DATE_RE = re.compile(r"(\d{4}-\d{2}-\d{2}|\d{1,2}/\d{1,2}/\d{4})")


class IngestionResult(BaseModel):
    """Bureau records produced from one uploaded document."""

    source_type: SourceType
    bureaus: dict[str, BureauRecord] = Field(default_factory=dict)
    merged_document_id: str | None = None
    warnings: list[str] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Text helpers
# ---------------------------------------------------------------------------


def normalize_whitespace(text: str | None) -> str:
    return re.sub(r"\s+", " ", text or "").strip()


def hash_text(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def bureau_positions(text: str) -> list[tuple[str, int]]:
    """Bureaus named in the text with their first offset, in reading order."""
    found = []
    for key, pattern in _BUREAU_PATTERNS.items():
        m = pattern.search(text)
        if m:
            found.append((key, m.start()))
    return sorted(found, key=lambda item: item[1])


def mentions_all_bureaus(text: str) -> bool:
    return len(bureau_positions(text)) == len(BUREAU_ORDER)


def detect_primary_bureau(text: str) -> str | None:
    """First bureau named in the text, in Experian/Equifax/TransUnion priority."""
    for key in BUREAU_ORDER:
        if _BUREAU_PATTERNS[key].search(text):
            return key
    return None


def extract_score(text: str, strict: bool = True) -> int | None:
    m = _SCORE_RE.search(text)
    if m is None and not strict:
        m = _LOOSE_SCORE_RE.search(text)
    if m is None:
        return None
    return sanitize_score(m.group(1))


def extract_report_date(text: str) -> str | None:
    """Report pull date as ISO, from a labelled date or the first date-like token."""
    m = _REPORT_DATE_RE.search(text)
    if m:
        iso = normalize_report_date(m.group(1).strip().rstrip(","))
        if iso and re.match(r"^\d{4}-\d{2}-\d{2}$", iso):
            return iso
    m = _ANY_DATE_RE.search(text)
    if m:
        iso = normalize_report_date(m.group(1))
        if iso and re.match(r"^\d{4}-\d{2}-\d{2}$", iso):
            return iso
    return None


def classify_report(text: str) -> SourceType:
    if mentions_all_bureaus(text):
        return SourceType.TRI_MERGE
    if _ANNUAL_RE.search(text):
        return SourceType.ANNUAL_DISCLOSURE
    return SourceType.SINGLE_BUREAU


# ---------------------------------------------------------------------------
# Record construction
# ---------------------------------------------------------------------------


def _from_text(bureau: str, text: str, strict_score: bool) -> BureauRecord:
    """Minimal record recovered from report text alone."""
    score = extract_score(text, strict=strict_score)
    return BureauRecord(
        bureau=Bureau(bureau),
        available=True,
        score=score,
        report_date=extract_report_date(text),
        score_details=ScoreDetails(value=score, available=score is not None),
    )


def _fill_from_text(record: BureauRecord, text: str) -> BureauRecord:
    """Supply a missing score or report date from the raw text."""
    updates: dict = {}
    if record.score is None:
        score = extract_score(text)
        if score is not None:
            updates["score"] = score
            updates["score_details"] = ScoreDetails(value=score, available=True)
    if not record.report_date:
        report_date = extract_report_date(text)
        if report_date:
            updates["report_date"] = report_date
    return record.model_copy(update=updates) if updates else record


def _tag(
    record: BureauRecord,
    source_type: SourceType,
    merged_document_id: str | None = None,
    warnings: list[str] | None = None,
) -> BureauRecord:
    update = {
        "source_type": source_type,
        "derived_from_merged": source_type == SourceType.TRI_MERGE,
        "merged_document_id": merged_document_id,
        "parsing_warnings": list(dict.fromkeys(record.parsing_warnings + (warnings or []))),
    }
    if source_type == SourceType.ANNUAL_DISCLOSURE and record.score is None:
        update["score_details"] = ScoreDetails(value=None, available=False)
    return record.model_copy(update=update)


def slice_tri_merge(normalized: str) -> dict[str, str]:
    """Cut the merged text at each bureau's first mention."""
    anchors = bureau_positions(normalized)
    slices: dict[str, str] = {}
    for i, (key, start) in enumerate(anchors):
        end = anchors[i + 1][1] if i + 1 < len(anchors) else len(normalized)
        chunk = normalized[start:end].strip()
        if len(chunk) >= MIN_SLICE_CHARS:
            slices[key] = chunk
    return slices


def _ingest_tri_merge(
    normalized: str,
    extracted: dict[str, BureauRecord],
) -> IngestionResult | None:
    slices = slice_tri_merge(normalized)
    if len(slices) < 2:
        return None

    merged_id = hash_text(normalized)
    bureaus: dict[str, BureauRecord] = {}
    for key in BUREAU_ORDER:
        llm_record = extracted.get(key)
        chunk = slices.get(key)
        if llm_record is not None and llm_record.available:
            record = _fill_from_text(llm_record, chunk) if chunk else llm_record
        elif chunk:
            record = _from_text(key, chunk, strict_score=False)
        else:
            continue
        bureaus[key] = _tag(record, SourceType.TRI_MERGE, merged_id)

    return IngestionResult(
        source_type=SourceType.TRI_MERGE,
        bureaus=bureaus,
        merged_document_id=merged_id,
    )


def _ingest_single(
    normalized: str,
    extracted: dict[str, BureauRecord],
    source_type: SourceType,
    warnings: list[str] | None = None,
) -> IngestionResult:
    available = {k: r for k, r in extracted.items() if r.available}
    if not available and normalized:
        key = detect_primary_bureau(normalized)
        if key:
            available = {key: _from_text(key, normalized, strict_score=True)}

    bureaus = {}
    for key in BUREAU_ORDER:
        if key not in available:
            continue
        record = available[key]
        if normalized:
            record = _fill_from_text(record, normalized)
        bureaus[key] = _tag(record, source_type, warnings=warnings)

    return IngestionResult(
        source_type=source_type,
        bureaus=bureaus,
        warnings=list(warnings or []),
    )


def ingest_report(
    text: str | None,
    extracted: dict[str, BureauRecord],
    document_bytes: bytes = b"",
) -> IngestionResult:
    """Classify one document and emit its tagged bureau records.

    Args:
        text: Text layer or OCR output; empty when only vision was used.
        extracted: Normalized LLM records keyed by bureau.
        document_bytes: The raw PDF, hashed when no text is available.
    """
    normalized = normalize_whitespace(text)

    if not normalized:
        available = [k for k in BUREAU_ORDER if extracted.get(k) and extracted[k].available]
        if len(available) >= 2:
            merged_id = hashlib.sha256(document_bytes).hexdigest()
            return IngestionResult(
                source_type=SourceType.TRI_MERGE,
                bureaus={
                    k: _tag(extracted[k], SourceType.TRI_MERGE, merged_id) for k in available
                },
                merged_document_id=merged_id,
            )
        return _ingest_single("", extracted, SourceType.SINGLE_BUREAU)

    source_type = classify_report(normalized)
    if source_type == SourceType.TRI_MERGE:
        result = _ingest_tri_merge(normalized, extracted)
        if result is not None:
            return result
        logger.warning("Tri-merge layout detected but fewer than two bureau sections found")
        return _ingest_single(
            normalized,
            extracted,
            SourceType.SINGLE_BUREAU,
            warnings=[ErrorKind.TRI_MERGE_DETECTION_FAILED.value],
        )

    return _ingest_single(normalized, extracted, source_type)


# ---------------------------------------------------------------------------
# Slot enforcement
# ---------------------------------------------------------------------------


def enforce_bureau_slots(
    existing: SlotResult | None,
    incoming: dict[str, BureauRecord],
    filename: str | None = None,
) -> SlotResult:
    """Merge incoming records into the bureau slots.

    A slot is replaced only by a strictly newer report; the losing record
    (incoming or displaced) is reported as ``stale_report``. Distinct
    bureaus are capped at three.
    """
    current = existing or SlotResult()
    bureaus = dict(current.bureaus)
    sources = dict(current.sources)
    rejected = list(current.rejected)

    for key, record in incoming.items():
        if record is None or not record.available:
            continue

        held = bureaus.get(key)
        if held is not None:
            if is_newer(record.report_date, held.report_date):
                rejected.append(
                    SlotRejection(
                        bureau=key,
                        reason=ErrorKind.STALE_REPORT.value,
                        filename=sources.get(key),
                    )
                )
                bureaus[key] = record
                sources[key] = filename
            else:
                rejected.append(
                    SlotRejection(bureau=key, reason=ErrorKind.STALE_REPORT.value, filename=filename)
                )
            continue

        if len(bureaus) >= MAX_BUREAU_SLOTS:
            rejected.append(
                SlotRejection(
                    bureau=key,
                    reason=ErrorKind.MAX_BUREAUS_REACHED.value,
                    filename=filename,
                )
            )
            continue

        bureaus[key] = record
        sources[key] = filename

    return SlotResult(bureaus=bureaus, rejected=rejected, sources=sources)
