# This project was developed with assistance from AI tools.
"""Coerce raw LLM bureau objects into canonical ``BureauRecord`` models.

The model's output is loosely typed: numbers arrive as ``"$1,200"`` or
``"n/a"``, arrays as strings, booleans as ``"Yes"``. Everything downstream
relies on the shapes guaranteed here.
"""

import logging
import math
import re
from typing import Any

from ..schemas.bureau import (
    BUREAU_ORDER,
    TRADELINE_CATEGORIES,
    Bureau,
    BureauRecord,
    ScoreDetails,
    SourceType,
    Tradeline,
)
from .freshness import normalize_report_date

logger = logging.getLogger(__name__)

SCORE_MIN = 300
SCORE_MAX = 850

_NULL_STRINGS = {"", "null", "none", "n/a", "na", "-", "--"}
_NUMBER_JUNK_RE = re.compile(r"[$,%\s]")
_TRUE_STRINGS = {"true", "yes", "y", "1"}

# Common model spellings for tradeline categories
_TYPE_ALIASES = {
    "credit card": "revolving",
    "credit_card": "revolving",
    "card": "revolving",
    "revolving credit": "revolving",
    "line of credit": "revolving",
    "auto loan": "auto",
    "auto_loan": "auto",
    "student loan": "installment",
    "personal loan": "installment",
    "mortgage loan": "mortgage",
    "real estate": "mortgage",
}


def to_number_or_null(value: Any) -> float | None:
    """Parse a loosely formatted number; null-ish strings become None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int | float):
        return float(value) if math.isfinite(value) else None
    if isinstance(value, str):
        text = value.strip().lower()
        if text in _NULL_STRINGS:
            return None
        text = _NUMBER_JUNK_RE.sub("", text)
        try:
            n = float(text)
        except ValueError:
            return None
        return n if math.isfinite(n) else None
    return None


def _non_negative_int(value: Any) -> int | None:
    n = to_number_or_null(value)
    if n is None:
        return None
    return max(int(round(n)), 0)


def sanitize_score(value: Any) -> int | None:
    """Clamp a bureau score into the FICO band.

    OCR sometimes glues a trailing digit onto a score, so values above
    9000 are divided by ten before clamping.
    """
    n = to_number_or_null(value)
    if n is None:
        return None
    if n > 9000:
        n = math.floor(n / 10)
    if n > SCORE_MAX:
        n = SCORE_MAX
    if n < SCORE_MIN:
        return None
    return int(n)


def sanitize_utilization(value: Any) -> int | None:
    n = to_number_or_null(value)
    if n is None:
        return None
    return int(round(min(max(n, 0.0), 100.0)))


def _string_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    out: list[str] = []
    for item in value:
        if item is None:
            continue
        text = str(item).strip()
        if text:
            out.append(text)
    return out


def _is_true(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in _TRUE_STRINGS
    return False


def _category(value: Any) -> str:
    text = str(value or "").strip().lower()
    if text in TRADELINE_CATEGORIES:
        return text
    return _TYPE_ALIASES.get(text, "other")


def _date_or_none(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    if text.lower() in _NULL_STRINGS:
        return None
    return text


def normalize_tradeline(raw: Any) -> Tradeline | None:
    if not isinstance(raw, dict):
        return None
    creditor = raw.get("creditor")
    return Tradeline(
        creditor=str(creditor).strip() if creditor else None,
        type=_category(raw.get("type")),
        status=str(raw.get("status") or "").strip(),
        balance=_non_negative_int(raw.get("balance")),
        limit=_non_negative_int(raw.get("limit")),
        opened=_date_or_none(raw.get("opened")),
        closed=_date_or_none(raw.get("closed")),
        is_au=_is_true(raw.get("is_au")),
    )


def _has_content(raw: dict) -> bool:
    """A bureau object with nothing but nulls and empty arrays is absent."""
    for field in ("score", "utilization_pct", "inquiries", "negatives", "late_payment_events"):
        if to_number_or_null(raw.get(field)) is not None:
            return True
    for field in ("names", "addresses", "employers", "tradelines"):
        if isinstance(raw.get(field), list) and raw.get(field):
            return True
    return False


def normalize_bureau(bureau: Bureau | str, raw: Any) -> BureauRecord:
    """Build a canonical record from one bureau object of the model output."""
    key = Bureau(bureau)
    if not isinstance(raw, dict) or not _has_content(raw):
        return BureauRecord.unavailable(key)

    score = sanitize_score(raw.get("score"))
    tradelines = [
        tl for tl in (normalize_tradeline(t) for t in raw.get("tradelines") or []) if tl
    ]
    source_type = raw.get("sourceType") or raw.get("source_type")
    try:
        source = SourceType(source_type) if source_type else SourceType.SINGLE_BUREAU
    except ValueError:
        source = SourceType.SINGLE_BUREAU

    return BureauRecord(
        bureau=key,
        available=True,
        score=score,
        utilization_pct=sanitize_utilization(raw.get("utilization_pct")),
        inquiries=_non_negative_int(raw.get("inquiries")),
        negatives=_non_negative_int(raw.get("negatives")),
        late_payment_events=_non_negative_int(raw.get("late_payment_events")),
        names=_string_list(raw.get("names")),
        addresses=_string_list(raw.get("addresses")),
        employers=_string_list(raw.get("employers")),
        tradelines=tradelines,
        report_date=normalize_report_date(
            _date_or_none(raw.get("reportDate") or raw.get("report_date"))
        ),
        source_type=source,
        parsing_warnings=_string_list(raw.get("parsingWarnings")),
        score_details=ScoreDetails(value=score, available=score is not None),
    )


def normalize_bureaus(raw: Any) -> dict[str, BureauRecord]:
    """Normalize ``{bureaus: {...}}`` or a bare bureau mapping.

    Always returns all three bureau keys; missing bureaus are unavailable.
    """
    if isinstance(raw, dict) and isinstance(raw.get("bureaus"), dict):
        raw = raw["bureaus"]
    if not isinstance(raw, dict):
        raw = {}
    return {key: normalize_bureau(key, raw.get(key)) for key in BUREAU_ORDER}


def merge_bureau_chunks(base: dict[str, Any] | None, nxt: dict[str, Any] | None) -> dict | None:
    """Merge one bureau's raw objects extracted from two text chunks.

    Scores and utilization keep the maximum, counts add up, name/address/
    employer lists are unioned in order, tradelines are concatenated.
    """
    if not isinstance(base, dict):
        return nxt if isinstance(nxt, dict) else None
    if not isinstance(nxt, dict):
        return base

    merged = dict(base)
    for field, strategy in (
        ("score", max),
        ("utilization_pct", max),
        ("inquiries", sum),
        ("negatives", sum),
        ("late_payment_events", sum),
    ):
        values = [
            v for v in (to_number_or_null(base.get(field)), to_number_or_null(nxt.get(field)))
            if v is not None
        ]
        if not values:
            merged[field] = None
        elif strategy is max:
            merged[field] = max(values)
        else:
            merged[field] = sum(values)

    for field in ("names", "addresses", "employers"):
        combined = _string_list(base.get(field)) + _string_list(nxt.get(field))
        merged[field] = list(dict.fromkeys(combined))

    base_tls = base.get("tradelines") if isinstance(base.get("tradelines"), list) else []
    next_tls = nxt.get("tradelines") if isinstance(nxt.get("tradelines"), list) else []
    merged["tradelines"] = base_tls + next_tls

    if not merged.get("reportDate") and not merged.get("report_date"):
        merged["report_date"] = nxt.get("reportDate") or nxt.get("report_date")
    return merged


def merge_chunk_outputs(outputs: list[dict[str, Any]]) -> dict[str, Any]:
    """Fold per-chunk ``{bureaus: {...}}`` outputs into one."""
    merged: dict[str, Any] = {key: None for key in BUREAU_ORDER}
    for out in outputs:
        bureaus = out.get("bureaus") if isinstance(out, dict) else None
        if not isinstance(bureaus, dict):
            continue
        for key in BUREAU_ORDER:
            merged[key] = merge_bureau_chunks(merged[key], bureaus.get(key))
    return {"bureaus": merged}
