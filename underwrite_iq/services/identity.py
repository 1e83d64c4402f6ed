# This project was developed with assistance from AI tools.
"""Post-extraction identity and recency gate.

The applicant's name must match a name printed on the report, and the
report must have been pulled within the last 30 days. Either check passes
with a warning when the report gives it nothing to compare against.
"""

import logging
import re
import unicodedata
from datetime import date

from pydantic import BaseModel, Field

from ..schemas.bureau import BureauRecord
from ..schemas.errors import ErrorKind, user_message
from .freshness import MAX_REPORT_AGE_DAYS, parse_report_date, report_age_days

logger = logging.getLogger(__name__)

_NON_LETTER_RE = re.compile(r"[^a-z]+")

MIN_SHARED_TOKENS = 2
MIN_SHARED_TOKEN_LEN = 2


class IdentityResult(BaseModel):
    ok: bool
    error: ErrorKind | None = None
    msg: str | None = None
    matched_name: str | None = None
    report_date: str | None = None
    age_days: int | None = None
    warnings: list[str] = Field(default_factory=list)


def name_tokens(name: str | None) -> list[str]:
    """Casefolded, accent-free name tokens; apostrophes join (O'Brien -> obrien)."""
    if not name:
        return []
    decomposed = unicodedata.normalize("NFKD", name.casefold())
    ascii_only = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    ascii_only = ascii_only.replace("'", "").replace("’", "")
    return [t for t in _NON_LETTER_RE.split(ascii_only) if t]


def names_match(first_name: str, last_name: str, report_name: str) -> bool:
    """Compare the submitted name to one name line from the report.

    Accepts an exact token-set match, or at least two shared tokens of two
    or more letters where one of them belongs to the surname. Initials
    alone never count.
    """
    first = name_tokens(first_name)
    last = name_tokens(last_name)
    report = set(name_tokens(report_name))
    if not first or not last or not report:
        return False

    submitted = set(first) | set(last)
    if submitted == report:
        return True

    shared = {t for t in submitted & report if len(t) >= MIN_SHARED_TOKEN_LEN}
    surname = {t for t in last if len(t) >= MIN_SHARED_TOKEN_LEN}
    return len(shared) >= MIN_SHARED_TOKENS and bool(shared & surname)


def collect_report_names(bureaus: dict[str, BureauRecord]) -> list[str]:
    names: list[str] = []
    for record in bureaus.values():
        for name in record.names:
            if name not in names:
                names.append(name)
    return names


def most_recent_report_date(bureaus: dict[str, BureauRecord]) -> date | None:
    dates = [parse_report_date(r.report_date) for r in bureaus.values() if r.report_date]
    dates = [d for d in dates if d is not None]
    return max(dates) if dates else None


def check_identity(
    first_name: str,
    last_name: str,
    bureaus: dict[str, BureauRecord],
    reference_date: date | None = None,
) -> IdentityResult:
    """Run the name and recency checks against the merged profile."""
    warnings: list[str] = []

    report_names = collect_report_names(bureaus)
    matched: str | None = None
    if not report_names:
        logger.warning("No names found in credit report for identity check")
        warnings.append("Could not verify name - no names found in report")
    else:
        matched = next(
            (n for n in report_names if names_match(first_name, last_name, n)),
            None,
        )
        if matched is None:
            logger.info("Identity check failed: %d report names, none matched", len(report_names))
            return IdentityResult(
                ok=False,
                error=ErrorKind.NAME_MISMATCH,
                msg=user_message(ErrorKind.NAME_MISMATCH),
            )

    latest = most_recent_report_date(bureaus)
    if latest is None:
        logger.warning("No report date found for recency check")
        warnings.append("Could not verify report date")
        return IdentityResult(ok=True, matched_name=matched, warnings=warnings)

    age_days = report_age_days(latest, reference_date)
    if age_days > MAX_REPORT_AGE_DAYS:
        return IdentityResult(
            ok=False,
            error=ErrorKind.REPORT_TOO_OLD,
            msg=user_message(ErrorKind.REPORT_TOO_OLD),
            report_date=latest.isoformat(),
            age_days=age_days,
        )

    return IdentityResult(
        ok=True,
        matched_name=matched,
        report_date=latest.isoformat(),
        age_days=age_days,
        warnings=warnings,
    )
