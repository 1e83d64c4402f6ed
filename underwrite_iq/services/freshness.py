# This project was developed with assistance from AI tools.
"""Report date parsing and recency checks.

Credit reports print their pull date in many shapes; slot enforcement
and the identity gate both need it as a comparable ``date``.
"""

import logging
import re
from datetime import date, datetime

logger = logging.getLogger(__name__)

MAX_REPORT_AGE_DAYS = 30

# Date formats to try when parsing extracted date strings
_DATE_FORMATS = [
    "%Y-%m-%d",  # 2026-01-15
    "%m/%d/%Y",  # 01/15/2026
    "%m-%d-%Y",  # 01-15-2026
    "%Y/%m/%d",  # 2026/01/15
    "%m/%d/%y",  # 01/15/26
    "%B %d, %Y",  # January 15, 2026
    "%b %d, %Y",  # Jan 15, 2026
    "%B %d %Y",  # January 15 2026
    "%b %d %Y",  # Jan 15 2026
    "%d %B %Y",  # 15 January 2026
]

# Month-precision formats resolve to the first of the month
_MONTH_FORMATS = [
    "%Y-%m",  # 2026-01
    "%m/%Y",  # 01/2026
    "%B %Y",  # January 2026
    "%b %Y",  # Jan 2026
]

_ISO_PREFIX_RE = re.compile(r"^(\d{4}-\d{2}-\d{2})T")


def parse_report_date(value: str | date | None) -> date | None:
    """Try multiple date formats to parse a report date."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    text = str(value).strip().rstrip(".")
    if not text:
        return None
    m = _ISO_PREFIX_RE.match(text)
    if m:
        text = m.group(1)
    text = re.sub(r"\s+", " ", text)

    for fmt in _DATE_FORMATS + _MONTH_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return None


def normalize_report_date(value: str | None) -> str | None:
    """ISO form of a parseable date; the stripped raw text otherwise."""
    if value is None:
        return None
    parsed = parse_report_date(value)
    if parsed is not None:
        return parsed.isoformat()
    text = str(value).strip()
    return text or None


def is_newer(incoming: str | None, existing: str | None) -> bool:
    """True only when ``incoming`` parses and is strictly after ``existing``.

    An existing record without a parseable date is considered older than
    any dated one.
    """
    new = parse_report_date(incoming)
    if new is None:
        return False
    old = parse_report_date(existing)
    if old is None:
        return True
    return new > old


def report_age_days(value: str | date | None, reference_date: date | None = None) -> int | None:
    """Days between the report date and the reference date (never negative)."""
    parsed = parse_report_date(value)
    if parsed is None:
        if value:
            logger.warning("Could not parse report date '%s'", value)
        return None
    ref = reference_date or date.today()
    return max((ref - parsed).days, 0)
