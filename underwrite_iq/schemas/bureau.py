# This project was developed with assistance from AI tools.
"""Canonical per-bureau credit data.

Every LLM or regex extraction is normalized into these models before any
downstream stage sees it. Wire names (``reportDate``, ``sourceType`` ...) are
pydantic aliases; attributes stay snake_case.
"""

import enum
import re
from datetime import date

from pydantic import BaseModel, ConfigDict, Field


class Bureau(str, enum.Enum):
    EXPERIAN = "experian"
    EQUIFAX = "equifax"
    TRANSUNION = "transunion"


# Tie-break and slot order
BUREAU_ORDER: tuple[str, ...] = ("experian", "equifax", "transunion")

BUREAU_ABBREV: dict[str, str] = {
    "experian": "ex",
    "equifax": "eq",
    "transunion": "tu",
}

BUREAU_LABELS: dict[str, str] = {
    "experian": "Experian",
    "equifax": "Equifax",
    "transunion": "TransUnion",
}


class SourceType(str, enum.Enum):
    SINGLE_BUREAU = "single_bureau"
    TRI_MERGE = "tri_merge"
    ANNUAL_DISCLOSURE = "annual_disclosure"


TRADELINE_CATEGORIES = ("revolving", "installment", "auto", "mortgage", "other")
INSTALLMENT_CATEGORIES = ("installment", "auto", "mortgage")

SEASONED_MONTHS = 24

_DEROG_TERMS = ("chargeoff", "charge-off", "charge off", "collection", "derog",
                "repossession", "foreclosure")
_LATE_DAYS_RE = re.compile(r"\b(\d{2,3})\s*-?\s*days?\b")
_YEAR_MONTH_RE = re.compile(r"^(\d{4})-(\d{2})")


def months_since(value: str | None, today: date | None = None) -> int | None:
    """Whole months between a ``YYYY-MM[-DD]`` string and today."""
    if not value or not isinstance(value, str):
        return None
    m = _YEAR_MONTH_RE.match(value.strip())
    if not m:
        return None
    year, month = int(m.group(1)), int(m.group(2))
    if not 1 <= month <= 12:
        return None
    ref = today or date.today()
    return (ref.year - year) * 12 + (ref.month - month)


def is_derogatory_status(status: str | None) -> bool:
    """Charge-off, collection, derogatory, repossession, foreclosure, or 30+ days late."""
    s = (status or "").lower()
    if any(term in s for term in _DEROG_TERMS):
        return True
    if "late" in s:
        days = [int(d) for d in _LATE_DAYS_RE.findall(s)]
        return any(d >= 30 for d in days)
    return False


class Tradeline(BaseModel):
    """One account line on a bureau report."""

    creditor: str | None = None
    type: str = "other"
    status: str = ""
    balance: int | None = None
    limit: int | None = None
    opened: str | None = None
    closed: str | None = None
    is_au: bool = False

    @property
    def utilization(self) -> float | None:
        if self.limit and self.limit > 0 and self.balance is not None:
            return self.balance / self.limit
        return None

    @property
    def derogatory(self) -> bool:
        return is_derogatory_status(self.status)

    def seasoned(self, today: date | None = None) -> bool:
        age = months_since(self.opened, today)
        return age is not None and age >= SEASONED_MONTHS


class ScoreDetails(BaseModel):
    value: int | None = None
    available: bool = False


class BureauRecord(BaseModel):
    """Per-bureau aggregate after normalization."""

    model_config = ConfigDict(populate_by_name=True)

    bureau: Bureau
    available: bool = False
    score: int | None = None
    utilization_pct: int | None = None
    inquiries: int | None = None
    negatives: int | None = None
    late_payment_events: int | None = None
    names: list[str] = Field(default_factory=list)
    addresses: list[str] = Field(default_factory=list)
    employers: list[str] = Field(default_factory=list)
    tradelines: list[Tradeline] = Field(default_factory=list)
    report_date: str | None = Field(default=None, alias="reportDate")
    source_type: SourceType = Field(default=SourceType.SINGLE_BUREAU, alias="sourceType")
    derived_from_merged: bool = Field(default=False, alias="derivedFromMerged")
    merged_document_id: str | None = Field(default=None, alias="mergedDocumentId")
    parsing_warnings: list[str] = Field(default_factory=list, alias="parsingWarnings")
    score_details: ScoreDetails = Field(default_factory=ScoreDetails, alias="scoreDetails")

    @classmethod
    def unavailable(cls, bureau: Bureau | str) -> "BureauRecord":
        """Record for a bureau the report does not contain."""
        return cls(bureau=Bureau(bureau), available=False)

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")


class SlotRejection(BaseModel):
    bureau: Bureau
    reason: str
    filename: str | None = None


class SlotResult(BaseModel):
    """Outcome of merging incoming records into the bureau slots."""

    bureaus: dict[str, BureauRecord] = Field(default_factory=dict)
    rejected: list[SlotRejection] = Field(default_factory=list)
    # Filename that supplied each slot
    sources: dict[str, str | None] = Field(default_factory=dict)
