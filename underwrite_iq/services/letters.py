# This project was developed with assistance from AI tools.
"""Dispute and optimization letter PDFs.

The repair path gets three rounds of account disputes plus a personal-info
correction letter per bureau (12 letters); the fundable path gets an inquiry
removal letter plus a personal-info letter per bureau (6 letters).
Letters are rendered with pymupdf on US Letter pages.
"""

import logging
import textwrap
from datetime import date

import fitz  # pymupdf
from pydantic import BaseModel, Field

from ..schemas.bureau import BUREAU_ABBREV, BUREAU_LABELS, BUREAU_ORDER, BureauRecord, Tradeline
from ..schemas.switchboard import LetterPath

logger = logging.getLogger(__name__)

DISPUTE_ROUNDS = (1, 2, 3)

BUREAU_ADDRESSES: dict[str, tuple[str, ...]] = {
    "experian": ("P.O. Box 4500", "Allen, TX 75013"),
    "equifax": ("P.O. Box 740256", "Atlanta, GA 30374"),
    "transunion": ("P.O. Box 2000", "Chester, PA 19016"),
}

_PAGE_WIDTH = 612
_PAGE_HEIGHT = 792
_MARGIN = 50
_LINE_HEIGHT = 14
_FONT_SIZE = 11
_WRAP_CHARS = 90


class Recipient(BaseModel):
    """The consumer the letters are written for."""

    name: str = "[CONSUMER NAME]"
    address: str = "[CONSUMER ADDRESS]"


class Letter(BaseModel):
    filename: str
    bureau: str
    kind: str
    data: bytes = Field(repr=False)


# ---------------------------------------------------------------------------
# Filename taxonomy
# ---------------------------------------------------------------------------


def letter_filenames(path: LetterPath | str) -> list[str]:
    """Every filename the given path produces, in generation order."""
    path = LetterPath(path)
    names: list[str] = []
    for key in BUREAU_ORDER:
        prefix = BUREAU_ABBREV[key]
        if path == LetterPath.REPAIR:
            names.extend(f"{prefix}_round{r}.pdf" for r in DISPUTE_ROUNDS)
        else:
            names.append(f"inquiry_{prefix}.pdf")
    names.extend(f"personal_info_{BUREAU_ABBREV[key]}.pdf" for key in BUREAU_ORDER)
    return names


def disputable_accounts(record: BureauRecord | None) -> list[Tradeline]:
    if record is None or not record.available:
        return []
    return [tl for tl in record.tradelines if tl.derogatory]


def accounts_for_round(accounts: list[Tradeline], round_no: int) -> list[Tradeline]:
    """Round 1 gets accounts 0, 3, 6...; round 2 gets 1, 4, 7...; and so on."""
    return [tl for i, tl in enumerate(accounts) if i % len(DISPUTE_ROUNDS) == round_no - 1]


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------


def _render(lines: list[str]) -> bytes:
    doc = fitz.open()
    page = doc.new_page(width=_PAGE_WIDTH, height=_PAGE_HEIGHT)
    y = _MARGIN + _LINE_HEIGHT
    for raw in lines:
        wrapped = textwrap.wrap(raw, _WRAP_CHARS) or [""]
        for line in wrapped:
            if y > _PAGE_HEIGHT - _MARGIN:
                page = doc.new_page(width=_PAGE_WIDTH, height=_PAGE_HEIGHT)
                y = _MARGIN + _LINE_HEIGHT
            if line:
                page.insert_text((_MARGIN, y), line, fontsize=_FONT_SIZE, fontname="helv")
            y += _LINE_HEIGHT
    data = doc.tobytes()
    doc.close()
    return data


def _header(bureau: str, recipient: Recipient, subject: str, today: date) -> list[str]:
    return [
        today.strftime("%B %d, %Y"),
        "",
        recipient.name,
        recipient.address,
        "",
        BUREAU_LABELS[bureau],
        *BUREAU_ADDRESSES[bureau],
        "",
        f"Re: {subject}",
        "",
        "To Whom It May Concern:",
        "",
    ]


def _format_account(tl: Tradeline) -> str:
    parts = [tl.creditor or "Unknown creditor"]
    if tl.status:
        parts.append(f"status: {tl.status}")
    if tl.balance is not None:
        parts.append(f"balance: ${tl.balance:,}")
    return "- " + ", ".join(parts)


def dispute_letter(
    bureau: str,
    recipient: Recipient,
    round_no: int,
    accounts: list[Tradeline],
    today: date,
) -> list[str]:
    listed = [_format_account(tl) for tl in accounts] or ["[ACCOUNTS TO BE DISPUTED]"]
    return [
        *_header(bureau, recipient, f"Dispute of Inaccurate Information - Round {round_no}", today),
        "I am writing to dispute inaccurate information appearing on my credit report. Under "
        "the Fair Credit Reporting Act (FCRA), I have the right to dispute incomplete or "
        "inaccurate information.",
        "",
        "The following account(s) contain inaccurate information and I am requesting "
        "investigation and correction:",
        "",
        *listed,
        "",
        "Please investigate these items and remove or correct any information that cannot be "
        "verified as accurate and complete within 30 days as required by the FCRA.",
        "",
        "Please send me written notification of the results of your investigation.",
        "",
        "Sincerely,",
        "",
        recipient.name,
    ]


def inquiry_letter(
    bureau: str,
    recipient: Recipient,
    inquiry_count: int,
    today: date,
) -> list[str]:
    count_line = (
        f"Your file currently shows {inquiry_count} inquiries."
        if inquiry_count
        else "Please review all hard inquiries currently on my file."
    )
    return [
        *_header(bureau, recipient, "Inquiry Removal Request", today),
        "I am requesting the removal of hard inquiries that I did not authorize. "
        + count_line,
        "",
        "Under the FCRA, a creditor must have a permissible purpose to access my report. "
        "Please verify the permissible purpose of each inquiry and remove any that cannot be "
        "verified.",
        "",
        "Sincerely,",
        "",
        recipient.name,
    ]


def personal_info_letter(
    bureau: str,
    recipient: Recipient,
    record: BureauRecord | None,
    today: date,
) -> list[str]:
    names = record.names if record and record.available else []
    addresses = record.addresses if record and record.available else []
    employers = record.employers if record and record.available else []
    body = [
        *_header(bureau, recipient, "Personal Information Correction Request", today),
        "Please update my personal information so that only my current, accurate details are "
        "reported. My correct name and address are shown above.",
        "",
        "Please remove the following variations that do not belong to me or are outdated:",
        "",
    ]
    variations = (
        [f"- Name: {n}" for n in names if n != recipient.name]
        + [f"- Address: {a}" for a in addresses if a != recipient.address]
        + [f"- Employer: {e}" for e in employers]
    )
    body.extend(variations or ["[VARIATIONS TO BE REMOVED]"])
    body.extend(["", "Sincerely,", "", recipient.name])
    return body


def generate_letters(
    path: LetterPath | str,
    bureaus: dict[str, BureauRecord],
    recipient: Recipient,
    today: date | None = None,
) -> list[Letter]:
    """Render the letter set for the path (12 for repair, 6 for fundable)."""
    path = LetterPath(path)
    today = today or date.today()
    letters: list[Letter] = []

    for key in BUREAU_ORDER:
        prefix = BUREAU_ABBREV[key]
        record = bureaus.get(key)
        if path == LetterPath.REPAIR:
            accounts = disputable_accounts(record)
            for r in DISPUTE_ROUNDS:
                lines = dispute_letter(key, recipient, r, accounts_for_round(accounts, r), today)
                letters.append(
                    Letter(filename=f"{prefix}_round{r}.pdf", bureau=key, kind="dispute",
                           data=_render(lines))
                )
        else:
            count = (record.inquiries or 0) if record and record.available else 0
            letters.append(
                Letter(filename=f"inquiry_{prefix}.pdf", bureau=key, kind="inquiry",
                       data=_render(inquiry_letter(key, recipient, count, today)))
            )

    for key in BUREAU_ORDER:
        letters.append(
            Letter(
                filename=f"personal_info_{BUREAU_ABBREV[key]}.pdf",
                bureau=key,
                kind="personal_info",
                data=_render(personal_info_letter(key, recipient, bureaus.get(key), today)),
            )
        )

    logger.info("Generated %d %s letters", len(letters), path.value)
    return letters
