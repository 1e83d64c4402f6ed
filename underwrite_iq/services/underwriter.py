# This project was developed with assistance from AI tools.
"""Deterministic funding decision for a merged credit profile.

Pure functions, no I/O. Funding is estimated per bureau from the strongest
seasoned revolving and installment accounts, scaled by how many bureaus
qualify, and extended with a business multiplier based on business age.
Money stays in float dollars; rounding happens only at presentation.
"""

import logging
from datetime import date

from ..schemas.bureau import (
    BUREAU_ABBREV,
    BUREAU_LABELS,
    BUREAU_ORDER,
    INSTALLMENT_CATEGORIES,
    BureauRecord,
)
from ..schemas.underwrite import (
    BureauSummary,
    BusinessFunding,
    FundingTotals,
    InquiryCounts,
    Metrics,
    Optimization,
    PersonalFunding,
    UnderwriteResult,
)

logger = logging.getLogger(__name__)

FUNDABLE_MIN_SCORE = 700
FUNDABLE_MAX_UTIL = 30
CARD_STACK_MIN_LIMIT = 5000
CARD_STACK_MULTIPLIER = 5.5
LOAN_STACK_MIN_AMOUNT = 10000
LOAN_STACK_MULTIPLIER = 3.0
THIN_FILE_TRADELINES = 3
BANNER_FUNDING_FLOOR = 15000
SINGLE_BUREAU_SCALE = 1 / 3


def _is_fundable(score: int | None, util: int | None, negatives: int) -> bool:
    return (
        score is not None
        and score >= FUNDABLE_MIN_SCORE
        and (util is None or util <= FUNDABLE_MAX_UTIL)
        and negatives == 0
    )


def summarize_bureau(
    key: str,
    record: BureauRecord | None,
    today: date | None = None,
) -> BureauSummary:
    """Per-bureau funding decomposition."""
    if record is None or not record.available:
        return BureauSummary(bureau=key, label=BUREAU_LABELS[key], available=False)

    negatives = record.negatives or 0
    lates = record.late_payment_events or 0

    highest_revolving = 0.0
    highest_installment = 0.0
    revolving_count = 0
    installment_count = 0
    positive = 0

    for tl in record.tradelines:
        derog = tl.derogatory
        seasoned = tl.seasoned(today)
        status = tl.status.lower()
        if not derog:
            positive += 1

        if tl.type == "revolving":
            revolving_count += 1
            limit = tl.limit or 0
            if "open" in status and seasoned and limit > highest_revolving:
                highest_revolving = float(limit)

        if tl.type in INSTALLMENT_CATEGORIES:
            installment_count += 1
            amount = tl.limit or tl.balance or 0
            if amount > 0 and seasoned and not derog and amount > highest_installment:
                highest_installment = float(amount)

    can_card = revolving_count > 0 and highest_revolving >= CARD_STACK_MIN_LIMIT
    can_loan = (
        installment_count > 0 and highest_installment >= LOAN_STACK_MIN_AMOUNT and lates == 0
    )
    card_funding = highest_revolving * CARD_STACK_MULTIPLIER if can_card else 0.0
    loan_funding = highest_installment * LOAN_STACK_MULTIPLIER if can_loan else 0.0

    return BureauSummary(
        bureau=key,
        label=BUREAU_LABELS[key],
        available=True,
        score=record.score,
        utilization_pct=record.utilization_pct,
        negatives=negatives,
        late_payment_events=lates,
        inquiries=record.inquiries or 0,
        revolving_count=revolving_count,
        installment_count=installment_count,
        positive_tradelines=positive,
        highest_revolving_limit=highest_revolving,
        highest_installment_amount=highest_installment,
        has_any_revolving=revolving_count > 0,
        has_any_installment=installment_count > 0,
        thin_file=positive < THIN_FILE_TRADELINES,
        file_all_negative=positive == 0 and negatives > 0,
        can_card_stack=can_card,
        can_loan_stack=can_loan,
        can_dual_stack=can_card and can_loan,
        card_funding=card_funding,
        loan_funding=loan_funding,
        total_personal_funding=card_funding + loan_funding,
        fundable=_is_fundable(record.score, record.utilization_pct, negatives),
    )


def pick_primary(summaries: list[BureauSummary]) -> BureauSummary:
    """Highest score among available bureaus; earlier slot wins ties."""
    available = [s for s in summaries if s.available]
    if not available:
        return summaries[0]
    primary = available[0]
    for s in available[1:]:
        if (s.score or 0) > (primary.score or 0):
            primary = s
    return primary


def business_multiplier(age_months: float | None, primary_card_funding: float) -> float:
    if age_months is None or primary_card_funding <= 0:
        return 0.0
    if age_months < 12:
        return 0.5
    if age_months < 24:
        return 1.0
    return 2.0


def compute_underwrite(
    bureaus: dict[str, BureauRecord],
    business_age_months: float | None = None,
    today: date | None = None,
) -> UnderwriteResult:
    """Underwrite the merged profile."""
    summaries = [summarize_bureau(key, bureaus.get(key), today) for key in BUREAU_ORDER]
    per_bureau = {s.bureau: s for s in summaries}
    primary = pick_primary(summaries)

    inquiries = {BUREAU_ABBREV[s.bureau]: s.inquiries for s in summaries}
    total_inquiries = sum(inquiries.values())

    fundable_count = sum(1 for s in summaries if s.available and s.fundable)
    # A single qualifying bureau (or none) only supports a third of the stack
    scale = 1.0 if fundable_count >= 2 else SINGLE_BUREAU_SCALE

    card_funding = scale * sum(s.card_funding for s in summaries if s.available)
    loan_funding = scale * sum(s.loan_funding for s in summaries if s.available)
    personal_total = card_funding + loan_funding

    multiplier = business_multiplier(business_age_months, primary.card_funding)
    business_funding = multiplier * primary.card_funding

    banner = primary.card_funding or card_funding or BANNER_FUNDING_FLOOR

    needs_util_reduction = (
        primary.utilization_pct is not None and primary.utilization_pct > FUNDABLE_MAX_UTIL
    )
    optimization = Optimization(
        needs_util_reduction=needs_util_reduction,
        target_util_pct=FUNDABLE_MAX_UTIL if needs_util_reduction else None,
        needs_new_primary_revolving=(
            not primary.has_any_revolving
            or primary.highest_revolving_limit < CARD_STACK_MIN_LIMIT
        ),
        needs_inquiry_cleanup=total_inquiries > 0,
        needs_negative_cleanup=primary.negatives > 0,
        needs_file_buildout=primary.thin_file or primary.file_all_negative,
        thin_file=primary.thin_file,
        file_all_negative=primary.file_all_negative,
    )

    result = UnderwriteResult(
        fundable=_is_fundable(primary.score, primary.utilization_pct, primary.negatives),
        primary_bureau=primary.bureau,
        metrics=Metrics(
            score=primary.score,
            utilization_pct=primary.utilization_pct,
            negative_accounts=primary.negatives,
            late_payment_events=primary.late_payment_events,
            inquiries=InquiryCounts(**inquiries, total=total_inquiries),
        ),
        per_bureau=per_bureau,
        personal=PersonalFunding(
            highest_revolving_limit=primary.highest_revolving_limit,
            highest_installment_amount=primary.highest_installment_amount,
            can_card_stack=primary.can_card_stack,
            can_loan_stack=primary.can_loan_stack,
            can_dual_stack=primary.can_dual_stack,
            card_funding=card_funding,
            loan_funding=loan_funding,
            total_personal_funding=personal_total,
        ),
        business=BusinessFunding(
            business_age_months=business_age_months,
            can_business_fund=multiplier > 0,
            business_multiplier=multiplier,
            business_funding=business_funding,
        ),
        totals=FundingTotals(
            total_personal_funding=personal_total,
            total_business_funding=business_funding,
            total_combined_funding=personal_total + business_funding,
        ),
        optimization=optimization,
        banner_funding=banner,
    )
    logger.info(
        "Underwrite: primary=%s fundable=%s fundable_bureaus=%d combined=%.0f",
        result.primary_bureau,
        result.fundable,
        fundable_count,
        result.totals.total_combined_funding,
    )
    return result


def fallback_underwrite() -> UnderwriteResult:
    """Conservative result used when underwriting itself fails."""
    return UnderwriteResult(fallback=True)
