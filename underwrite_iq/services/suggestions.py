# This project was developed with assistance from AI tools.
"""Action plan text derived from the profile and the underwriting result."""

import logging

from ..schemas.bureau import BUREAU_ORDER, BureauRecord
from ..schemas.switchboard import SuggestionItem, Suggestions
from ..schemas.underwrite import UnderwriteResult

logger = logging.getLogger(__name__)

NEAR_APPROVAL_SCORE = 680
_UTIL_TARGET = 30


def _dedupe(items: list[str]) -> list[str]:
    return list(dict.fromkeys(items))


def _au_actions(bureaus: dict[str, BureauRecord]) -> list[str]:
    lines: list[str] = []
    for key in BUREAU_ORDER:
        record = bureaus.get(key)
        if record is None or not record.available:
            continue
        for tl in record.tradelines:
            if not tl.is_au:
                continue
            creditor = tl.creditor or "Unknown creditor"
            util = tl.utilization
            if util is not None and util * 100 > _UTIL_TARGET:
                lines.append(
                    f'Authorized user account "{creditor}" is about {util * 100:.1f}% utilized. '
                    "Removing it improves your utilization instantly."
                )
            if tl.derogatory:
                lines.append(
                    f'Authorized user account "{creditor}" is reporting negative. '
                    "Ask the primary cardholder to remove you from this card."
                )
    return lines


def build_suggestions(bureaus: dict[str, BureauRecord], uw: UnderwriteResult) -> Suggestions:
    """Summaries plus the ordered, de-duplicated action list."""
    m = uw.metrics
    util = m.utilization_pct
    negatives = m.negative_accounts
    inquiries = m.inquiries.total
    lates = m.late_payment_events

    actions: list[str] = []
    if util is None:
        actions.append(
            "We couldn't accurately read utilization from this report, but the goal is simple: "
            "keep each card between 3-10% before you apply for new funding."
        )
    elif util > _UTIL_TARGET:
        actions.append(
            f"Your utilization is about {util}%. To maximize approvals, bring each card down "
            "to the 3-10% range before applying."
        )
    else:
        actions.append(
            "Your utilization is in a solid range. Keeping each card between 3-10% will help "
            "you qualify for higher limits."
        )

    if negatives > 0:
        actions.append(
            f"You have {negatives} negative accounts. Removing or repairing these increases "
            "approval odds."
        )
    if inquiries > 0:
        actions.append(
            f"You have {inquiries} total inquiries. Reducing inquiries before applying boosts "
            "approval chances."
        )
    if lates > 0:
        actions.append(
            f"You have {lates} late payments reported. Goodwill letters or disputes on "
            "inaccurate lates can lift your score."
        )
    if uw.optimization.needs_file_buildout:
        actions.append(
            "Your file is thin. Adding 1-2 primary accounts (or strategic authorized users) "
            "will boost credibility."
        )
    if util is not None and negatives == 0 and inquiries == 0 and util <= _UTIL_TARGET:
        actions.append(
            "You are positioned for a credit limit increase. Consider requesting limit "
            "increases once each card sits in the 3-10% range."
        )

    primary = uw.primary_bureau.upper()
    if uw.fundable:
        web_summary = (
            f"Your strongest bureau is {primary}. "
            "You're fundable right now. Here's how to maximize your approvals:"
        )
    else:
        web_summary = (
            f"Your strongest bureau is {primary}. "
            "You're close. Here's what to fix next for maximum funding:"
        )

    util_text = f"{util}%" if util is not None else "unknown"
    email_summary = "\n".join(
        [
            f"Your strongest funding bureau is {primary}.",
            "",
            "To maximize the amount of credit you can receive, focus on the following:",
            "",
            f"Score: {m.score if m.score is not None else 'unknown'}",
            f"Utilization: {util_text}",
            f"Negatives: {negatives}",
            f"Inquiries: {inquiries}",
            f"Late Payments: {lates}",
            "",
            "We recommend cleaning up utilization, inquiries, and any negative items before "
            "requesting new credit or applying for funding.",
        ]
    )

    return Suggestions(
        web_summary=web_summary,
        email_summary=email_summary,
        actions=_dedupe(actions),
        au_actions=_dedupe(_au_actions(bureaus)),
    )


def empty_suggestions() -> Suggestions:
    """Used when suggestion building fails."""
    return Suggestions(
        web_summary="We received your report and are preparing your plan.",
        email_summary="We couldn't build your full action plan automatically. "
        "A specialist will follow up with next steps.",
    )


def build_cards(uw: UnderwriteResult) -> list[str]:
    """Front-end card tags for the result page."""
    o = uw.optimization
    cards = []
    if o.needs_util_reduction:
        cards.append("util_high")
    if o.needs_new_primary_revolving:
        cards.append("needs_revolving")
    if o.needs_inquiry_cleanup:
        cards.append("inquiries")
    if o.needs_negative_cleanup:
        cards.append("negatives")
    if o.needs_file_buildout:
        cards.append("file_buildout")
    if not uw.fundable and (uw.metrics.score or 0) >= NEAR_APPROVAL_SCORE:
        cards.append("near_approval")
    return cards


def format_suggestions(s: Suggestions) -> list[SuggestionItem]:
    """Numbered ``{title, description}`` items for the redirect payload."""
    return [
        SuggestionItem(title=f"Action {i}", description=text)
        for i, text in enumerate(s.actions + s.au_actions, start=1)
    ]
