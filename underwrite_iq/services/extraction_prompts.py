# This project was developed with assistance from AI tools.
"""Credit report extraction prompt templates.

Keeps prompt construction separate from the extraction service so prompts
can be reviewed and iterated on independently.
"""

import json

from ..schemas.bureau import BUREAU_ORDER, TRADELINE_CATEGORIES

TRADELINE_SCHEMA: dict[str, str] = {
    "creditor": "string | null",
    "type": " | ".join(f'"{c}"' for c in TRADELINE_CATEGORIES) + " | null",
    "status": "string | null",
    "balance": "number | null",
    "limit": "number | null",
    "opened": '"YYYY-MM" | "YYYY-MM-DD" | null',
    "closed": '"YYYY-MM" | "YYYY-MM-DD" | null',
    "is_au": "boolean | null",
}

BUREAU_SCHEMA: dict[str, object] = {
    "score": "number | null",
    "utilization_pct": "number | null",
    "inquiries": "number | null",
    "negatives": "number | null",
    "late_payment_events": "number | null",
    "report_date": '"YYYY-MM-DD" | null',
    "names": "string[]",
    "addresses": "string[]",
    "employers": "string[]",
    "tradelines": [TRADELINE_SCHEMA],
}

EXTRACTION_RULES = [
    "Match each tradeline to the correct bureau.",
    "If a bureau is missing from the report, set that bureau to null.",
    "If unsure about a value, use null.",
    "Do NOT invent or guess creditor names.",
    "report_date is the date the bureau generated the report.",
    "Do NOT include any explanation, commentary, or markdown.",
]


def _output_schema() -> str:
    schema = {"bureaus": {key: BUREAU_SCHEMA for key in BUREAU_ORDER}}
    return json.dumps(schema, indent=2)


def _system_content(source: str) -> str:
    rules = "\n".join(f"- {r}" for r in EXTRACTION_RULES)
    return (
        "You are UnderwriteIQ, a credit report extraction assistant. "
        f"Extract data PER BUREAU from the provided consumer credit report {source}. "
        "Respond ONLY with compact valid JSON matching this schema:\n"
        f"{_output_schema()}\n\n"
        f"Rules:\n{rules}"
    )


def build_text_extraction_prompt(text: str) -> list[dict]:
    """Build messages for text-based extraction of one report chunk."""
    return [
        {"role": "system", "content": _system_content("text")},
        {"role": "user", "content": f"Extract data from this credit report:\n\n{text}"},
    ]


def build_vision_extraction_prompt(filename: str, pdf_b64: str) -> list[dict]:
    """Build messages for PDF-as-file extraction.

    The document travels as a base64 ``file`` content part.
    """
    return [
        {"role": "system", "content": _system_content("document")},
        {
            "role": "user",
            "content": [
                {
                    "type": "file",
                    "file": {
                        "filename": filename,
                        "file_data": f"data:application/pdf;base64,{pdf_b64}",
                    },
                },
                {"type": "text", "text": "Extract data from this credit report."},
            ],
        },
    ]


DOCUMENT_GATE_SYSTEM_PROMPT = """\
You are a strict classifier for a credit report analyzer.

Return STRICT JSON ONLY:
{"likely_credit_report": true | false, "reason": "short explanation", "suspected_bureaus": []}

Reject: bank statements, screenshots, IDs, W2s, tax forms, letters.
Accept: Experian, Equifax, TransUnion, or tri-merge credit reports."""


def build_document_gate_prompt(filename: str, pdf_b64_head: str) -> list[dict]:
    """Build messages for the yes/no credit report classifier."""
    return [
        {"role": "system", "content": DOCUMENT_GATE_SYSTEM_PROMPT},
        {
            "role": "user",
            "content": [
                {
                    "type": "file",
                    "file": {
                        "filename": filename,
                        "file_data": f"data:application/pdf;base64,{pdf_b64_head}",
                    },
                },
                {"type": "text", "text": "Classify this PDF upload."},
            ],
        },
    ]
