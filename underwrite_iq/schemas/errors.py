# This project was developed with assistance from AI tools.
"""Pipeline error kinds and the user-facing text for each."""

import enum

from pydantic import BaseModel


class ErrorKind(str, enum.Enum):
    # Upload validation
    NO_FILES = "no_files"
    FILE_TOO_SMALL = "file_too_small"
    FILE_TOO_LARGE = "file_too_large"
    BAD_TYPE = "bad_type"
    TOO_MANY_FILES = "too_many_files"
    DUPLICATE_FILE = "duplicate_file"
    TRI_MERGE_WITH_MULTI_UPLOAD = "tri_merge_with_multi_upload"
    INVALID_INPUT = "invalid_input"
    # Extraction
    EXTRACTION_UNCONFIGURED = "extraction_unconfigured"
    LLM_TRANSPORT = "llm_transport"
    LLM_REFUSAL = "llm_refusal"
    JSON_PARSE = "json_parse"
    NO_OUTPUT = "no_output"
    NOT_CREDIT_REPORT = "not_credit_report"
    # Merge
    NO_BUREAUS = "no_bureaus"
    STALE_REPORT = "stale_report"
    MAX_BUREAUS_REACHED = "max_bureaus_reached"
    TRI_MERGE_DETECTION_FAILED = "tri_merge_detection_failed"
    # Identity
    NAME_MISMATCH = "name_mismatch"
    REPORT_TOO_OLD = "report_too_old"
    # Decision
    UNDERWRITE_CRASH = "underwrite_crash"
    SUGGESTION_CRASH = "suggestion_crash"
    # Collaborators
    STORAGE_UNCONFIGURED = "storage_unconfigured"
    UPLOAD_FAILED = "upload_failed"
    CACHE_UNAVAILABLE = "cache_unavailable"
    CRM_UNCONFIGURED = "crm_unconfigured"
    CRM_UNREACHABLE = "crm_unreachable"
    REQUEST_TIMEOUT = "request_timeout"


USER_MESSAGES: dict[ErrorKind, str] = {
    ErrorKind.NO_FILES: "Please upload at least one credit report PDF.",
    ErrorKind.FILE_TOO_SMALL: (
        "This file is too small to be a full credit report. "
        "Please upload the complete PDF from the bureau."
    ),
    ErrorKind.FILE_TOO_LARGE: "This file is too large. Please upload a PDF under 20 MB.",
    ErrorKind.BAD_TYPE: "Only PDF credit reports are supported.",
    ErrorKind.TOO_MANY_FILES: "You can upload at most 3 credit reports at a time.",
    ErrorKind.DUPLICATE_FILE: "The same report was uploaded more than once.",
    ErrorKind.TRI_MERGE_WITH_MULTI_UPLOAD: (
        "This looks like a 3-bureau report. Please upload it on its own."
    ),
    ErrorKind.INVALID_INPUT: "Some of the submitted information is invalid.",
    ErrorKind.EXTRACTION_UNCONFIGURED: "Report analysis is temporarily unavailable.",
    ErrorKind.LLM_TRANSPORT: "We couldn't reach our analysis service. Please try again shortly.",
    ErrorKind.LLM_REFUSAL: "We couldn't analyze this report. Please try a different copy.",
    ErrorKind.JSON_PARSE: "We couldn't read this report. Please try a different copy.",
    ErrorKind.NO_OUTPUT: "We couldn't find credit data in this report.",
    ErrorKind.NOT_CREDIT_REPORT: (
        "We couldn't verify this document as a credit report. Please upload a PDF credit "
        "report from Experian, TransUnion, or Equifax."
    ),
    ErrorKind.NO_BUREAUS: "We couldn't find any bureau data in the uploaded reports.",
    ErrorKind.NAME_MISMATCH: "The name on the report doesn't match the name you entered.",
    ErrorKind.REPORT_TOO_OLD: "This report is more than 30 days old. Please upload a recent copy.",
    ErrorKind.REQUEST_TIMEOUT: "Analysis took too long. Please try again.",
}

GENERIC_MESSAGE = "Something went wrong while analyzing your report. Please try again."


def user_message(kind: ErrorKind | str | None) -> str:
    """User-safe text for an error kind."""
    try:
        return USER_MESSAGES.get(ErrorKind(kind), GENERIC_MESSAGE)
    except ValueError:
        return GENERIC_MESSAGE


class FailureResponse(BaseModel):
    """Body returned (HTTP 200) when a pipeline run ends in FAILED."""

    ok: bool = False
    reason: ErrorKind
    msg: str
    stage: str | None = None
    filename: str | None = None
