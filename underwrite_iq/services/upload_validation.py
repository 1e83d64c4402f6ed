# This project was developed with assistance from AI tools.
"""Structural checks on uploaded reports before any model call.

Rejects anything that cannot be a complete credit report PDF and catches
duplicate uploads and a tri-merge mixed in with other files.
"""

import hashlib
import logging
import os

from pydantic import BaseModel, Field

from ..schemas.errors import ErrorKind, user_message
from .ingestion import mentions_all_bureaus, normalize_whitespace
from .pdf_text import extract_text_layer

logger = logging.getLogger(__name__)

MIN_PDF_BYTES = 40 * 1024
MAX_PDF_BYTES = 20 * 1024 * 1024
MAX_FILES = 3

ALLOWED_CONTENT_TYPES = {
    "application/pdf",
    "application/octet-stream",
}

_PDF_MAGIC = b"%PDF-"

# Enough pages to see the bureau headers of a tri-merge
_SNIFF_PAGES = 5


class UploadCandidate(BaseModel):
    filename: str
    content_type: str | None = None
    data: bytes

    @property
    def safe_name(self) -> str:
        return os.path.basename(self.filename or "") or "report.pdf"


class UploadValidation(BaseModel):
    ok: bool
    error: ErrorKind | None = None
    filename: str | None = None
    msg: str | None = None
    digests: list[str] = Field(default_factory=list)


def _fail(kind: ErrorKind, filename: str | None = None) -> UploadValidation:
    return UploadValidation(ok=False, error=kind, filename=filename, msg=user_message(kind))


def sha256_hex(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def looks_like_tri_merge(data: bytes) -> bool:
    """True when the PDF's text layer names all three bureaus."""
    text = extract_text_layer(data, max_pages=_SNIFF_PAGES)
    if not text:
        return False
    return mentions_all_bureaus(normalize_whitespace(text))


def validate_uploads(files: list[UploadCandidate]) -> UploadValidation:
    """Run the pre-parse rules in order; the first failure wins."""
    if not files:
        return _fail(ErrorKind.NO_FILES)
    if len(files) > MAX_FILES:
        return _fail(ErrorKind.TOO_MANY_FILES)

    for f in files:
        content_type = (f.content_type or "").split(";")[0].strip().lower()
        if content_type not in ALLOWED_CONTENT_TYPES or not f.data.startswith(_PDF_MAGIC):
            logger.info("Rejected %s: not a PDF (content_type=%s)", f.safe_name, content_type)
            return _fail(ErrorKind.BAD_TYPE, f.safe_name)
        if len(f.data) < MIN_PDF_BYTES:
            logger.info("Rejected %s: %d bytes is below minimum", f.safe_name, len(f.data))
            return _fail(ErrorKind.FILE_TOO_SMALL, f.safe_name)
        if len(f.data) > MAX_PDF_BYTES:
            logger.info("Rejected %s: %d bytes is above maximum", f.safe_name, len(f.data))
            return _fail(ErrorKind.FILE_TOO_LARGE, f.safe_name)

    digests: list[str] = []
    for f in files:
        digest = sha256_hex(f.data)
        if digest in digests:
            logger.info("Rejected %s: duplicate upload", f.safe_name)
            return _fail(ErrorKind.DUPLICATE_FILE, f.safe_name)
        digests.append(digest)

    if len(files) > 1:
        for f in files:
            if looks_like_tri_merge(f.data):
                logger.info("Rejected %s: tri-merge in a multi-file upload", f.safe_name)
                return _fail(ErrorKind.TRI_MERGE_WITH_MULTI_UPLOAD, f.safe_name)

    return UploadValidation(ok=True, digests=digests)
