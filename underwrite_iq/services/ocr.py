# This project was developed with assistance from AI tools.
"""Tesseract OCR over pymupdf-rendered pages.

Used when a PDF has no usable text layer. Rendering and recognition are
blocking, so callers run ``ocr_pdf`` in the default executor.
"""

import io
import logging

import pytesseract
from PIL import Image

from .pdf_text import render_pages

logger = logging.getLogger(__name__)

# OCR output shorter than this is treated as a failed read
MIN_OCR_CHARS = 1000


def ocr_pdf(file_data: bytes, max_pages: int | None = None) -> str:
    """Return the recognised text of every page, or "" on failure."""
    pages = render_pages(file_data)
    if max_pages is not None:
        pages = pages[:max_pages]
    if not pages:
        return ""

    parts: list[str] = []
    try:
        for i, png in enumerate(pages, 1):
            with Image.open(io.BytesIO(png)) as image:
                parts.append(pytesseract.image_to_string(image))
            logger.debug("OCR page %d/%d done", i, len(pages))
    except (pytesseract.TesseractError, pytesseract.TesseractNotFoundError, OSError):
        logger.exception("OCR failed")
        return ""

    text = "\n".join(parts).strip()
    logger.info("OCR recognised %d chars from %d pages", len(text), len(pages))
    return text


def ocr_usable(text: str | None) -> bool:
    return bool(text) and len(text) >= MIN_OCR_CHARS
