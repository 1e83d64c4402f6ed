# This project was developed with assistance from AI tools.
"""pymupdf helpers shared by upload validation, OCR, and extraction."""

import logging

import fitz  # pymupdf

logger = logging.getLogger(__name__)

# Render scale for OCR (~144 dpi)
_OCR_ZOOM = 2.0


def extract_text_layer(file_data: bytes, max_pages: int | None = None) -> str | None:
    """Use pymupdf to extract text from all pages.

    Returns None if PDF is corrupted/unopenable.
    Returns empty string if no text layer (scanned doc).
    """
    try:
        pdf = fitz.open(stream=file_data, filetype="pdf")
        text_parts = []
        for i, page in enumerate(pdf):
            if max_pages is not None and i >= max_pages:
                break
            text_parts.append(page.get_text())
        pdf.close()
        return " ".join(text_parts).strip()
    except Exception:
        logger.exception("Failed to open PDF with pymupdf")
        return None


def render_pages(file_data: bytes, zoom: float = _OCR_ZOOM) -> list[bytes]:
    """Render PDF pages as PNG images via pymupdf get_pixmap()."""
    try:
        pdf = fitz.open(stream=file_data, filetype="pdf")
        images = []
        matrix = fitz.Matrix(zoom, zoom)
        for page in pdf:
            pix = page.get_pixmap(matrix=matrix)
            images.append(pix.tobytes("png"))
        pdf.close()
        return images
    except Exception:
        logger.exception("Failed to render PDF pages to images")
        return []
