"""PDF page counting and page rendering for the viewer pane.

Pure logic — no FastAPI imports, no request/response objects.
Accepts a file path or a binary stream everywhere.
"""

import io
import logging

import PyPDF2
import pdfplumber

logger = logging.getLogger(__name__)


class PDFProcessingError(Exception):
    """Raised when a PDF cannot be opened or rendered."""


def count_pages(source) -> int:
    """Return the number of pages in a PDF.

    Strategy:
    1. Try PyPDF2 first (fast).
    2. If it fails to read the file, fall back to pdfplumber.

    Raises ``PDFProcessingError`` if neither can open it or it has no pages.
    """
    try:
        count = len(PyPDF2.PdfReader(_rewind(source)).pages)
    except Exception as exc:
        logger.debug("PyPDF2 could not read PDF, trying pdfplumber: %s", exc)
        try:
            with pdfplumber.open(_rewind(source)) as pdf:
                count = len(pdf.pages)
        except Exception as plumber_exc:
            raise PDFProcessingError(
                f"Corrupted or invalid PDF: {plumber_exc}"
            ) from plumber_exc

    if count == 0:
        raise PDFProcessingError("PDF has no pages")
    return count


def clamp_page(page: int, page_count: int) -> int:
    """Keep a cited page inside ``1..page_count``."""
    if page_count < 1:
        return 1
    return min(max(page, 1), page_count)


def render_page(source, page: int, resolution: int = 110):
    """Render one 1-indexed page to a PIL image.

    Out-of-range pages are clamped, so a stale citation still lands on a
    real page.
    """
    try:
        with pdfplumber.open(_rewind(source)) as pdf:
            if not pdf.pages:
                raise PDFProcessingError("PDF has no pages")
            index = clamp_page(page, len(pdf.pages)) - 1
            return pdf.pages[index].to_image(resolution=resolution).original
    except PDFProcessingError:
        raise
    except Exception as exc:
        raise PDFProcessingError(f"Failed to render page {page}: {exc}") from exc


def _rewind(source):
    if isinstance(source, (bytes, bytearray)):
        return io.BytesIO(source)
    if hasattr(source, "seek"):
        source.seek(0)
    return source
