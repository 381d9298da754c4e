import io
import logging

from pypdf import PdfReader

from app.utils.text_utils import normalize_text

logger = logging.getLogger(__name__)


def extract_excerpt(data: bytes, max_pages: int = 3, max_chars: int = 4000) -> str:
    """
    Text of the first ``max_pages`` pages of a PDF, whitespace-normalized and
    truncated to ``max_chars``. Returns "" when the PDF has no text layer or cannot be read.
    """
    try:
        reader = PdfReader(io.BytesIO(data))
        text_parts = []
        for i in range(min(max_pages, len(reader.pages))):
            text_parts.append(reader.pages[i].extract_text() or "")
    except Exception as e:
        logger.warning("PDF text extraction failed: %s", e)
        return ""

    return normalize_text(" ".join(text_parts))[:max_chars]


def count_pages(data: bytes) -> int:
    try:
        return len(PdfReader(io.BytesIO(data)).pages)
    except Exception as e:
        logger.warning("PDF page count failed: %s", e)
        return 0
