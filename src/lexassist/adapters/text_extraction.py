"""Text extraction from uploaded payloads.

PDFs are read with pypdf, text-like payloads are decoded as UTF-8, and
anything else (images, Office containers) is described by a placeholder so
the generators always receive some text to work from.
"""

import io

from pypdf import PdfReader

from lexassist.observability import get_logger

logger = get_logger(__name__)

PDF_MIME_TYPE = "application/pdf"
TEXT_MIME_PREFIXES = ("text/", "application/json", "application/xml")


def _extract_pdf(raw_bytes: bytes) -> str:
    reader = PdfReader(io.BytesIO(raw_bytes))
    pages = [page.extract_text() or "" for page in reader.pages]
    return "\n\n".join(page.strip() for page in pages if page.strip())


def _decode_text(raw_bytes: bytes) -> str | None:
    try:
        return raw_bytes.decode("utf-8")
    except UnicodeDecodeError:
        return None


def placeholder_text(filename: str, content_type: str | None, category: str, size: int) -> str:
    """Describe a payload whose text could not be extracted."""
    return (
        f"Document '{filename}' ({content_type or 'unknown type'}, {size} bytes) was submitted "
        f"for {category} analysis. Its text content could not be extracted automatically; "
        "base the analysis on the document type and category."
    )


def extract_text(
    raw_bytes: bytes,
    content_type: str | None,
    filename: str,
    category: str,
) -> str:
    """Return the best available text for a payload.

    Args:
        raw_bytes: The uploaded file content.
        content_type: MIME type reported at upload.
        filename: Original filename, used for type sniffing and the placeholder.
        category: Analysis category, used in the placeholder.

    Returns:
        Extracted text, or a descriptive placeholder when nothing readable was found.
    """
    is_pdf = content_type == PDF_MIME_TYPE or filename.lower().endswith(".pdf")
    if is_pdf:
        try:
            text = _extract_pdf(raw_bytes)
        except Exception as exc:
            logger.warning("PDF text extraction failed", filename=filename, reason=str(exc))
            text = ""
        if text:
            return text
    elif content_type is None or content_type.startswith(TEXT_MIME_PREFIXES):
        text = _decode_text(raw_bytes)
        if text and text.strip():
            return text

    logger.info("Using placeholder text for document", filename=filename, content_type=content_type)
    return placeholder_text(filename, content_type, category, len(raw_bytes))
