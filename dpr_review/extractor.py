import io
import logging
from typing import NamedTuple, Optional

import fitz  # PyMuPDF
from docx import Document

logger = logging.getLogger(__name__)

PDF_MIME = "application/pdf"
DOC_MIME = "application/msword"
DOCX_MIME = (
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
)
ALLOWED_TYPES = (PDF_MIME, DOCX_MIME, DOC_MIME)

FAILED_PLACEHOLDER = (
    "Sample DPR content for {title}. This is placeholder text used when "
    "document parsing fails. The project aims to develop infrastructure in "
    "the North Eastern Region."
)
EMPTY_PLACEHOLDER = (
    "Sample DPR content for {title}. Executive Summary: This project proposal "
    "outlines the development plan. Budget Estimate: 50 Crores. "
    "Timeline: 24 months."
)


class ExtractionError(Exception):
    """Raised when a document cannot be converted to text."""


class ExtractedText(NamedTuple):
    text: str
    # True when ``text`` is boilerplate rather than the document's content
    placeholder: bool = False
    extraction_failed: bool = False
    # Newly extracted text the caller should cache on the record
    fresh: bool = False


def _extract_pdf(data: bytes) -> str:
    with fitz.open(stream=data, filetype="pdf") as pdf:
        return "\n".join(page.get_text("text") for page in pdf)


def _extract_docx(data: bytes) -> str:
    doc = Document(io.BytesIO(data))
    return "\n".join(p.text for p in doc.paragraphs)


def extract_text(data: bytes, content_type: str) -> str:
    """Convert a PDF or Word document to plain text.

    Unknown content types yield an empty string. Any failure inside the
    parsing libraries is re-raised as ``ExtractionError``.
    """
    content_type = (content_type or "").lower()
    try:
        if "pdf" in content_type:
            return _extract_pdf(data)
        if "word" in content_type or "document" in content_type:
            return _extract_docx(data)
    except Exception as exc:
        raise ExtractionError(f"Could not extract text: {exc}") from exc
    return ""


def text_for_assessment(
    title: str,
    stored_text: Optional[str],
    data: Optional[bytes],
    content_type: str,
) -> ExtractedText:
    """Resolve the text a DPR should be scored on.

    Previously extracted text wins. Otherwise the document is extracted; a
    failed extraction, or one that yields nothing, is replaced by fixed
    placeholder text so that scoring can still proceed. The returned flags
    record that the score was not computed from the real document.
    """
    if stored_text:
        return ExtractedText(stored_text)

    text = ""
    failed = False
    fresh = False
    if data:
        try:
            text = extract_text(data, content_type)
            fresh = True
        except ExtractionError as exc:
            logger.warning("Text extraction failed for %r: %s", title, exc)
            text = FAILED_PLACEHOLDER.format(title=title)
            failed = True

    if not text:
        return ExtractedText(EMPTY_PLACEHOLDER.format(title=title), placeholder=True)

    logger.info("Resolved %d chars of text for %r", len(text), title)
    return ExtractedText(
        text, placeholder=failed, extraction_failed=failed, fresh=fresh
    )
