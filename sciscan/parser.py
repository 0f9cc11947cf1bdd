"""PDF to text extraction for backends that cannot take a file part.

Only used with ``attachment_mode="text"``. The attachment is already in
memory, so both extractors read from a byte stream; nothing is cached on
disk.
"""

import logging
import threading
from io import BytesIO

from docling.datamodel.base_models import DocumentStream
from docling.document_converter import DocumentConverter
from pypdf import PdfReader

from sciscan.models import Attachment, AttachmentError

logger = logging.getLogger(__name__)

_DOCLING_LOCK = threading.Lock()


def extract_pdf_text(
    attachment: Attachment,
    max_chars: int = 200_000,
    extractor: str = "auto",
) -> str:
    """Extract the text of a PDF attachment as markdown (docling) or plain text.

    Args:
        attachment: The PDF read by ``request.read_attachment``.
        max_chars:  Maximum characters to return (truncates after this limit).
        extractor:  ``auto`` (docling with pypdf fallback), ``docling`` or
                    ``pypdf``.

    Raises:
        AttachmentError: if no extractor produced any text.
    """
    logger.info("Running %s extraction on: %s", extractor, attachment.filename)
    if extractor == "docling":
        text = _run_docling(attachment)
    elif extractor == "pypdf":
        text = _extract_text_with_pypdf(attachment)
    else:
        text = _run_docling_with_fallback(attachment)
    logger.info("Extraction complete: %s chars", f"{len(text):,}")
    return text[:max_chars]


def _run_docling_with_fallback(attachment: Attachment) -> str:
    try:
        return _run_docling(attachment)
    except AttachmentError as docling_exc:
        logger.warning(
            "Docling parse failed for %s; attempting pypdf fallback: %s",
            attachment.filename,
            docling_exc,
        )
        try:
            return _extract_text_with_pypdf(attachment)
        except AttachmentError as fallback_exc:
            root_cause = docling_exc.__cause__ or docling_exc
            raise AttachmentError(
                f"Failed to extract {attachment.filename}: "
                f"docling and pypdf fallback failed ({fallback_exc})"
            ) from root_cause


def _run_docling(attachment: Attachment) -> str:
    """Run docling on the attachment bytes and return markdown.

    Raises:
        AttachmentError: wrapping any exception raised by docling.
    """
    try:
        # Docling conversions are not thread-safe; serialize them.
        with _DOCLING_LOCK:
            source = DocumentStream(
                name=attachment.filename, stream=BytesIO(attachment.data)
            )
            result = DocumentConverter().convert(source)
            return result.document.export_to_markdown()
    except Exception as e:
        raise AttachmentError(f"Failed to extract {attachment.filename}: {e}") from e


def _extract_text_with_pypdf(attachment: Attachment) -> str:
    try:
        reader = PdfReader(BytesIO(attachment.data))
        pages = [page.extract_text() or "" for page in reader.pages]
        text = "\n\n".join(pages).strip()
    except Exception as e:
        raise AttachmentError(
            f"Failed to extract {attachment.filename}: pypdf error: {e}"
        ) from e
    if not text:
        raise AttachmentError(
            f"Failed to extract {attachment.filename}: pypdf extracted empty text"
        )
    return text
