"""Build the outbound analysis request from user input.

``build_request`` is pure: it validates the input, decides whether the
web-search plugin is enabled, and assembles the ordered content parts. It
never touches the network, so invalid input is rejected before any call is
made.
"""

import asyncio
import logging
import mimetypes
from dataclasses import dataclass
from pathlib import Path

from sciscan.models import (
    PDF_MIME_TYPE,
    Attachment,
    AttachmentError,
    Config,
    InvalidInputError,
)
from sciscan.prompts import (
    build_extracted_text_prompt,
    build_system_instruction,
    build_user_prompt,
)

logger = logging.getLogger(__name__)

MISSING_INPUT_MESSAGE = "Paste a link or text, or attach a PDF."
PDF_ONLY_MESSAGE = "Only PDF files are allowed."


# ---------------------------------------------------------------------------
# Request payload
# ---------------------------------------------------------------------------


@dataclass
class AnalysisRequest:
    """Opaque payload handed to ``ChatClient.complete``.

    Attributes:
        model:              Model identifier.
        system_instruction: Persona, rules and JSON contract.
        parts:              Ordered user content parts (optional file part
                            first, instruction text last).
        web_search:         Whether the web-search plugin is enabled.
        temperature:        Sampling temperature.
    """

    model: str
    system_instruction: str
    parts: list[dict]
    web_search: bool
    temperature: float

    def to_messages(self) -> list[dict]:
        """Return the chat-completions ``messages`` list."""
        return [
            {"role": "system", "content": self.system_instruction},
            {"role": "user", "content": self.parts},
        ]

    @property
    def prompt_text(self) -> str:
        """Concatenation of all text parts (used for logging and tests)."""
        return "\n\n".join(p["text"] for p in self.parts if p["type"] == "text")


# ---------------------------------------------------------------------------
# Attachments
# ---------------------------------------------------------------------------


def detect_mime_type(path: Path) -> str:
    """Guess the MIME type from the file name, defaulting to octet-stream."""
    mime_type, _ = mimetypes.guess_type(path.name)
    return mime_type or "application/octet-stream"


def ensure_pdf(mime_type: str) -> None:
    """Raise ``InvalidInputError`` unless *mime_type* is ``application/pdf``."""
    if mime_type != PDF_MIME_TYPE:
        raise InvalidInputError(f"{PDF_ONLY_MESSAGE} (got {mime_type})")


async def read_attachment(path: Path) -> Attachment:
    """Read a PDF from disk without blocking the event loop.

    Raises:
        InvalidInputError: if the file is not a PDF (checked before reading).
        AttachmentError:   if the file cannot be read.
    """
    mime_type = detect_mime_type(path)
    ensure_pdf(mime_type)
    try:
        data = await asyncio.to_thread(path.read_bytes)
    except OSError as e:
        raise AttachmentError(f"Failed to read {path}: {e}") from e
    attachment = Attachment(filename=path.name, mime_type=mime_type, data=data)
    logger.info("Read attachment %s (%s bytes)", path.name, f"{attachment.size:,}")
    return attachment


# ---------------------------------------------------------------------------
# Builder
# ---------------------------------------------------------------------------


def validate_input(text: str, attachment_mime_type: str | None) -> None:
    """Check the input contract shared by the builder and the session.

    Args:
        text: Free text typed by the user.
        attachment_mime_type: MIME type of the attachment, or ``None``.

    Raises:
        InvalidInputError: if both the trimmed text and the attachment are
            missing, or if the attachment is not a PDF.
    """
    if attachment_mime_type is not None:
        ensure_pdf(attachment_mime_type)
    elif not text.strip():
        raise InvalidInputError(MISSING_INPUT_MESSAGE)


def build_request(
    text: str,
    attachment: Attachment | None,
    config: Config,
    extracted_text: str | None = None,
) -> AnalysisRequest:
    """Assemble the request for one analysis call.

    With an attachment, the PDF becomes the first content part and web
    search stays off. The part is the inline file, or *extracted_text* when
    the caller already pulled the text out of the PDF. Without an
    attachment, web search is enabled so links and DOIs in *text* can be
    resolved to real content.

    Raises:
        InvalidInputError: see ``validate_input``.
    """
    validate_input(text, attachment.mime_type if attachment is not None else None)

    parts: list[dict] = []
    if attachment is not None:
        parts.append(_attachment_part(attachment, extracted_text))
    parts.append(
        {
            "type": "text",
            "text": build_user_prompt(text, has_attachment=attachment is not None),
        }
    )

    request = AnalysisRequest(
        model=config.model,
        system_instruction=build_system_instruction(config.language),
        parts=parts,
        web_search=attachment is None,
        temperature=config.temperature,
    )
    logger.debug(
        "Built request: parts=%d web_search=%s prompt=%s chars",
        len(parts),
        request.web_search,
        f"{len(request.prompt_text):,}",
    )
    return request


def _attachment_part(attachment: Attachment, extracted_text: str | None) -> dict:
    if extracted_text is not None:
        return {
            "type": "text",
            "text": build_extracted_text_prompt(attachment.filename, extracted_text),
        }
    return {
        "type": "file",
        "file": {
            "filename": attachment.filename,
            "file_data": attachment.to_data_url(),
        },
    }
