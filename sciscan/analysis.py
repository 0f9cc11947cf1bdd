"""Single-article analysis: input to a validated ``AnalysisRecord``.

One LLM call per invocation, no retries and no queuing: callers (normally
``state.AnalysisSession``) are responsible for keeping at most one call in
flight. Each failure surfaces as its own ``AnalysisError`` subclass so the
caller can log and react per kind.
"""

import asyncio
import json
import logging

from pydantic import ValidationError

from sciscan.llm import ChatClient
from sciscan.models import (
    AnalysisRecord,
    Attachment,
    Config,
    EmptyResponseError,
    FormatError,
    SchemaError,
    TransportError,
)
from sciscan.request import build_request, validate_input
from sciscan.sanitize import clean_json_text

logger = logging.getLogger(__name__)


async def analyze(
    text: str,
    attachment: Attachment | None,
    client: ChatClient,
    config: Config,
) -> AnalysisRecord:
    """Analyze one article and return the validated record.

    Steps
    -----
    1. Validate the input; no call is made on failure.
    2. In ``text`` attachment mode, extract the PDF text in a worker thread.
    3. Build the request and call the AI service once.
    4. Reject an empty reply, sanitize the text and parse it as JSON.
    5. Validate the parsed object against ``AnalysisRecord``.

    Raises:
        InvalidInputError:  no input, or a non-PDF attachment.
        AttachmentError:    text extraction failed (``text`` mode only).
        TransportError:     the service call raised.
        EmptyResponseError: the service returned no text.
        FormatError:        the text is not a JSON object.
        SchemaError:        the JSON does not satisfy ``AnalysisRecord``.
    """
    validate_input(text, attachment.mime_type if attachment is not None else None)

    extracted_text = None
    if attachment is not None and config.attachment_mode == "text":
        extracted_text = await _extract_text(attachment, config)
    request = build_request(text, attachment, config, extracted_text=extracted_text)

    try:
        response = await client.complete(request)
    except Exception as e:
        logger.error("AI service call failed: %s", e)
        raise TransportError(e) from e

    raw_text = response.text
    if not raw_text or not raw_text.strip():
        raise EmptyResponseError("No response text from the AI service")

    return parse_record(raw_text)


async def _extract_text(attachment: Attachment, config: Config) -> str:
    # Imported lazily: docling is heavy and only needed in text mode.
    from sciscan.parser import extract_pdf_text

    return await asyncio.to_thread(
        extract_pdf_text,
        attachment,
        max_chars=config.max_chars,
        extractor=config.extractor,
    )


def parse_record(raw_text: str) -> AnalysisRecord:
    """Sanitize, parse and validate a raw model reply.

    Raises:
        FormatError: if the sanitized text is not a JSON object.
        SchemaError: if the object fails ``AnalysisRecord`` validation.
    """
    cleaned = clean_json_text(raw_text)
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as e:
        logger.debug("Unparseable AI response: %r", raw_text)
        raise FormatError(
            f"Failed to parse AI response as JSON: {e}", raw_text
        ) from e
    if not isinstance(data, dict):
        raise FormatError(
            f"Expected a JSON object, got {type(data).__name__}", raw_text
        )

    try:
        return AnalysisRecord.model_validate(data)
    except ValidationError as e:
        errors = compact_validation_errors(e)
        logger.debug("AI response failed validation (%s): %r", errors, raw_text)
        raise SchemaError(errors, raw_text) from e


def compact_validation_errors(exc: ValidationError) -> list[str]:
    """Convert pydantic errors into concise 'path: message' strings."""
    compact: list[str] = []
    for err in exc.errors():
        loc = ".".join(str(part) for part in err.get("loc", ()))
        msg = err.get("msg", "validation error")
        compact.append(f"{loc}: {msg}")
    return compact
