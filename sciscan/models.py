"""Pydantic models, dataclass Config, and exceptions for the analysis flow.

The record schema mirrors the JSON contract embedded in the prompt (see
``prompts.py``). Python attributes are snake_case; the JSON the model returns
and the history file both use the camelCase keys of that contract.
"""

import base64
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, StrictInt, model_validator
from pydantic.alias_generators import to_camel

# ---------------------------------------------------------------------------
# Type aliases
# ---------------------------------------------------------------------------

Status = Literal["idle", "reading", "analyzing", "complete", "error"]
"""The visible states of an analysis session."""

PDF_MIME_TYPE = "application/pdf"

# ---------------------------------------------------------------------------
# Analysis record
# ---------------------------------------------------------------------------


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Methodology(_CamelModel):
    """Study design as reported by the model (all free text)."""

    type: str
    description: str
    sample_size: str


class Score(_CamelModel):
    """Quality scores, each an integer in [1, 10].

    Floats such as ``7.5`` and out-of-range values are rejected rather than
    rounded or clamped.
    """

    total: StrictInt = Field(ge=1, le=10)
    methodology: StrictInt = Field(ge=1, le=10)
    novelty: StrictInt = Field(ge=1, le=10)
    clarity: StrictInt = Field(ge=1, le=10)
    justification: str


class AnalysisRecord(_CamelModel):
    """The structured result of analyzing one article."""

    title: str
    authors: list[str]
    publication_date: str
    executive_summary_simple: str
    executive_summary_academic: str
    free_translation: str
    research_question: str
    methodology: Methodology
    key_findings: list[str] = Field(min_length=1)
    limitations: list[str]
    implications: str
    critique: str
    score: Score
    keywords: list[str]

    @model_validator(mode="after")
    def _validate_summaries(self) -> "AnalysisRecord":
        if not self.executive_summary_simple.strip():
            raise ValueError("executiveSummarySimple must not be blank")
        if not self.executive_summary_academic.strip():
            raise ValueError("executiveSummaryAcademic must not be blank")
        return self

    def to_json_dict(self) -> dict:
        """Return the camelCase dict used on the wire and in storage."""
        return self.model_dump(by_alias=True)


# ---------------------------------------------------------------------------
# History
# ---------------------------------------------------------------------------


class HistoryEntry(BaseModel):
    """A persisted, user-deletable wrapper around one ``AnalysisRecord``.

    Stored as ``{"id", "date", "schema"}``; the record lives under ``schema``.
    Entries are frozen: they are created once and only ever removed.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: str
    date: str
    record: AnalysisRecord = Field(alias="schema")

    def to_json_dict(self) -> dict:
        return self.model_dump(by_alias=True)


# ---------------------------------------------------------------------------
# Attachment
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Attachment:
    """Binary content of a user-supplied file, read fully into memory.

    Attributes:
        filename:  Base name shown to the user and sent with the file part.
        mime_type: Detected MIME type; only ``application/pdf`` is accepted
                   by the request builder.
        data:      Raw file bytes.
    """

    filename: str
    mime_type: str
    data: bytes = field(repr=False)

    @property
    def size(self) -> int:
        return len(self.data)

    def to_base64(self) -> str:
        return base64.b64encode(self.data).decode("ascii")

    def to_data_url(self) -> str:
        return f"data:{self.mime_type};base64,{self.to_base64()}"


# ---------------------------------------------------------------------------
# Config (dataclass, not pydantic: holds runtime settings)
# ---------------------------------------------------------------------------

#: Characters of extracted PDF text sent in ``attachment_mode="text"``
#: (~50 000 tokens at 4 characters per token).
_DEFAULT_MAX_CHARS = 200_000

_DEFAULT_MODEL = "google/gemini-2.5-pro"


def _default_storage_path() -> Path:
    return Path.home() / ".sciscan" / "storage.json"


@dataclass
class Config:
    """Runtime configuration for an analysis session.

    All fields correspond to CLI flags.

    Attributes:
        base_url:          OpenAI-compatible API base URL.  OpenRouter by
                           default, since the web-search plugin is an
                           OpenRouter feature; ``http://localhost:1234/v1``
                           works for LM Studio (without web search).
        model:             Model identifier passed to the API.  Falls back to
                           the ``LLM_MODEL`` environment variable.
        api_key:           API key.  ``None`` means ``LLM_API_KEY`` is read
                           from the environment, then ``"lm-studio"``.
        timeout_s:         Seconds before the request is abandoned by the SDK.
        temperature:       Sampling temperature; kept low for stable JSON.
        max_output_tokens: Maximum generated tokens.  ``None`` means no limit.
        language:          Natural language mandated for all generated text.
        attachment_mode:   ``file`` sends the PDF inline as a file part;
                           ``text`` extracts the text locally (see
                           ``parser.py``) for backends without file input.
        extractor:         Text extraction backend for ``text`` mode.
        max_chars:         Truncation limit for extracted text.
        storage_path:      JSON file backing the key-value store.
        history_key:       Key under which the history list is persisted.
        date_format:       ``strftime`` format for the entry date label.
        max_history:       Keep at most this many entries (``None`` = all).
        reading_delay_s:   Minimum time spent in the ``reading`` state.
        verbose:           Enable DEBUG logging.
    """

    base_url: str = "https://openrouter.ai/api/v1"
    model: str = field(
        default_factory=lambda: os.environ.get("LLM_MODEL", _DEFAULT_MODEL)
    )
    api_key: str | None = None
    timeout_s: int = 120
    temperature: float = 0.2
    max_output_tokens: int | None = None
    language: str = "Brazilian Portuguese"
    attachment_mode: Literal["file", "text"] = "file"
    extractor: Literal["auto", "docling", "pypdf"] = "auto"
    max_chars: int = _DEFAULT_MAX_CHARS
    storage_path: Path = field(default_factory=_default_storage_path)
    history_key: str = "sciscan_history"
    date_format: str = "%d/%m/%Y"
    max_history: int | None = None
    reading_delay_s: float = 0.8
    verbose: bool = False


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class InvalidInputError(ValueError):
    """Raised before any request is built: no input, or a non-PDF attachment."""


class AnalysisError(Exception):
    """Base class for failures of an analysis that was actually dispatched."""


class TransportError(AnalysisError):
    """The call to the AI service itself failed (network, auth, 4xx/5xx).

    Attributes:
        cause: The exception raised by the SDK.
    """

    def __init__(self, cause: Exception) -> None:
        self.cause = cause
        super().__init__(f"AI service call failed: {cause}")


class EmptyResponseError(AnalysisError):
    """The AI service answered without any text."""


class FormatError(AnalysisError):
    """The response text could not be parsed as a JSON object.

    Attributes:
        raw_text: The unsanitized response, kept for diagnostics.
    """

    def __init__(self, message: str, raw_text: str) -> None:
        self.raw_text = raw_text
        super().__init__(message)


class SchemaError(FormatError):
    """The response parsed as JSON but does not satisfy ``AnalysisRecord``.

    Attributes:
        errors: Compact ``"path: message"`` strings from pydantic.
    """

    def __init__(self, errors: list[str], raw_text: str) -> None:
        self.errors = errors
        super().__init__(
            "AI response does not match the analysis schema: " + "; ".join(errors[:4]),
            raw_text,
        )


class AttachmentError(AnalysisError):
    """The attached file could not be read."""


class SessionStateError(RuntimeError):
    """An action was requested in a session state that does not allow it."""
