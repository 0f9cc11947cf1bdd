"""Headless session state machine driving an analysis front end.

States::

    idle ──analyze──▶ reading ──attachment read──▶ analyzing ──ok──▶ complete
      ▲                                               │
      │                                               └──fail──▶ error
      └──────────── reset / open_history ◀──────────── complete, error

``reading`` covers loading the attached PDF from disk (plus an optional
minimum delay); ``analyzing`` covers the single AI call. A session never has
more than one analysis in flight: ``analyze`` is refused unless the session
is ``idle`` or ``error``.

Front ends observe the session through the ``on_change`` callback, which is
invoked after every state or field change with the session itself.
"""

import asyncio
import logging
from pathlib import Path
from typing import Callable

from sciscan.analysis import analyze
from sciscan.history import HistoryStore
from sciscan.llm import ChatClient
from sciscan.models import (
    AnalysisError,
    AnalysisRecord,
    Config,
    EmptyResponseError,
    FormatError,
    HistoryEntry,
    InvalidInputError,
    SessionStateError,
    Status,
    TransportError,
)
from sciscan.request import detect_mime_type, ensure_pdf, read_attachment, validate_input

logger = logging.getLogger(__name__)

ANALYSIS_FAILED_MESSAGE = (
    "Analysis failed. Check the link or the file and try again."
)
HISTORY_SAVE_FAILED_MESSAGE = "The analysis could not be saved to history."

_ANALYZABLE: frozenset[Status] = frozenset({"idle", "error"})


class AnalysisSession:
    """The user-facing state of one application run.

    Attributes:
        status:          Current visible state.
        input_text:      Text typed by the user.
        attachment_path: PDF selected by the user, if any.
        error_message:   User-facing message for the last validation or
                         analysis failure; ``None`` when there is none.
        last_error:      The typed exception behind ``error_message``.
        result:          The record currently displayed, if any.
    """

    def __init__(
        self,
        client: ChatClient,
        history: HistoryStore,
        config: Config,
        on_change: Callable[["AnalysisSession"], None] | None = None,
    ) -> None:
        self._client = client
        self._history = history
        self._config = config
        self._on_change = on_change

        self.status: Status = "idle"
        self.input_text = ""
        self.attachment_path: Path | None = None
        self.error_message: str | None = None
        self.last_error: Exception | None = None
        self.result: AnalysisRecord | None = None

    @property
    def history(self) -> tuple[HistoryEntry, ...]:
        return self._history.entries

    @property
    def busy(self) -> bool:
        return self.status in ("reading", "analyzing")

    # ------------------------------------------------------------------
    # Input
    # ------------------------------------------------------------------

    def set_text(self, text: str) -> None:
        self.input_text = text
        self._notify()

    def attach(self, path: Path) -> bool:
        """Select a PDF to analyze; non-PDF files are refused with a message."""
        try:
            ensure_pdf(detect_mime_type(path))
        except InvalidInputError as e:
            logger.warning("Rejected attachment %s: %s", path.name, e)
            self._fail_validation(e)
            return False
        self.attachment_path = path
        self.error_message = None
        self.last_error = None
        self._notify()
        return True

    def detach(self) -> None:
        self.attachment_path = None
        self._notify()

    # ------------------------------------------------------------------
    # Analysis
    # ------------------------------------------------------------------

    async def analyze(self) -> AnalysisRecord | None:
        """Run one analysis of the current input.

        Returns the record on success. Returns ``None`` when the input is
        invalid (the session stays where it was and ``error_message`` is set)
        or when the analysis fails (the session moves to ``error``).
        A record that cannot be saved to history is still shown: the session
        ends ``complete`` with ``error_message`` set.

        Raises:
            SessionStateError: if the session is not ``idle`` or ``error``.
        """
        if self.status not in _ANALYZABLE:
            raise SessionStateError(f"Cannot start an analysis while {self.status}")

        try:
            validate_input(self.input_text, self._attachment_mime_type())
        except InvalidInputError as e:
            self._fail_validation(e)
            return None

        self.error_message = None
        self.last_error = None
        self._transition("reading")
        try:
            attachment = None
            if self.attachment_path is not None:
                attachment = await read_attachment(self.attachment_path)
            if self._config.reading_delay_s > 0:
                await asyncio.sleep(self._config.reading_delay_s)

            self._transition("analyzing")
            record = await analyze(
                self.input_text, attachment, self._client, self._config
            )
        except (AnalysisError, InvalidInputError) as e:
            self._fail_analysis(e)
            return None

        try:
            self._history.append(record)
        except OSError as e:
            logger.error("Failed to save analysis to history: %s", e)
            self.last_error = e
            self.error_message = HISTORY_SAVE_FAILED_MESSAGE
        self.result = record
        self.input_text = ""
        self.attachment_path = None
        self._transition("complete")
        return record

    async def retry(self) -> AnalysisRecord | None:
        """Re-run the analysis after a failure with the same input."""
        if self.status != "error":
            raise SessionStateError(f"Nothing to retry while {self.status}")
        return await self.analyze()

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------

    def reset(self) -> None:
        """Return to ``idle``, dropping the displayed result and any error."""
        if self.busy:
            raise SessionStateError(f"Cannot reset while {self.status}")
        self.result = None
        self.error_message = None
        self.last_error = None
        self._transition("idle")

    def open_history(self, entry_id: str) -> AnalysisRecord:
        """Display a stored analysis; the session ends up ``complete``.

        Raises:
            KeyError: if no entry has *entry_id*.
        """
        entry = self._history.get(entry_id)
        if entry is None:
            raise KeyError(entry_id)
        self.reset()
        self.result = entry.record
        self._transition("complete")
        return entry.record

    def delete_history(self, entry_id: str) -> None:
        self._history.remove(entry_id)
        self._notify()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _attachment_mime_type(self) -> str | None:
        if self.attachment_path is None:
            return None
        return detect_mime_type(self.attachment_path)

    def _transition(self, status: Status) -> None:
        logger.debug("Session %s -> %s", self.status, status)
        self.status = status
        self._notify()

    def _fail_validation(self, exc: InvalidInputError) -> None:
        self.error_message = str(exc)
        self.last_error = exc
        self._notify()

    def _fail_analysis(self, exc: Exception) -> None:
        if isinstance(exc, FormatError):
            logger.error("AI response could not be used: %s", exc)
            logger.debug("Raw AI response: %r", exc.raw_text)
        elif isinstance(exc, EmptyResponseError):
            logger.error("AI service returned an empty response")
        elif isinstance(exc, TransportError):
            logger.error("AI service unavailable: %s", exc.cause)
        else:
            logger.error("Analysis failed: %s", exc)
        self.last_error = exc
        self.error_message = ANALYSIS_FAILED_MESSAGE
        self._transition("error")

    def _notify(self) -> None:
        if self._on_change is not None:
            self._on_change(self)

