"""Command-line interface for sciscan.

Entry point: ``sciscan`` (configured in ``pyproject.toml``).

Usage:
    sciscan analyze "https://doi.org/10.1000/example"    # link, DOI or text
    sciscan analyze --file paper.pdf [TEXT]              # attached PDF
    sciscan history list
    sciscan history show ID
    sciscan history delete ID

Key options (analyze):
    --model, --base-url, --language, --timeout, --temperature,
    --max-output-tokens, --attachment-mode, --extractor, --format.

Global options:
    --storage, --verbose/--no-verbose, --log-file.

Before an analysis the CLI performs a lightweight reachability check against
the root host of the configured ``--base-url``.
"""

import argparse
import asyncio
import json
import logging
import os
import sys
import urllib.error
import urllib.parse
import urllib.request
from datetime import datetime
from pathlib import Path

from dotenv import load_dotenv

from sciscan.history import HistoryStore, JsonFileStore
from sciscan.llm import ChatClient, create_client
from sciscan.log import setup_logging
from sciscan.models import (
    AnalysisRecord,
    Config,
    InvalidInputError,
    _DEFAULT_MAX_CHARS,
    _DEFAULT_MODEL,
    _default_storage_path,
)
from sciscan.renderer import render_history, render_record
from sciscan.request import detect_mime_type, validate_input
from sciscan.state import AnalysisSession

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main() -> None:
    """Parse CLI arguments, open the history and run the chosen command."""
    load_dotenv()

    parser = _build_parser()
    args = parser.parse_args()

    storage_path = Path(args.storage)
    if args.log_file:
        log_file = Path(args.log_file)
    else:
        ts = datetime.now().strftime("%Y%m%d_%H%M%S")
        log_file = storage_path.parent / "logs" / f"run_{ts}.log"
    setup_logging(verbose=args.verbose, log_file=log_file)

    config = _config_from_args(args)
    history = HistoryStore(
        JsonFileStore(config.storage_path),
        key=config.history_key,
        date_format=config.date_format,
        max_entries=config.max_history,
    )
    history.load()

    if args.command == "analyze":
        _run_analyze(args, config, history)
    else:
        _run_history(args, history)


def _config_from_args(args: argparse.Namespace) -> Config:
    config = Config(storage_path=Path(args.storage), verbose=args.verbose)
    if args.command != "analyze":
        return config
    config.base_url = args.base_url
    config.model = args.model
    config.language = args.language
    config.timeout_s = args.timeout
    config.temperature = args.temperature
    config.max_output_tokens = args.max_output_tokens
    config.attachment_mode = args.attachment_mode
    config.extractor = args.extractor
    config.max_chars = args.max_chars
    config.reading_delay_s = 0.0
    return config


# ---------------------------------------------------------------------------
# analyze
# ---------------------------------------------------------------------------


def _run_analyze(args: argparse.Namespace, config: Config, history: HistoryStore) -> None:
    """Analyze one article and print it; exit 1 on any failure."""
    text = args.text or ""
    pdf_path = Path(args.file) if args.file else None

    if pdf_path is not None and not pdf_path.exists():
        logger.error("File not found: %s", pdf_path)
        sys.exit(1)
    try:
        validate_input(text, detect_mime_type(pdf_path) if pdf_path else None)
    except InvalidInputError as exc:
        logger.error("%s", exc)
        sys.exit(1)

    _check_backend(config.base_url)

    client = create_client(config)
    session = AnalysisSession(client, history, config)
    session.set_text(text)
    if pdf_path is not None:
        session.attach(pdf_path)

    record = asyncio.run(_analyze_once(session, client))
    if record is None:
        logger.error("%s", session.error_message)
        sys.exit(1)

    _emit(record, args.format)
    if session.error_message:
        logger.warning("%s", session.error_message)
    else:
        logger.info("Saved to history as %s", history.entries[0].id)


async def _analyze_once(
    session: AnalysisSession, client: ChatClient
) -> AnalysisRecord | None:
    try:
        return await session.analyze()
    finally:
        await client.close()


def _emit(record: AnalysisRecord, fmt: str) -> None:
    if fmt == "json":
        print(json.dumps(record.to_json_dict(), ensure_ascii=False, indent=2))
    else:
        print(render_record(record), end="")


# ---------------------------------------------------------------------------
# history
# ---------------------------------------------------------------------------


def _run_history(args: argparse.Namespace, history: HistoryStore) -> None:
    if args.history_command == "list":
        print(render_history(history.entries), end="")
        return

    entry = history.get(args.id)
    if args.history_command == "delete":
        history.remove(args.id)
        if entry is None:
            logger.warning("No history entry with id %s; nothing deleted", args.id)
        else:
            logger.info("Deleted %s (%s)", entry.id, entry.record.title)
        return

    if entry is None:
        logger.error("No history entry with id %s", args.id)
        sys.exit(1)
    _emit(entry.record, args.format)


# ---------------------------------------------------------------------------
# Backend health check
# ---------------------------------------------------------------------------


def _check_backend(base_url: str) -> None:
    """Verify that the LLM backend (OpenRouter, LM Studio, ...) is reachable."""
    parsed = urllib.parse.urlparse(base_url)
    health_url = f"{parsed.scheme}://{parsed.netloc}"
    try:
        with urllib.request.urlopen(health_url, timeout=5):
            pass
    except urllib.error.HTTPError:
        # Any HTTP response (4xx/5xx) means the server is up.
        return
    except Exception as exc:
        logger.error("Cannot reach LLM backend at %s\n  Details: %s", health_url, exc)
        sys.exit(1)


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------


def _build_parser() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--storage",
        metavar="FILE",
        default=str(_default_storage_path()),
        help="JSON file holding the analysis history (default: ~/.sciscan/storage.json).",
    )
    common.add_argument(
        "--verbose",
        action=argparse.BooleanOptionalAction,
        default=False,
        help="Enable DEBUG-level logging (default: off).",
    )
    common.add_argument(
        "--log-file",
        metavar="FILE",
        default=None,
        help="Write log output to FILE (default: logs/run_TIMESTAMP.log next to the storage file).",
    )

    parser = argparse.ArgumentParser(
        prog="sciscan",
        description=(
            "Summarize and assess scientific articles with an LLM. "
            "Analyze a link, DOI, text or PDF, and browse the local history."
        ),
    )
    commands = parser.add_subparsers(dest="command", required=True)

    analyze = commands.add_parser(
        "analyze", parents=[common], help="Analyze one article."
    )
    analyze.add_argument(
        "text",
        nargs="?",
        default="",
        help="Link, DOI, abstract or full text of the article.",
    )
    analyze.add_argument(
        "--file",
        metavar="PDF",
        default=None,
        help="PDF file to attach; it becomes the primary source.",
    )
    analyze.add_argument(
        "--format",
        choices=["markdown", "json"],
        default="markdown",
        help="Output format (default: markdown).",
    )
    _default_model = os.environ.get("LLM_MODEL", _DEFAULT_MODEL)
    analyze.add_argument(
        "--model",
        metavar="MODEL",
        default=_default_model,
        help=f"LLM model identifier (default: LLM_MODEL env var, currently {_default_model!r}).",
    )
    analyze.add_argument(
        "--base-url",
        metavar="URL",
        default="https://openrouter.ai/api/v1",
        help="OpenAI-compatible API base URL (default: https://openrouter.ai/api/v1).",
    )
    analyze.add_argument(
        "--language",
        metavar="LANG",
        default="Brazilian Portuguese",
        help="Language of the generated analysis (default: Brazilian Portuguese).",
    )
    analyze.add_argument(
        "--timeout",
        metavar="S",
        type=int,
        default=120,
        help="LLM call timeout in seconds (default: 120).",
    )
    analyze.add_argument(
        "--temperature",
        metavar="T",
        type=float,
        default=0.2,
        help="Sampling temperature (default: 0.2).",
    )
    analyze.add_argument(
        "--max-output-tokens",
        metavar="N",
        type=int,
        default=None,
        help="Maximum tokens the LLM may generate. Default: no limit.",
    )
    analyze.add_argument(
        "--attachment-mode",
        choices=["file", "text"],
        default="file",
        help=(
            "How an attached PDF is sent: 'file' inline (default) or 'text' "
            "extracted locally, for backends without file input."
        ),
    )
    analyze.add_argument(
        "--extractor",
        choices=["auto", "docling", "pypdf"],
        default="auto",
        help="PDF text extraction backend for --attachment-mode text (default: auto).",
    )
    analyze.add_argument(
        "--max-chars",
        metavar="N",
        type=int,
        default=_DEFAULT_MAX_CHARS,
        help=f"Maximum characters of extracted PDF text (default: {_DEFAULT_MAX_CHARS:,}).",
    )

    history = commands.add_parser(
        "history", help="List, show or delete saved analyses."
    )
    history_commands = history.add_subparsers(dest="history_command", required=True)
    history_commands.add_parser("list", parents=[common], help="List saved analyses.")
    show = history_commands.add_parser(
        "show", parents=[common], help="Print a saved analysis."
    )
    show.add_argument("id", help="Entry id as shown by 'history list'.")
    show.add_argument(
        "--format",
        choices=["markdown", "json"],
        default="markdown",
        help="Output format (default: markdown).",
    )
    delete = history_commands.add_parser(
        "delete", parents=[common], help="Delete a saved analysis."
    )
    delete.add_argument("id", help="Entry id as shown by 'history list'.")

    return parser


if __name__ == "__main__":
    main()
