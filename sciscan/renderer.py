"""Render an ``AnalysisRecord`` (or the history list) as markdown.

No I/O is performed here; the caller (``cli.py``) decides where the
returned string goes.
"""

from typing import Iterable, Sequence

from sciscan.models import AnalysisRecord, HistoryEntry, Score

# Score bands shown next to each score (same thresholds as the web view).
_HIGH_SCORE = 8
_LOW_SCORE = 5


def score_band(score: int) -> str:
    """Return ``"high"`` for 8+, ``"low"`` below 5, otherwise ``"medium"``."""
    if score >= _HIGH_SCORE:
        return "high"
    if score < _LOW_SCORE:
        return "low"
    return "medium"


def render_record(record: AnalysisRecord) -> str:
    """Convert a record to the markdown shown by ``sciscan analyze``."""
    sections = [
        _render_header(record),
        _section("Simple summary", record.executive_summary_simple),
        _section("Academic summary", record.executive_summary_academic),
        _section("Research question", record.research_question),
        _render_methodology(record),
        _section("Key findings", _bullets(record.key_findings)),
        _section("Limitations", _bullets(record.limitations) or "_none reported_"),
        _section("Implications", record.implications),
        _section("Critique", record.critique),
        _render_score(record.score),
    ]
    return "\n\n".join(sections) + "\n"


def render_history(entries: Sequence[HistoryEntry]) -> str:
    """One line per entry: id, date, overall score and title."""
    if not entries:
        return "No analyses saved yet.\n"
    lines = [
        f"{e.id}  {e.date}  [{e.record.score.total:>2}/10]  {e.record.title}"
        for e in entries
    ]
    return "\n".join(lines) + "\n"


# ---------------------------------------------------------------------------
# Sub-renderers
# ---------------------------------------------------------------------------


def _render_header(record: AnalysisRecord) -> str:
    lines = [f"# {record.title}"]
    if record.free_translation and record.free_translation != record.title:
        lines.append(f"_{record.free_translation}_")
    lines.append("")
    lines.append(f"**Authors:** {', '.join(record.authors) or 'not reported'}")
    lines.append(f"**Published:** {record.publication_date}")
    if record.keywords:
        lines.append(f"**Keywords:** {', '.join(record.keywords)}")
    return "\n".join(lines)


def _render_methodology(record: AnalysisRecord) -> str:
    m = record.methodology
    body = (
        f"**Type:** {m.type}\n"
        f"**Sample size:** {m.sample_size}\n\n"
        f"{m.description}"
    )
    return _section("Methodology", body)


def _render_score(score: Score) -> str:
    rows = [
        ("Overall", score.total),
        ("Methodology", score.methodology),
        ("Novelty", score.novelty),
        ("Clarity", score.clarity),
    ]
    table = "| Criterion | Score | Band |\n|---|---|---|\n" + "\n".join(
        f"| {name} | {value}/10 | {score_band(value)} |" for name, value in rows
    )
    return _section("Score", f"{table}\n\n{score.justification}")


def _section(title: str, body: str) -> str:
    return f"## {title}\n\n{body}"


def _bullets(items: Iterable[str]) -> str:
    return "\n".join(f"- {item}" for item in items)
