"""
sciscan: structured summaries and quality scores for scientific articles.

Paste a link, DOI or text, or attach a PDF; an OpenAI-compatible LLM service
returns a two-register summary and an assessment, which is validated and
kept in a local history.
"""

__version__ = "0.1.0"
