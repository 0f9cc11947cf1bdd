"""Prompt builders for the article analysis call.

``build_system_instruction`` returns the persona, the two-register summary
rules, the output language and the exact JSON contract. The contract is
spelled out in prose instead of being sent as a response schema because
structured-output modes cannot be combined with the web-search plugin.

``build_user_prompt`` returns the instruction text that follows the optional
PDF part in the user message.
"""

JSON_STRUCTURE = """\
Reply ONLY with one valid JSON object. Do not use markdown code fences. \
The JSON must follow exactly this structure:
{
  "title": "string (title of the original article)",
  "authors": ["string", "string"],
  "publicationDate": "string (publication date, estimated if needed)",
  "executiveSummarySimple": "string (explanatory summary: keep the technical terms but explain each one briefly in parentheses or right after it, e.g. '...use of NSAIDs (anti-inflammatory drugs)...'. Be didactic without talking down to the reader)",
  "executiveSummaryAcademic": "string (high-level technical summary using the field's proper jargon, focused on methodology and statistics, written for academic peers)",
  "freeTranslation": "string (translation of the article TITLE into {language})",
  "researchQuestion": "string (the main research question)",
  "methodology": {
    "type": "string (e.g. quantitative, qualitative, mixed, review)",
    "description": "string (short description of the methods)",
    "sampleSize": "string (sample size, if any)"
  },
  "keyFindings": ["string", "string", "string"],
  "limitations": ["string", "string"],
  "implications": "string",
  "critique": "string (constructive academic critique of quality and validity)",
  "score": {
    "total": integer (1 to 10, overall score),
    "methodology": integer (1 to 10, methodological rigor),
    "novelty": integer (1 to 10, innovation and originality),
    "clarity": integer (1 to 10, clarity of writing),
    "justification": "string (one short sentence justifying the score)"
  },
  "keywords": ["string", "string"]
}"""


def build_system_instruction(language: str) -> str:
    """Build the system instruction for one analysis call.

    Args:
        language: Natural language every generated string must be written in
            (the JSON keys stay in English).
    """
    structure = JSON_STRUCTURE.replace("{language}", language)
    return f"""\
You are a world-class senior scientist and research analyst.
Your task is to analyze the provided document, text or link in depth and
structure the data for an application.

INSTRUCTIONS:
1. Produce TWO summaries: a 'Simple' one (didactic, explanatory, undergraduate
   level) and an 'Academic' one (technical, doctoral level).
2. In the simple summary, briefly explain acronyms and complex terms when you
   use them, e.g. "PCR (Polymerase Chain Reaction)".
3. Answer EXCLUSIVELY in {language}.
4. Follow the requested JSON format strictly.

{structure}"""


def build_user_prompt(text: str, has_attachment: bool) -> str:
    """Build the instruction text part of the user message.

    Args:
        text: Free text typed by the user (a link, DOI, abstract or full
            text).  May be empty when a PDF is attached.
        has_attachment: Whether a PDF precedes this text in the message.
    """
    if has_attachment:
        hint = "Treat the attached PDF file as the primary source."
    else:
        hint = "If this is a link, access it to extract the actual information."

    if not text.strip():
        return (
            "Analyze this complete scientific article following the requested "
            f"JSON schema.\n\n{hint}"
        )
    return f"Analyze the following content:\n\n{text}\n\n{hint}"


def build_extracted_text_prompt(filename: str, paper_text: str) -> str:
    """Wrap locally extracted PDF text so it reads as the attached document."""
    return (
        f"Full text extracted from the attached PDF '{filename}' "
        f"(primary source):\n\n{paper_text}"
    )
