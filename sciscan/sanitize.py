"""Best-effort extraction of a JSON object from free-form model output.

Models asked for bare JSON still wrap it in prose or markdown fences now and
then. ``clean_json_text`` cuts the text down to the outermost ``{...}`` span
and leaves actual parsing (and its error reporting) to the caller.
"""


def clean_json_text(text: str) -> str:
    """Return the substring from the first ``{`` to the last ``}`` inclusive.

    If either brace is missing, or the last ``}`` does not come after the
    first ``{``, the stripped input is returned unchanged so that
    ``json.loads`` fails on it with a meaningful message.
    """
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end == -1 or end <= start:
        return text.strip()
    return text[start : end + 1]
