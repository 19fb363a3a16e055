# util/functions.py
import re

_WS = re.compile(r"\s+")
_CITATION = re.compile(r"\[(\d+)\]")


def clip_words(text: str, max_words: int = 100) -> str:
    """
    - Trim 'text' to at most `max_words` tokens separated by whitespace.
    - Adds an ellipsis when trimming occurs.
    """
    words = text.split()
    if len(words) <= max_words:
        return text
    return " ".join(words[:max_words]) + " …"


def clip_chars(text: str, max_chars: int, marker: str = "... [TRUNCATED]") -> str:
    if len(text) <= max_chars:
        return text
    return text[:max_chars] + marker


def collapse_whitespace(text: str) -> str:
    return _WS.sub(" ", text or "").strip()


def citation_numbers(text: str) -> list[int]:
    """[n] markers in order of first appearance, deduplicated."""
    seen: list[int] = []
    for m in _CITATION.finditer(text or ""):
        n = int(m.group(1))
        if n not in seen:
            seen.append(n)
    return seen


def strip_citations(text: str) -> str:
    return collapse_whitespace(_CITATION.sub("", text or "")).replace(" .", ".")


def strip_code_fence(raw: str) -> str:
    raw = (raw or "").strip()
    if raw.startswith("```"):
        raw = raw.strip("`")
        if raw.startswith("json"):
            raw = raw[4:].strip()
    return raw
