# core/claims.py
import re
from typing import List, Optional
from core.numeric import extract_numbers
from core.passages import split_sentences
from model.claim import Claim
from util import functions
from util.constants import Claims
import logging

logger = logging.getLogger(__name__)

_CODE_BLOCK = re.compile(r"```.*?```", re.DOTALL)
_LINK = re.compile(r"\[([^\]]+)\]\((?:[^)]+)\)")
_EMPHASIS = re.compile(r"(\*\*|__|\*|_|`)")
_LIST_MARKER = re.compile(r"^\s*(?:[-*+•]|\d+[.)])\s+")
_RULE = re.compile(r"^\s*(?:-{3,}|\*{3,}|_{3,})\s*$")
# "fact. [1][2]" -> "fact [1][2]." so the marker stays with its sentence
_TRAILING_CITES = re.compile(r"([.!?])((?:\s*\[\d+\])+)")


def _plain_lines(answer: str) -> List[str]:
    """Markdown answer -> prose lines; headings, tables and rules dropped."""
    text = _CODE_BLOCK.sub(" ", answer)
    out: List[str] = []
    for line in text.splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith("#") or stripped.startswith("|"):
            continue
        if stripped.startswith(">"):
            stripped = stripped.lstrip("> ")
        if _RULE.match(stripped):
            continue
        stripped = _LIST_MARKER.sub("", stripped)
        stripped = _LINK.sub(r"\1", stripped)
        stripped = _EMPHASIS.sub("", stripped)
        stripped = _TRAILING_CITES.sub(lambda m: m.group(2) + m.group(1), stripped)
        out.append(stripped)
    return out


def _is_checkable(text: str) -> bool:
    if text.endswith("?") or text.endswith(":"):
        return False
    if len(text) < Claims.MIN_CHARS:
        return False
    return len(text.split()) >= Claims.MIN_WORDS


def extract_claims(answer: str, max_claims: Optional[int] = None) -> List[Claim]:
    """
    Sentence-level claims from a synthesized answer, in reading order.
    Citation markers move into `citedSources` and numbers into `numbers`;
    fragments too short to check, questions and duplicates are skipped.
    """
    if not answer or not answer.strip() or max_claims == 0:
        return []

    claims: List[Claim] = []
    seen: set[str] = set()
    for line in _plain_lines(answer):
        for sentence in split_sentences(line):
            cited = [n for n in functions.citation_numbers(sentence) if n > 0]
            text = functions.strip_citations(sentence).strip()
            if not _is_checkable(text):
                continue
            key = text.lower()
            if key in seen:
                continue
            seen.add(key)
            claims.append(
                Claim(
                    id=f"c{len(claims) + 1}",
                    text=text,
                    numbers=extract_numbers(text),
                    citedSources=cited,
                )
            )
            if max_claims is not None and len(claims) >= max_claims:
                logger.info("claims.extract.capped max=%d", max_claims)
                return claims
    logger.info("claims.extract count=%d", len(claims))
    return claims
