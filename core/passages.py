# core/passages.py
import re
from typing import Awaitable, Callable, List, Sequence
import numpy as np
from core import evidence_codec
from core.embeddings import embed_texts
from model.evidence import Passage, PreparedEvidence, Source
from util import functions
from util.constants import Passages
import logging
from util.timing import timed

logger = logging.getLogger(__name__)

EmbedFn = Callable[[Sequence[str]], Awaitable[np.ndarray]]

_SENTENCE_END = re.compile(r"(?<=[.!?])\s+(?=[\"'(\[]?[A-Z0-9])")
# Tokens that end in a period without ending the sentence
_ABBREVIATIONS = frozenset(
    {
        "mr.", "mrs.", "ms.", "dr.", "prof.", "sr.", "jr.", "st.",
        "inc.", "ltd.", "corp.", "co.", "vs.", "etc.", "e.g.", "i.e.",
        "u.s.", "u.k.", "u.s.a.", "no.", "fig.", "jan.", "feb.", "mar.",
        "apr.", "jun.", "jul.", "aug.", "sep.", "sept.", "oct.", "nov.", "dec.",
    }
)


def split_sentences(text: str) -> List[str]:
    """
    Regex sentence split that keeps "Mr. Smith", "U.S. revenue" and
    "Apple Inc. reported" together.
    """
    text = functions.collapse_whitespace(text)
    if not text:
        return []
    pieces = _SENTENCE_END.split(text)
    out: List[str] = []
    for piece in pieces:
        piece = piece.strip()
        if not piece:
            continue
        if out:
            last_word = out[-1].rsplit(" ", 1)[-1].lower()
            if last_word in _ABBREVIATIONS or re.fullmatch(r"(?:[a-z]\.){2,}", last_word):
                out[-1] = f"{out[-1]} {piece}"
                continue
        out.append(piece)
    return out


def chunk_sources_into_passages(sources: Sequence[Source]) -> List[Passage]:
    """
    Overlapping 1, 2 and 3 sentence windows per source. `sourceIndex` is
    1-based so it lines up with [n] citations. A source whose sentences are all
    too short falls back to its whole snippet.
    """
    passages: List[Passage] = []
    for i, source in enumerate(sources):
        source_index = i + 1
        snippet = functions.clip_chars(source.snippet or "", Passages.MAX_CHARS_PER_SOURCE, "")
        sentences = [s for s in split_sentences(snippet) if len(s) >= Passages.MIN_LENGTH]

        if not sentences:
            if len(snippet.strip()) >= Passages.MIN_LENGTH:
                passages.append(
                    Passage(
                        text=snippet.strip(),
                        sourceId=source.id,
                        sourceIndex=source_index,
                        sourceTitle=source.title,
                    )
                )
            continue

        for j in range(len(sentences)):
            for size in Passages.WINDOW_SIZES:
                if j + size <= len(sentences):
                    passages.append(
                        Passage(
                            text=" ".join(sentences[j : j + size]),
                            sourceId=source.id,
                            sourceIndex=source_index,
                            sourceTitle=source.title,
                        )
                    )
    return passages


def _spread(passages: List[Passage], limit: int) -> List[Passage]:
    """
    Cap the passage count, taking round-robin across sources so one long page
    cannot crowd out the rest.
    """
    if len(passages) <= limit:
        return passages
    by_source: dict[int, List[Passage]] = {}
    for p in passages:
        by_source.setdefault(p.sourceIndex, []).append(p)
    queues = [by_source[k] for k in sorted(by_source)]
    picked: List[Passage] = []
    depth = 0
    while len(picked) < limit:
        progressed = False
        for q in queues:
            if depth < len(q):
                picked.append(q[depth])
                progressed = True
                if len(picked) == limit:
                    break
        if not progressed:
            break
        depth += 1
    order = {id(p): n for n, p in enumerate(passages)}
    return sorted(picked, key=lambda p: order[id(p)])


async def prepare_evidence(
    sources: Sequence[Source],
    *,
    embed: EmbedFn = embed_texts,
    max_passages: int = Passages.MAX_FOR_TRANSFER,
) -> PreparedEvidence:
    """
    Chunk sources, embed every passage once and pack the matrix for transport
    to a separately invoked verification stage.
    """
    passages = _spread(chunk_sources_into_passages(sources), max_passages)
    if not passages:
        logger.info("evidence.prepare.empty sources=%d", len(sources))
        return PreparedEvidence()

    with timed(logger, "evidence.prepare", sources=len(sources), passages=len(passages)):
        matrix = await embed([p.text for p in passages])
        transport = evidence_codec.encode(np.asarray(matrix, dtype=np.float32))
    return PreparedEvidence(passages=passages, embeddings=transport)
