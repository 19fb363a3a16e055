# core/synthesizer.py
import asyncio
from typing import AsyncIterator, Callable, List, Optional, Sequence
from config.settings import settings
from core.llm_client import messages_for, stream_text
from model.evidence import Source
from model.pipeline import SynthesisOutput
from util import functions
from util.types import PhaseEvent
from util.timing import now_ms
import logging

logger = logging.getLogger(__name__)

StreamFn = Callable[..., AsyncIterator[str]]
SNIPPET_WORDS = 220


def no_sources_message(query: str) -> str:
    return f'I couldn\'t find any relevant sources for "{query}".'


def build_prompt(query: str, sources: Sequence[Source]) -> str:
    blocks = [
        f"[{i + 1}] {s.title}\nURL: {s.url}\n{functions.clip_words(s.snippet, SNIPPET_WORDS)}"
        for i, s in enumerate(sources)
    ]
    joined = "\n\n".join(blocks)
    return f"SOURCES:\n{joined}\n\nQUESTION:\n{query}\n\nAnswer with inline [n] citations."


def extract_citations(text: str, max_source_index: int) -> List[str]:
    """In-range [n] markers as sorted source ids s1..sN."""
    nums = {n for n in functions.citation_numbers(text) if 1 <= n <= max_source_index}
    return [f"s{n}" for n in sorted(nums)]


def validate_citations(text: str, max_source_index: int) -> List[str]:
    issues = [
        f"Invalid citation [{n}] - only {max_source_index} sources available"
        for n in functions.citation_numbers(text)
        if n > max_source_index or n < 1
    ]
    if issues:
        logger.warning("synthesis.citations.invalid count=%d", len(issues))
    return issues


async def synthesize(
    query: str,
    sources: Sequence[Source],
    *,
    model: Optional[str] = None,
    cancel: Optional[asyncio.Event] = None,
    stream: StreamFn = stream_text,
) -> AsyncIterator[PhaseEvent]:
    """
    Stream synthesis-chunk events, then one synthesis-complete event whose
    data is the SynthesisOutput. Each chunk is yielded as soon as it arrives.
    """
    started = now_ms()
    if not query or not query.strip():
        raise ValueError("query cannot be empty")

    if not sources:
        msg = no_sources_message(query)
        yield {"type": "synthesis-chunk", "content": msg}
        yield {
            "type": "synthesis-complete",
            "data": SynthesisOutput(answer=msg, sourcesUsed=[], durationMs=now_ms() - started),
        }
        return

    parts: List[str] = []
    async for piece in stream(
        model=model or settings.SYNTHESIS_MODEL,
        messages=messages_for(settings.SYNTHESIS_SYSTEM_PROMPT, build_prompt(query, sources)),
        max_tokens=settings.SYNTHESIS_MAX_TOKENS,
        cancel=cancel,
    ):
        parts.append(piece)
        yield {"type": "synthesis-chunk", "content": piece}

    answer = "".join(parts)
    validate_citations(answer, len(sources))
    output = SynthesisOutput(
        answer=answer,
        sourcesUsed=extract_citations(answer, len(sources)),
        durationMs=now_ms() - started,
    )
    logger.info(
        "synthesis.done chars=%d cited=%d ms=%d",
        len(answer),
        len(output.sourcesUsed),
        output.durationMs,
    )
    yield {"type": "synthesis-complete", "data": output}
