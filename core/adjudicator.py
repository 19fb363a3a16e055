# core/adjudicator.py
import asyncio
from typing import AsyncIterator, Callable, Dict, List, Optional
from config.settings import settings
from core.llm_client import messages_for, stream_text
from model.claim import VerificationReport, VerifiedClaim
from model.pipeline import AdjudicationOutput
from util import functions
from util.enums import ConfidenceLevel, Entailment
from util.types import PhaseEvent
from util.timing import now_ms
import logging

logger = logging.getLogger(__name__)

StreamFn = Callable[..., AsyncIterator[str]]
DRAFT_CHARS = 12000


def group_claims(report: VerificationReport) -> Dict[str, List[VerifiedClaim]]:
    """
    verified: SUPPORTED at medium or high confidence; disputed: CONTRADICTED;
    unverified: everything else.
    """
    groups: Dict[str, List[VerifiedClaim]] = {"verified": [], "disputed": [], "unverified": []}
    for c in report.claims:
        if c.entailment == Entailment.CONTRADICTED:
            groups["disputed"].append(c)
        elif c.entailment == Entailment.SUPPORTED and c.confidenceLevel != ConfidenceLevel.LOW:
            groups["verified"].append(c)
        else:
            groups["unverified"].append(c)
    return groups


def _claim_line(c: VerifiedClaim, with_evidence: bool = False) -> str:
    line = f"- {c.text} (confidence {c.confidence:.2f})"
    if c.issues:
        line += f" [issues: {', '.join(c.issues)}]"
    if with_evidence and c.bestMatchingSource is not None:
        evidence = functions.clip_words(c.bestMatchingSource.passage, 80)
        line += f"\n  EVIDENCE ({c.bestMatchingSource.sourceTitle}): {evidence}"
    return line


def build_prompt(query: str, draft: str, report: VerificationReport) -> str:
    groups = group_claims(report)
    sections = [
        f"QUESTION:\n{query}",
        f"DRAFT:\n{functions.clip_chars(draft, DRAFT_CHARS)}",
        f"OVERALL CONFIDENCE: {report.overallConfidence}/100",
    ]
    for name, with_evidence in (("verified", False), ("disputed", True), ("unverified", False)):
        lines = [_claim_line(c, with_evidence) for c in groups[name]] or ["- (none)"]
        sections.append(f"{name.upper()} CLAIMS:\n" + "\n".join(lines))
    return "\n\n".join(sections)


async def adjudicate(
    query: str,
    draft: str,
    report: VerificationReport,
    *,
    model: Optional[str] = None,
    cancel: Optional[asyncio.Event] = None,
    stream: StreamFn = stream_text,
) -> AsyncIterator[PhaseEvent]:
    """
    Stream adjudication-chunk events, then adjudication-complete carrying the
    AdjudicationOutput.
    """
    started = now_ms()
    parts: List[str] = []
    async for piece in stream(
        model=model or settings.ADJUDICATOR_MODEL,
        messages=messages_for(
            settings.ADJUDICATOR_SYSTEM_PROMPT, build_prompt(query, draft, report)
        ),
        max_tokens=settings.SYNTHESIS_MAX_TOKENS,
        temperature=0.3,
        cancel=cancel,
    ):
        parts.append(piece)
        yield {"type": "adjudication-chunk", "content": piece}

    output = AdjudicationOutput(text="".join(parts), durationMs=now_ms() - started)
    logger.info("adjudication.done chars=%d ms=%d", len(output.text), output.durationMs)
    yield {"type": "adjudication-complete", "data": output}
